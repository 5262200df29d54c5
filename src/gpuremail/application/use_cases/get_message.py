"""Single-message detail fetch."""

from __future__ import annotations

from typing import Callable

from loguru import logger

from gpuremail.application.ports.mail_store import MailStore, RawEmail
from gpuremail.domain.errors import NotFound
from gpuremail.domain.models import MessageDetail

DetailDecoder = Callable[[RawEmail, int], MessageDetail]


def get_message(store: MailStore, folder: str, uid: int, decoder: DetailDecoder, preview_length: int = 100) -> MessageDetail:
    raw = store.fetch_message(uid)
    if raw is None:
        raise NotFound(f"Message {uid} not found in {folder}")
    logger.debug(f"Fetched UID {uid} from {folder} ({len(raw.rfc822_bytes)} bytes)")
    return decoder(raw, preview_length)
