"""Flag and delete mutations against a folder-scoped message UID."""

from __future__ import annotations

from loguru import logger

from gpuremail.application.ports.mail_store import MailStore
from gpuremail.domain.errors import NotFound
from gpuremail.domain.models import MessageFlag


def set_flag(store: MailStore, folder: str, uid: int, flag: MessageFlag, value: bool) -> None:
    """Set or clear ``flag``; returns once the server has acknowledged the change."""
    if not store.set_flag(uid, flag, value):
        raise NotFound(f"Message {uid} not found in {folder}")
    logger.info(f"{'Set' if value else 'Cleared'} {flag.value} on UID {uid} in {folder}")


def delete_message(store: MailStore, folder: str, uid: int) -> None:
    """Move to trash or expunge, whichever the server supports."""
    if not store.delete(uid):
        raise NotFound(f"Message {uid} not found in {folder}")
    logger.info(f"Deleted UID {uid} from {folder}")
