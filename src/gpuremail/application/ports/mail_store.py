from __future__ import annotations
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from datetime import datetime
from email.message import EmailMessage
from typing import Optional

from gpuremail.domain.entities import Credentials
from gpuremail.domain.models import Folder, MessageFlag


@dataclass(frozen=True)
class RawEmail:
    folder: str
    uid: int
    flags: frozenset[str] = field(default_factory=frozenset)
    internaldate: Optional[datetime] = None
    # Header block plus either the full body or only its first bytes
    rfc822_bytes: bytes = b""
    truncated: bool = False

    @property
    def seen(self) -> bool:
        return "\\Seen" in self.flags

    @property
    def flagged(self) -> bool:
        return "\\Flagged" in self.flags


class MailStore:
    """One authenticated session against the remote store, scoped to a request."""

    def list_folders(self, with_counts: bool = False) -> list[Folder]:
        raise NotImplementedError

    def select(self, folder: str, readonly: bool = True) -> int:
        raise NotImplementedError

    def search(self, unread_only: bool = False) -> list[int]:
        raise NotImplementedError

    def fetch_summaries(self, uids: list[int]) -> list[RawEmail]:
        raise NotImplementedError

    def fetch_message(self, uid: int) -> Optional[RawEmail]:
        raise NotImplementedError

    def set_flag(self, uid: int, flag: MessageFlag, value: bool) -> bool:
        raise NotImplementedError

    def delete(self, uid: int) -> bool:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError


class MailSessionFactory:
    def open_session(
        self,
        creds: Credentials,
        folder: Optional[str] = None,
        readonly: bool = True,
        timeout: Optional[float] = None,
    ) -> AbstractContextManager[MailStore]:
        raise NotImplementedError


class MailTransport:
    async def send(self, creds: Credentials, message: EmailMessage) -> str:
        raise NotImplementedError
