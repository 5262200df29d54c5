from __future__ import annotations
import base64
import imaplib
import re
import socket
import ssl
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional

from loguru import logger

from gpuremail.application.ports.mail_store import MailStore, RawEmail
from gpuremail.domain.errors import (
    GatewayTimeout,
    NotFound,
    ProtocolError,
    Unreachable,
)
from gpuremail.domain.models import Folder, MessageFlag

_LIST_LINE = re.compile(r'^\((?P<flags>[^)]*)\)\s+(?P<delim>"(?:[^"\\]|\\.)*"|NIL)\s+(?P<name>.+)$')
_FETCH_START = re.compile(rb"^\d+ \(")
_SECTION = re.compile(rb"(BODY\[[A-Z.0-9]*\])(?:<\d+>)? \{\d+\}$")
_UID = re.compile(rb"UID (\d+)")
_FLAGS = re.compile(rb"FLAGS \(([^)]*)\)")
_INTERNALDATE = re.compile(rb'INTERNALDATE "([^"]+)"')
_STATUS_MESSAGES = re.compile(r"MESSAGES (\d+)")
_MUTF7_SHIFT = re.compile(r"&([A-Za-z0-9+,]*)-")


def encode_folder_name(name: str) -> str:
    """
    Encode a folder name as IMAP modified UTF-7 (RFC 3501 5.1.3).

    Printable ASCII passes through, ``&`` becomes ``&-`` and every other run
    of characters is UTF-16BE, base64 with ``,`` for ``/`` and no padding.
    """
    out: list[str] = []
    pending: list[str] = []

    def flush() -> None:
        if pending:
            encoded = base64.b64encode("".join(pending).encode("utf-16-be")).decode("ascii")
            out.append("&" + encoded.rstrip("=").replace("/", ",") + "-")
            pending.clear()

    for c in name:
        if 0x20 <= ord(c) <= 0x7E:
            flush()
            out.append("&-" if c == "&" else c)
        else:
            pending.append(c)
    flush()
    return "".join(out)


def decode_folder_name(name: str) -> str:
    """Inverse of encode_folder_name. Names that do not decode are returned as sent."""

    def shift(match: re.Match) -> str:
        chunk = match.group(1)
        if not chunk:
            return "&"
        chunk = chunk.replace(",", "/")
        return base64.b64decode(chunk + "=" * (-len(chunk) % 4)).decode("utf-16-be")

    try:
        return _MUTF7_SHIFT.sub(shift, name)
    except ValueError:
        logger.debug(f"Folder name is not modified UTF-7: {name!r}")
        return name


def quote_folder_name(name: str) -> str:
    """Encode a folder name for IMAP commands, quoting it when it contains special characters."""
    if name.startswith('"') and name.endswith('"') and len(name) > 1:
        return name
    name = encode_folder_name(name)
    if not name or any(c in name for c in ' "\\(){}%*'):
        escaped = name.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return name


def _unquote(value: str) -> str:
    if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
        return value[1:-1].replace('\\"', '"').replace("\\\\", "\\")
    return value


def parse_list_response(data: list) -> list[Folder]:
    """Parse imaplib LIST data: ``(\\HasNoChildren) "/" "INBOX"`` lines."""
    folders: list[Folder] = []
    for item in data:
        if item is None:
            continue
        if isinstance(item, tuple):
            # Folder name sent as a literal: (b'(\\Flags) "/" {11}', b'Folder Name')
            line = item[0].decode("utf-8", errors="replace")
            line = re.sub(r"\{\d+\}$", '"' + item[1].decode("utf-8", errors="replace").replace('"', '\\"') + '"', line)
        else:
            line = item.decode("utf-8", errors="replace") if isinstance(item, bytes) else str(item)

        match = _LIST_LINE.match(line.strip())
        if not match:
            logger.debug(f"Skipping unparseable LIST line: {line!r}")
            continue

        delim = match.group("delim")
        flags = match.group("flags").split()
        if any(f.lower() == "\\noselect" for f in flags):
            continue
        folders.append(
            Folder(
                name=decode_folder_name(_unquote(match.group("name").strip())),
                delimiter=None if delim == "NIL" else _unquote(delim),
                flags=flags,
            )
        )
    return folders


def _parse_internaldate(value: bytes) -> Optional[datetime]:
    try:
        return datetime.strptime(value.decode().strip(), "%d-%b-%Y %H:%M:%S %z")
    except ValueError:
        return None


def parse_fetch_response(data: list, folder: str) -> list[RawEmail]:
    """
    Group imaplib FETCH data into RawEmail records.

    imaplib hands back a flat list where every literal is a (meta, bytes) tuple
    and plain items are the bytes between literals, e.g.
    [(b'1 (UID 7 FLAGS (\\Seen) BODY[HEADER] {42}', b'...'), b')'].
    A new message starts whenever a meta item begins with ``<seq> (``.
    """
    groups: list[dict] = []
    for item in data:
        if item is None:
            continue
        meta, literal = (item[0], item[1]) if isinstance(item, tuple) else (item, None)
        if _FETCH_START.match(meta) or not groups:
            groups.append({"meta": b"", "sections": {}})
        current = groups[-1]
        current["meta"] += b" " + meta
        if literal is not None:
            section = _SECTION.search(meta)
            if section:
                current["sections"][section.group(1).decode()] = literal

    results: list[RawEmail] = []
    for group in groups:
        uid = _UID.search(group["meta"])
        if not uid:
            continue
        flags = _FLAGS.search(group["meta"])
        internaldate = _INTERNALDATE.search(group["meta"])
        sections = group["sections"]
        if "BODY[]" in sections:
            payload, truncated = sections["BODY[]"], False
        else:
            header = sections.get("BODY[HEADER]", b"")
            payload, truncated = header + sections.get("BODY[TEXT]", b""), True
        results.append(
            RawEmail(
                folder=folder,
                uid=int(uid.group(1)),
                flags=frozenset(flags.group(1).decode().split()) if flags else frozenset(),
                internaldate=_parse_internaldate(internaldate.group(1)) if internaldate else None,
                rfc822_bytes=payload,
                truncated=truncated,
            )
        )
    return results


@contextmanager
def translate_errors(operation: str) -> Iterator[None]:
    """Map imaplib/socket failures raised inside the block to gateway errors."""
    try:
        yield
    except (TimeoutError, socket.timeout) as e:
        raise GatewayTimeout(f"Mail server timed out during {operation}") from e
    except imaplib.IMAP4.abort as e:
        raise Unreachable(f"Connection to mail server lost during {operation}") from e
    except imaplib.IMAP4.error as e:
        raise ProtocolError(f"{operation} failed: {e}") from e
    except UnicodeError as e:
        # imaplib sends command arguments as ASCII
        raise ProtocolError(f"{operation} failed: argument is not ASCII") from e
    except (OSError, ssl.SSLError) as e:
        raise Unreachable(f"Mail server unreachable during {operation}: {e}") from e


class ImapMailSession(MailStore):
    """
    Mailbox operations over one authenticated imaplib connection.
    Owned by a single request; closed by the session context manager.
    """

    def __init__(self, conn: imaplib.IMAP4, account: str, trash_folder: str = "Trash", preview_bytes: int = 2048) -> None:
        self._conn: Optional[imaplib.IMAP4] = conn
        self.account = account
        self.trash_folder = trash_folder
        self.preview_bytes = preview_bytes
        self.folder: Optional[str] = None

    @property
    def conn(self) -> imaplib.IMAP4:
        if self._conn is None:
            raise ProtocolError("IMAP session already closed")
        return self._conn

    @property
    def capabilities(self) -> set[str]:
        return {c.upper() for c in getattr(self.conn, "capabilities", ())}

    def close(self, graceful: bool = True) -> None:
        """Log out, or drop the socket straight away when ``graceful`` is False. Idempotent."""
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        # LOGOUT rather than CLOSE: CLOSE would expunge \Deleted messages
        try:
            if graceful:
                conn.logout()
                return
        except (imaplib.IMAP4.error, OSError) as e:
            logger.debug(f"LOGOUT failed for {self.account}, dropping connection: {e}")
        try:
            conn.shutdown()
        except OSError as e:
            logger.debug(f"Socket shutdown failed for {self.account}: {e}")

    def set_timeout(self, timeout: float) -> None:
        sock = getattr(self.conn, "sock", None)
        if sock is not None:
            sock.settimeout(timeout)

    def _require(self) -> str:
        if self.folder is None:
            raise ProtocolError("No folder selected")
        return self.folder

    # ------------------------------------------------------------------
    # Folders
    # ------------------------------------------------------------------

    def list_folders(self, with_counts: bool = False) -> list[Folder]:
        with translate_errors("LIST"):
            typ, data = self.conn.list()
        if typ != "OK":
            raise ProtocolError(f"LIST failed: {data!r}")

        folders = parse_list_response(data or [])
        if with_counts:
            for folder in folders:
                folder.message_count = self.folder_size(folder.name)
        logger.debug(f"Found {len(folders)} folders for {self.account}")
        return folders

    def folder_size(self, name: str) -> Optional[int]:
        with translate_errors("STATUS"):
            typ, data = self.conn.status(quote_folder_name(name), "(MESSAGES)")
        if typ != "OK" or not data or not data[0]:
            logger.warning(f"Could not get status for {name}: {data!r}")
            return None
        raw = data[0].decode("utf-8", errors="replace") if isinstance(data[0], bytes) else str(data[0])
        match = _STATUS_MESSAGES.search(raw)
        return int(match.group(1)) if match else None

    def select(self, folder: str, readonly: bool = True) -> int:
        with translate_errors("SELECT"):
            typ, data = self.conn.select(quote_folder_name(folder), readonly=readonly)
        if typ != "OK":
            raise NotFound(f"Folder not found: {folder}")
        self.folder = folder
        try:
            return int(data[0]) if data and data[0] else 0
        except ValueError:
            return 0

    def _trash_candidate(self) -> Optional[str]:
        folders = self.list_folders()
        for folder in folders:
            if any(f.lower() == "\\trash" for f in folder.flags):
                return folder.name
        for folder in folders:
            if folder.name.lower() == self.trash_folder.lower():
                return folder.name
        return None

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def search(self, unread_only: bool = False) -> list[int]:
        folder = self._require()
        criterion = "UNSEEN" if unread_only else "ALL"
        with translate_errors("UID SEARCH"):
            typ, data = self.conn.uid("SEARCH", None, criterion)
        if typ != "OK":
            raise ProtocolError(f"UID SEARCH {criterion} failed in {folder}")

        uids: list[int] = []
        for chunk in data or []:
            if chunk:
                uids.extend(int(x) for x in chunk.split())
        return uids

    def fetch_summaries(self, uids: list[int]) -> list[RawEmail]:
        folder = self._require()
        if not uids:
            return []
        query = (
            f"(UID FLAGS INTERNALDATE BODY.PEEK[HEADER] "
            f"BODY.PEEK[TEXT]<0.{self.preview_bytes}>)"
        )
        with translate_errors("UID FETCH"):
            typ, data = self.conn.uid("FETCH", ",".join(str(u) for u in uids), query)
        if typ != "OK":
            raise ProtocolError(f"UID FETCH failed in {folder}")
        return parse_fetch_response(data or [], folder)

    def fetch_message(self, uid: int) -> Optional[RawEmail]:
        folder = self._require()
        with translate_errors("UID FETCH"):
            typ, data = self.conn.uid("FETCH", str(uid), "(UID FLAGS INTERNALDATE BODY.PEEK[])")
        if typ != "OK":
            raise ProtocolError(f"UID FETCH {uid} failed in {folder}")
        for raw in parse_fetch_response(data or [], folder):
            if raw.uid == uid:
                return raw
        return None

    def set_flag(self, uid: int, flag: MessageFlag, value: bool) -> bool:
        folder = self._require()
        op = "+FLAGS" if value else "-FLAGS"
        with translate_errors("UID STORE"):
            typ, data = self.conn.uid("STORE", str(uid), op, f"({flag.imap_name})")
        if typ != "OK":
            raise ProtocolError(f"UID STORE {uid} failed in {folder}")
        # The untagged FETCH is the server's acknowledgement. Some servers skip it
        # when the flags did not change, so an empty reply is confirmed by SEARCH.
        if any(item for item in data or []):
            logger.debug(f"{op} {flag.imap_name} on UID {uid} in {folder}")
            return True
        if self.exists(uid):
            logger.debug(f"{op} {flag.imap_name} on UID {uid} in {folder} left flags unchanged")
            return True
        return False

    def exists(self, uid: int) -> bool:
        self._require()
        with translate_errors("UID SEARCH"):
            typ, data = self.conn.uid("SEARCH", None, f"UID {uid}")
        if typ != "OK":
            return False
        return any(str(uid).encode() in (chunk or b"").split() for chunk in data or [])

    def delete(self, uid: int) -> bool:
        folder = self._require()
        if not self.exists(uid):
            return False

        trash = None
        if "MOVE" in self.capabilities:
            trash = self._trash_candidate()
        if trash and trash.lower() != folder.lower():
            with translate_errors("UID MOVE"):
                typ, _ = self.conn.uid("MOVE", str(uid), quote_folder_name(trash))
            if typ != "OK":
                raise ProtocolError(f"Failed to move UID {uid} to {trash}")
            logger.info(f"Moved UID {uid} from {folder} to {trash}")
            return True

        with translate_errors("UID STORE"):
            typ, _ = self.conn.uid("STORE", str(uid), "+FLAGS", "(\\Deleted)")
        if typ != "OK":
            raise ProtocolError(f"Failed to mark UID {uid} as deleted")

        with translate_errors("EXPUNGE"):
            if "UIDPLUS" in self.capabilities:
                typ, _ = self.conn.uid("EXPUNGE", str(uid))
            else:
                typ, _ = self.conn.expunge()
        if typ != "OK":
            raise ProtocolError(f"EXPUNGE failed in {folder}")

        logger.info(f"Expunged UID {uid} from {folder}")
        return True
