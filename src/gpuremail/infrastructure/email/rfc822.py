from __future__ import annotations
from datetime import datetime, timezone
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from email.utils import parseaddr
from typing import Any, Optional

from bs4 import BeautifulSoup
from loguru import logger

from gpuremail.application.ports.mail_store import RawEmail
from gpuremail.domain.errors import MessageDecodeError
from gpuremail.domain.models import MessageDetail, MessageSummary
from gpuremail.infrastructure.email.attachments import extract_attachments, is_attachment

UNKNOWN_SENDER = "Unknown"
NO_SUBJECT = "(no subject)"


def _parse(raw: RawEmail) -> EmailMessage:
    try:
        return BytesParser(policy=policy.default).parsebytes(raw.rfc822_bytes)
    except Exception as e:
        raise MessageDecodeError(f"Could not parse message {raw.uid} in {raw.folder}: {e}") from e


def _header(em: EmailMessage, name: str) -> Optional[Any]:
    # Structured header parsing can fail on hostile input; treat as absent
    try:
        return em.get(name)
    except Exception as e:
        logger.debug(f"Unparseable {name} header: {e}")
        return None


def _addresses(em: EmailMessage, name: str) -> list[str]:
    header = _header(em, name)
    if header is None:
        return []
    addresses = getattr(header, "addresses", None)
    if addresses is None:
        return [x.strip() for x in str(header).split(",") if x.strip()]
    return [str(a) for a in addresses if a.addr_spec]


def _sender(em: EmailMessage) -> tuple[str, str]:
    header = _header(em, "From")
    if header is None:
        return UNKNOWN_SENDER, ""

    addresses = getattr(header, "addresses", None) or ()
    if addresses:
        first = addresses[0]
        addr = first.addr_spec if first.username else ""
        return first.display_name or addr or UNKNOWN_SENDER, addr

    name, addr = parseaddr(str(header))
    return name or addr or UNKNOWN_SENDER, addr


def _subject(em: EmailMessage) -> str:
    header = _header(em, "Subject")
    subject = str(header).strip() if header is not None else ""
    return subject or NO_SUBJECT


def _timestamp(em: EmailMessage, raw: RawEmail) -> Optional[datetime]:
    header = _header(em, "Date")
    dt = getattr(header, "datetime", None) if header is not None else None
    if dt is None:
        return raw.internaldate
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _part_text(part: EmailMessage) -> str:
    try:
        return part.get_content()
    except (LookupError, UnicodeError):
        # Unknown charset label: fall back to utf-8 with replacement
        payload = part.get_payload(decode=True) or b""
        return payload.decode("utf-8", errors="replace")


def _body_parts(em: EmailMessage) -> tuple[Optional[str], Optional[str]]:
    text: Optional[str] = None
    html: Optional[str] = None
    for part in em.walk():
        if part.is_multipart() or is_attachment(part):
            continue
        ctype = part.get_content_type()
        if ctype == "text/plain" and text is None:
            text = _part_text(part)
        elif ctype == "text/html" and html is None:
            html = _part_text(part)
    return text, html


def html_to_text(html: str) -> str:
    """Render HTML as readable plain text (scripts and styles dropped)."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "head"]):
        tag.decompose()

    lines = [line.strip() for line in soup.get_text("\n").splitlines()]
    out: list[str] = []
    for line in lines:
        if line or (out and out[-1]):
            out.append(line)
    return "\n".join(out).strip()


def make_preview(text: str, length: int) -> str:
    return " ".join(text.split())[:length]


def _summary_fields(em: EmailMessage, raw: RawEmail, text: Optional[str], html: Optional[str], preview_length: int) -> dict:
    sender, from_address = _sender(em)
    plain = text if text is not None else (html_to_text(html) if html else "")
    return {
        "id": raw.uid,
        "sender": sender,
        "from_address": from_address,
        "subject": _subject(em),
        "preview": make_preview(plain, preview_length),
        "timestamp": _timestamp(em, raw),
        "unread": not raw.seen,
        "starred": raw.flagged,
    }


def decode_summary(raw: RawEmail, preview_length: int = 100) -> MessageSummary:
    em = _parse(raw)
    try:
        text, html = _body_parts(em)
        return MessageSummary(**_summary_fields(em, raw, text, html, preview_length))
    except MessageDecodeError:
        raise
    except Exception as e:
        raise MessageDecodeError(f"Could not decode message {raw.uid} in {raw.folder}: {e}") from e


def decode_detail(raw: RawEmail, preview_length: int = 100) -> MessageDetail:
    em = _parse(raw)
    try:
        text, html = _body_parts(em)
        message_id = _header(em, "Message-ID")
        references = _header(em, "References")
        return MessageDetail(
            **_summary_fields(em, raw, text, html, preview_length),
            body_text=text if text is not None else (html_to_text(html) if html else None),
            body_html=html,
            to=_addresses(em, "To"),
            cc=_addresses(em, "Cc"),
            message_id=str(message_id).strip() if message_id is not None else None,
            references=str(references).split() if references is not None else [],
            # A truncated body would under-report attachment sizes
            attachments=extract_attachments(em) if not raw.truncated else [],
        )
    except Exception as e:
        raise MessageDecodeError(f"Could not decode message {raw.uid} in {raw.folder}: {e}") from e
