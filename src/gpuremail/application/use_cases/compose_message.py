"""
Outbound message composition.

Builds an OutboundMessage from the caller's fields plus an optional reply or
forward context (the decoded original), then renders it as a MIME message
for the send transport.
"""

from __future__ import annotations

from email.message import EmailMessage
from email.utils import format_datetime, formataddr, formatdate, getaddresses, make_msgid
from typing import Iterable, Optional

from loguru import logger

from gpuremail.domain.errors import InvalidRecipientError
from gpuremail.domain.models import MessageDetail, OutboundMessage, Priority

REPLY_SEPARATOR = "----- Original message -----"
FORWARD_SEPARATOR = "----- Forwarded message -----"

PRIORITY_HEADERS: dict[Priority, dict[str, str]] = {
    Priority.HIGH: {"X-Priority": "1 (Highest)", "Importance": "high"},
    Priority.NORMAL: {},
    Priority.LOW: {"X-Priority": "5 (Lowest)", "Importance": "low"},
}


def parse_recipients(value: str | Iterable[str] | None) -> list[str]:
    """
    Parse a comma separated string (or list of strings) into formatted addresses.

    Raises:
        InvalidRecipientError: an entry is not a plausible address.
    """
    if value is None:
        values: list[str] = []
    elif isinstance(value, str):
        values = [value]
    else:
        values = list(value)

    out: list[str] = []
    for value in values:
        if not value or not value.strip(" ,;"):
            continue
        pairs = [(name, addr) for name, addr in getaddresses([value]) if name or addr]
        # Strict getaddresses collapses unparseable input to ('', '')
        if not pairs:
            raise InvalidRecipientError(f"Malformed recipient: {value!r}")
        for name, addr in pairs:
            local, _, domain = addr.rpartition("@")
            if not local or not domain or any(c.isspace() for c in addr):
                raise InvalidRecipientError(f"Malformed recipient: {addr or name!r}")
            out.append(formataddr((name, addr)))

    return out


def _address_of(formatted: str) -> str:
    return getaddresses([formatted])[0][1].lower()


def _display_sender(original: MessageDetail) -> str:
    if original.from_address and original.sender != original.from_address:
        return formataddr((original.sender, original.from_address))
    return original.from_address or original.sender


def _join_body(body_text: str, block: str) -> str:
    if not body_text.strip():
        return block
    return f"{body_text.rstrip()}\n\n{block}"


def quote_reply(original: MessageDetail) -> str:
    """Original sender, subject and text, the text prefixed with ``> ``."""
    lines = [
        REPLY_SEPARATOR,
        f"From: {_display_sender(original)}",
        f"Subject: {original.subject}",
        "",
    ]
    lines.extend(f"> {line}" if line else ">" for line in (original.body_text or "").splitlines())
    return "\n".join(lines)


def quote_forward(original: MessageDetail) -> str:
    lines = [FORWARD_SEPARATOR, f"From: {_display_sender(original)}"]
    if original.timestamp:
        lines.append(f"Date: {format_datetime(original.timestamp)}")
    lines.append(f"Subject: {original.subject}")
    if original.to:
        lines.append(f"To: {', '.join(original.to)}")
    if original.cc:
        lines.append(f"Cc: {', '.join(original.cc)}")
    lines.append("")
    lines.append(original.body_text or "")
    return "\n".join(lines)


def _received_recipients(values: list[str]) -> list[str]:
    """Addresses from a received header; entries that do not parse are dropped."""
    out: list[str] = []
    for value in values:
        try:
            out.extend(parse_recipients(value))
        except InvalidRecipientError:
            logger.debug(f"Skipping unusable original recipient {value!r}")
    return out


def reply_all_cc(sender: str, to: list[str], original: MessageDetail, extra_cc: list[str]) -> list[str]:
    """Original To and Cc, minus the sending account and anyone already in To."""
    excluded = {sender.lower(), *(_address_of(a) for a in to)}
    seen: set[str] = set()
    out: list[str] = []
    for formatted in [*extra_cc, *_received_recipients(original.to), *_received_recipients(original.cc)]:
        addr = _address_of(formatted)
        if addr in excluded or addr in seen:
            continue
        seen.add(addr)
        out.append(formatted)
    return out


def compose(
    sender: str,
    to: str | list[str] | None,
    subject: str,
    body_text: str,
    *,
    cc: str | list[str] | None = None,
    reply_to: Optional[MessageDetail] = None,
    forward_of: Optional[MessageDetail] = None,
    reply_all: bool = False,
    priority: Optional[Priority] = None,
    request_receipt: bool = False,
) -> OutboundMessage:
    """
    Build the message to send.

    A reply without an explicit subject gets ``"Re: " + original subject``; a
    forward gets ``"Fwd: "``. Caller-supplied subjects are used verbatim, so
    prefixes are never deduplicated.
    """
    if reply_to is not None and forward_of is not None:
        raise ValueError("A message is either a reply or a forward, not both")

    recipients = parse_recipients(to)
    if not recipients and reply_to is not None:
        # Replies default to the original sender
        recipients = parse_recipients(reply_to.from_address)
    if not recipients:
        raise InvalidRecipientError("No recipients specified")
    cc_list = parse_recipients(cc)

    in_reply_to: Optional[str] = None
    references: list[str] = []

    if reply_to is not None:
        subject = subject.strip() or f"Re: {reply_to.subject}"
        body_text = _join_body(body_text, quote_reply(reply_to))
        if reply_all:
            cc_list = reply_all_cc(sender, recipients, reply_to, cc_list)
        if reply_to.message_id:
            in_reply_to = reply_to.message_id
            references = [*reply_to.references, reply_to.message_id]
    elif forward_of is not None:
        subject = subject.strip() or f"Fwd: {forward_of.subject}"
        body_text = _join_body(body_text, quote_forward(forward_of))

    return OutboundMessage(
        sender=sender,
        to=recipients,
        cc=cc_list,
        subject=subject,
        body_text=body_text,
        in_reply_to=in_reply_to,
        references=references,
        priority=priority,
        request_receipt=request_receipt,
    )


def build_mime(message: OutboundMessage, mailer: str | None = None) -> EmailMessage:
    """Render an OutboundMessage as a plain-text MIME message."""
    msg = EmailMessage()
    msg["From"] = message.sender
    msg["To"] = ", ".join(message.to)
    if message.cc:
        msg["Cc"] = ", ".join(message.cc)
    msg["Subject"] = message.subject
    msg["Date"] = formatdate(localtime=True)
    msg["Message-ID"] = make_msgid(domain=message.sender.rpartition("@")[2] or None)

    # Threading headers
    if message.in_reply_to:
        msg["In-Reply-To"] = message.in_reply_to
    if message.references:
        msg["References"] = " ".join(message.references)

    if message.priority is not None:
        for name, value in PRIORITY_HEADERS[message.priority].items():
            msg[name] = value
    if message.request_receipt:
        msg["Disposition-Notification-To"] = message.sender
    if mailer:
        msg["X-Mailer"] = mailer

    msg.set_content(message.body_text)
    return msg
