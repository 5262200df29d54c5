from __future__ import annotations
from email.message import Message

from gpuremail.domain.models import AttachmentInfo


def is_attachment(part: Message) -> bool:
    if part.is_multipart():
        return False
    disp = (part.get("Content-Disposition") or "").lower()
    # explicit attachments + inline parts that carry a filename
    return bool(part.get_filename()) or disp.startswith("attachment")


def extract_attachments(em: Message) -> list[AttachmentInfo]:
    out: list[AttachmentInfo] = []
    for part in em.walk():
        if not is_attachment(part):
            continue

        payload = part.get_payload(decode=True) or b""
        out.append(
            AttachmentInfo(
                filename=part.get_filename() or "attachment.bin",
                content_type=part.get_content_type(),
                size=len(payload),
            )
        )
    return out
