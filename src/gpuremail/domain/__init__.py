"""Domain models, entities and errors."""

from gpuremail.domain.entities import Credentials
from gpuremail.domain.models import (
    AttachmentInfo,
    Folder,
    MessageDetail,
    MessageFlag,
    MessageSummary,
    OutboundMessage,
    Pagination,
    Priority,
)

__all__ = [
    "Credentials",
    "Folder",
    "MessageSummary",
    "MessageDetail",
    "AttachmentInfo",
    "MessageFlag",
    "Pagination",
    "Priority",
    "OutboundMessage",
]
