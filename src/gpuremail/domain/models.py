"""Domain models for the GPureMail gateway.

Every model serializes with camelCase aliases, which is the JSON contract
the browser client consumes.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model emitting camelCase JSON while accepting snake_case names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MessageFlag(str, Enum):
    """Per-message flags the gateway can mutate."""

    SEEN = "seen"
    FLAGGED = "flagged"

    @property
    def imap_name(self) -> str:
        return {"seen": "\\Seen", "flagged": "\\Flagged"}[self.value]


class Priority(str, Enum):
    """Outbound message priority."""

    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


class Folder(CamelModel):
    """A mailbox folder as enumerated from the remote store."""

    name: str
    message_count: int | None = None
    delimiter: str | None = None
    flags: list[str] = Field(default_factory=list)


class MessageSummary(CamelModel):
    """List-view representation of a message."""

    id: int
    sender: str = Field("Unknown", alias="from")
    from_address: str = ""
    subject: str = "(no subject)"
    preview: str = ""
    timestamp: datetime | None = None
    unread: bool = True
    starred: bool = False


class AttachmentInfo(CamelModel):
    """Metadata for an attachment part. Bytes are never served."""

    filename: str
    content_type: str
    size: int


class MessageDetail(MessageSummary):
    """Full-view representation of a message."""

    body_text: str | None = None
    body_html: str | None = Field(None, alias="bodyHTML")
    to: list[str] = Field(default_factory=list)
    cc: list[str] = Field(default_factory=list)
    message_id: str | None = None
    references: list[str] = Field(default_factory=list)
    attachments: list[AttachmentInfo] = Field(default_factory=list)


class Pagination(CamelModel):
    """Paging metadata for a folder listing."""

    page: int = Field(..., ge=1)
    page_size: int = Field(..., gt=0)
    total_count: int = Field(0, ge=0)
    total_pages: int = Field(1, ge=1)
    has_more: bool = False


class OutboundMessage(CamelModel):
    """A composed message ready to hand to the send transport."""

    sender: str
    to: list[str]
    cc: list[str] = Field(default_factory=list)
    subject: str = ""
    body_text: str = ""
    in_reply_to: str | None = None
    references: list[str] = Field(default_factory=list)
    priority: Priority | None = None
    request_receipt: bool = False
