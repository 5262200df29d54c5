"""
API routes for the GPureMail gateway.

Every route authenticates with the caller's credentials, opens one IMAP
session (or one SMTP submission), performs a single operation and closes
the session before responding. Nothing survives between requests.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import Field, model_validator
from starlette.concurrency import run_in_threadpool

from gpuremail.api.credentials import CredentialHeaders, header_credentials
from gpuremail.api.dependencies import get_session_factory, get_transport
from gpuremail.application.ports import MailSessionFactory, MailTransport
from gpuremail.application.use_cases import (
    build_mime,
    compose,
    delete_message,
    get_message,
    list_messages,
    set_flag,
)
from gpuremail.domain.entities import Credentials
from gpuremail.domain.errors import GatewayError
from gpuremail.domain.models import (
    CamelModel,
    Folder,
    MessageDetail,
    MessageFlag,
    MessageSummary,
    Pagination,
    Priority,
)
from gpuremail.infrastructure.email.rfc822 import decode_detail, decode_summary
from gpuremail.infrastructure.settings import Settings, get_settings

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class LoginRequest(CamelModel):
    email: str
    password: str


class LoginResponse(CamelModel):
    success: bool
    error: str | None = None


class FoldersResponse(CamelModel):
    folders: list[Folder]


class ListEmailsRequest(CamelModel):
    """Body of POST /emails. Credentials may instead travel in headers."""

    email: str | None = None
    password: str | None = None
    folder: str = "INBOX"
    page: int = Field(1, ge=1)
    page_size: int | None = Field(None, gt=0)
    unread_only: bool = False


class EmailListResponse(CamelModel):
    emails: list[MessageSummary]
    pagination: Pagination


class MarkReadRequest(CamelModel):
    uid: int
    folder: str = "INBOX"
    read: bool = True


class StarRequest(CamelModel):
    uid: int
    starred: bool
    folder: str = "INBOX"


class MessageRef(CamelModel):
    """Points at an existing message: a UID is only meaningful within its folder."""

    uid: int
    folder: str = "INBOX"


class SendRequest(CamelModel):
    email: str | None = None
    password: str | None = None
    to: str | list[str] = ""
    cc: str | list[str] | None = None
    subject: str = ""
    body: str = ""
    priority: Priority | None = None
    request_receipt: bool = False
    reply_to: MessageRef | None = None
    forward_of: MessageRef | None = None
    reply_all: bool = False

    @model_validator(mode="after")
    def _single_context(self) -> "SendRequest":
        if self.reply_to is not None and self.forward_of is not None:
            raise ValueError("replyTo and forwardOf are mutually exclusive")
        if self.reply_all and self.reply_to is None:
            raise ValueError("replyAll requires replyTo")
        return self


class AckResponse(CamelModel):
    success: bool = True


class SendResponse(CamelModel):
    success: bool = True
    message_id: str | None = None


class HealthResponse(CamelModel):
    status: str
    timestamp: str
    version: str


# ============================================================================
# Helpers
# ============================================================================


def _page_size(requested: Optional[int], settings: Settings) -> int:
    if requested is None:
        return settings.default_page_size
    return min(requested, settings.max_page_size)


def _list_emails(
    creds: Credentials,
    factory: MailSessionFactory,
    settings: Settings,
    folder: str,
    page: int,
    page_size: Optional[int],
    unread_only: bool,
) -> EmailListResponse:
    with factory.open_session(creds, folder=folder, readonly=True, timeout=settings.list_timeout) as session:
        emails, pagination = list_messages(
            session,
            folder,
            page,
            _page_size(page_size, settings),
            decode_summary,
            unread_only=unread_only,
            preview_length=settings.preview_length,
        )
    return EmailListResponse(emails=emails, pagination=pagination)


def _load_original(creds: Credentials, factory: MailSessionFactory, settings: Settings, ref: MessageRef) -> MessageDetail:
    with factory.open_session(creds, folder=ref.folder, readonly=True, timeout=settings.fetch_timeout) as session:
        return get_message(session, ref.folder, ref.uid, decode_detail, settings.preview_length)


# ============================================================================
# Health
# ============================================================================


@router.get("/health", response_model=HealthResponse, tags=["health"])
def health_check(settings: Settings = Depends(get_settings)) -> HealthResponse:
    """Basic health check endpoint. Touches no mail server."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=settings.app_version,
    )


# ============================================================================
# Session
# ============================================================================


@router.post("/login", response_model=LoginResponse, response_model_exclude_none=True, tags=["session"])
def login(
    request: LoginRequest,
    headers: CredentialHeaders = Depends(),
    factory: MailSessionFactory = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
):
    """Verify credentials by opening (and immediately closing) a session."""
    try:
        creds = headers.resolve(request.email, request.password)
        with factory.open_session(creds, timeout=settings.fetch_timeout):
            pass
    except GatewayError as e:
        logger.warning(f"Login failed for {request.email}: {type(e).__name__}")
        return JSONResponse(status_code=e.status_code, content={"success": False, "error": e.message})

    logger.info(f"Login verified for {creds.address}")
    return LoginResponse(success=True)


# ============================================================================
# Folders & listing
# ============================================================================


@router.get("/folders", response_model=FoldersResponse, tags=["mailbox"])
def list_folders(
    counts: bool = Query(False, description="Include per-folder message counts"),
    creds: Credentials = Depends(header_credentials),
    factory: MailSessionFactory = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
) -> FoldersResponse:
    with factory.open_session(creds, timeout=settings.fetch_timeout) as session:
        folders = session.list_folders(with_counts=counts)
    return FoldersResponse(folders=folders)


@router.post("/emails", response_model=EmailListResponse, tags=["mailbox"])
def list_emails(
    request: ListEmailsRequest,
    headers: CredentialHeaders = Depends(),
    factory: MailSessionFactory = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
) -> EmailListResponse:
    """One page of message summaries, newest first."""
    creds = headers.resolve(request.email, request.password)
    return _list_emails(
        creds, factory, settings, request.folder, request.page, request.page_size, request.unread_only
    )


@router.get("/emails", response_model=EmailListResponse, tags=["mailbox"])
def list_emails_query(
    folder: str = Query("INBOX"),
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, gt=0, alias="pageSize"),
    unread_only: bool = Query(False, alias="unreadOnly"),
    creds: Credentials = Depends(header_credentials),
    factory: MailSessionFactory = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
) -> EmailListResponse:
    """Same as POST /emails with parameters in the query string."""
    return _list_emails(creds, factory, settings, folder, page, page_size, unread_only)


@router.get("/emails/{email_id}", response_model=MessageDetail, tags=["mailbox"])
def get_email(
    email_id: int,
    folder: str = Query("INBOX"),
    creds: Credentials = Depends(header_credentials),
    factory: MailSessionFactory = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
) -> MessageDetail:
    """Full message: summary fields plus text and HTML bodies."""
    return _load_original(creds, factory, settings, MessageRef(uid=email_id, folder=folder))


# ============================================================================
# Mutations
# ============================================================================


@router.post("/emails/mark-read", response_model=AckResponse, tags=["mutations"])
def mark_read(
    request: MarkReadRequest,
    creds: Credentials = Depends(header_credentials),
    factory: MailSessionFactory = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
) -> AckResponse:
    with factory.open_session(creds, folder=request.folder, readonly=False, timeout=settings.mutation_timeout) as session:
        set_flag(session, request.folder, request.uid, MessageFlag.SEEN, request.read)
    return AckResponse()


@router.post("/emails/star", response_model=AckResponse, tags=["mutations"])
def star(
    request: StarRequest,
    creds: Credentials = Depends(header_credentials),
    factory: MailSessionFactory = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
) -> AckResponse:
    with factory.open_session(creds, folder=request.folder, readonly=False, timeout=settings.mutation_timeout) as session:
        set_flag(session, request.folder, request.uid, MessageFlag.FLAGGED, request.starred)
    return AckResponse()


@router.delete("/emails/delete/{email_id}", response_model=AckResponse, tags=["mutations"])
def delete_email(
    email_id: int,
    folder: str = Query("INBOX"),
    creds: Credentials = Depends(header_credentials),
    factory: MailSessionFactory = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
) -> AckResponse:
    with factory.open_session(creds, folder=folder, readonly=False, timeout=settings.mutation_timeout) as session:
        delete_message(session, folder, email_id)
    return AckResponse()


# ============================================================================
# Send
# ============================================================================


@router.post("/emails/send", response_model=SendResponse, tags=["send"])
async def send_email(
    request: SendRequest,
    headers: CredentialHeaders = Depends(),
    factory: MailSessionFactory = Depends(get_session_factory),
    transport: MailTransport = Depends(get_transport),
    settings: Settings = Depends(get_settings),
) -> SendResponse:
    """
    Compose and submit a message.

    With ``replyTo`` or ``forwardOf`` the original is fetched from the store
    and quoted into the body; ``replyAll`` copies the original recipients
    (minus this account) into Cc.
    """
    creds = headers.resolve(request.email, request.password)

    reply_to = forward_of = None
    if request.reply_to is not None:
        reply_to = await run_in_threadpool(_load_original, creds, factory, settings, request.reply_to)
    elif request.forward_of is not None:
        forward_of = await run_in_threadpool(_load_original, creds, factory, settings, request.forward_of)

    outbound = compose(
        creds.address,
        request.to,
        request.subject,
        request.body,
        cc=request.cc,
        reply_to=reply_to,
        forward_of=forward_of,
        reply_all=request.reply_all,
        priority=request.priority,
        request_receipt=request.request_receipt,
    )
    message_id = await transport.send(creds, build_mime(outbound, mailer=settings.mailer_name))
    return SendResponse(message_id=message_id or None)
