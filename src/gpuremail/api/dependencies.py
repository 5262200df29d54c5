"""FastAPI dependencies wiring the routes to the mail adapters."""

from fastapi import Depends

from gpuremail.application.ports import MailSessionFactory, MailTransport
from gpuremail.infrastructure.email.providers.imap import ImapSessionFactory
from gpuremail.infrastructure.email.providers.smtp import SmtpTransport
from gpuremail.infrastructure.settings import Settings, get_settings


def get_session_factory(settings: Settings = Depends(get_settings)) -> MailSessionFactory:
    """A fresh IMAP session factory; sessions themselves are opened per call."""
    return ImapSessionFactory(settings)


def get_transport(settings: Settings = Depends(get_settings)) -> MailTransport:
    return SmtpTransport(settings)
