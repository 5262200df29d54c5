"""IMAP provider: authenticated per-request sessions over imaplib."""

from gpuremail.infrastructure.email.providers.imap.auth import ImapAuthenticator, ImapSessionFactory
from gpuremail.infrastructure.email.providers.imap.client import ImapMailSession

__all__ = ["ImapAuthenticator", "ImapSessionFactory", "ImapMailSession"]
