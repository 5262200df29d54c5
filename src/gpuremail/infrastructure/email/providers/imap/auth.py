from __future__ import annotations
from contextlib import contextmanager
import imaplib
import socket
import ssl
from typing import Iterator, Optional

from loguru import logger

from gpuremail.domain.entities import Credentials
from gpuremail.domain.errors import GatewayTimeout, NotFound, Unauthorized, Unreachable
from gpuremail.infrastructure.email.providers.imap.client import ImapMailSession
from gpuremail.infrastructure.settings import Settings


class ImapAuthenticator:
    """
    Responsible ONLY for establishing an authenticated IMAP connection.
    No folder logic, no fetching, no parsing.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def _ssl_context(self) -> ssl.SSLContext:
        context = ssl.create_default_context()
        if not self.settings.imap_verify_tls:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context

    def login(self, creds: Credentials) -> imaplib.IMAP4_SSL:
        """
        Returns an authenticated IMAP4_SSL connection.
        Connect and LOGIN are both bounded by ``connect_timeout``.
        """
        endpoint = self.settings.imap_endpoint
        try:
            conn = imaplib.IMAP4_SSL(
                host=self.settings.imap_host,
                port=self.settings.imap_port,
                ssl_context=self._ssl_context(),
                timeout=self.settings.connect_timeout,
            )
        except (TimeoutError, socket.timeout) as e:
            raise GatewayTimeout(f"Timed out connecting to {endpoint}") from e
        except (OSError, imaplib.IMAP4.error) as e:
            raise Unreachable(f"Could not connect to {endpoint}: {e}") from e

        try:
            conn.login(creds.address, creds.secret)
        except (TimeoutError, socket.timeout) as e:
            conn.shutdown()
            raise GatewayTimeout(f"Timed out authenticating with {endpoint}") from e
        except imaplib.IMAP4.abort as e:
            conn.shutdown()
            raise Unreachable(f"Connection to {endpoint} lost during login") from e
        except imaplib.IMAP4.error as e:
            conn.shutdown()
            logger.warning(f"IMAP login rejected for {creds.address}")
            raise Unauthorized() from e
        except OSError as e:
            conn.shutdown()
            raise Unreachable(f"Connection to {endpoint} failed during login: {e}") from e

        return conn


class ImapSessionFactory:
    """Opens one transient IMAP session per request. Nothing is pooled."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.authenticator = ImapAuthenticator(settings)

    @contextmanager
    def open_session(
        self,
        creds: Credentials,
        folder: Optional[str] = None,
        readonly: bool = True,
        timeout: Optional[float] = None,
    ) -> Iterator[ImapMailSession]:
        conn = self.authenticator.login(creds)
        session = ImapMailSession(
            conn,
            account=creds.address,
            trash_folder=self.settings.trash_folder,
            preview_bytes=self.settings.preview_fetch_bytes,
        )
        logger.debug(f"IMAP session opened for {creds.address}")
        graceful = True
        try:
            session.set_timeout(timeout or self.settings.fetch_timeout)
            if folder is not None:
                session.select(folder, readonly=readonly)
            yield session
        except NotFound:
            raise
        except BaseException:
            graceful = False
            raise
        finally:
            session.close(graceful=graceful)
            logger.debug(f"IMAP session closed for {creds.address}")
