"""SMTP transport for submitting composed messages."""

from __future__ import annotations

import ssl
from email.message import EmailMessage

import aiosmtplib
from loguru import logger

from gpuremail.application.ports.mail_store import MailTransport
from gpuremail.domain.entities import Credentials
from gpuremail.domain.errors import (
    GatewayTimeout,
    SendError,
    Unauthorized,
    Unreachable,
)
from gpuremail.infrastructure.settings import Settings


class SmtpTransport(MailTransport):
    """Submits one message per call over a fresh authenticated SMTP connection."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def _tls_context(self) -> ssl.SSLContext:
        context = ssl.create_default_context()
        if not self.settings.smtp_verify_tls:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context

    async def send(self, creds: Credentials, message: EmailMessage) -> str:
        """
        Send ``message`` as ``creds.address``.

        Returns:
            The Message-ID header of the submitted message.

        Raises:
            Unauthorized: the server rejected the login.
            GatewayTimeout: connect or a protocol step exceeded ``smtp_timeout``.
            Unreachable: the server could not be reached.
            SendError: the server refused the message or a recipient.
        """
        security = self.settings.smtp_security
        endpoint = self.settings.smtp_endpoint
        logger.info(f"Sending message from {creds.address} via {endpoint}")

        try:
            errors, response = await aiosmtplib.send(
                message,
                hostname=self.settings.smtp_host,
                port=self.settings.smtp_port,
                username=creds.address,
                password=creds.secret,
                use_tls=security == "ssl",
                start_tls=security == "starttls",
                tls_context=self._tls_context() if security != "none" else None,
                timeout=self.settings.smtp_timeout,
            )
        except aiosmtplib.SMTPTimeoutError as e:
            raise GatewayTimeout(f"SMTP server {endpoint} timed out") from e
        except aiosmtplib.SMTPAuthenticationError as e:
            logger.warning(f"SMTP login rejected for {creds.address}")
            raise Unauthorized() from e
        except (aiosmtplib.SMTPConnectError, aiosmtplib.SMTPServerDisconnected) as e:
            raise Unreachable(f"Could not reach SMTP server {endpoint}: {e}") from e
        except aiosmtplib.SMTPRecipientsRefused as e:
            refused = ", ".join(r.recipient for r in e.recipients)
            raise SendError(f"Recipients refused: {refused}") from e
        except aiosmtplib.SMTPResponseException as e:
            raise SendError(f"SMTP server rejected message: {e.code} {e.message}") from e
        except aiosmtplib.SMTPException as e:
            raise SendError(f"Failed to send message: {e}") from e
        except TimeoutError as e:
            raise GatewayTimeout(f"SMTP server {endpoint} timed out") from e
        except OSError as e:
            raise Unreachable(f"Could not reach SMTP server {endpoint}: {e}") from e

        if errors:
            # Partial delivery: some recipients were refused
            refused = ", ".join(f"{addr} ({resp.code})" for addr, resp in errors.items())
            logger.warning(f"Some recipients refused for message from {creds.address}: {refused}")

        message_id = message.get("Message-ID", "")
        logger.info(f"Message {message_id} accepted by {endpoint}: {response}")
        return str(message_id)
