"""Error taxonomy shared by every layer of the gateway.

Each error carries the HTTP status the router answers with, so the
translation from failure kind to response lives in one place.
"""


class GatewayError(Exception):
    """Base class for failures surfaced to the caller."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(GatewayError):
    """The remote store rejected the supplied credentials."""

    status_code = 401
    default_message = "Authentication failed"


class GatewayTimeout(GatewayError):
    """A connect or protocol call exceeded its deadline."""

    status_code = 504
    default_message = "Mail server timed out"


class Unreachable(GatewayError):
    """Network, DNS or TLS failure talking to the remote store."""

    status_code = 502
    default_message = "Mail server unreachable"


class ProtocolError(GatewayError):
    """The remote store answered with an unexpected or malformed response."""

    status_code = 502
    default_message = "Unexpected response from mail server"


class NotFound(GatewayError):
    status_code = 404
    default_message = "Not found"


class SendError(GatewayError):
    """The outbound transport refused the message."""

    status_code = 500
    default_message = "Failed to send message"


class InvalidRecipientError(SendError):
    default_message = "Malformed recipient"


class InternalError(GatewayError):
    status_code = 500


class MessageDecodeError(InternalError):
    default_message = "Could not decode message"
