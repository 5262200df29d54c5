"""
Credential carrier.

Pulls the mailbox address and secret out of each request, either from the
JSON body pair ``{email, password}`` or from the ``x-email`` /
``x-password`` headers. Nothing here is stored; the Credentials object
lives only as long as the request.
"""

from __future__ import annotations

import base64
import binascii
from typing import Annotated, Literal

from fastapi import Depends, Header

from gpuremail.domain.entities import Credentials
from gpuremail.domain.errors import Unauthorized
from gpuremail.infrastructure.settings import Settings, get_settings


def decode_secret(secret: str, encoding: Literal["plain", "base64"]) -> str:
    """Undo the client's reversible transport encoding. This is not encryption."""
    if encoding == "plain":
        return secret
    try:
        return base64.b64decode(secret, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise Unauthorized("Malformed credentials") from e


def extract_credentials(
    address: str | None,
    secret: str | None,
    encoding: Literal["plain", "base64"] = "plain",
) -> Credentials:
    address = (address or "").strip()
    if not address or not secret:
        raise Unauthorized("Missing credentials")
    return Credentials(address=address, secret=decode_secret(secret, encoding))


class CredentialHeaders:
    """The raw ``x-email`` / ``x-password`` header pair, either may be absent."""

    def __init__(
        self,
        x_email: Annotated[str | None, Header(alias="x-email")] = None,
        x_password: Annotated[str | None, Header(alias="x-password")] = None,
        settings: Settings = Depends(get_settings),
    ) -> None:
        self.address = x_email
        self.secret = x_password
        self.encoding = settings.credential_encoding

    def resolve(self, address: str | None = None, secret: str | None = None) -> Credentials:
        """Body fields win over headers when both are present."""
        if address and secret:
            return extract_credentials(address, secret, self.encoding)
        return extract_credentials(self.address, self.secret, self.encoding)


def header_credentials(headers: CredentialHeaders = Depends()) -> Credentials:
    return headers.resolve()
