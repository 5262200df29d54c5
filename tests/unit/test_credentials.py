"""Tests for credential extraction from request bodies and headers."""

import base64

import pytest

from gpuremail.api.credentials import decode_secret, extract_credentials
from gpuremail.domain.entities import Credentials
from gpuremail.domain.errors import Unauthorized


def test_plain_secret_passes_through() -> None:
    assert decode_secret("s3cret", "plain") == "s3cret"


def test_base64_secret() -> None:
    encoded = base64.b64encode("pässword".encode()).decode()
    assert decode_secret(encoded, "base64") == "pässword"


@pytest.mark.parametrize("bad", ["not base64!", "//79"])
def test_malformed_base64(bad) -> None:
    with pytest.raises(Unauthorized, match="Malformed credentials"):
        decode_secret(bad, "base64")


@pytest.mark.parametrize("address, secret", [(None, "x"), ("me@example.com", None), ("  ", "x"), ("me@example.com", "")])
def test_missing_credentials(address, secret) -> None:
    with pytest.raises(Unauthorized, match="Missing credentials"):
        extract_credentials(address, secret)


def test_extract_strips_address() -> None:
    creds = extract_credentials(" me@example.com ", "secret")
    assert creds.address == "me@example.com"


def test_secret_not_in_repr() -> None:
    creds = Credentials(address="me@example.com", secret="hunter2")
    assert "hunter2" not in repr(creds)
