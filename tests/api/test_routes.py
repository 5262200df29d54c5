"""End-to-end route tests against the in-memory mail server."""

from email import policy
from email.parser import BytesParser

from gpuremail.domain.errors import SendError, Unreachable

from tests.fakes import make_message


def _list(client, auth_headers, **params):
    response = client.get("/emails", params=params, headers=auth_headers)
    assert response.status_code == 200, response.text
    return response.json()


def _by_id(listing):
    return {e["id"]: e for e in listing["emails"]}


# =============================================================================
# Health & login
# =============================================================================


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_login_success(client, mail_server):
    response = client.post("/login", json={"email": "me@example.com", "password": "secret"})
    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert mail_server.opened == mail_server.closed == 1


def test_login_failure_does_not_echo_secret(client):
    response = client.post("/login", json={"email": "me@example.com", "password": "wrong-pass"})
    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Authentication failed"}
    assert "wrong-pass" not in response.text


def test_missing_credentials(client):
    response = client.get("/folders")
    assert response.status_code == 401
    assert response.json() == {"error": "Missing credentials"}


def test_bad_header_credentials(client):
    response = client.get("/folders", headers={"x-email": "me@example.com", "x-password": "nope"})
    assert response.status_code == 401
    assert "error" in response.json()


# =============================================================================
# Folders & listing
# =============================================================================


def test_folders_include_inbox(client, auth_headers):
    response = client.get("/folders", headers=auth_headers)
    assert response.status_code == 200
    names = [f["name"] for f in response.json()["folders"]]
    assert "INBOX" in names


def test_folder_counts(client, auth_headers):
    folders = client.get("/folders", params={"counts": True}, headers=auth_headers).json()["folders"]
    assert {f["name"]: f["messageCount"] for f in folders}["INBOX"] == 30


def test_post_emails_first_page(client, auth_headers, session_factory, settings):
    response = client.post("/emails", json={"folder": "INBOX", "page": 1}, headers=auth_headers)
    assert response.status_code == 200
    data = response.json()

    assert len(data["emails"]) == 25
    assert data["emails"][0]["id"] == 30
    assert data["emails"][0]["subject"] == "Message 30"
    assert data["emails"][0]["from"] == "Alice Example"
    assert data["emails"][0]["preview"] == "Body of message 30"
    assert data["pagination"] == {
        "page": 1,
        "pageSize": 25,
        "totalCount": 30,
        "totalPages": 2,
        "hasMore": True,
    }
    assert session_factory.timeouts == [settings.list_timeout]


def test_post_emails_with_body_credentials(client):
    response = client.post(
        "/emails",
        json={"email": "me@example.com", "password": "secret", "page": 2, "pageSize": 10},
    )
    assert response.status_code == 200
    data = response.json()
    assert [e["id"] for e in data["emails"]] == list(range(20, 10, -1))
    assert data["pagination"]["hasMore"] is True


def test_page_beyond_end(client, auth_headers):
    data = _list(client, auth_headers, page=9)
    assert data["emails"] == []
    assert data["pagination"]["hasMore"] is False


def test_page_size_clamped(client, auth_headers, settings):
    data = _list(client, auth_headers, pageSize=10_000)
    assert data["pagination"]["pageSize"] == settings.max_page_size
    assert len(data["emails"]) == 30


def test_invalid_page_rejected(client, auth_headers):
    response = client.get("/emails", params={"page": 0}, headers=auth_headers)
    assert response.status_code == 422


def test_unread_only(client, auth_headers):
    data = _list(client, auth_headers, unreadOnly=True, pageSize=100)
    assert data["pagination"]["totalCount"] == 20
    assert all(e["unread"] for e in data["emails"])


def test_unknown_folder(client, auth_headers, mail_server):
    response = client.get("/emails", params={"folder": "Nope"}, headers=auth_headers)
    assert response.status_code == 404
    assert "Nope" in response.json()["error"]
    assert mail_server.opened == mail_server.closed


def test_non_ascii_folder(client, auth_headers, mail_server):
    mail_server.add("Entwürfe", make_message(subject="Entwurf"))

    data = _list(client, auth_headers, folder="Entwürfe")
    assert [e["subject"] for e in data["emails"]] == ["Entwurf"]

    folders = client.get("/folders", headers=auth_headers).json()
    assert "Entwürfe" in [f["name"] for f in folders["folders"]]


# =============================================================================
# Detail
# =============================================================================


def test_email_detail(client, auth_headers):
    response = client.get("/emails/7", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["id"] == 7
    assert data["subject"] == "Message 7"
    assert data["bodyText"].strip() == "Body of message 7"
    assert data["bodyHTML"] is None
    assert data["to"] == ["me@example.com"]


def test_email_detail_missing(client, auth_headers):
    response = client.get("/emails/999", headers=auth_headers)
    assert response.status_code == 404
    assert response.json() == {"error": "Message 999 not found in INBOX"}


def test_detail_does_not_mark_read(client, auth_headers):
    client.get("/emails/4", headers=auth_headers)
    assert _by_id(_list(client, auth_headers, pageSize=100))[4]["unread"] is True


# =============================================================================
# Mutations
# =============================================================================


def test_mark_read_then_unread(client, auth_headers, session_factory, settings):
    response = client.post("/emails/mark-read", json={"uid": 4, "folder": "INBOX"}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert session_factory.timeouts == [settings.mutation_timeout]
    assert _by_id(_list(client, auth_headers, pageSize=100))[4]["unread"] is False

    client.post("/emails/mark-read", json={"uid": 4, "read": False}, headers=auth_headers)
    assert _by_id(_list(client, auth_headers, pageSize=100))[4]["unread"] is True


def test_mark_read_is_idempotent(client, auth_headers):
    for _ in range(2):
        response = client.post("/emails/mark-read", json={"uid": 3}, headers=auth_headers)
        assert response.status_code == 200
    assert _by_id(_list(client, auth_headers, pageSize=100))[3]["unread"] is False


def test_mark_read_missing(client, auth_headers):
    response = client.post("/emails/mark-read", json={"uid": 999}, headers=auth_headers)
    assert response.status_code == 404


def test_star_and_unstar(client, auth_headers):
    client.post("/emails/star", json={"uid": 8, "starred": True}, headers=auth_headers)
    assert _by_id(_list(client, auth_headers, pageSize=100))[8]["starred"] is True

    client.post("/emails/star", json={"uid": 8, "starred": False}, headers=auth_headers)
    assert _by_id(_list(client, auth_headers, pageSize=100))[8]["starred"] is False


def test_delete(client, auth_headers, mail_server):
    response = client.delete("/emails/delete/12", headers=auth_headers)
    assert response.status_code == 200

    listing = _list(client, auth_headers, pageSize=100)
    assert 12 not in _by_id(listing)
    assert listing["pagination"]["totalCount"] == 29
    assert len(mail_server.folders["Trash"]) == 1

    again = client.delete("/emails/delete/12", headers=auth_headers)
    assert again.status_code == 404


def test_delete_from_trash_is_permanent(client, auth_headers, mail_server):
    client.delete("/emails/delete/12", headers=auth_headers)
    response = client.delete("/emails/delete/1", params={"folder": "Trash"}, headers=auth_headers)
    assert response.status_code == 200
    assert mail_server.folders["Trash"] == []


# =============================================================================
# Send
# =============================================================================


def _sent_message(transport):
    creds, message = transport.sent[-1]
    # Round-trip through bytes to check the wire form
    return creds, BytesParser(policy=policy.default).parsebytes(message.as_bytes())


def test_send(client, auth_headers, transport):
    response = client.post(
        "/emails/send",
        json={"to": "bob@example.com", "subject": "Hi", "body": "Hello Bob", "priority": "high", "requestReceipt": True},
        headers=auth_headers,
    )
    assert response.status_code == 200, response.text
    data = response.json()
    assert data["success"] is True

    creds, message = _sent_message(transport)
    assert creds.address == "me@example.com"
    assert data["messageId"] == message["Message-ID"]
    assert message["To"] == "bob@example.com"
    assert message["X-Priority"] == "1 (Highest)"
    assert message["Disposition-Notification-To"] == "me@example.com"
    assert message.get_content().strip() == "Hello Bob"


def test_send_reply_quotes_original(client, auth_headers, transport):
    response = client.post(
        "/emails/send",
        json={"body": "Thanks!", "replyTo": {"uid": 30, "folder": "INBOX"}},
        headers=auth_headers,
    )
    assert response.status_code == 200, response.text

    _, message = _sent_message(transport)
    assert message["Subject"] == "Re: Message 30"
    assert message["To"] == "alice@example.com"
    assert message["In-Reply-To"]
    body = message.get_content()
    assert body.startswith("Thanks!")
    assert "----- Original message -----" in body
    assert "From: Alice Example <alice@example.com>" in body
    assert "> Body of message 30" in body


def test_send_forward(client, auth_headers, transport):
    response = client.post(
        "/emails/send",
        json={"to": "dave@example.com", "body": "FYI", "forwardOf": {"uid": 2}},
        headers=auth_headers,
    )
    assert response.status_code == 200, response.text

    _, message = _sent_message(transport)
    assert message["Subject"] == "Fwd: Message 2"
    assert "----- Forwarded message -----" in message.get_content()


def test_send_reply_to_missing_message(client, auth_headers, transport):
    response = client.post("/emails/send", json={"body": "x", "replyTo": {"uid": 999}}, headers=auth_headers)
    assert response.status_code == 404
    assert transport.sent == []


def test_send_reply_and_forward_rejected(client, auth_headers):
    response = client.post(
        "/emails/send",
        json={"to": "a@example.com", "replyTo": {"uid": 1}, "forwardOf": {"uid": 2}},
        headers=auth_headers,
    )
    assert response.status_code == 422


def test_send_malformed_recipient(client, auth_headers, transport):
    response = client.post("/emails/send", json={"to": "not-an-address", "body": "x"}, headers=auth_headers)
    assert response.status_code == 500
    assert response.json()["error"].startswith("Malformed recipient")
    assert transport.sent == []


def test_send_transport_failures(client, auth_headers, transport):
    for error, status in [(SendError("Recipients refused: bob@example.com"), 500), (Unreachable(), 502)]:
        transport.error = error
        response = client.post("/emails/send", json={"to": "bob@example.com", "body": "x"}, headers=auth_headers)
        assert response.status_code == status
        assert response.json() == {"error": error.message}


# =============================================================================
# CORS
# =============================================================================


def test_cors_headers_on_response(client, auth_headers):
    response = client.get("/folders", headers={**auth_headers, "Origin": "http://localhost:5173"})
    assert response.headers["access-control-allow-origin"] == "*"


def test_unexpected_error_keeps_cors_headers(client, auth_headers, session_factory, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(session_factory, "open_session", broken)
    response = client.get("/folders", headers={**auth_headers, "Origin": "http://localhost:5173"})
    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}
    assert response.headers["access-control-allow-origin"] == "*"
    assert "boom" not in response.text


def test_cors_preflight(client):
    response = client.options(
        "/emails/send",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "x-email, x-password, content-type",
        },
    )
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
    assert "POST" in response.headers["access-control-allow-methods"]


def test_bare_options(client):
    response = client.options("/emails")
    assert response.status_code == 204
    assert response.content == b""
    assert response.headers["access-control-allow-origin"] == "*"
