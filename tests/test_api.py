from __future__ import annotations

from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient

from mailtext import main
from mailtext.services.folder_resolver import FolderNotFoundError
from mailtext.services.mail_reader import MailMessage


class _FakeReader:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def list_folders(self, mailbox: str, path: str = "") -> list[dict[str, Any]]:
        self.calls.append(("list_folders", {"mailbox": mailbox, "path": path}))
        if self.error:
            raise self.error
        return [{"id": "inbox-id", "displayName": "Inbox"}]

    async def list_messages(self, mailbox: str, folder: str, **kwargs: Any) -> list[MailMessage]:
        self.calls.append(("list_messages", {"mailbox": mailbox, "folder": folder, **kwargs}))
        if self.error:
            raise self.error
        return [MailMessage(message_id="m1", subject="Hi", sender="a@b.com", text="Hello")]

    async def read(self, mailbox: str, message_id: str, **kwargs: Any) -> MailMessage:
        self.calls.append(("read", {"mailbox": mailbox, "message_id": message_id, **kwargs}))
        if self.error:
            raise self.error
        return MailMessage(message_id=message_id, subject="Hi", sender="a@b.com", text="Hello")


def _client(monkeypatch: pytest.MonkeyPatch, reader: _FakeReader) -> TestClient:
    monkeypatch.setattr(main, "mail_reader", reader)
    return TestClient(main.app)


def _status_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://graph.microsoft.com/v1.0/users/x/messages/y")
    return httpx.HTTPStatusError("upstream", request=request, response=httpx.Response(status, request=request))


def test_health() -> None:
    response = TestClient(main.app).get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_convert_html() -> None:
    response = TestClient(main.app).post(
        "/convert",
        json={"content": "<p>Hello &amp; welcome</p><ol><li>One</li></ol>", "options": {"listIndent": 0}},
    )
    assert response.status_code == 200
    assert response.json() == {"text": "Hello & welcome\n1. One", "quoted_removed": False}


def test_convert_hides_quoted_content() -> None:
    html = "<p>Main reply</p><p>From: a@b.com<br>Sent: Mon<br>To: c@d.com<br>Subject: Hi</p>"
    response = TestClient(main.app).post("/convert", json={"content": html, "hide_quoted_content": True})
    body = response.json()
    assert body["quoted_removed"] is True
    assert body["text"] == f"Main reply\n\n{main.settings.quoted_content_notice}"


def test_convert_ignores_bad_options() -> None:
    response = TestClient(main.app).post(
        "/convert",
        json={"content": "plain text", "content_type": "text", "options": {"wordwrap": "wide"}},
    )
    assert response.status_code == 200
    assert response.json()["text"] == "plain text"


def test_convert_requires_content() -> None:
    assert TestClient(main.app).post("/convert", json={}).status_code == 422


def test_list_folders(monkeypatch: pytest.MonkeyPatch) -> None:
    reader = _FakeReader()
    response = _client(monkeypatch, reader).get("/mailboxes/ops@example.com/folders", params={"path": "Inbox"})
    assert response.status_code == 200
    assert response.json() == [{"id": "inbox-id", "displayName": "Inbox"}]
    assert reader.calls == [("list_folders", {"mailbox": "ops@example.com", "path": "Inbox"})]


def test_list_messages(monkeypatch: pytest.MonkeyPatch) -> None:
    reader = _FakeReader()
    response = _client(monkeypatch, reader).get(
        "/mailboxes/ops@example.com/folders/messages",
        params={"path": "Inbox/Projects", "limit": 5, "include_bodies": "true"},
    )
    assert response.status_code == 200
    assert response.json()[0]["message_id"] == "m1"
    assert reader.calls == [
        (
            "list_messages",
            {
                "mailbox": "ops@example.com",
                "folder": "Inbox/Projects",
                "limit": 5,
                "include_bodies": True,
                "hide_quoted": None,
            },
        )
    ]


def test_read_message(monkeypatch: pytest.MonkeyPatch) -> None:
    reader = _FakeReader()
    response = _client(monkeypatch, reader).get(
        "/mailboxes/ops@example.com/messages/abc",
        params={"hide_quoted_content": "true"},
    )
    assert response.status_code == 200
    assert response.json()["text"] == "Hello"
    assert reader.calls[0][1]["hide_quoted"] is True


@pytest.mark.parametrize(
    ("error", "status"),
    [
        (FolderNotFoundError("ops@example.com", "Nope"), 404),
        (_status_error(404), 404),
        (_status_error(500), 502),
        (RuntimeError("Graph credentials are required"), 503),
        (ValueError("boom"), 500),
    ],
)
def test_upstream_errors_map_to_status(monkeypatch: pytest.MonkeyPatch, error: Exception, status: int) -> None:
    response = _client(monkeypatch, _FakeReader(error)).get("/mailboxes/ops@example.com/messages/abc")
    assert response.status_code == status
