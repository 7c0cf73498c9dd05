"""Integration tests for the inbox endpoints."""

from __future__ import annotations

from typing import Any, Callable

import pytest
from fastapi.testclient import TestClient

from guest_messaging.context import AppContext
from guest_messaging.db.readers.threads import get_thread_by_reservation
from guest_messaging.errors import TransientChannelError
from guest_messaging.schemas.webhooks import InboundMessageData
from guest_messaging.services.webhooks import ingest_inbound_message


@pytest.fixture
def guest_thread(context: AppContext, make_reservation: Callable[..., int]) -> int:
    """Thread holding two unread guest messages."""
    reservation_id = make_reservation(external_booking_id="BK-3003")
    for n, body in enumerate(["Hi!", "Is early check-in possible?"], start=1):
        ingest_inbound_message(
            context,
            InboundMessageData(
                bookingId="BK-3003", channel="whatsapp", messageId=f"wamid.{n}", body=body
            ),
        )
    with context.engine.connect() as conn:
        thread = get_thread_by_reservation(conn, reservation_id)
    assert thread is not None
    return int(thread["id"])


@pytest.mark.integration
def test_list_threads_includes_unread(client: TestClient, guest_thread: int) -> None:
    response = client.get("/threads")

    assert response.status_code == 200
    threads = response.json()
    assert [t["id"] for t in threads] == [guest_thread]
    assert threads[0]["unread"] == 2
    assert threads[0]["last_message_preview"] == "Is early check-in possible?"


@pytest.mark.integration
def test_thread_messages_and_stats(client: TestClient, guest_thread: int) -> None:
    messages = client.get(f"/threads/{guest_thread}/messages").json()
    stats = client.get(f"/threads/{guest_thread}/stats").json()

    assert [m["content"] for m in messages] == ["Hi!", "Is early check-in possible?"]
    assert stats["total"] == 2
    assert stats["from_guest"] == 2
    assert stats["unread_host"] == 2
    assert stats["unread_guest"] == 0


@pytest.mark.integration
def test_unknown_thread_returns_404(client: TestClient) -> None:
    assert client.get("/threads/999/messages").status_code == 404
    assert client.get("/threads/999/stats").status_code == 404
    assert client.post("/threads/999/messages", json={"content": "hi"}).status_code == 404
    assert client.put("/threads/999/status", json={"status": "closed"}).status_code == 404
    assert client.post("/threads/999/read").status_code == 404


@pytest.mark.integration
def test_reply_is_delivered_in_app(client: TestClient, guest_thread: int) -> None:
    response = client.post(
        f"/threads/{guest_thread}/messages", json={"content": "Yes, from 13:00 is fine."}
    )

    assert response.status_code == 201
    body = response.json()
    assert body["channel"] == "inapp"
    assert body["status"] == "delivered"
    unread = client.get("/threads/unread", params={"viewer": "guest"}).json()
    assert unread["total"] == 1


@pytest.mark.integration
def test_failed_send_is_stored_and_retryable(
    client: TestClient, whatsapp_sender: Any, guest_thread: int
) -> None:
    whatsapp_sender.error = TransientChannelError("whatsapp", "rate limited", status_code=429)

    failed = client.post(
        f"/threads/{guest_thread}/messages", json={"content": "On my way", "channel": "whatsapp"}
    ).json()

    assert failed["status"] == "failed"
    assert "rate limited" in failed["error"]

    whatsapp_sender.error = None
    retried = client.post(f"/messages/{failed['message_id']}/retry")

    assert retried.status_code == 200
    assert retried.json()["status"] == "sent"
    assert client.post(f"/messages/{failed['message_id']}/retry").status_code == 409
    assert client.post("/messages/999/retry").status_code == 404


@pytest.mark.integration
def test_mark_read_endpoints(client: TestClient, guest_thread: int) -> None:
    messages = client.get(f"/threads/{guest_thread}/messages").json()

    as_guest = client.post(f"/messages/{messages[0]['id']}/read", params={"viewer": "guest"})
    assert as_guest.json() == {"message_id": messages[0]["id"], "applied": False}
    assert client.get("/threads/unread").json()["total"] == 2

    single = client.post(f"/messages/{messages[0]['id']}/read").json()
    assert single == {"message_id": messages[0]["id"], "applied": True}
    assert client.get("/threads/unread").json()["total"] == 1

    rest = client.post(f"/threads/{guest_thread}/read", json={"viewer": "host"}).json()
    assert rest == {"thread_id": guest_thread, "marked": 1}
    assert client.get("/threads/unread").json()["total"] == 0
    assert client.post("/messages/999/read").status_code == 404


@pytest.mark.integration
def test_close_and_filter_threads(client: TestClient, guest_thread: int) -> None:
    response = client.put(f"/threads/{guest_thread}/status", json={"status": "closed"})

    assert response.json() == {"thread_id": guest_thread, "status": "closed"}
    assert client.get("/threads", params={"status": "open"}).json() == []
    assert len(client.get("/threads", params={"status": "closed"}).json()) == 1
