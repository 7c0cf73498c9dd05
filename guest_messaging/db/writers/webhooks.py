from typing import Any, Optional

from sqlalchemy import delete, insert
from sqlalchemy.engine import Connection

from guest_messaging.models.webhooks import WebhookEvent


def record_webhook_event(
    conn: Connection, event_id: str, event_type: str, payload: Optional[dict[str, Any]]
) -> None:
    """
    Claim a webhook event id before handling it.

    Raises:
        IntegrityError: If the event id was already recorded
    """
    conn.execute(
        insert(WebhookEvent).values(event_id=event_id, event_type=event_type, payload=payload)
    )


def release_webhook_event(conn: Connection, event_id: str) -> None:
    """Forget a claimed event id so the provider's retry is handled again."""
    conn.execute(delete(WebhookEvent).where(WebhookEvent.event_id == event_id))
