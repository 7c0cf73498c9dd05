"""
Shared fixtures.

The suite runs against an in-memory SQLite database: the service schema is
attached as a second in-memory database so schema-qualified tables work the
same way they do on PostgreSQL.
"""

from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DB_SCHEMA", "guest_messaging")

from datetime import date, datetime, time, timezone  # noqa: E402
from typing import Any, Callable, Generator, Optional  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from guest_messaging.channels.base import SendResult  # noqa: E402
from guest_messaging.channels.inapp import InAppSender  # noqa: E402
from guest_messaging.channels.registry import ChannelRegistry  # noqa: E402
from guest_messaging.config import SCHEMA  # noqa: E402
from guest_messaging.context import AppContext, build_context  # noqa: E402
from guest_messaging.db.writers.automation import insert_rule, insert_template  # noqa: E402
from guest_messaging.db.writers.reservations import insert_reservation  # noqa: E402
from guest_messaging.models import automation, messages, properties, reservations, webhooks  # noqa: E402,F401
from guest_messaging.models.base import Base  # noqa: E402
from guest_messaging.models.properties import Property  # noqa: E402

CREATED_AT = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


class FakeSender:
    """Channel sender that records sends and can be told to fail."""

    def __init__(self, channel: str, error: Optional[Exception] = None) -> None:
        self.channel = channel
        self.error = error
        self.sent: list[dict[str, Any]] = []

    def send(self, recipient: str, content: str, subject: Optional[str] = None) -> SendResult:
        if self.error is not None:
            raise self.error
        self.sent.append({"recipient": recipient, "content": content, "subject": subject})
        return SendResult(provider_message_id=f"{self.channel}-{len(self.sent)}")


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Fresh in-memory database with every table created."""
    db = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(db, "connect")
    def _attach_schema(dbapi_conn: Any, _record: Any) -> None:
        dbapi_conn.execute(f"ATTACH DATABASE ':memory:' AS {SCHEMA}")

    Base.metadata.create_all(db)
    yield db
    db.dispose()


@pytest.fixture
def whatsapp_sender() -> FakeSender:
    return FakeSender("whatsapp")


@pytest.fixture
def channels(whatsapp_sender: FakeSender) -> ChannelRegistry:
    return ChannelRegistry({"inapp": InAppSender(), "whatsapp": whatsapp_sender})


@pytest.fixture
def context(engine: Engine, channels: ChannelRegistry) -> Generator[AppContext, None, None]:
    ctx = build_context(engine=engine, channels=channels)
    yield ctx
    if ctx.unread is not None:
        ctx.unread.stop()


@pytest.fixture
def client(context: AppContext) -> TestClient:
    """API client bound to the test context."""
    from guest_messaging.main import create_app

    return TestClient(create_app(context))


@pytest.fixture
def make_property(engine: Engine) -> Callable[..., int]:
    def _make(**overrides: Any) -> int:
        values = {
            "name": "Seaside Loft",
            "address": "1-2-3 Minato, Tokyo",
            "timezone": "Asia/Tokyo",
            "check_in_time": time(15, 0),
            "check_out_time": time(11, 0),
            **overrides,
        }
        with engine.begin() as conn:
            result = conn.execute(Property.__table__.insert().values(**values))
            return int(result.inserted_primary_key[0])

    return _make


@pytest.fixture
def make_reservation(engine: Engine, make_property: Callable[..., int]) -> Callable[..., int]:
    counter = {"n": 0}

    def _make(property_id: Optional[int] = None, **overrides: Any) -> int:
        counter["n"] += 1
        values = {
            "external_booking_id": f"BK-{counter['n']}",
            "property_id": property_id or make_property(),
            "guest_name": "Aiko Tanaka",
            "guest_first_name": "Aiko",
            "guest_last_name": "Tanaka",
            "guest_email": "aiko@example.com",
            "guest_phone": "+81 90 1234 5678",
            "booking_source": "Airbnb",
            "num_guests": 2,
            "check_in_date": date(2025, 3, 10),
            "check_out_date": date(2025, 3, 13),
            "status": "confirmed",
            "created_at": CREATED_AT,
            "updated_at": CREATED_AT,
            **overrides,
        }
        with engine.begin() as conn:
            return insert_reservation(conn, values)

    return _make


@pytest.fixture
def make_template(engine: Engine) -> Callable[..., int]:
    def _make(**overrides: Any) -> int:
        values = {
            "name": "Welcome",
            "language": "en",
            "content": "Hi {{ guest_first_name }}, welcome to {{ property_name }}!",
            "enabled": True,
            **overrides,
        }
        with engine.begin() as conn:
            return insert_template(conn, values)

    return _make


@pytest.fixture
def make_rule(engine: Engine, make_template: Callable[..., int]) -> Callable[..., int]:
    def _make(
        timing_type: str = "on_create_delay",
        timing_params: Optional[dict[str, Any]] = None,
        **overrides: Any,
    ) -> int:
        values = {
            "name": f"Rule {timing_type}",
            "template_id": overrides.pop("template_id", None) or make_template(),
            "channel": "inapp",
            "timing_type": timing_type,
            "timing_params": timing_params if timing_params is not None else {"minutes": 5},
            "backfill_policy": "skip_if_past",
            "enabled": True,
            **overrides,
        }
        with engine.begin() as conn:
            return insert_rule(conn, values)

    return _make
