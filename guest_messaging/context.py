"""
Process-wide collaborators shared by the API, the dispatch worker and scripts.

Each entry point builds one AppContext at startup and passes it down; tests
build their own around an in-memory engine and fake channel senders.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy.engine import Engine

from guest_messaging.channels.registry import ChannelRegistry, build_channel_registry
from guest_messaging.config import DATABASE_URL
from guest_messaging.db.engine import create_db_engine
from guest_messaging.events import EventBus
from guest_messaging.services.unread import UnreadAggregator
from guest_messaging.storage.blob import BlobStore, build_blob_store

logger = structlog.get_logger(__name__)


@dataclass
class AppContext:
    engine: Engine
    bus: EventBus
    channels: ChannelRegistry
    blob_store: Optional[BlobStore] = None
    unread: Optional[UnreadAggregator] = None

    def close(self) -> None:
        if self.unread is not None:
            self.unread.stop()
        self.engine.dispose()


def build_context(
    database_url: Optional[str] = None,
    engine: Optional[Engine] = None,
    channels: Optional[ChannelRegistry] = None,
    blob_store: Optional[BlobStore] = None,
    track_unread: bool = True,
) -> AppContext:
    """
    Wire the engine, event bus, channel registry and unread aggregator.

    Args:
        database_url: Database to connect to when no engine is given
        engine: Pre-built engine (tests pass an in-memory one)
        channels: Channel registry; built from config credentials when omitted
        blob_store: Attachment store; built from config when omitted
        track_unread: Subscribe an UnreadAggregator to the bus

    Returns:
        AppContext: Ready-to-use context
    """
    engine = engine or create_db_engine(database_url or DATABASE_URL or "")
    bus = EventBus()
    context = AppContext(
        engine=engine,
        bus=bus,
        channels=channels if channels is not None else build_channel_registry(),
        blob_store=blob_store if blob_store is not None else build_blob_store(),
    )
    if track_unread:
        context.unread = UnreadAggregator(engine, bus).start()
    logger.info(
        "app_context_built",
        channels=context.channels.configured_channels(),
        blob_store=context.blob_store is not None,
        track_unread=track_unread,
    )
    return context
