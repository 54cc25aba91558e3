# Persistence store integration module
from dataclasses import dataclass
from typing import Optional

from app.integrations.store.db import SessionProvider
from app.integrations.store.message_store import MessageStore, MessagePage
from app.integrations.store.models import Base
from app.integrations.store.snapshot_store import SnapshotStore, SyncStatusStore
from app.integrations.store.user_store import UserStore


@dataclass
class Stores:
    """Every store of one database, sharing a session provider."""

    messages: MessageStore
    users: UserStore
    snapshots: SnapshotStore
    sync_status: SyncStatusStore


def create_stores(db_url: Optional[str] = None, auto_create_schema: bool = True) -> Stores:
    provider = SessionProvider(db_url)
    if auto_create_schema:
        Base.metadata.create_all(provider.engine)
    return Stores(
        messages=MessageStore(provider),
        users=UserStore(provider),
        snapshots=SnapshotStore(provider),
        sync_status=SyncStatusStore(provider),
    )


__all__ = [
    "Stores",
    "create_stores",
    "SessionProvider",
    "MessageStore",
    "MessagePage",
    "UserStore",
    "SnapshotStore",
    "SyncStatusStore",
]
