# Shared data models
from app.models.messages import ChatMessage, MessageBatch, User, SyncCursor
from app.models.knowledge import (
    KnowledgeBase,
    ExtractionDocument,
    BusinessRecord,
    Recommendations,
    BusinessInfoShape,
    Snapshot,
)

__all__ = [
    "ChatMessage",
    "MessageBatch",
    "User",
    "SyncCursor",
    "KnowledgeBase",
    "ExtractionDocument",
    "BusinessRecord",
    "Recommendations",
    "BusinessInfoShape",
    "Snapshot",
]
