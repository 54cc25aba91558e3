"""
Shared fixtures: temporary SQLite stores, settings and a fake extraction LLM.
"""

import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from langchain_core.messages import AIMessage

from app.config import Settings
from app.integrations.store import create_stores
from app.models.messages import ChatMessage


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def chat(timestamp: datetime, user_id: str, content: str, group_id: str = "group-1") -> ChatMessage:
    return ChatMessage(timestamp=timestamp, user_id=user_id, content=content, group_id=group_id)


def llm_reply(document) -> AIMessage:
    """A chat model response whose content is the given document."""
    content = document if isinstance(document, str) else json.dumps(document)
    return AIMessage(content=content)


def make_llm(*documents) -> MagicMock:
    """Fake LangChain chat model answering each call with the next document."""
    llm = MagicMock()
    llm.bind.return_value = llm
    llm.ainvoke = AsyncMock(side_effect=[llm_reply(document) for document in documents])
    return llm


def business_doc(category, business, positive=None, info=None, suggestions=None, negative=None):
    return {
        category: {
            business: {
                "BusinessInfo": info or {},
                "Recommendations": {"Positive": positive or {}, "Negative": negative or {}},
                "Suggestions": suggestions or {},
            }
        }
    }


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'business_circle.db'}"


@pytest.fixture
def settings(db_url):
    return Settings(database_url=db_url, batch_size=2, group_ids=[], max_concurrent_groups=2)


@pytest.fixture
def stores(db_url):
    return create_stores(db_url)
