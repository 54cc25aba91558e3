"""
Identity Resolver

The extraction service keys every recommendation and suggestion as
"<timestamp>: <user_id>". Before merging, those keys are rewritten to
"<timestamp>: <display_name> (<phone_number>)" so the knowledge base shows
who said what. Only keys change: entry text, entry order, categories,
businesses and BusinessInfo are left as they are.
"""

import logging
from typing import Dict, Optional, Protocol, Tuple

from app.models.knowledge import KnowledgeBase
from app.models.messages import User

logger = logging.getLogger(__name__)

KEY_SEPARATOR = ": "
UNKNOWN_NAME = "Unknown"


class UserDirectory(Protocol):
    """Identity store lookups required by the resolver."""

    def lookup(self, user_id: str) -> Optional[User]:
        ...


def split_entry_key(key: str) -> Optional[Tuple[str, str]]:
    """Split "<timestamp>: <user_id>" on the first separator, or None."""
    timestamp, separator, user_id = key.partition(KEY_SEPARATOR)
    if not separator or not user_id.strip():
        return None
    return timestamp, user_id.strip()


def format_identity(timestamp: str, user: User) -> str:
    name = user.display_name or UNKNOWN_NAME
    return f"{timestamp}{KEY_SEPARATOR}{name} ({user.phone_number})"


class IdentityResolver:
    """Rewrites user-id entry keys using the identity store."""

    def __init__(self, users: UserDirectory):
        self.users = users

    def resolve(self, document: KnowledgeBase) -> KnowledgeBase:
        """
        Return a copy of document with resolvable entry keys rewritten.

        Users that cannot be found, or whose lookup fails, keep their
        original key; resolution never fails the batch.
        """
        resolved = document.model_copy(deep=True)
        cache: Dict[str, Optional[User]] = {}
        rewritten = 0
        unresolved = 0

        for _, _, record in resolved.records():
            for section in ("positive", "negative"):
                entries, changed, missing = self._rewrite(
                    getattr(record.recommendations, section), cache
                )
                setattr(record.recommendations, section, entries)
                rewritten += changed
                unresolved += missing

            record.suggestions, changed, missing = self._rewrite(record.suggestions, cache)
            rewritten += changed
            unresolved += missing

        logger.info(
            f"Resolved {rewritten} entry keys ({unresolved} left unresolved, "
            f"{len(cache)} users looked up)"
        )
        return resolved

    def _rewrite(
        self, entries: Dict[str, str], cache: Dict[str, Optional[User]]
    ) -> Tuple[Dict[str, str], int, int]:
        result: Dict[str, str] = {}
        changed = 0
        missing = 0

        for key, text in entries.items():
            parts = split_entry_key(key)
            user = self._lookup(parts[1], cache) if parts else None

            if user is None:
                new_key = key
                missing += 1
            else:
                new_key = format_identity(parts[0], user)
                changed += 1

            if new_key in result:
                # Two entries resolved to one identity; keep both texts under the original key
                logger.warning(f"Entry key collision on '{new_key}', keeping '{key}'")
                new_key = key
            result[new_key] = text

        return result, changed, missing

    def _lookup(self, user_id: str, cache: Dict[str, Optional[User]]) -> Optional[User]:
        if user_id not in cache:
            try:
                cache[user_id] = self.users.lookup(user_id)
            except Exception as e:
                logger.warning(f"User lookup failed for {user_id}: {e}")
                cache[user_id] = None
        return cache[user_id]
