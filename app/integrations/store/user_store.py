"""
User Store

Read access to chat participants for identity resolution, plus the writes
the ingestion side needs: get-or-create with name backfill and bulk import.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import select

from app.integrations.store.db import SessionProvider
from app.integrations.store.models import UserModel
from app.models.messages import User

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserStore:
    """Users keyed by id, unique by phone number."""

    def __init__(self, provider: SessionProvider):
        self._provider = provider

    def lookup(self, user_id: str) -> Optional[User]:
        with self._provider.session() as session:
            row = session.get(UserModel, user_id)
            return self._to_user(row) if row else None

    def get_or_create(self, phone_number: str, name: Optional[str] = None) -> User:
        """
        Return the user with this phone number, creating it if needed.
        A user stored without a name gets `name` filled in.
        """
        if not phone_number:
            raise ValueError("Phone number is required")

        with self._provider.session() as session:
            row = session.execute(
                select(UserModel).where(UserModel.phone_number == phone_number)
            ).scalar_one_or_none()

            if row is None:
                row = UserModel(phone_number=phone_number, name=name, created_at=_utcnow())
                session.add(row)
                logger.info(f"Created user for {phone_number}")
            elif not row.name and name:
                row.name = name
                logger.info(f"Backfilled name for user {row.id}")

            session.commit()
            session.refresh(row)
            return self._to_user(row)

    def upsert_many(self, users: Iterable[Tuple[str, Optional[str]]]) -> int:
        """
        Insert (phone_number, name) pairs, ignoring phone numbers already stored.

        Returns:
            Number of users inserted
        """
        pending: List[Tuple[str, Optional[str]]] = []
        seen = set()
        for phone_number, name in users:
            if phone_number and phone_number not in seen:
                seen.add(phone_number)
                pending.append((phone_number, name or None))

        if not pending:
            return 0

        with self._provider.session() as session:
            existing = set(
                session.execute(
                    select(UserModel.phone_number).where(
                        UserModel.phone_number.in_([phone for phone, _ in pending])
                    )
                ).scalars()
            )
            now = _utcnow()
            inserted = 0
            for phone_number, name in pending:
                if phone_number in existing:
                    continue
                session.add(UserModel(phone_number=phone_number, name=name, created_at=now))
                inserted += 1
            session.commit()

        logger.info(f"Inserted {inserted}/{len(pending)} users")
        return inserted

    @staticmethod
    def _to_user(row: UserModel) -> User:
        return User(id=row.id, phone_number=row.phone_number, display_name=row.name)
