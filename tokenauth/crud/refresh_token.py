# tokenauth/crud/refresh_token.py
"""
Persistence for refresh credentials.

This module is the only writer of the ``refresh_tokens`` table. Methods
flush but never commit: the calling service owns the transaction, so that
rotation can revoke the old row and insert the new one atomically.
"""
from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from tokenauth.core.clock import Clock, as_utc, utcnow
from tokenauth.models.refresh_token import RefreshToken

TOKEN_BYTES = 32


def hash_token(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def generate_token_value() -> str:
    # aleatório puro: não carrega nenhuma informação do subject
    return secrets.token_urlsafe(TOKEN_BYTES)


@dataclass(frozen=True)
class RefreshCredential:
    value: str
    subject_id: int
    expires_at: datetime
    created_at: datetime
    revoked: bool = False

    def is_valid(self, now: datetime) -> bool:
        return not self.revoked and now < self.expires_at


class RefreshTokenStore:
    def __init__(self, db: Session, clock: Clock = utcnow):
        self.db = db
        self._clock = clock

    def _valid_filter(self, now: datetime):
        return (RefreshToken.revoked.is_(False), RefreshToken.expires_at > now)

    def create(self, *, subject_id: int, lifetime: timedelta) -> RefreshCredential:
        now = self._clock()
        value = generate_token_value()
        row = RefreshToken(
            token_hash=hash_token(value),
            subject_id=subject_id,
            expires_at=now + lifetime,
            revoked=False,
            created_at=now,
        )
        self.db.add(row)
        self.db.flush()
        return RefreshCredential(value=value, subject_id=subject_id, expires_at=now + lifetime, created_at=now)

    def find(self, value: str) -> Optional[RefreshToken]:
        return self.db.execute(
            select(RefreshToken).where(RefreshToken.token_hash == hash_token(value))
        ).scalar_one_or_none()

    def find_valid(self, value: str) -> Optional[RefreshToken]:
        """Row for ``value`` if it exists, is not revoked and has not expired."""
        row = self.find(value)
        if row is None or row.revoked:
            return None
        if self._clock() >= as_utc(row.expires_at):
            return None
        return row

    def revoke_if_valid(self, value: str) -> bool:
        """
        Compare-and-swap on ``revoked``: a single conditional UPDATE. Returns
        False when the row is missing, expired or was already revoked by a
        concurrent caller.
        """
        now = self._clock()
        result = self.db.execute(
            update(RefreshToken)
            .where(RefreshToken.token_hash == hash_token(value), *self._valid_filter(now))
            .values(revoked=True, revoked_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def revoke(self, value: str) -> bool:
        now = self._clock()
        result = self.db.execute(
            update(RefreshToken)
            .where(RefreshToken.token_hash == hash_token(value), RefreshToken.revoked.is_(False))
            .values(revoked=True, revoked_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    def revoke_all(self, subject_id: int) -> int:
        now = self._clock()
        result = self.db.execute(
            update(RefreshToken)
            .where(RefreshToken.subject_id == subject_id, RefreshToken.revoked.is_(False))
            .values(revoked=True, revoked_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def active_for_subject(self, subject_id: int) -> List[RefreshToken]:
        """Active rows, oldest first."""
        return list(
            self.db.scalars(
                select(RefreshToken)
                .where(RefreshToken.subject_id == subject_id, *self._valid_filter(self._clock()))
                .order_by(RefreshToken.created_at.asc(), RefreshToken.id.asc())
            ).all()
        )

    def count_active(self, subject_id: int) -> int:
        return self.db.scalar(
            select(func.count(RefreshToken.id)).where(
                RefreshToken.subject_id == subject_id, *self._valid_filter(self._clock())
            )
        ) or 0

    def revoke_oldest(self, subject_id: int, keep: int) -> int:
        """Revoke active rows so that at most ``keep`` remain."""
        active = self.active_for_subject(subject_id)
        excess = active[: max(len(active) - keep, 0)]
        if not excess:
            return 0
        now = self._clock()
        result = self.db.execute(
            update(RefreshToken)
            .where(RefreshToken.id.in_([row.id for row in excess]), RefreshToken.revoked.is_(False))
            .values(revoked=True, revoked_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def delete_expired(self) -> int:
        result = self.db.execute(
            delete(RefreshToken)
            .where(RefreshToken.expires_at <= self._clock())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
