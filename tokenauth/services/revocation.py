# tokenauth/services/revocation.py
from __future__ import annotations

from sqlalchemy.orm import Session

from tokenauth.core.clock import Clock, utcnow
from tokenauth.core.errors import Ok, Result
from tokenauth.crud.refresh_token import RefreshTokenStore
from tokenauth.models.subject import Subject


class RevocationService:
    """Idempotent revocation: unknown or already revoked tokens are not errors."""

    def __init__(self, db: Session, clock: Clock = utcnow):
        self.db = db
        self.store = RefreshTokenStore(db, clock=clock)

    def revoke(self, value: str) -> Result[bool]:
        if not value:
            return Ok(False)
        try:
            changed = self.store.revoke(value)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return Ok(changed)

    def revoke_all(self, subject: Subject) -> Result[int]:
        # Um único UPDATE; tokens emitidos em paralelo depois dele podem escapar.
        try:
            count = self.store.revoke_all(subject.id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return Ok(count)
