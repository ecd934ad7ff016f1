# tokenauth/crud/rate_window.py
from __future__ import annotations

import math
from datetime import timedelta

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tokenauth.core.clock import Clock, as_utc, utcnow
from tokenauth.core.ratelimit import WindowState
from tokenauth.models.rate_window import RateWindow


class SqlCounterStore:
    """
    Counter store on the relational database, for deployments without Redis.
    The increment is a conditional UPDATE (``count < limit``), so concurrent
    hits on the same key cannot push the counter past the limit.
    """

    def __init__(self, db: Session, clock: Clock = utcnow):
        self.db = db
        self._clock = clock

    def _key(self, action: str, origin: str):
        return (RateWindow.action == action, RateWindow.origin == origin)

    def _hit(self, action: str, origin: str, limit: int, window_seconds: int) -> WindowState:
        now = self._clock()
        key = self._key(action, origin)

        # janela vencida equivale a contador zerado
        self.db.execute(
            delete(RateWindow).where(*key, RateWindow.expires_at <= now).execution_options(synchronize_session=False)
        )
        exists = self.db.execute(select(RateWindow.id).where(*key)).scalar_one_or_none()
        if exists is None:
            self.db.add(RateWindow(action=action, origin=origin, count=1, expires_at=now + timedelta(seconds=window_seconds)))
            self.db.flush()
            return WindowState(count=1, allowed=True, expires_in=window_seconds)

        result = self.db.execute(
            update(RateWindow)
            .where(*key, RateWindow.count < limit)
            .values(count=RateWindow.count + 1)
            .execution_options(synchronize_session=False)
        )
        count, expires_at = self.db.execute(select(RateWindow.count, RateWindow.expires_at).where(*key)).one()
        remaining = math.ceil((as_utc(expires_at) - now).total_seconds())
        return WindowState(count=count, allowed=result.rowcount == 1, expires_in=max(remaining, 0))

    def hit(self, action: str, origin: str, limit: int, window_seconds: int) -> WindowState:
        try:
            try:
                state = self._hit(action, origin, limit, window_seconds)
            except IntegrityError:
                # outro processo abriu a mesma janela ao mesmo tempo
                self.db.rollback()
                state = self._hit(action, origin, limit, window_seconds)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return state
