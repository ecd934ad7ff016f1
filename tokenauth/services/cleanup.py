# tokenauth/services/cleanup.py
"""Periodic deletion of expired refresh tokens."""
from __future__ import annotations

import asyncio
import logging

from sqlalchemy.orm import sessionmaker

from tokenauth.core.clock import Clock, utcnow
from tokenauth.crud.refresh_token import RefreshTokenStore

logger = logging.getLogger(__name__)


def sweep_expired_refresh_tokens(session_factory: sessionmaker, clock: Clock = utcnow) -> int:
    with session_factory() as db:
        try:
            removed = RefreshTokenStore(db, clock=clock).delete_expired()
            db.commit()
        except Exception:
            db.rollback()
            raise
    return removed


async def refresh_cleanup_loop(session_factory: sessionmaker, interval_seconds: int, clock: Clock = utcnow) -> None:
    while True:
        try:
            await asyncio.sleep(interval_seconds)
            removed = await asyncio.to_thread(sweep_expired_refresh_tokens, session_factory, clock)
            if removed > 0:
                logger.info("refresh cleanup: removed %d expired token(s)", removed)
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.warning("refresh cleanup error: %s", e)
