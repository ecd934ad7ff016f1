# tokenauth/services/rotation.py
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from tokenauth.core.clock import Clock, utcnow
from tokenauth.core.config import Settings
from tokenauth.core.errors import AuthErrorCode, Ok, Result, fail
from tokenauth.crud.subject import subject_crud
from tokenauth.services.issuer import TokenIssuer, TokenPair

logger = logging.getLogger(__name__)


class RefreshTokenRotator:
    """
    Exchanges a refresh token for a new access token and a new refresh
    token. The presented token is consumed: presenting it again fails, which
    is how a stolen-and-replayed refresh token becomes visible.
    """

    def __init__(
        self,
        settings: Settings,
        db: Session,
        issuer: Optional[TokenIssuer] = None,
        clock: Clock = utcnow,
    ):
        self.db = db
        self.issuer = issuer or TokenIssuer(settings, db, clock=clock)
        self.store = self.issuer.store

    def rotate(self, value: str) -> Result[TokenPair]:
        if not value:
            return fail(AuthErrorCode.INVALID_REFRESH_TOKEN)

        # não encontrado, expirado e revogado são a mesma falha
        row = self.store.find_valid(value)
        if row is None:
            logger.info("refresh rejected")
            return fail(AuthErrorCode.INVALID_REFRESH_TOKEN)

        subject = subject_crud.get(self.db, row.subject_id)
        if subject is None or not subject.is_active:
            logger.info("refresh rejected")
            return fail(AuthErrorCode.UNKNOWN_SUBJECT)

        try:
            if not self.store.revoke_if_valid(value):
                # outra rotação concorrente consumiu o token primeiro
                self.db.rollback()
                logger.info("refresh rejected")
                return fail(AuthErrorCode.INVALID_REFRESH_TOKEN)
            pair = self.issuer.create_pair(subject)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return Ok(pair)
