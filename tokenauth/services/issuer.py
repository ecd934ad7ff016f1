# tokenauth/services/issuer.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from tokenauth.core.clock import Clock, utcnow
from tokenauth.core.config import Settings
from tokenauth.core.errors import AuthErrorCode, Ok, Result, fail
from tokenauth.core.tokens import AccessClaim, ClaimCodec
from tokenauth.crud.refresh_token import RefreshCredential, RefreshTokenStore
from tokenauth.models.subject import Subject

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    access_expires_at: datetime
    refresh: RefreshCredential
    subject: Subject

    @property
    def refresh_token(self) -> str:
        return self.refresh.value


class TokenIssuer:
    def __init__(
        self,
        settings: Settings,
        db: Session,
        codec: Optional[ClaimCodec] = None,
        clock: Clock = utcnow,
    ):
        self.settings = settings
        self.db = db
        self._clock = clock
        self.codec = codec or ClaimCodec.from_settings(settings, clock=clock)
        self.store = RefreshTokenStore(db, clock=clock)

    @property
    def access_lifetime(self) -> timedelta:
        return timedelta(minutes=self.settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    @property
    def refresh_lifetime(self) -> timedelta:
        return timedelta(days=self.settings.REFRESH_TOKEN_EXPIRE_DAYS)

    def mint_access_token(self, subject: Subject) -> tuple[str, AccessClaim]:
        claim = AccessClaim.new(
            subject_id=subject.external_id,
            issuer=self.codec.issuer,
            now=self._clock(),
            lifetime=self.access_lifetime,
        )
        return self.codec.encode(claim), claim

    def create_pair(self, subject: Subject) -> TokenPair:
        """Mint access + refresh inside the caller's transaction (no commit)."""
        access_token, claim = self.mint_access_token(subject)
        refresh = self.store.create(subject_id=subject.id, lifetime=self.refresh_lifetime)
        return TokenPair(
            access_token=access_token,
            access_expires_at=claim.expires_at,
            refresh=refresh,
            subject=subject,
        )

    def issue_for(self, subject: Subject) -> Result[TokenPair]:
        """Fresh pair for an already verified subject. Earlier sessions stay valid."""
        if not subject.is_active:
            return fail(AuthErrorCode.AUTHENTICATION_FAILED)

        try:
            cap = self.settings.MAX_ACTIVE_REFRESH_TOKENS
            if cap > 0:
                dropped = self.store.revoke_oldest(subject.id, keep=cap - 1)
                if dropped:
                    logger.info("device cap reached; revoked %d oldest refresh token(s)", dropped)
            pair = self.create_pair(subject)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return Ok(pair)
