# tokenauth/services/renewer.py
from __future__ import annotations

from datetime import timedelta
from typing import Optional

from tokenauth.core.clock import Clock, utcnow
from tokenauth.core.config import Settings
from tokenauth.core.errors import AuthErrorCode, Ok, Result, TokenDecodeError, TokenExpired, fail
from tokenauth.core.tokens import AccessClaim, ClaimCodec


class TokenRenewer:
    """
    Sliding renewal of access tokens, without touching storage.

    Access tokens cannot be revoked before ``exp``; their lifetime is kept
    short and clients pick up renewed tokens on normal use.
    """

    def __init__(self, settings: Settings, codec: Optional[ClaimCodec] = None, clock: Clock = utcnow):
        self.settings = settings
        self._clock = clock
        self.codec = codec or ClaimCodec.from_settings(settings, clock=clock)

    def decode(self, token: str) -> Result[AccessClaim]:
        try:
            return Ok(self.codec.decode(token))
        except TokenExpired:
            return fail(AuthErrorCode.TOKEN_EXPIRED)
        except TokenDecodeError:
            return fail(AuthErrorCode.INVALID_TOKEN)

    def renew(self, token: str) -> Result[str]:
        decoded = self.decode(token)
        if not decoded.ok:
            return decoded
        claim = decoded.value

        now = self._clock()
        if now - claim.renewed_at < timedelta(minutes=self.settings.RENEW_THRESHOLD_MINUTES):
            return Ok(token)

        renewed = claim.renewed(now=now, lifetime=timedelta(minutes=self.settings.ACCESS_TOKEN_EXPIRE_MINUTES))
        return Ok(self.codec.encode(renewed))
