# tokenauth/core/tokens.py
from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from jose import JWTError, jwt
from jose.exceptions import JWTClaimsError

from tokenauth.core.clock import Clock, utcnow
from tokenauth.core.config import ensure_signing_secret
from tokenauth.core.errors import InvalidSignature, MalformedToken, TokenExpired

_REQUIRED_INT_CLAIMS = ("exp", "iat", "rat")
_REQUIRED_STR_CLAIMS = ("iss", "jti", "sub")


def _ts(value: datetime) -> int:
    return int(value.timestamp())


def _dt(value: int) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc)


@dataclass(frozen=True)
class AccessClaim:
    """
    Campos assinados do access token.

    ``subject_id`` é sempre o identificador externo (UUID) do subject,
    nunca a chave interna da tabela.
    """

    issuer: str
    expires_at: datetime
    issued_at: datetime
    renewed_at: datetime
    token_id: str
    subject_id: str

    @classmethod
    def new(cls, *, subject_id: str, issuer: str, now: datetime, lifetime: timedelta) -> "AccessClaim":
        now = _dt(_ts(now))  # precisão de segundos, como no JWT
        return cls(
            issuer=issuer,
            expires_at=now + lifetime,
            issued_at=now,
            renewed_at=now,
            token_id=uuid.uuid4().hex,
            subject_id=subject_id,
        )

    def renewed(self, *, now: datetime, lifetime: timedelta) -> "AccessClaim":
        # iat e jti são preservados: um jti identifica uma sessão de login
        now = _dt(_ts(now))
        return replace(self, renewed_at=now, expires_at=now + lifetime)

    def to_claims(self) -> Dict[str, Any]:
        return {
            "iss": self.issuer,
            "exp": _ts(self.expires_at),
            "iat": _ts(self.issued_at),
            "rat": _ts(self.renewed_at),
            "jti": self.token_id,
            "sub": self.subject_id,
        }

    @classmethod
    def from_claims(cls, payload: Dict[str, Any]) -> "AccessClaim":
        for name in _REQUIRED_INT_CLAIMS:
            if not isinstance(payload.get(name), int) or isinstance(payload.get(name), bool):
                raise MalformedToken(f"claim '{name}' missing or not an integer")
        for name in _REQUIRED_STR_CLAIMS:
            if not isinstance(payload.get(name), str) or not payload.get(name):
                raise MalformedToken(f"claim '{name}' missing or empty")
        claim = cls(
            issuer=payload["iss"],
            expires_at=_dt(payload["exp"]),
            issued_at=_dt(payload["iat"]),
            renewed_at=_dt(payload["rat"]),
            token_id=payload["jti"],
            subject_id=payload["sub"],
        )
        if not claim.expires_at > claim.renewed_at >= claim.issued_at:
            raise MalformedToken("inconsistent timestamps")
        return claim


class ClaimCodec:
    """Encodes/decodes AccessClaim as a compact HMAC-signed JWT."""

    def __init__(self, secret: str, *, issuer: str, algorithm: str = "HS256", clock: Clock = utcnow):
        self._secret = ensure_signing_secret(secret)
        self.issuer = issuer
        self.algorithm = algorithm
        self._clock = clock

    @classmethod
    def from_settings(cls, settings, clock: Clock = utcnow) -> "ClaimCodec":
        return cls(settings.SECRET_KEY, issuer=settings.ISSUER, algorithm=settings.ALGORITHM, clock=clock)

    def encode(self, claim: AccessClaim) -> str:
        # o iss é sempre o deste codec, nunca o que veio no claim
        claim = replace(claim, issuer=self.issuer)
        return jwt.encode(claim.to_claims(), self._secret, algorithm=self.algorithm)

    def decode(self, token: str) -> AccessClaim:
        """
        Verifica a assinatura antes de confiar em qualquer campo; só depois
        compara ``exp`` com o relógio injetado.
        """
        if not isinstance(token, str) or token.count(".") != 2:
            raise MalformedToken("not a compact JWS")
        try:
            jwt.get_unverified_header(token)
        except JWTError as exc:
            raise MalformedToken("unreadable header") from exc

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"verify_exp": False, "verify_aud": False},
            )
        except JWTClaimsError as exc:
            raise InvalidSignature("claims rejected") from exc
        except JWTError as exc:
            raise InvalidSignature("signature verification failed") from exc

        if not isinstance(payload, dict):
            raise MalformedToken("payload is not an object")
        claim = AccessClaim.from_claims(payload)
        if self._clock() >= claim.expires_at:
            raise TokenExpired("token expired")
        return claim
