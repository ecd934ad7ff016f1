# tokenauth/core/errors.py
"""
Failure taxonomy for the token core.

Only ConfigurationError is raised out of the core (it is fatal at startup).
Every other failure is returned as ``Err(AuthFailure(...))`` and translated
to a transport status by the HTTP layer.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Generic, Optional, TypeVar, Union

T = TypeVar("T")


class ConfigurationError(RuntimeError):
    """Weak or missing configuration; the process must not start."""


class AuthErrorCode(str, Enum):
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    INVALID_REFRESH_TOKEN = "INVALID_REFRESH_TOKEN"
    UNKNOWN_SUBJECT = "UNKNOWN_SUBJECT"
    RATE_LIMITED = "RATE_LIMITED"
    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"


# Mensagens estáveis e genéricas (nunca dizem qual verificação falhou)
MESSAGES = {
    AuthErrorCode.AUTHENTICATION_FAILED: "Invalid credentials",
    AuthErrorCode.INVALID_REFRESH_TOKEN: "Invalid or expired refresh token",
    AuthErrorCode.UNKNOWN_SUBJECT: "Invalid or expired refresh token",
    AuthErrorCode.RATE_LIMITED: "Too many attempts, try again later",
    AuthErrorCode.INVALID_TOKEN: "Invalid or expired token",
    AuthErrorCode.TOKEN_EXPIRED: "Invalid or expired token",
}


@dataclass(frozen=True)
class AuthFailure:
    code: AuthErrorCode
    retry_after: Optional[int] = None

    @property
    def message(self) -> str:
        return MESSAGES[self.code]


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    ok: ClassVar[bool] = True


@dataclass(frozen=True)
class Err:
    error: AuthFailure
    ok: ClassVar[bool] = False

    @property
    def code(self) -> AuthErrorCode:
        return self.error.code


Result = Union[Ok[T], Err]


def fail(code: AuthErrorCode, retry_after: Optional[int] = None) -> Err:
    return Err(AuthFailure(code=code, retry_after=retry_after))


# ---- erros internos do codec (nunca saem do núcleo) ----
class TokenDecodeError(Exception):
    pass


class MalformedToken(TokenDecodeError):
    pass


class InvalidSignature(TokenDecodeError):
    pass


class TokenExpired(TokenDecodeError):
    pass
