# tokenauth/api/deps.py
from typing import Callable, Generator, Optional

from fastapi import Depends, Header, Request, status
from sqlalchemy.orm import Session

from tokenauth.core.clock import Clock
from tokenauth.core.config import Settings
from tokenauth.core.errors import AuthErrorCode, AuthFailure, Err, Result, fail
from tokenauth.core.ratelimit import CounterStore, RateLimiter
from tokenauth.core.tokens import ClaimCodec
from tokenauth.crud.rate_window import SqlCounterStore
from tokenauth.db.session import session_scope

_STATUS = {
    AuthErrorCode.AUTHENTICATION_FAILED: status.HTTP_401_UNAUTHORIZED,
    AuthErrorCode.INVALID_REFRESH_TOKEN: status.HTTP_401_UNAUTHORIZED,
    AuthErrorCode.UNKNOWN_SUBJECT: status.HTTP_401_UNAUTHORIZED,
    AuthErrorCode.INVALID_TOKEN: status.HTTP_401_UNAUTHORIZED,
    AuthErrorCode.TOKEN_EXPIRED: status.HTTP_401_UNAUTHORIZED,
    AuthErrorCode.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
}

# O cliente não distingue expirado de inválido, nem subject removido de token inválido
_PUBLIC_CODE = {
    AuthErrorCode.TOKEN_EXPIRED: AuthErrorCode.INVALID_TOKEN,
    AuthErrorCode.UNKNOWN_SUBJECT: AuthErrorCode.INVALID_REFRESH_TOKEN,
}


class AuthHTTPException(Exception):
    def __init__(self, failure: AuthFailure):
        self.failure = failure

    @property
    def status_code(self) -> int:
        return _STATUS[self.failure.code]

    @property
    def public_code(self) -> str:
        return _PUBLIC_CODE.get(self.failure.code, self.failure.code).value

    @property
    def headers(self) -> dict:
        if self.failure.retry_after is not None:
            return {"Retry-After": str(self.failure.retry_after)}
        if self.status_code == status.HTTP_401_UNAUTHORIZED:
            return {"WWW-Authenticate": "Bearer"}
        return {}


def raise_for_failure(result: Result) -> None:
    if isinstance(result, Err):
        raise AuthHTTPException(result.error)


# ----------------------------------------------------------------------
# Estado da aplicação (montado em create_app / lifespan)
# ----------------------------------------------------------------------
def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_clock(request: Request) -> Clock:
    return request.app.state.clock


def get_codec(request: Request) -> ClaimCodec:
    return request.app.state.codec


def get_db(request: Request) -> Generator[Session, None, None]:
    yield from session_scope(request.app.state.session_factory)


def get_counter_store(
    request: Request,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> CounterStore:
    store: Optional[CounterStore] = getattr(request.app.state, "counter_store", None)
    return store or SqlCounterStore(db, clock=clock)


def get_rate_limiter(store: CounterStore = Depends(get_counter_store)) -> RateLimiter:
    return RateLimiter(store)


def client_origin(request: Request) -> str:
    return request.client.host if request.client else "unknown"


# ----------------------------------------------------------------------
# Lê o Bearer do header Authorization (sem usar OAuth2PasswordBearer)
# ----------------------------------------------------------------------
def get_bearer_token(authorization: str = Header(None, alias="Authorization")) -> str:
    if not authorization:
        raise_for_failure(fail(AuthErrorCode.INVALID_TOKEN))
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise_for_failure(fail(AuthErrorCode.INVALID_TOKEN))
    return parts[1]


# ----------------------------------------------------------------------
# Limitador por ação; usado em dependencies=[...] da rota, que roda antes
# do Bearer e do corpo
# ----------------------------------------------------------------------
def rate_limited(action: str, max_attempts_setting: str, window_setting: str) -> Callable[..., None]:
    def dependency(
        request: Request,
        settings: Settings = Depends(get_settings),
        limiter: RateLimiter = Depends(get_rate_limiter),
    ) -> None:
        raise_for_failure(
            limiter.check_and_increment(
                action,
                client_origin(request),
                getattr(settings, max_attempts_setting),
                getattr(settings, window_setting),
            )
        )

    return dependency
