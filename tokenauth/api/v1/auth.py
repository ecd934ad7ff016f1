# tokenauth/api/v1/auth.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from tokenauth.api.deps import (
    get_bearer_token,
    get_clock,
    get_codec,
    get_db,
    get_settings,
    raise_for_failure,
    rate_limited,
)
from tokenauth.core.clock import Clock
from tokenauth.core.config import Settings
from tokenauth.core.errors import AuthErrorCode, fail
from tokenauth.core.tokens import ClaimCodec
from tokenauth.schemas.token import (
    AccessTokenOut,
    ErrorOut,
    LoginRequest,
    RefreshRequest,
    SubjectOut,
    TokenPairOut,
)
from tokenauth.services.identity import IdentityVerifier
from tokenauth.services.issuer import TokenIssuer, TokenPair
from tokenauth.services.renewer import TokenRenewer
from tokenauth.services.revocation import RevocationService
from tokenauth.services.rotation import RefreshTokenRotator

router = APIRouter()

LOGIN_ACTION = "login"
REFRESH_ACTION = "refresh"
LOGOUT_ACTION = "logout"
LOGOUT_ALL_ACTION = "logout_all"
VERIFY_ACTION = "verify"

ERROR_RESPONSES = {
    401: {"model": ErrorOut},
    429: {"model": ErrorOut},
}


def _pair_response(pair: TokenPair) -> TokenPairOut:
    return TokenPairOut(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        expires_at=pair.access_expires_at,
        refresh_expires_at=pair.refresh.expires_at,
        subject=SubjectOut(id=pair.subject.external_id, username=pair.subject.username),
    )


@router.post(
    "/token",
    response_model=TokenPairOut,
    responses=ERROR_RESPONSES,
    dependencies=[Depends(rate_limited(LOGIN_ACTION, "LOGIN_MAX_ATTEMPTS", "LOGIN_WINDOW_SECONDS"))],
)
def login(
    body: LoginRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    clock: Clock = Depends(get_clock),
    codec: ClaimCodec = Depends(get_codec),
):
    verified = IdentityVerifier(db).verify(body.username, body.password)
    raise_for_failure(verified)

    issued = TokenIssuer(settings, db, codec=codec, clock=clock).issue_for(verified.value)
    raise_for_failure(issued)
    return _pair_response(issued.value)


@router.post(
    "/refresh",
    response_model=TokenPairOut,
    responses=ERROR_RESPONSES,
    dependencies=[Depends(rate_limited(REFRESH_ACTION, "REFRESH_MAX_ATTEMPTS", "REFRESH_WINDOW_SECONDS"))],
)
def refresh(
    body: RefreshRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    clock: Clock = Depends(get_clock),
    codec: ClaimCodec = Depends(get_codec),
):
    issuer = TokenIssuer(settings, db, codec=codec, clock=clock)
    rotated = RefreshTokenRotator(settings, db, issuer=issuer, clock=clock).rotate(body.refresh_token)
    raise_for_failure(rotated)
    return _pair_response(rotated.value)


@router.post(
    "/logout",
    responses={429: {"model": ErrorOut}},
    dependencies=[Depends(rate_limited(LOGOUT_ACTION, "LOGOUT_MAX_ATTEMPTS", "LOGOUT_WINDOW_SECONDS"))],
)
def logout(
    body: RefreshRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    # sempre ok: não revela se o token existia
    RevocationService(db, clock=clock).revoke(body.refresh_token)
    return {"ok": True}


@router.post(
    "/logout-all",
    responses=ERROR_RESPONSES,
    dependencies=[Depends(rate_limited(LOGOUT_ALL_ACTION, "LOGOUT_ALL_MAX_ATTEMPTS", "LOGOUT_ALL_WINDOW_SECONDS"))],
)
def logout_all(
    token: str = Depends(get_bearer_token),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    clock: Clock = Depends(get_clock),
    codec: ClaimCodec = Depends(get_codec),
):
    decoded = TokenRenewer(settings, codec=codec, clock=clock).decode(token)
    raise_for_failure(decoded)

    subject = IdentityVerifier(db).resolve(decoded.value.subject_id)
    if subject is None:
        raise_for_failure(fail(AuthErrorCode.INVALID_TOKEN))

    revoked = RevocationService(db, clock=clock).revoke_all(subject)
    return {"revoked": revoked.value}


@router.get(
    "/verify",
    response_model=AccessTokenOut,
    responses=ERROR_RESPONSES,
    dependencies=[Depends(rate_limited(VERIFY_ACTION, "VERIFY_MAX_ATTEMPTS", "VERIFY_WINDOW_SECONDS"))],
)
def verify(
    response: Response,
    token: str = Depends(get_bearer_token),
    settings: Settings = Depends(get_settings),
    clock: Clock = Depends(get_clock),
    codec: ClaimCodec = Depends(get_codec),
):
    renewed = TokenRenewer(settings, codec=codec, clock=clock).renew(token)
    raise_for_failure(renewed)
    if renewed.value != token:
        # o cliente deve passar a usar o token renovado
        response.headers["X-Access-Token"] = renewed.value
    return AccessTokenOut(token=renewed.value)
