import pytest

from tokenauth.core.errors import AuthErrorCode
from tokenauth.core.tokens import ClaimCodec
from tokenauth.services.issuer import TokenIssuer
from tokenauth.services.renewer import TokenRenewer


@pytest.fixture
def access_token(settings, db, subject, clock):
    return TokenIssuer(settings, db, clock=clock).issue_for(subject).value.access_token


@pytest.fixture
def renewer(settings, clock):
    return TokenRenewer(settings, clock=clock)


def test_same_token_within_threshold(renewer, access_token, clock):
    clock.advance(minutes=5)
    first = renewer.renew(access_token)
    second = renewer.renew(access_token)

    assert first.ok and second.ok
    assert first.value == access_token
    assert second.value == access_token


def test_new_token_after_threshold(renewer, access_token, settings, clock):
    codec = ClaimCodec.from_settings(settings, clock=clock)
    before = codec.decode(access_token)
    clock.advance(minutes=settings.RENEW_THRESHOLD_MINUTES)

    result = renewer.renew(access_token)

    assert result.ok
    assert result.value != access_token
    after = codec.decode(result.value)
    assert after.expires_at > before.expires_at
    assert after.renewed_at == clock()
    assert after.token_id == before.token_id
    assert after.issued_at == before.issued_at
    assert after.subject_id == before.subject_id


def test_renewed_token_is_stable_within_the_next_threshold(renewer, access_token, clock):
    clock.advance(minutes=15)
    renewed = renewer.renew(access_token).value
    clock.advance(minutes=1)

    assert renewer.renew(renewed).value == renewed


def test_expired_token_is_not_renewed(renewer, access_token, clock):
    clock.advance(minutes=61)

    result = renewer.renew(access_token)

    assert not result.ok
    assert result.code == AuthErrorCode.TOKEN_EXPIRED


def test_garbage_is_not_renewed(renewer):
    result = renewer.renew("definitely.not.valid")

    assert not result.ok
    assert result.code == AuthErrorCode.INVALID_TOKEN
