from tokenauth.crud.refresh_token import RefreshTokenStore
from tokenauth.services.issuer import TokenIssuer
from tokenauth.services.revocation import RevocationService


def test_revoke_is_idempotent(settings, db, subject, clock):
    value = TokenIssuer(settings, db, clock=clock).issue_for(subject).value.refresh_token
    service = RevocationService(db, clock=clock)

    assert service.revoke(value).value is True
    assert service.revoke(value).ok
    assert service.revoke(value).value is False
    assert service.revoke("never-issued").ok
    assert service.revoke("").ok
    assert RefreshTokenStore(db, clock=clock).find_valid(value) is None


def test_revoke_all_is_idempotent(settings, db, subject, clock):
    issuer = TokenIssuer(settings, db, clock=clock)
    issuer.issue_for(subject)
    issuer.issue_for(subject)
    service = RevocationService(db, clock=clock)

    assert service.revoke_all(subject).value == 2
    assert service.revoke_all(subject).value == 0


def test_new_login_after_revoke_all_is_valid(settings, db, subject, clock):
    issuer = TokenIssuer(settings, db, clock=clock)
    issuer.issue_for(subject)
    RevocationService(db, clock=clock).revoke_all(subject)

    fresh = issuer.issue_for(subject).value

    assert RefreshTokenStore(db, clock=clock).find_valid(fresh.refresh_token) is not None
