# tokenauth/services/identity.py
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from tokenauth.core.errors import AuthErrorCode, Ok, Result, fail
from tokenauth.core.passwords import hasher
from tokenauth.crud.subject import subject_crud
from tokenauth.models.subject import Subject

logger = logging.getLogger(__name__)

MAX_PASSWORD_LENGTH = 128


class IdentityVerifier:
    """Verifies primary credentials (username + password) against ``subjects``."""

    def __init__(self, db: Session):
        self.db = db

    def verify(self, username: str, password: str) -> Result[Subject]:
        """
        Mesma falha para usuário inexistente, senha errada ou conta
        desativada, para não permitir enumeração.
        """
        if not username or not password or len(password) > MAX_PASSWORD_LENGTH:
            return fail(AuthErrorCode.AUTHENTICATION_FAILED)

        subject = subject_crud.get_by_username(self.db, username)
        check = hasher.check(password, subject.hashed_password if subject else None)
        if subject is None or not check.ok or not subject.is_active:
            return fail(AuthErrorCode.AUTHENTICATION_FAILED)
        if check.upgraded_hash:
            subject_crud.set_password_hash(self.db, subject, check.upgraded_hash)
        return Ok(subject)

    def resolve(self, external_id: str) -> Optional[Subject]:
        """Active subject for a stable external id, or None."""
        subject = subject_crud.get_by_external_id(self.db, external_id)
        if subject is None or not subject.is_active:
            return None
        return subject
