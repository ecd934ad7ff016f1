# tokenauth/core/passwords.py
"""Password hashing for subjects, on top of passlib."""
from __future__ import annotations

from typing import NamedTuple, Optional, Sequence

from passlib.context import CryptContext

DEFAULT_SCHEMES = ("argon2", "bcrypt_sha256", "bcrypt")


class PasswordCheck(NamedTuple):
    ok: bool
    upgraded_hash: Optional[str] = None


class PasswordHasher:
    """
    The first scheme hashes new passwords; the others are still accepted and
    get rehashed on the next successful check.
    """

    def __init__(self, schemes: Sequence[str] = DEFAULT_SCHEMES, **options):
        self._context = CryptContext(schemes=list(schemes), deprecated="auto", **options)
        self._dummy_hash: Optional[str] = None

    def hash(self, plain: str) -> str:
        return self._context.hash(plain)

    def check(self, plain: str, stored_hash: Optional[str]) -> PasswordCheck:
        if stored_hash is None:
            # subject inexistente: paga o mesmo custo de um verify real
            self._context.verify(plain, self._dummy())
            return PasswordCheck(False)
        if not self._context.verify(plain, stored_hash):
            return PasswordCheck(False)
        if self._context.needs_update(stored_hash):
            return PasswordCheck(True, self._context.hash(plain))
        return PasswordCheck(True)

    def _dummy(self) -> str:
        if self._dummy_hash is None:
            self._dummy_hash = self._context.hash("tokenauth-dummy-password")
        return self._dummy_hash


hasher = PasswordHasher(argon2__time_cost=2, argon2__memory_cost=19456, argon2__parallelism=1)
