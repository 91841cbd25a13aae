"""Email/password credential checks."""

from __future__ import annotations

from .account import Account
from .contracts import AccountStore, normalise_email
from ..security.passwords import PasswordHasher


class CredentialVerifier:
    """Match an email/password pair against the stored bcrypt hash.

    Unknown emails and wrong passwords both yield ``None``; callers must not
    be able to tell them apart.
    """

    def __init__(self, store: AccountStore, hasher: PasswordHasher) -> None:
        """Store dependencies used to look up and check credentials."""
        self._store = store
        self._hasher = hasher

    def verify(self, email: str, password: str) -> Account | None:
        credentials = self._store.find_credentials(normalise_email(email))
        if credentials is None:
            self._hasher.verify_dummy(password)
            return None
        if not self._hasher.verify(password, credentials.password_hash):
            return None
        return credentials.account
