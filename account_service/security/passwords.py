"""bcrypt password hashing helpers."""

from __future__ import annotations

import logging

import bcrypt

logger = logging.getLogger(__name__)

# bcrypt only reads the first 72 bytes; bcrypt>=5 rejects anything longer.
MAX_PASSWORD_BYTES = 72


def password_too_long(password: str) -> bool:
    return len(password.encode("utf-8")) > MAX_PASSWORD_BYTES


class PasswordHasher:
    """Salted bcrypt hashing with a configurable work factor."""

    def __init__(self, rounds: int = 10) -> None:
        """Store the work factor and precompute the hash used for unknown accounts."""
        self._rounds = rounds
        # Compared against when no account matches, so unknown emails cost a bcrypt check too.
        self._dummy_hash = self.hash("not-a-real-password")

    def hash(self, password: str) -> str:
        """Return the bcrypt hash of ``password`` as a UTF-8 string.

        Raises ``ValueError`` for passwords over ``MAX_PASSWORD_BYTES``; the
        request models reject those before they get here.
        """
        if password_too_long(password):
            raise ValueError(f"password exceeds {MAX_PASSWORD_BYTES} bytes")
        salt = bcrypt.gensalt(rounds=self._rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        """Return ``True`` when ``password`` matches ``password_hash``.

        Over-long passwords never match. A malformed stored hash is logged
        and treated as a mismatch.
        """
        if password_too_long(password):
            return False
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            logger.warning("stored password hash is malformed")
            return False

    def verify_dummy(self, password: str) -> bool:
        """Burn one bcrypt comparison; always returns ``False``."""
        self.verify(password, self._dummy_hash)
        return False
