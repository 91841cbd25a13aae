from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
import uuid

from .errors import InvalidAccountIdError


@dataclass(slots=True)
class Account:
    """Aggregate root for a user account. Never carries the password hash."""

    account_id: str
    username: str
    email: str
    created_at: datetime
    is_active: bool = False
    files: list[dict[str, Any]] = field(default_factory=list)


@dataclass(slots=True)
class StoredCredentials:
    """Account paired with its bcrypt hash, used only by credential checks."""

    account: Account
    password_hash: str


def parse_account_id(value: str) -> str:
    """Return the canonical form of an account id or raise ``InvalidAccountIdError``."""
    try:
        return str(uuid.UUID(str(value)))
    except ValueError as exc:
        raise InvalidAccountIdError() from exc
