"""Domain-level request contracts shared by multiple layers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from .account import Account, StoredCredentials


@dataclass(slots=True)
class CreateAccountInput:
    """Validated signup inputs; the password is still plaintext here."""

    username: str
    email: str
    password: str


@dataclass(slots=True)
class NewAccount:
    """Record handed to the repository once the password has been hashed."""

    username: str
    email: str
    password_hash: str


@dataclass(slots=True)
class UpdateAccountInput:
    """Partial profile update. ``None`` fields are left untouched."""

    username: str | None = None
    email: str | None = None
    password: str | None = None


@dataclass(slots=True)
class AccountPatch:
    """Column-level patch applied by the repository."""

    username: str | None = None
    email: str | None = None
    password_hash: str | None = None

    def as_columns(self) -> dict[str, Any]:
        return {key: value for key, value in (
            ("username", self.username),
            ("email", self.email),
            ("password_hash", self.password_hash),
        ) if value is not None}


@dataclass(slots=True)
class EmailMessage:
    """Template email request passed to the email collaborator."""

    to: str
    subject: str
    template: str
    data: dict[str, Any]


def normalise_email(email: str) -> str:
    return email.strip().lower()


class AccountStore(Protocol):
    """Persistence operations the account workflows depend on."""

    def create_account(self, payload: NewAccount) -> Account: ...

    def find_credentials(self, email: str) -> StoredCredentials | None: ...

    def get_account(self, account_id: str) -> Account | None: ...

    def update_account(self, account_id: str, patch: AccountPatch) -> Account | None: ...

    def append_file(self, account_id: str, metadata: dict[str, Any]) -> bool: ...

    def mark_verified(self, account_id: str) -> Account | None: ...
