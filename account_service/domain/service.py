"""Account service orchestrating persistence, credentials, verification and uploads."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, Protocol

import psycopg

from .account import Account, parse_account_id
from .attachments import AttachmentRecorder
from .contracts import (
    AccountPatch,
    AccountStore,
    CreateAccountInput,
    UpdateAccountInput,
    normalise_email,
)
from .credentials import CredentialVerifier
from .errors import AccountNotFoundError, BackendFaultError, InvalidCredentialsError
from .verification import VerificationFlow
from ..metrics import record_event
from ..notifications.email import EmailSender
from ..security.passwords import PasswordHasher
from ..security.tokens import TokenIssuer

logger = logging.getLogger(__name__)


class FileDestination(Protocol):
    def __call__(self, data: bytes, filename: str, content_type: str | None) -> dict[str, Any]: ...


@dataclass(slots=True)
class AccessToken:
    """Bearer token returned by a successful login."""

    access_token: str
    expires_in: int


@contextmanager
def backend_faults(operation: str) -> Iterator[None]:
    """Re-raise database driver errors as ``BackendFaultError``."""
    try:
        yield
    except psycopg.Error as exc:
        logger.exception("store failure during %s", operation)
        raise BackendFaultError() from exc


class AccountService:
    """Account workflows backed by the account store.

    Every collaborator is passed in explicitly; see ``main.build_account_service``
    for the production wiring.
    """

    def __init__(
        self,
        store: AccountStore,
        *,
        hasher: PasswordHasher,
        tokens: TokenIssuer,
        email_sender: EmailSender,
        verification_base_url: str,
        object_storage: FileDestination | None = None,
        local_storage: FileDestination | None = None,
    ) -> None:
        self._store = store
        self._hasher = hasher
        self._tokens = tokens
        self._credentials = CredentialVerifier(store, hasher)
        self._verification = VerificationFlow(
            store, hasher, tokens, email_sender, verification_base_url
        )
        self._attachments = AttachmentRecorder(store)
        self._object_storage = object_storage
        self._local_storage = local_storage

    @property
    def tokens(self) -> TokenIssuer:
        return self._tokens

    def signup(self, payload: CreateAccountInput) -> tuple[Account, str]:
        """Create a pending account; returns it with its verification token."""
        with backend_faults("signup"):
            account, token = self._verification.create(payload)
        record_event("signup")
        return account, token

    def login(self, email: str, password: str) -> AccessToken:
        """Exchange valid credentials for a signed access token."""
        with backend_faults("login"):
            account = self._credentials.verify(email, password)
        if account is None:
            record_event("login_failed")
            raise InvalidCredentialsError()
        token, expires_in = self._tokens.issue(account.account_id, account.username)
        record_event("login")
        return AccessToken(access_token=token, expires_in=expires_in)

    def get_account(self, account_id: str) -> Account:
        account_id = parse_account_id(account_id)
        with backend_faults("get_account"):
            account = self._store.get_account(account_id)
        if account is None:
            raise AccountNotFoundError()
        return account

    def update_account(self, account_id: str, changes: UpdateAccountInput) -> Account:
        """Apply a partial profile update; a new password is re-hashed."""
        account_id = parse_account_id(account_id)
        patch = AccountPatch(
            username=changes.username,
            email=normalise_email(changes.email) if changes.email is not None else None,
            password_hash=self._hasher.hash(changes.password) if changes.password else None,
        )
        with backend_faults("update_account"):
            account = self._store.update_account(account_id, patch)
        if account is None:
            raise AccountNotFoundError()
        logger.info("account %s updated", account_id)
        return account

    def verify_account(self, account_id: str, token: str | None = None) -> Account:
        with backend_faults("verify_account"):
            account = self._verification.redeem(account_id, token)
        record_event("verified")
        return account

    def upload_to_object_storage(
        self, account_id: str, data: bytes, filename: str, content_type: str | None
    ) -> dict[str, Any]:
        """Upload a file to object storage and record it on the account."""
        if self._object_storage is None:
            raise BackendFaultError("Object storage is not configured")
        return self._store_and_record(self._object_storage, account_id, data, filename, content_type)

    def upload_to_local_disk(
        self, account_id: str, data: bytes, filename: str, content_type: str | None
    ) -> dict[str, Any]:
        """Write a file to the upload directory and record it on the account."""
        if self._local_storage is None:
            raise BackendFaultError("Local storage is not configured")
        return self._store_and_record(self._local_storage, account_id, data, filename, content_type)

    def _store_and_record(
        self,
        destination: FileDestination,
        account_id: str,
        data: bytes,
        filename: str,
        content_type: str | None,
    ) -> dict[str, Any]:
        account_id = parse_account_id(account_id)
        with backend_faults("get_account"):
            if self._store.get_account(account_id) is None:
                raise AccountNotFoundError()
        metadata = destination(data, filename, content_type)
        with backend_faults("record_upload"):
            try:
                self._attachments.record_upload(account_id, metadata)
            except AccountNotFoundError:
                # The stored object is orphaned; leave a trail for cleanup.
                logger.warning("upload stored for unknown account %s: %s", account_id, metadata)
                raise
        record_event("upload")
        return metadata
