from __future__ import annotations

import threading
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from account_service.api import routes
from account_service.api.errors import register_exception_handlers
from account_service.domain.account import Account, StoredCredentials
from account_service.domain.contracts import AccountPatch, EmailMessage, NewAccount
from account_service.domain.errors import DuplicateAccountError, EmailDeliveryError
from account_service.domain.service import AccountService
from account_service.security.passwords import PasswordHasher
from account_service.security.rate_limiter import SlidingWindowRateLimiter
from account_service.security.tokens import TokenIssuer
from account_service.storage.local import LocalFileStorage


class FakeRepository:
    """In-memory repository mimicking the Postgres-backed behaviours."""

    def __init__(self) -> None:
        self._accounts: dict[str, Account] = {}
        self._hashes: dict[str, str] = {}
        self._lock = threading.Lock()
        self.fail_with: Exception | None = None

    def create_account(self, payload: NewAccount) -> Account:
        self._maybe_fail()
        with self._lock:
            for account in self._accounts.values():
                if account.email == payload.email or account.username == payload.username:
                    raise DuplicateAccountError()
            account = Account(
                account_id=str(uuid.uuid4()),
                username=payload.username,
                email=payload.email,
                created_at=datetime.now(timezone.utc),
            )
            self._accounts[account.account_id] = account
            self._hashes[account.account_id] = payload.password_hash
            return self._copy(account)

    def find_credentials(self, email: str) -> StoredCredentials | None:
        self._maybe_fail()
        for account in self._accounts.values():
            if account.email == email:
                return StoredCredentials(self._copy(account), self._hashes[account.account_id])
        return None

    def get_account(self, account_id: str) -> Account | None:
        self._maybe_fail()
        account = self._accounts.get(account_id)
        return self._copy(account) if account else None

    def update_account(self, account_id: str, patch: AccountPatch) -> Account | None:
        self._maybe_fail()
        with self._lock:
            account = self._accounts.get(account_id)
            if account is None:
                return None
            columns = patch.as_columns()
            for other in self._accounts.values():
                if other.account_id == account_id:
                    continue
                if columns.get("email") == other.email or columns.get("username") == other.username:
                    raise DuplicateAccountError()
            if "password_hash" in columns:
                self._hashes[account_id] = columns.pop("password_hash")
            for name, value in columns.items():
                setattr(account, name, value)
            return self._copy(account)

    def append_file(self, account_id: str, metadata: dict[str, Any]) -> bool:
        self._maybe_fail()
        with self._lock:
            account = self._accounts.get(account_id)
            if account is None:
                return False
            account.files.append(dict(metadata))
            return True

    def mark_verified(self, account_id: str) -> Account | None:
        self._maybe_fail()
        with self._lock:
            account = self._accounts.get(account_id)
            if account is None or account.is_active:
                return None
            account.is_active = True
            return self._copy(account)

    def count(self) -> int:
        return len(self._accounts)

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    @staticmethod
    def _copy(account: Account) -> Account:
        return replace(account, files=list(account.files))


class FakeEmailSender:
    """Records outgoing messages; set ``fail`` to simulate delivery errors."""

    def __init__(self) -> None:
        self.sent: list[EmailMessage] = []
        self.fail = False
        self._lock = threading.Lock()

    def send(self, message: EmailMessage) -> None:
        if self.fail:
            raise EmailDeliveryError("smtp relay down")
        with self._lock:
            self.sent.append(message)

    def templates(self) -> list[str]:
        return [message.template for message in self.sent]


class FakeObjectStorage:
    def __init__(self) -> None:
        self.uploads: list[tuple[bytes, str, str | None]] = []

    def upload(self, data: bytes, filename: str, content_type: str | None) -> dict[str, Any]:
        self.uploads.append((data, filename, content_type))
        key = f"uploads/{len(self.uploads)}-{filename}"
        return {
            "Location": f"https://bucket.s3.amazonaws.com/{key}",
            "Bucket": "bucket",
            "Key": key,
            "ETag": '"etag"',
            "originalname": filename,
            "mimetype": content_type,
            "size": len(data),
        }


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def email_sender() -> FakeEmailSender:
    return FakeEmailSender()


@pytest.fixture
def object_storage() -> FakeObjectStorage:
    return FakeObjectStorage()


@pytest.fixture
def token_issuer() -> TokenIssuer:
    return TokenIssuer(
        secret="test-secret-with-enough-bytes-for-hs256",
        issuer="account-service-test",
        access_ttl_seconds=3000,
        verification_ttl_seconds=600,
    )


@pytest.fixture
def service(repository, email_sender, object_storage, token_issuer, tmp_path) -> AccountService:
    return AccountService(
        repository,
        hasher=PasswordHasher(rounds=4),
        tokens=token_issuer,
        email_sender=email_sender,
        verification_base_url="http://testserver/v1/users/verify",
        object_storage=object_storage.upload,
        local_storage=LocalFileStorage(tmp_path / "uploads").save,
    )


@pytest.fixture
def api_client(service):
    """Provide a FastAPI test client with isolated state."""
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(routes.router)
    app.state.account_service = service
    app.state.login_throttle = SlidingWindowRateLimiter(max_requests=100, window_seconds=60)

    with TestClient(app) as client:
        yield client
