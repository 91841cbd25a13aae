"""Database repository for account records."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from psycopg import errors, sql
from psycopg.rows import tuple_row
from psycopg.types.json import Jsonb
from psycopg_pool import ConnectionPool

from .domain.account import Account, StoredCredentials
from .domain.contracts import AccountPatch, NewAccount
from .domain.errors import DuplicateAccountError

_ACCOUNT_COLUMNS = "account_id, username, email, created_at, is_active, files"


class AccountRepository:
    """Postgres-backed account persistence.

    ``files`` is a JSONB array so attachment metadata keeps its free-form
    document shape; uniqueness of ``email`` and ``username`` is enforced by
    table constraints.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    def create_account(self, payload: NewAccount) -> Account:
        """Insert a pending account, raising ``DuplicateAccountError`` on collisions."""
        account_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                try:
                    cur.execute(
                        f"""
                        INSERT INTO accounts (account_id, username, email, password_hash, files, is_active, created_at, updated_at)
                        VALUES (%s, %s, %s, %s, %s, false, %s, %s)
                        RETURNING {_ACCOUNT_COLUMNS}
                        """,
                        (
                            account_id,
                            payload.username,
                            payload.email,
                            payload.password_hash,
                            Jsonb([]),
                            now,
                            now,
                        ),
                    )
                except errors.UniqueViolation as exc:
                    conn.rollback()
                    raise DuplicateAccountError() from exc
                record = cur.fetchone()
                conn.commit()
        return self._map_record(record)

    def find_credentials(self, email: str) -> StoredCredentials | None:
        """Return the account and password hash registered for ``email``."""
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    f"SELECT {_ACCOUNT_COLUMNS}, password_hash FROM accounts WHERE email = %s",
                    (email,),
                )
                row = cur.fetchone()
                if not row:
                    return None
        return StoredCredentials(account=self._map_record(row[:6]), password_hash=row[6])

    def get_account(self, account_id: str) -> Account | None:
        """Fetch an account by identifier or return ``None``."""
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE account_id = %s",
                    (account_id,),
                )
                row = cur.fetchone()
                if not row:
                    return None
        return self._map_record(row)

    def update_account(self, account_id: str, patch: AccountPatch) -> Account | None:
        """Apply ``patch`` and return the updated account, or ``None`` if absent."""
        columns = patch.as_columns()
        if not columns:
            return self.get_account(account_id)

        assignments = sql.SQL(", ").join(
            sql.SQL("{} = {}").format(sql.Identifier(name), sql.Placeholder(name))
            for name in columns
        )
        query = sql.SQL(
            "UPDATE accounts SET {assignments}, updated_at = %(updated_at)s "
            "WHERE account_id = %(account_id)s RETURNING {returning}"
        ).format(assignments=assignments, returning=sql.SQL(_ACCOUNT_COLUMNS))
        params: dict[str, Any] = {
            **columns,
            "updated_at": datetime.now(timezone.utc),
            "account_id": account_id,
        }
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                try:
                    cur.execute(query, params)
                except errors.UniqueViolation as exc:
                    conn.rollback()
                    raise DuplicateAccountError() from exc
                row = cur.fetchone()
                conn.commit()
        return self._map_record(row) if row else None

    def append_file(self, account_id: str, metadata: dict[str, Any]) -> bool:
        """Append ``metadata`` to the account's files; ``False`` when no row matched."""
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE accounts
                    SET files = files || jsonb_build_array(%s::jsonb), updated_at = NOW()
                    WHERE account_id = %s
                    """,
                    (Jsonb(metadata), account_id),
                )
                matched = cur.rowcount == 1
                conn.commit()
        return matched

    def mark_verified(self, account_id: str) -> Account | None:
        """Flip ``is_active`` to true if and only if it is currently false.

        The check and the write are one statement, so concurrent callers see
        exactly one winner. ``None`` means the account is missing or already
        verified.
        """
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    f"""
                    UPDATE accounts
                    SET is_active = true, updated_at = NOW()
                    WHERE account_id = %s AND is_active = false
                    RETURNING {_ACCOUNT_COLUMNS}
                    """,
                    (account_id,),
                )
                row = cur.fetchone()
                conn.commit()
        return self._map_record(row) if row else None

    def _map_record(self, row: tuple) -> Account:
        """Convert a raw database tuple into the domain ``Account`` dataclass."""
        return Account(
            account_id=str(row[0]),
            username=row[1],
            email=row[2],
            created_at=row[3],
            is_active=row[4],
            files=list(row[5] or []),
        )
