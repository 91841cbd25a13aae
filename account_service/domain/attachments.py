"""Attachment metadata bookkeeping on account records."""

from __future__ import annotations

import logging
from typing import Any

from .account import parse_account_id
from .contracts import AccountStore
from .errors import AccountNotFoundError

logger = logging.getLogger(__name__)


class AttachmentRecorder:
    """Record uploaded file metadata on the owning account."""

    def __init__(self, store: AccountStore) -> None:
        """Store dependencies used to append file metadata."""
        self._store = store

    def record_upload(self, account_id: str, metadata: dict[str, Any]) -> None:
        """Append ``metadata`` to the account's files list.

        Not idempotent: recording the same metadata twice stores it twice.
        """
        account_id = parse_account_id(account_id)
        if not self._store.append_file(account_id, metadata):
            raise AccountNotFoundError()
        logger.debug("file metadata appended for account %s", account_id)
