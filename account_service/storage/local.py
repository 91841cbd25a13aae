"""Local-disk upload destination."""

from __future__ import annotations

import logging
import random
import time
from pathlib import Path
from typing import Any

from ..domain.errors import UploadFailedError

logger = logging.getLogger(__name__)


def unique_filename(original: str) -> str:
    """``report.pdf`` -> ``report-<epoch ms>-<random>.pdf``."""
    path = Path(original)
    stem = path.stem.replace(".", "") or "upload"
    suffix = f"-{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
    return f"{stem}{suffix}{path.suffix}"


class LocalFileStorage:
    """Write uploads under a single directory using collision-resistant names."""

    def __init__(self, directory: str | Path) -> None:
        """Store the upload directory; it is created on first save."""
        self._directory = Path(directory)

    def save(self, data: bytes, filename: str, content_type: str | None) -> dict[str, Any]:
        """Persist ``data`` and return the metadata recorded on the account.

        Raises ``UploadFailedError`` when the file cannot be written.
        """
        stored_name = unique_filename(Path(filename).name)
        target = self._directory / stored_name
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            logger.error("could not write upload to %s: %s", target, exc)
            raise UploadFailedError() from exc
        return {
            "originalname": filename,
            "filename": stored_name,
            "destination": str(self._directory),
            "path": str(target),
            "size": len(data),
            "mimetype": content_type,
        }
