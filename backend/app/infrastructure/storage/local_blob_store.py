"""Local filesystem blob store for uploaded transcripts and documents.

Storage layout:
    <upload_dir>/files/<stem>_<YYYYMMDD_HHmmss>.<ext>

References handed out by ``store`` are paths relative to ``upload_dir``.
"""

import logging
import mimetypes
import re
from datetime import datetime, timezone
from pathlib import Path

from app.application.interfaces.blob_store import Blob, BlobStore
from app.domain.exceptions import EntityNotFoundError

logger = logging.getLogger(__name__)

# Extensions the stdlib mimetypes table does not know everywhere
_EXTRA_TYPES = {
    ".vtt": "text/vtt",
    ".srt": "application/x-subrip",
    ".md": "text/markdown",
}


def _datetime_stamp() -> str:
    """Return a UTC datetime stamp suitable for filenames: YYYYMMDD_HHmmss."""
    return datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")


def _sanitise(name: str, max_len: int = 80) -> str:
    """Replace non-word characters with underscores and truncate."""
    return re.sub(r"[^\w\-]", "_", name)[:max_len].strip("_") or "unnamed"


def guess_content_type(filename: str) -> str | None:
    suffix = Path(filename).suffix.lower()
    return _EXTRA_TYPES.get(suffix) or mimetypes.guess_type(filename)[0]


class LocalBlobStore(BlobStore):
    """Infrastructure adapter for local file storage."""

    def __init__(self, upload_dir: str):
        self._upload_dir = Path(upload_dir).resolve()
        self._upload_dir.mkdir(parents=True, exist_ok=True)

    async def store(self, content: bytes, filename: str) -> str:
        """Store bytes in ``<upload_dir>/files/`` and return the relative reference.

        The filename is augmented with a UTC datetime stamp to avoid
        collisions: ``<stem>_<YYYYMMDD_HHmmss>.<ext>``.
        """
        files_dir = self._upload_dir / "files"
        files_dir.mkdir(parents=True, exist_ok=True)

        stem = Path(filename).stem
        suffix = Path(filename).suffix  # includes the dot
        dest_path = files_dir / f"{_sanitise(stem)}_{_datetime_stamp()}{suffix}"
        counter = 1
        while dest_path.exists():
            dest_path = files_dir / f"{_sanitise(stem)}_{_datetime_stamp()}_{counter}{suffix}"
            counter += 1
        dest_path.write_bytes(content)

        logger.info("Stored file: %s (%d bytes)", dest_path.name, len(content))
        return dest_path.relative_to(self._upload_dir).as_posix()

    async def read(self, reference: str) -> Blob:
        path = self._resolve(reference)
        if path is None or not path.is_file():
            raise EntityNotFoundError("Blob", reference)
        return Blob(
            reference=reference,
            content=path.read_bytes(),
            content_type=guess_content_type(path.name),
        )

    def _resolve(self, reference: str) -> Path | None:
        """Map a reference to a path inside upload_dir (``None`` if it escapes)."""
        path = (self._upload_dir / reference).resolve()
        if not path.is_relative_to(self._upload_dir):
            logger.warning("Rejected blob reference outside the upload dir: %s", reference)
            return None
        return path
