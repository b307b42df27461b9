"""Abstract interface (port) for raw file storage."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class Blob:
    """Raw bytes plus the content type recorded at upload time (advisory only)."""

    reference: str
    content: bytes
    content_type: str | None = None


class BlobStore(ABC):
    """Port for reading and writing raw uploaded files by reference."""

    @abstractmethod
    async def store(self, content: bytes, filename: str) -> str:
        """Store bytes and return a reference usable with ``read``."""
        ...

    @abstractmethod
    async def read(self, reference: str) -> Blob:
        """Read a stored blob. Raises ``EntityNotFoundError`` if it does not exist."""
        ...
