"""Abstract repository interface (port) for document envelopes and their versions."""

from abc import ABC, abstractmethod

from app.domain.entities.document import DocumentCategory, DocumentEnvelope, DocumentVersion


class DocumentRepository(ABC):
    """Port for envelope/version persistence. This is the system of record."""

    # ── Envelopes ────────────────────────────────────────────────────

    @abstractmethod
    async def create_envelope(self, envelope: DocumentEnvelope) -> DocumentEnvelope:
        """Persist a new envelope and return it with its generated ID."""
        ...

    @abstractmethod
    async def get_envelope(self, envelope_id: str) -> DocumentEnvelope | None:
        """Retrieve an envelope by ID."""
        ...

    @abstractmethod
    async def update_envelope(self, envelope: DocumentEnvelope) -> DocumentEnvelope:
        """Persist title, searchable flag and published pointer changes."""
        ...

    @abstractmethod
    async def delete_envelope(self, envelope_id: str) -> bool:
        """Delete an envelope. Returns True if deleted, False if not found."""
        ...

    @abstractmethod
    async def list_envelopes(
        self,
        owner_id: str,
        *,
        workspace_id: str | None = None,
        category: DocumentCategory | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[DocumentEnvelope]:
        """List an owner's envelopes, newest first."""
        ...

    @abstractmethod
    async def list_searchable_document_ids(self, owner_id: str) -> list[str]:
        """IDs of the owner's envelopes that are searchable and have a published version."""
        ...

    # ── Versions ─────────────────────────────────────────────────────

    @abstractmethod
    async def create_version(self, version: DocumentVersion) -> DocumentVersion:
        """Append a new immutable version."""
        ...

    @abstractmethod
    async def get_version(self, version_id: str) -> DocumentVersion | None:
        """Retrieve a version by ID."""
        ...

    @abstractmethod
    async def list_versions(self, envelope_id: str) -> list[DocumentVersion]:
        """All versions of an envelope, oldest first."""
        ...

    @abstractmethod
    async def latest_version_number(self, envelope_id: str) -> int:
        """Highest version number of an envelope, 0 when it has none."""
        ...

    @abstractmethod
    async def delete_versions(self, envelope_id: str) -> int:
        """Delete every version of an envelope. Returns count of deleted rows."""
        ...

    # ── Transactions ─────────────────────────────────────────────────

    @abstractmethod
    async def commit(self) -> None:
        """Make pending changes durable and visible to other sessions."""
        ...
