"""Domain entities for the document lifecycle — a mutable envelope over immutable versions."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class DocumentCategory(str, Enum):
    """Whether a document is curated knowledge or raw source material."""

    KNOWLEDGE = "knowledge"
    RAW = "raw"


class DocumentState(str, Enum):
    """Lifecycle states of an envelope."""

    DRAFT_ONLY = "draft_only"
    PUBLISHED = "published"
    DELETED = "deleted"


@dataclass
class DocumentVersion:
    """One immutable content snapshot under an envelope.

    Edits never modify a version; they append a new one.
    """

    envelope_id: str
    content: str
    version_number: int
    created_by: str
    metadata: dict[str, Any] = field(default_factory=dict)
    id: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class DocumentEnvelope:
    """Stable identity and metadata record for a document.

    ``current_published_version_id`` is the single source of truth for what
    is shown outside the editing surface and what is eligible for indexing.
    """

    workspace_id: str
    owner_id: str
    title: str
    category: DocumentCategory = DocumentCategory.KNOWLEDGE
    document_type: str = "document"
    topics: list[str] = field(default_factory=list)
    is_searchable: bool = False
    current_published_version_id: str | None = None
    id: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def state(self) -> DocumentState:
        if self.current_published_version_id is None:
            return DocumentState.DRAFT_ONLY
        return DocumentState.PUBLISHED

    @property
    def is_indexable(self) -> bool:
        """True when the published content should be present in the index."""
        return self.is_searchable and self.current_published_version_id is not None

    def rename(self, title: str) -> None:
        self.title = title
        self._touch()

    def set_searchable(self, value: bool) -> None:
        self.is_searchable = value
        self._touch()

    def point_to(self, version_id: str | None) -> None:
        """Move the published pointer (``None`` returns the envelope to draft-only)."""
        self.current_published_version_id = version_id
        self._touch()

    def _touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)
