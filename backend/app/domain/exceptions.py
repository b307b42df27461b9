"""Domain-specific exceptions — framework-independent."""


class EntityNotFoundError(Exception):
    """Raised when a requested entity does not exist."""

    def __init__(self, entity_type: str, entity_id: int | str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} with id '{entity_id}' not found")


class EnvelopeNotFoundError(EntityNotFoundError):
    """Raised when a document envelope id has no matching record."""

    def __init__(self, envelope_id: str):
        super().__init__("DocumentEnvelope", envelope_id)


class VersionNotFoundError(EntityNotFoundError):
    """Raised when a version does not exist, or does not belong to the given envelope."""

    def __init__(self, version_id: str, envelope_id: str | None = None):
        self.envelope_id = envelope_id
        super().__init__("DocumentVersion", version_id)


class IndexingError(Exception):
    """Base class for errors raised by the parse → chunk → index pipeline."""


class UnsupportedFormatError(IndexingError):
    """Raised when no recognised structure is found and no fallback applies."""

    def __init__(self, message: str, format_name: str | None = None):
        self.format_name = format_name
        super().__init__(message)


class InvalidConfigurationError(IndexingError):
    """Raised on caller misuse, e.g. a non-positive chunk size."""

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = value
        super().__init__(f"Invalid {field}={value!r}: {reason}")


class EmbeddingProviderError(IndexingError):
    """Raised when an embedding provider returns an error.

    Provider-agnostic: works for OpenRouter, OpenAI, Voyage, etc.
    """

    def __init__(self, provider: str, status_code: int, message: str):
        self.provider = provider
        self.status_code = status_code
        self.message = message
        super().__init__(f"[{provider}] {status_code}: {message}")


class IndexBackendError(IndexingError):
    """Raised when the vector-search backend fails an operation."""

    def __init__(self, backend: str, operation: str, message: str):
        self.backend = backend
        self.operation = operation
        self.message = message
        super().__init__(f"[{backend}] {operation} failed: {message}")


class RerankerError(Exception):
    """Raised when a reranking provider fails. Retrieval falls back to vector order."""

    def __init__(self, provider: str, status_code: int, message: str):
        self.provider = provider
        self.status_code = status_code
        self.message = message
        super().__init__(f"[{provider}] {status_code}: {message}")
