"""Domain entity for chunks — contiguous runs of atomic items, one embedding unit each."""

from dataclasses import dataclass, field

from .atomic_item import AtomicItem

UNCLASSIFIED_TOPIC = "unclassified"

DEFAULT_CHUNK_SIZE = 20


@dataclass(frozen=True)
class ChunkOptions:
    """Caller-supplied chunking options.

    ``dry_run`` computes chunks without any embedding or index call.
    """

    chunk_size: int = DEFAULT_CHUNK_SIZE
    dry_run: bool = False


def make_chunk_id(source_document_id: str, chunk_index: int) -> str:
    """Deterministic chunk id. Re-indexing the same input overwrites instead of appending."""
    return f"{source_document_id}-chunk-{chunk_index}"


@dataclass
class Chunk:
    """A contiguous, size-bounded group of atomic items destined for one vector.

    Chunks from the same parse have contiguous, non-overlapping item ranges;
    concatenating their ``items`` in order reproduces the parsed sequence.
    """

    chunk_id: str
    source_document_id: str
    chunk_index: int
    topic: str
    start_sequence: int
    end_sequence: int
    text: str
    approx_token_count: int
    items: list[AtomicItem] = field(default_factory=list)
    speakers: list[str] = field(default_factory=list)
    start_time: float | None = None
    end_time: float | None = None

    @property
    def item_range(self) -> tuple[int, int]:
        """Inclusive (start, end) sequence range."""
        return (self.start_sequence, self.end_sequence)

    @property
    def item_count(self) -> int:
        return self.end_sequence - self.start_sequence + 1

    def to_metadata(self) -> dict:
        """Flat metadata stored next to the vector."""
        metadata: dict = {
            "chunk_index": self.chunk_index,
            "topic": self.topic,
            "start_sequence": self.start_sequence,
            "end_sequence": self.end_sequence,
            "approx_token_count": self.approx_token_count,
            "speakers": list(self.speakers),
        }
        if self.start_time is not None:
            metadata["start_time"] = self.start_time
            metadata["end_time"] = self.end_time
        return metadata
