"""Chunker — groups atomic items into size-bounded, topic-classified chunks.

Chunk boundaries and ids are a pure function of
``(source_document_id, items, chunk_size)`` (plus the fixed token ceiling),
so re-chunking unchanged input reproduces identical chunks and re-indexing
becomes an upsert instead of an append.
"""

import math
from collections import Counter
from collections.abc import Sequence

from app.application.interfaces.topic_classifier import TopicClassifier
from app.domain.entities import (
    UNCLASSIFIED_TOPIC,
    AtomicItem,
    Chunk,
    ChunkOptions,
    make_chunk_id,
)
from app.domain.exceptions import InvalidConfigurationError
from app.infrastructure.logging.colored_logger import PipelineLogger, PipelineStage

plog = PipelineLogger("Chunker")

_CHARS_PER_TOKEN = 4  # rough 4:1 char-to-token ratio
_DEFAULT_MAX_CHUNK_TOKENS = 512
_ITEM_SEPARATOR = "\n"


def estimate_tokens(text: str) -> int:
    """Approximate token count of a text."""
    return math.ceil(len(text) / _CHARS_PER_TOKEN)


class Chunker:
    """Greedy, order-preserving chunker with an injected topic classifier.

    A chunk closes when it holds ``chunk_size`` items, or when the next item
    would push it over ``max_chunk_tokens``, whichever comes first. Items are
    never split, so a single oversize item forms a chunk of its own.
    """

    def __init__(
        self,
        classifier: TopicClassifier,
        *,
        max_chunk_tokens: int = _DEFAULT_MAX_CHUNK_TOKENS,
    ):
        if max_chunk_tokens <= 0:
            raise InvalidConfigurationError("max_chunk_tokens", max_chunk_tokens, "must be positive")
        self._classifier = classifier
        self._max_chunk_tokens = max_chunk_tokens

    def chunk(
        self,
        source_document_id: str,
        items: Sequence[AtomicItem],
        topics: Sequence[str],
        options: ChunkOptions | None = None,
    ) -> list[Chunk]:
        """Group items into chunks.

        Args:
            source_document_id: Document the items were parsed from (used in chunk ids).
            items: Parsed items in sequence order.
            topics: Closed topic set for classification (may be empty).
            options: Chunk size and dry-run flag.

        Returns:
            Chunks in order; an empty item sequence gives ``[]``.

        Raises:
            InvalidConfigurationError: If ``options.chunk_size`` is not positive.
        """
        options = options or ChunkOptions()
        if options.chunk_size <= 0:
            raise InvalidConfigurationError("chunk_size", options.chunk_size, "must be positive")
        if not items:
            return []

        groups = self._group(items, options.chunk_size)
        topic_set = list(dict.fromkeys(topics))
        chunks = [
            self._build_chunk(source_document_id, index, group, topic_set)
            for index, group in enumerate(groups)
        ]

        plog.step_complete(
            PipelineStage.CHUNK,
            f"Chunked {source_document_id}",
            items=len(items),
            chunks=len(chunks),
            chunk_size=options.chunk_size,
        )
        return chunks

    # ── Internals ────────────────────────────────────────────────────

    def _group(self, items: Sequence[AtomicItem], chunk_size: int) -> list[list[AtomicItem]]:
        groups: list[list[AtomicItem]] = []
        current: list[AtomicItem] = []
        current_tokens = 0

        for item in items:
            item_tokens = estimate_tokens(item.render())
            if current and (
                len(current) >= chunk_size
                or current_tokens + item_tokens > self._max_chunk_tokens
            ):
                groups.append(current)
                current, current_tokens = [], 0
            current.append(item)
            current_tokens += item_tokens

        if current:
            groups.append(current)
        return groups

    def _build_chunk(
        self,
        source_document_id: str,
        index: int,
        group: list[AtomicItem],
        topics: list[str],
    ) -> Chunk:
        text = _ITEM_SEPARATOR.join(item.render() for item in group)
        timecodes = [item.timecode for item in group if item.timecode is not None]
        speakers = list(dict.fromkeys(item.speaker for item in group if item.speaker))

        return Chunk(
            chunk_id=make_chunk_id(source_document_id, index),
            source_document_id=source_document_id,
            chunk_index=index,
            topic=self._chunk_topic(group, topics),
            start_sequence=group[0].sequence,
            end_sequence=group[-1].sequence,
            text=text,
            approx_token_count=estimate_tokens(text),
            items=list(group),
            speakers=speakers,
            start_time=timecodes[0] if timecodes else None,
            end_time=timecodes[-1] if timecodes else None,
        )

    def _chunk_topic(self, group: list[AtomicItem], topics: list[str]) -> str:
        """Majority topic of the members; a real topic wins ties against the sentinel."""
        if not topics:
            return UNCLASSIFIED_TOPIC

        labels = [self._classify(item.text, topics) for item in group]
        counts = Counter(labels)
        first_seen = {label: position for position, label in reversed(list(enumerate(labels)))}
        return max(
            counts,
            key=lambda label: (counts[label], label != UNCLASSIFIED_TOPIC, -first_seen[label]),
        )

    def _classify(self, text: str, topics: list[str]) -> str:
        label = self._classifier(text, topics)
        return label if label in topics else UNCLASSIFIED_TOPIC
