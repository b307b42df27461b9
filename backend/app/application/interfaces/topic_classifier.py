"""Interface for the injected topic classifier used by the chunker."""

from collections.abc import Sequence
from typing import Protocol


class TopicClassifier(Protocol):
    """Pure function mapping item text to one of ``topics`` or ``"unclassified"``."""

    def __call__(self, text: str, topics: Sequence[str]) -> str: ...
