"""Keyword topic classifier — deterministic word-boundary matching.

A topic matches when its name (or one of its configured hint words)
appears in the text as a whole word. Multi-word topic names such as
``"release-planning"`` also match on ``"release planning"``.
"""

import re
from collections.abc import Mapping, Sequence

from app.domain.entities import UNCLASSIFIED_TOPIC

_NAME_SEPARATOR_RE = re.compile(r"[-_\s]+")


class KeywordTopicClassifier:
    """Picks the topic whose keywords occur most often in the text.

    Ties go to the topic listed first; text with no hits is ``unclassified``.
    """

    def __init__(self, hints: Mapping[str, Sequence[str]] | None = None):
        self._hints = {topic.lower(): list(words) for topic, words in (hints or {}).items()}
        self._patterns: dict[str, list[re.Pattern[str]]] = {}

    def __call__(self, text: str, topics: Sequence[str]) -> str:
        if not text or not topics:
            return UNCLASSIFIED_TOPIC

        text_lower = text.lower()
        best_topic = UNCLASSIFIED_TOPIC
        best_hits = 0
        for topic in topics:
            hits = sum(len(p.findall(text_lower)) for p in self._patterns_for(topic))
            if hits > best_hits:
                best_topic, best_hits = topic, hits
        return best_topic

    def _patterns_for(self, topic: str) -> list[re.Pattern[str]]:
        if topic not in self._patterns:
            keywords = [topic.lower(), *self._hints.get(topic.lower(), [])]
            phrases = dict.fromkeys(
                _NAME_SEPARATOR_RE.sub(" ", keyword).strip() for keyword in keywords
            )
            self._patterns[topic] = [
                # Use word boundary matching to avoid partial matches
                re.compile(r"\b" + r"[\s\-_]+".join(map(re.escape, phrase.split())) + r"\b")
                for phrase in phrases
                if phrase
            ]
        return self._patterns[topic]
