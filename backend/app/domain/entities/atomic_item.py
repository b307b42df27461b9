"""Domain entity for parsed source units — one utterance or one prose section."""

from dataclasses import dataclass
from enum import Enum


class SourceFormat(str, Enum):
    """Content formats recognised by the format parser."""

    WEBVTT = "webvtt"
    SRT = "srt"
    FATHOM = "fathom"
    SPEAKER_LINES = "speaker"
    DOCUMENT = "document"

    @property
    def is_time_coded(self) -> bool:
        return self in (SourceFormat.WEBVTT, SourceFormat.SRT, SourceFormat.FATHOM)


@dataclass(frozen=True)
class AtomicItem:
    """One parsed unit of source material.

    ``sequence`` is the 0-based position in the parse (gapless).
    ``timecode`` is seconds from the start of the recording and is only set
    for time-coded sources; prose sections leave it as ``None``.
    """

    sequence: int
    text: str
    speaker: str | None = None
    timecode: float | None = None

    def render(self) -> str:
        """Render the item as a single line of chunk text."""
        prefix = ""
        if self.timecode is not None:
            prefix = f"[{self.timecode:g}s] "
        if self.speaker:
            return f"{prefix}{self.speaker}: {self.text}"
        return f"{prefix}{self.text}"
