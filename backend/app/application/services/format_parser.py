"""Format parser — converts raw transcript/document text into ordered atomic items.

Formats are detected by content signature. Uploaded files are frequently
mislabeled, so a caller-supplied hint (format name or MIME type) is only
consulted when the content itself carries no recognisable structure.

Supported formats:
    WebVTT   — ``WEBVTT`` header, ``HH:MM:SS.mmm --> ...`` cues
    SRT      — numbered cues, ``HH:MM:SS,mmm --> ...``
    Fathom   — ``VIEW RECORDING`` export, ``M:SS - Speaker (Company)`` lines
    Speaker  — plain ``Name: text`` lines without timecodes
    Document — prose split on markdown headings or blank-line paragraphs
"""

import logging
import re

from app.domain.entities import AtomicItem, SourceFormat
from app.domain.exceptions import UnsupportedFormatError
from app.infrastructure.logging.colored_logger import PipelineLogger

logger = logging.getLogger(__name__)
plog = PipelineLogger("FormatParser")

_CUE_ARROW = "-->"
_TIMESTAMP_RE = re.compile(r"^(?:(\d+):)?(\d+):(\d{2})(?:[.,](\d{1,3}))?$")
_SRT_ARROW_RE = re.compile(r"\d{2}:\d{2}:\d{2},\d{1,3}\s*-->")
_VOICE_TAG_RE = re.compile(r"^<v(?:\.[\w.]+)?\s+([^>]+)>(.*?)(?:</v>)?$")
_INLINE_TAG_RE = re.compile(r"</?[a-z][^>]*>")
_SPEAKER_LABEL_RE = re.compile(r"^([^:\n]{1,200}?):\s+(\S.*)$")
_SPEAKER_LINE_RE = re.compile(r"^([A-Z][\w.'\- ]{0,48}?(?:\s\([^)]*\))?):\s+(\S.*)$")
_FATHOM_LINE_RE = re.compile(r"^(\d+:\d{2}(?::\d{2})?)\s*-\s*([^(\n]+?)\s*(?:\([^)]*\))?\s*$")
_HEADING_RE = re.compile(r"^#{1,3}\s+")
_PARAGRAPH_SPLIT_RE = re.compile(r"\n\s*\n")

_HINT_ALIASES: dict[str, SourceFormat] = {
    "webvtt": SourceFormat.WEBVTT,
    "vtt": SourceFormat.WEBVTT,
    "text/vtt": SourceFormat.WEBVTT,
    "srt": SourceFormat.SRT,
    "subrip": SourceFormat.SRT,
    "application/x-subrip": SourceFormat.SRT,
    "fathom": SourceFormat.FATHOM,
    "speaker": SourceFormat.SPEAKER_LINES,
    "document": SourceFormat.DOCUMENT,
    "meeting-summary": SourceFormat.DOCUMENT,
    "text/markdown": SourceFormat.DOCUMENT,
}

# Hints that say "text" without saying which structure
_NEUTRAL_HINTS = frozenset({"text/plain", "transcript", "text", "application/octet-stream"})


def _timestamp_to_seconds(raw: str) -> float | None:
    """Convert ``HH:MM:SS.mmm``, ``MM:SS,mmm`` or ``M:SS`` to seconds."""
    match = _TIMESTAMP_RE.match(raw.strip())
    if not match:
        return None
    hours, minutes, seconds, fraction = match.groups()
    total = int(hours or 0) * 3600 + int(minutes) * 60 + int(seconds)
    if fraction:
        total += int(fraction.ljust(3, "0")) / 1000
    return float(total)


def _split_speaker(text: str) -> tuple[str | None, str]:
    """Split a leading ``Name:`` label (or WebVTT ``<v Name>`` tag) from cue text."""
    voice = _VOICE_TAG_RE.match(text)
    if voice:
        return voice.group(1).strip(), _INLINE_TAG_RE.sub("", voice.group(2)).strip()
    text = _INLINE_TAG_RE.sub("", text).strip()
    label = _SPEAKER_LABEL_RE.match(text)
    if label:
        return label.group(1).strip(), label.group(2).strip()
    return None, text


def resolve_hint(format_hint: str | None) -> SourceFormat | None:
    """Map a format name or MIME type to a SourceFormat (``None`` if it says nothing)."""
    if not format_hint:
        return None
    key = format_hint.strip().lower().split(";")[0]
    if key in _HINT_ALIASES:
        return _HINT_ALIASES[key]
    if key not in _NEUTRAL_HINTS:
        logger.warning("Ignoring unrecognised format hint %r", format_hint)
    return None


class FormatParser:
    """Parses raw text into a gapless, ordered sequence of AtomicItems.

    Has no knowledge of chunking or indexing. Malformed cues are skipped;
    input with no recognisable structure becomes a single item.
    """

    def detect_format(self, raw_text: str) -> SourceFormat:
        """Detect the source format from content signatures alone."""
        text = _normalise(raw_text)
        head = text.lstrip()
        if head[:6].upper() == "WEBVTT":
            return SourceFormat.WEBVTT
        if "VIEW RECORDING" in text:
            return SourceFormat.FATHOM
        if _CUE_ARROW in text:
            return SourceFormat.SRT if _SRT_ARROW_RE.search(text) else SourceFormat.WEBVTT

        lines = [line.strip() for line in text.split("\n") if line.strip()]
        if sum(1 for line in lines if _FATHOM_LINE_RE.match(line)) >= 2:
            return SourceFormat.FATHOM
        speaker_lines = sum(1 for line in lines if _SPEAKER_LINE_RE.match(line))
        if speaker_lines >= 2 and speaker_lines * 2 >= len(lines):
            return SourceFormat.SPEAKER_LINES
        return SourceFormat.DOCUMENT

    def parse(
        self,
        raw_text: str,
        format_hint: str | None = None,
        *,
        strict: bool = False,
    ) -> list[AtomicItem]:
        """Parse raw text into atomic items.

        Args:
            raw_text: Decoded file content.
            format_hint: Optional format name or MIME type (advisory).
            strict: Disable the single-item fallback and raise instead when the
                content yields no items.

        Returns:
            Items with ``sequence`` 0..n-1. Empty input gives ``[]``.

        Raises:
            UnsupportedFormatError: Only when ``strict`` is set and nothing
                recognisable was found.
        """
        text = _normalise(raw_text)
        if not text.strip():
            return []

        detected = self.detect_format(text)
        hinted = resolve_hint(format_hint)
        candidates = [detected]
        if detected is SourceFormat.DOCUMENT and hinted not in (None, SourceFormat.DOCUMENT):
            candidates = [hinted, SourceFormat.DOCUMENT]
        elif hinted is not None and hinted is not detected:
            logger.debug("Content signature %s overrides hint %s", detected.value, hinted.value)

        drafts: list[tuple[str | None, str, float | None]] = []
        used = candidates[0]
        for candidate in candidates:
            drafts = self._parse_as(candidate, text)
            used = candidate
            if drafts:
                break

        if not drafts:
            if strict:
                raise UnsupportedFormatError(
                    f"No recognisable {detected.value} structure found", format_name=detected.value
                )
            plog.detail("No structure recognised, using whole input as one item")
            drafts = [(None, text.strip(), None)]

        items = _to_items(drafts)
        plog.detail("Parsed source", format=used.value, items=len(items))
        return items

    # ── Format handlers ──────────────────────────────────────────────

    def _parse_as(self, source_format: SourceFormat, text: str) -> list[tuple[str | None, str, float | None]]:
        if source_format in (SourceFormat.WEBVTT, SourceFormat.SRT):
            return self._parse_cues(text)
        if source_format is SourceFormat.FATHOM:
            return self._parse_fathom(text)
        if source_format is SourceFormat.SPEAKER_LINES:
            return self._parse_speaker_lines(text)
        return self._parse_sections(text)

    def _parse_cues(self, text: str) -> list[tuple[str | None, str, float | None]]:
        """WebVTT / SRT: one item per cue block; bad blocks are skipped."""
        drafts = []
        skipped = 0
        for block in _PARAGRAPH_SPLIT_RE.split(text):
            lines = [line.strip() for line in block.split("\n")]
            arrow_idx = next((i for i, line in enumerate(lines) if _CUE_ARROW in line), None)
            if arrow_idx is None:
                continue  # header, NOTE, STYLE or stray text

            start_raw, _, end_raw = lines[arrow_idx].partition(_CUE_ARROW)
            end_token = end_raw.strip().split(" ")[0] if end_raw.strip() else ""
            start = _timestamp_to_seconds(start_raw)
            if start is None or _timestamp_to_seconds(end_token) is None:
                skipped += 1
                continue

            body = " ".join(line for line in lines[arrow_idx + 1 :] if line)
            speaker, utterance = _split_speaker(body)
            if not utterance:
                skipped += 1
                continue
            drafts.append((speaker, utterance, start))

        if skipped:
            logger.debug("Skipped %d malformed cue(s)", skipped)
        return drafts

    def _parse_fathom(self, text: str) -> list[tuple[str | None, str, float | None]]:
        """Fathom: ``M:SS - Speaker (Company)`` followed by indented text lines."""
        drafts: list[tuple[str | None, str, float | None]] = []
        speaker: str | None = None
        timecode: float | None = None
        buffer: list[str] = []

        for raw_line in text.split("\n") + [""]:
            line = raw_line.strip()
            header = _FATHOM_LINE_RE.match(line)
            if header or not line:
                # A header or blank line closes the current turn
                if timecode is not None and buffer:
                    drafts.append((speaker, " ".join(buffer), timecode))
                buffer = []
                speaker, timecode = None, None
                if header:
                    timecode = _timestamp_to_seconds(header.group(1))
                    speaker = header.group(2).strip()
            elif timecode is not None:
                buffer.append(line)
        return drafts

    def _parse_speaker_lines(self, text: str) -> list[tuple[str | None, str, float | None]]:
        """Plain ``Name: text`` transcripts; unlabeled lines continue the previous turn."""
        drafts: list[tuple[str | None, str, float | None]] = []
        for raw_line in text.split("\n"):
            line = raw_line.strip()
            if not line:
                continue
            match = _SPEAKER_LINE_RE.match(line)
            if match:
                drafts.append((match.group(1).strip(), match.group(2).strip(), None))
            elif drafts:
                speaker, previous, _ = drafts[-1]
                drafts[-1] = (speaker, f"{previous} {line}", None)
            else:
                drafts.append((None, line, None))
        return drafts

    def _parse_sections(self, text: str) -> list[tuple[str | None, str, float | None]]:
        """Prose: split on ``#``–``###`` headings outside code fences, else on paragraphs."""
        sections: list[list[str]] = [[]]
        in_fence = False
        saw_heading = False
        for line in text.split("\n"):
            if line.lstrip().startswith("```"):
                in_fence = not in_fence
            elif not in_fence and _HEADING_RE.match(line):
                saw_heading = True
                sections.append([])
                line = _HEADING_RE.sub("", line, count=1)
            sections[-1].append(line)

        if saw_heading:
            bodies = ["\n".join(section).strip() for section in sections]
        else:
            bodies = [part.strip() for part in _PARAGRAPH_SPLIT_RE.split(text)]
        return [(None, body, None) for body in bodies if body]


def _normalise(raw_text: str) -> str:
    return raw_text.lstrip("\ufeff").replace("\r\n", "\n").replace("\r", "\n")


def _to_items(drafts: list[tuple[str | None, str, float | None]]) -> list[AtomicItem]:
    """Assign gapless sequence numbers and clamp timecodes to be non-decreasing."""
    items: list[AtomicItem] = []
    last_timecode: float | None = None
    for sequence, (speaker, text, timecode) in enumerate(drafts):
        if timecode is not None:
            if last_timecode is not None and timecode < last_timecode:
                timecode = last_timecode
            last_timecode = timecode
        items.append(AtomicItem(sequence=sequence, text=text, speaker=speaker, timecode=timecode))
    return items
