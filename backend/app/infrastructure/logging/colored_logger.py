"""Colored pipeline logger — ANSI-colored console logging for the indexing pipeline.

Provides a PipelineLogger with color-coded output per pipeline stage,
making it easy to follow a document from parse to index in the terminal.

Color scheme:
    🟡 Yellow  — Parsing
    🔵 Blue    — Chunking / topic classification
    🟣 Magenta — Embedding
    🟠 Cyan    — Vector index writes / queries
    ⚪ White   — Document lifecycle (publish, searchable, delete)
    🔴 Red     — Errors
"""

import logging
import time
from contextlib import contextmanager
from typing import Any


# ── ANSI Color Codes ─────────────────────────────────────────────────

class _Colors:
    """ANSI escape codes for terminal colors."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    MAGENTA = "\033[95m"
    CYAN = "\033[96m"
    WHITE = "\033[97m"
    GRAY = "\033[90m"


# ── Pipeline Stage Definitions ───────────────────────────────────────

class PipelineStage:
    """Predefined pipeline stages with colors and icons."""

    PARSE = ("PARSE", _Colors.YELLOW, "📄")
    CHUNK = ("CHUNK", _Colors.BLUE, "🧩")
    EMBED = ("EMBED", _Colors.MAGENTA, "🧠")
    INDEX = ("INDEX", _Colors.CYAN, "🗂️")
    QUERY = ("QUERY", _Colors.CYAN, "🔎")
    PUBLISH = ("PUBLISH", _Colors.WHITE, "📢")
    DELETE = ("DELETE", _Colors.WHITE, "🗑️")
    ERROR = ("ERROR", _Colors.RED, "❌")
    COMPLETE = ("COMPLETE", _Colors.GREEN, "✅")


def _format_fields(fields: dict[str, Any], color: str) -> str:
    if not fields:
        return ""
    details = " | ".join(f"{k}={v}" for k, v in fields.items())
    return f" {color}({details}){_Colors.RESET}"


# ── PipelineLogger ───────────────────────────────────────────────────

class PipelineLogger:
    """Color-coded logger for the parse → chunk → embed → index pipeline.

    Usage:
        log = PipelineLogger("IngestionService")
        log.step_start(PipelineStage.PARSE, "Parsing doc-42")
        log.detail("Detected format", format="webvtt")
        log.step_complete(PipelineStage.INDEX, "Indexed 3 chunks")

    Only identifiers and counts are logged, never document content.
    """

    def __init__(self, component_name: str):
        self._logger = logging.getLogger(component_name)
        self._component = component_name

    def step_start(self, stage: tuple[str, str, str], message: str, **kwargs: Any) -> None:
        """Log the start of a pipeline step with its stage color."""
        label, color, icon = stage
        self._logger.info(
            f"{color}{_Colors.BOLD}{icon} [{label}]{_Colors.RESET} "
            f"{color}{message}{_Colors.RESET}" + _format_fields(kwargs, _Colors.GRAY)
        )

    def step_complete(self, stage: tuple[str, str, str], message: str, **kwargs: Any) -> None:
        """Log the successful completion of a pipeline step."""
        label, color, icon = stage
        self._logger.info(
            f"{color}{icon} [{label}]{_Colors.RESET} "
            f"{_Colors.GREEN}✓ {message}{_Colors.RESET}" + _format_fields(kwargs, _Colors.GRAY)
        )

    def step_warning(self, stage: tuple[str, str, str], message: str, **kwargs: Any) -> None:
        """Log a recoverable problem (partial failure, skipped item) in yellow."""
        label, _, icon = stage
        self._logger.warning(
            f"{_Colors.YELLOW}{icon} [{label}] ⚠ {message}{_Colors.RESET}"
            + _format_fields(kwargs, _Colors.DIM)
        )

    def step_error(self, stage: tuple[str, str, str], message: str, error: Exception | None = None) -> None:
        """Log a pipeline step error in red."""
        label, _, _ = stage
        formatted = (
            f"{_Colors.RED}{_Colors.BOLD}❌ [{label}]{_Colors.RESET} "
            f"{_Colors.RED}{message}{_Colors.RESET}"
        )
        if error:
            formatted += f" {_Colors.DIM}→ {type(error).__name__}: {error}{_Colors.RESET}"
        self._logger.error(formatted)

    def detail(self, message: str, **kwargs: Any) -> None:
        """Log additional detail (gray/dimmed)."""
        self._logger.info(
            f"   {_Colors.GRAY}├─ {message}{_Colors.RESET}" + _format_fields(kwargs, _Colors.DIM)
        )

    @contextmanager
    def timed_step(self, stage: tuple[str, str, str], message: str, **kwargs: Any):
        """Context manager that logs start/end with elapsed time.

        Usage:
            with log.timed_step(PipelineStage.CHUNK, "Chunking doc-42"):
                chunks = chunker.chunk(...)
        """
        self.step_start(stage, message, **kwargs)
        start = time.perf_counter()
        try:
            yield
        except Exception as e:
            elapsed = time.perf_counter() - start
            self.step_error(stage, f"{message} — failed after {elapsed:.2f}s", error=e)
            raise
        else:
            elapsed = time.perf_counter() - start
            self.step_complete(stage, f"{message} — {elapsed:.2f}s", **kwargs)
