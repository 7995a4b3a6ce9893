"""Output formatter registry: pluggable encoding hub.

WHY: The CLI and pipeline need a single lookup to find the right formatter
by name. A central dict makes it trivial to add new encodings: create the
formatter class, import it here, add one line.

HOW: FORMATTERS maps string keys to formatter *classes* (not instances).
Callers instantiate as needed: ``formatter = FORMATTERS["vtt"]()``.

RULES:
- Keys are the CLI's format names
- Values are BaseFormatter subclasses (not instances)
- Every formatter listed here must be importable without side effects
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Type

from darija_captions.formatters.plain_text import PlainTextFormatter, to_plain_text
from darija_captions.formatters.srt_subtitles import SRTFormatter
from darija_captions.formatters.webvtt import WebVTTFormatter, to_webvtt

if TYPE_CHECKING:
    from darija_captions.formatters.base import BaseFormatter

FORMATTERS: Dict[str, Type[BaseFormatter]] = {
    "srt": SRTFormatter,
    "vtt": WebVTTFormatter,
    "plain_text": PlainTextFormatter,
}

__all__ = ["FORMATTERS", "to_plain_text", "to_webvtt"]
