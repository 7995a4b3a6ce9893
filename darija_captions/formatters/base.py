"""Abstract base formatter and output container.

WHY: Every output encoding consumes the same Interval sequence but produces
different file content. This base class enforces a consistent interface so
the pipeline and CLI can work with any formatter generically.

HOW: BaseFormatter is an ABC with two requirements: a ``name`` property
and a ``format()`` method. FormatterOutput is a plain dataclass that
bundles a file name with its content and MIME type.

RULES:
- Subclasses MUST implement ``name`` (human-readable) and ``format()``
- ``format()`` returns a list; single-file formatters return a list of one
- ``filename`` is the bare output name, e.g. ``"subtitles.srt"``; callers
  may prefix or suffix it for styled variants
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence

from darija_captions.core.ir import Interval


@dataclass
class FormatterOutput:
    """One output file produced by a formatter.

    Attributes:
        filename: Output file name, e.g. ``"subtitles.vtt"``.
        content: The file content as a string.
        media_type: MIME type for the content, e.g. ``"text/vtt"``.
    """

    filename: str
    content: str
    media_type: str


class BaseFormatter(ABC):
    """Abstract base for all output formatters.

    To add a new output encoding:
    1. Create a new file in formatters/
    2. Subclass BaseFormatter
    3. Implement format() and name
    4. Register in FORMATTERS dict in formatters/__init__.py
    """

    default_stem = "subtitles"

    def __init__(self, stem: Optional[str] = None) -> None:
        self.stem = stem or self.default_stem

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable format name, e.g. 'WebVTT'."""

    @abstractmethod
    def format(self, intervals: Sequence[Interval]) -> List[FormatterOutput]:
        """Render the interval sequence into one or more output files.

        Args:
            intervals: The final interval sequence, in display order.

        Returns:
            List of FormatterOutput objects.
        """
