"""Intermediate representation for subtitle intervals.

WHY: Providers, the chunk re-assembler, the readability optimizer, and every
output formatter all exchange the same thing: a timestamped text span with a
sequence index. One immutable value type keeps the stages decoupled: each
stage consumes a sequence and returns a brand new one.

HOW: Three frozen dataclasses:
  Interval       : one subtitle block (index, start, end, text)
  AudioChunk     : a slice of the source audio and its start offset
  ChunkTranscript: the intervals transcribed from one chunk, plus its offset

RULES:
- All times are float seconds
- Interval.index is 1-based; formatters renumber, inputs may be sparse
- Interval.text may contain embedded newlines; it may be empty
- Never mutate an Interval; use dataclasses.replace() or shifted()
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import List


@dataclass(frozen=True)
class Interval:
    """A timestamped text span with a sequence index.

    RULES:
    - end >= start for well-formed input (not enforced, providers misbehave)
    - duration is derived, never stored
    """

    index: int
    start: float
    end: float
    text: str

    @property
    def duration(self) -> float:
        return self.end - self.start

    def shifted(self, offset_s: float) -> Interval:
        """Return a copy moved ``offset_s`` seconds later on the timeline."""
        return replace(self, start=self.start + offset_s, end=self.end + offset_s)


@dataclass(frozen=True)
class AudioChunk:
    """A time-bounded slice of the source audio.

    Attributes:
        path: WAV file holding the slice.
        offset_s: Where the slice starts in the source timeline.
    """

    path: Path
    offset_s: float


@dataclass(frozen=True)
class ChunkTranscript:
    """Intervals transcribed from one chunk, in chunk-local time."""

    intervals: List[Interval] = field(default_factory=list)
    offset_s: float = 0.0
