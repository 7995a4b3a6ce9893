"""SRT parser and formatter: the primary subtitle encoding.

WHY: Providers that emit subtitles directly (and every intermediate stage
that persists its work) speak SRT. The parser must survive the trailing noise
real providers append; the formatter is the single place that renumbers and
renders the canonical document.

HOW: parse_srt() splits on blank-line boundaries and keeps only blocks with an
index line, a timecode range line, and at least one text line. format_srt()
renumbers by position and joins blocks with exactly one blank line.

RULES:
- Blocks with a malformed timecode line are dropped, never fatal
- A non-integer index line is tolerated (position is used instead)
- Text lines are joined with "\\n" so multi-line captions survive
- format_srt output has no trailing blank line; empty input → ""
- Blank-text intervals are not rendered, so every block has a text line
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Iterable, List

from darija_captions.core.ir import Interval
from darija_captions.core.timecode import (
    SRT_SEPARATOR,
    MalformedTimecode,
    format_timecode,
    parse_timecode_range,
)

logger = logging.getLogger(__name__)

_BLOCK_SPLIT_RE = re.compile(r"\n\s*\n")


def parse_srt(document: str) -> List[Interval]:
    """Split an SRT document into an ordered list of intervals.

    Args:
        document: Raw SRT text (CRLF and LF line endings both accepted).

    Returns:
        Intervals in document order. Indices come from the index line when
        it parses as an integer, otherwise from the block's position.
    """
    intervals: List[Interval] = []
    normalized = document.replace("\r\n", "\n").replace("\r", "\n").strip()
    if not normalized:
        return intervals

    for block in _BLOCK_SPLIT_RE.split(normalized):
        lines = [line.rstrip() for line in block.strip().split("\n") if line.strip()]
        if len(lines) < 3:
            logger.debug("Skipping short SRT block: %r", block)
            continue

        try:
            start, end = parse_timecode_range(lines[1])
        except MalformedTimecode:
            logger.debug("Skipping SRT block with malformed timecode: %r", lines[1])
            continue

        try:
            index = int(lines[0].strip())
        except ValueError:
            index = len(intervals) + 1

        intervals.append(Interval(
            index=index,
            start=start,
            end=end,
            text="\n".join(lines[2:]),
        ))

    return intervals


def renumber(intervals: Iterable[Interval]) -> List[Interval]:
    """Return copies with index = position + 1."""
    return [replace(interval, index=i) for i, interval in enumerate(intervals, 1)]


def format_srt(intervals: Iterable[Interval]) -> str:
    """Render intervals as an SRT document with sequential 1-based indices.

    Intervals whose text is blank are skipped and do not consume an index.
    """
    blocks = []
    for interval in intervals:
        if not interval.text.strip():
            logger.debug("Skipping empty interval %d", interval.index)
            continue
        blocks.append("{}\n{} --> {}\n{}".format(
            len(blocks) + 1,
            format_timecode(interval.start, SRT_SEPARATOR),
            format_timecode(interval.end, SRT_SEPARATOR),
            interval.text,
        ))
    return "\n\n".join(blocks)
