"""Readability optimizer: line wrapping, block splitting, short-block merging.

WHY: Provider segments ignore display constraints. A single Whisper segment
can hold a 120-character sentence, and word-grouped providers produce flickers
shorter than half a second. Viewers need lines that fit the screen, at most a
couple of lines per block, and blocks that stay up long enough to read.

HOW: Three passes over the interval sequence.
  1. wrap_text()        : greedy word packing of each line to the char budget
  2. split_block()      : blocks with too many wrapped lines are cut into
                           groups of max_lines, timed by linear interpolation
                           over the block's span in proportion to line position
  3. merge_short_blocks(): one forward scan merging adjacent pairs that are
                           both shorter than the merge threshold and fit on one
                           line together
Then renumber.

RULES:
- A word longer than the budget sits alone on its line, unsplit
- Split timing: ratio = j / total, end_ratio = min((j + max_lines) / total, 1)
- Merge requires BOTH durations < merge_threshold_s (strict) and
  len(a.text + " " + b.text) <= max_chars_per_line
- Merging is single-pass and non-cascading: a merged block is not
  reconsidered against the block after it in the same scan
- Running the optimizer on its own output may merge further in the merge
  pass; wrapping and splitting are stable
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional

from darija_captions.config import MAX_CHARS_PER_LINE, MAX_LINES_PER_BLOCK
from darija_captions.core.ir import Interval
from darija_captions.core.srt import format_srt, parse_srt, renumber


@dataclass(frozen=True)
class ReadabilityConfig:
    """Display budgets for the optimizer.

    Attributes:
        max_chars_per_line: Character budget per rendered line.
        max_lines_per_block: Maximum lines shown at once.
        merge_threshold_s: Blocks shorter than this are merge candidates.
    """

    max_chars_per_line: int = MAX_CHARS_PER_LINE
    max_lines_per_block: int = MAX_LINES_PER_BLOCK
    merge_threshold_s: float = 0.5

    def __post_init__(self) -> None:
        if self.max_chars_per_line < 1:
            raise ValueError("max_chars_per_line must be >= 1")
        if self.max_lines_per_block < 1:
            raise ValueError("max_lines_per_block must be >= 1")


# 16:9 TV subtitles and 9:16 vertical video captions
PRESETS: Dict[str, ReadabilityConfig] = {
    "broadcast": ReadabilityConfig(max_chars_per_line=42, max_lines_per_block=2),
    "social": ReadabilityConfig(max_chars_per_line=25, max_lines_per_block=1),
}


def wrap_line(line: str, max_chars: int) -> List[str]:
    """Greedily pack the words of one line into lines of <= max_chars.

    Lines already within budget are returned unchanged.
    """
    if len(line) <= max_chars:
        return [line]

    lines: List[str] = []
    current = ""
    for word in line.split(" "):
        candidate = (current + " " + word).strip()
        if len(candidate) <= max_chars:
            current = candidate
        else:
            if current:
                lines.append(current)
            current = word
    if current:
        lines.append(current)
    return lines


def wrap_text(text: str, max_chars: int) -> List[str]:
    """Wrap every embedded line of a block's text."""
    wrapped: List[str] = []
    for line in text.split("\n"):
        wrapped.extend(wrap_line(line, max_chars))
    return wrapped


def split_block(interval: Interval, lines: List[str], max_lines: int) -> List[Interval]:
    """Partition wrapped lines into blocks of at most max_lines.

    Each group's time range is interpolated over the original span by the
    group's line position; this apportions time by textual share.
    """
    if len(lines) <= max_lines:
        return [replace(interval, text="\n".join(lines))]

    total = len(lines)
    span = interval.end - interval.start
    blocks: List[Interval] = []
    for j in range(0, total, max_lines):
        ratio = j / total
        end_ratio = min((j + max_lines) / total, 1.0)
        blocks.append(Interval(
            index=interval.index,
            start=interval.start + span * ratio,
            end=interval.start + span * end_ratio,
            text="\n".join(lines[j:j + max_lines]),
        ))
    return blocks


def merge_short_blocks(
    intervals: List[Interval],
    config: Optional[ReadabilityConfig] = None,
) -> List[Interval]:
    """Merge adjacent pairs of very short blocks in a single forward scan."""
    cfg = config or ReadabilityConfig()
    merged: List[Interval] = []
    i = 0
    while i < len(intervals):
        current = intervals[i]
        following = intervals[i + 1] if i + 1 < len(intervals) else None
        if (
            following is not None
            and current.duration < cfg.merge_threshold_s
            and following.duration < cfg.merge_threshold_s
            and len(current.text + " " + following.text) <= cfg.max_chars_per_line
        ):
            merged.append(Interval(
                index=current.index,
                start=current.start,
                end=following.end,
                text=current.text + " " + following.text,
            ))
            i += 2
        else:
            merged.append(current)
            i += 1
    return merged


def optimize_intervals(
    intervals: Iterable[Interval],
    config: Optional[ReadabilityConfig] = None,
) -> List[Interval]:
    """Wrap, split, and merge intervals for readability.

    Args:
        intervals: Input sequence (not modified).
        config: Display budgets; defaults to ReadabilityConfig().

    Returns:
        A new, renumbered sequence, generally of a different length.
    """
    cfg = config or ReadabilityConfig()
    split: List[Interval] = []
    for interval in intervals:
        lines = wrap_text(interval.text, cfg.max_chars_per_line)
        split.extend(split_block(interval, lines, cfg.max_lines_per_block))
    return renumber(merge_short_blocks(split, cfg))


def optimize_srt(document: str, config: Optional[ReadabilityConfig] = None) -> str:
    """Parse an SRT document, optimize it, and render it again."""
    return format_srt(optimize_intervals(parse_srt(document), config))
