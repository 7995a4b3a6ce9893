"""Flattened plain-text transcript formatter.

WHY: The dialect-conversion stage and human reviewers want the words without
timecodes. The flattened text is also what gets sent to the chat provider
when the whole transcript is cleaned at once.

HOW: Replace every embedded newline with a space and join the interval texts
with single spaces, in order.

RULES:
- Output is a single line; no trailing newline
- Empty-text intervals still take a separator slot ("a", "", "b" → "a  b")
- Output name: "{stem}.txt"; default stem "transcript_raw"
- Media type: "text/plain"
"""

from typing import List, Sequence

from darija_captions.core.ir import Interval
from darija_captions.formatters.base import BaseFormatter, FormatterOutput


def to_plain_text(intervals: Sequence[Interval]) -> str:
    """Concatenate interval texts into one space-separated line."""
    return " ".join(interval.text.replace("\n", " ") for interval in intervals)


class PlainTextFormatter(BaseFormatter):
    """Formatter that produces the flattened transcript."""

    default_stem = "transcript_raw"

    @property
    def name(self) -> str:
        return "Plain Text"

    def format(self, intervals: Sequence[Interval]) -> List[FormatterOutput]:
        return [
            FormatterOutput(
                filename="{}.txt".format(self.stem),
                content=to_plain_text(intervals),
                media_type="text/plain",
            )
        ]
