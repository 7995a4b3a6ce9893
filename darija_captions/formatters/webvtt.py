"""WebVTT subtitle formatter: the alternate encoding.

WHY: Browsers' <track> element only reads WebVTT. It differs from SRT in
three ways: a fixed "WEBVTT" header, no index lines, and a dot instead of a
comma before the milliseconds.

HOW: Emit the header and a blank line, then one "start --> end" line plus the
newline-preserved text per interval, blocks separated by a blank line.

RULES:
- Header literal: "WEBVTT"
- Timecodes use the "." separator
- No cue identifiers
- Blank-text intervals produce no cue
- Empty sequence → header only ("WEBVTT\\n\\n")
- Output name: "{stem}.vtt"; media type "text/vtt"
"""

from typing import List, Sequence

from darija_captions.core.ir import Interval
from darija_captions.core.timecode import VTT_SEPARATOR, format_timecode
from darija_captions.formatters.base import BaseFormatter, FormatterOutput

WEBVTT_HEADER = "WEBVTT"


def to_webvtt(intervals: Sequence[Interval]) -> str:
    """Render intervals as a WebVTT document."""
    parts = [WEBVTT_HEADER + "\n\n"]
    for interval in intervals:
        if not interval.text.strip():
            continue
        parts.append("{} --> {}\n{}\n\n".format(
            format_timecode(interval.start, VTT_SEPARATOR),
            format_timecode(interval.end, VTT_SEPARATOR),
            interval.text,
        ))
    return "".join(parts)


class WebVTTFormatter(BaseFormatter):
    """Formatter that produces one WebVTT document."""

    @property
    def name(self) -> str:
        return "WebVTT"

    def format(self, intervals: Sequence[Interval]) -> List[FormatterOutput]:
        return [
            FormatterOutput(
                filename="{}.vtt".format(self.stem),
                content=to_webvtt(intervals),
                media_type="text/vtt",
            )
        ]
