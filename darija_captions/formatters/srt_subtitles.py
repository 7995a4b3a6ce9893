"""SRT subtitle formatter: the primary encoding.

WHY: SRT is what every video editor and player accepts. The interval model
already knows how to render itself canonically; this formatter exposes that
rendering through the pluggable formatter interface.

HOW: Delegates to core.srt.format_srt(), which renumbers 1..N and uses the
comma-separated timecode codec.

RULES:
- Output name: "{stem}.srt"
- Media type: "application/x-subrip"
- Empty sequence → empty document
"""

from typing import List, Sequence

from darija_captions.core.ir import Interval
from darija_captions.core.srt import format_srt
from darija_captions.formatters.base import BaseFormatter, FormatterOutput


class SRTFormatter(BaseFormatter):
    """Formatter that produces one SRT document."""

    @property
    def name(self) -> str:
        return "SRT"

    def format(self, intervals: Sequence[Interval]) -> List[FormatterOutput]:
        return [
            FormatterOutput(
                filename="{}.srt".format(self.stem),
                content=format_srt(intervals),
                media_type="application/x-subrip",
            )
        ]
