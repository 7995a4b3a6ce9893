"""Timestamp codec for SRT and WebVTT timecodes.

WHY: Both subtitle encodings use ``HH:MM:SS<sep>mmm`` timecodes and differ
only in the fractional-second separator (``,`` for SRT, ``.`` for WebVTT).
Round-trip fidelity matters: a parsed-then-formatted document must reproduce
the exact same timecodes.

HOW: Parsing converts to integer milliseconds first and divides once, so
every millisecond value maps to the float nearest to it. Formatting rounds
the millisecond component half-up and carries into the seconds when the
rounding reaches 1000.

RULES:
- parse_timecode accepts either separator
- format_timecode zero-pads h/m/s to 2 digits and ms to 3
- Milliseconds = round-half-up of (seconds mod 1) * 1000
- Negative inputs are clamped to zero
"""

from __future__ import annotations

import math
import re
from typing import Tuple

SRT_SEPARATOR = ","
VTT_SEPARATOR = "."

_TIMECODE = r"(\d{2,}):(\d{2}):(\d{2})[,.](\d{3})"
_TIMECODE_RE = re.compile(r"^\s*" + _TIMECODE + r"\s*$")
_RANGE_RE = re.compile(_TIMECODE + r"\s*-->\s*" + _TIMECODE)


class MalformedTimecode(ValueError):
    """Raised when a timecode or timecode range does not match the pattern.

    Callers decide whether to skip the containing block or abort; the SRT
    parser skips.
    """


def _to_seconds(hours: str, minutes: str, seconds: str, millis: str) -> float:
    total_ms = ((int(hours) * 60 + int(minutes)) * 60 + int(seconds)) * 1000 + int(millis)
    return total_ms / 1000.0


def parse_timecode(text: str) -> float:
    """Parse ``HH:MM:SS,mmm`` or ``HH:MM:SS.mmm`` into seconds.

    Raises:
        MalformedTimecode: If the text does not match the pattern.
    """
    match = _TIMECODE_RE.match(text)
    if not match:
        raise MalformedTimecode("Malformed timecode: {!r}".format(text))
    return _to_seconds(*match.groups())


def parse_timecode_range(line: str) -> Tuple[float, float]:
    """Parse a ``<timecode> --> <timecode>`` line into (start, end) seconds.

    Trailing cue settings (WebVTT ``align:start`` etc.) are ignored.

    Raises:
        MalformedTimecode: If no range is found on the line.
    """
    match = _RANGE_RE.search(line)
    if not match:
        raise MalformedTimecode("Malformed timecode range: {!r}".format(line))
    groups = match.groups()
    return _to_seconds(*groups[:4]), _to_seconds(*groups[4:])


def format_timecode(seconds: float, separator: str = SRT_SEPARATOR) -> str:
    """Render seconds as ``HH:MM:SS<separator>mmm``.

    Examples:
        >>> format_timecode(3661.5)
        '01:01:01,500'
        >>> format_timecode(59.9996, ".")
        '00:01:00.000'
    """
    if seconds < 0:
        seconds = 0.0
    whole = math.floor(seconds)
    millis = math.floor((seconds - whole) * 1000 + 0.5)
    if millis >= 1000:
        whole += 1
        millis -= 1000
    hours, rest = divmod(int(whole), 3600)
    minutes, secs = divmod(rest, 60)
    return "{:02d}:{:02d}:{:02d}{}{:03d}".format(hours, minutes, secs, separator, millis)
