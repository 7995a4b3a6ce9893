"""Provider envelope classification and normalization to intervals.

WHY: Every transcription provider wraps its timing differently: Whisper-style
segment lists, AssemblyAI word lists in milliseconds, Gladia utterances nested
under result.transcription, LLM answers that are JSON buried in prose, or bare
text with no timing at all. Downstream stages must never see these quirks.

HOW: Two explicit steps.
  1. classify_envelope() detects the shape with jsonschema and returns one of
     the envelope variants (SegmentList, WordList, UtteranceList, PlainText,
     SubtitleDocument).
  2. normalize_envelope() matches on the variant and produces the common
     Interval sequence, applying the duration fallback when timing is absent.

RULES:
- Unrecognized shapes raise TranscriptionFormatError, never an empty result
- Empty segment/word/utterance lists degrade to PlainText of the full text
- PlainText → one interval [0, fallback_duration]; unknown duration (None or
  <= 0) uses the call site's default (30s per chunk, 10s per whole file)
- Word lists close a segment at >= 5s accumulated or sentence punctuation
  (". ! ? ، ؟"); word times are milliseconds
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

import jsonschema

from darija_captions.core.ir import Interval
from darija_captions.core.srt import parse_srt

logger = logging.getLogger(__name__)

CHUNK_DEFAULT_DURATION_S = 30.0
"""Fallback span for single-block output from per-chunk / LLM transcription."""

FILE_DEFAULT_DURATION_S = 10.0
"""Fallback span for single-block output from whole-file provider envelopes."""

WORD_SEGMENT_MAX_S = 5.0

_SENTENCE_END_RE = re.compile(r"[.!?،؟]$")
_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


class TranscriptionFormatError(ValueError):
    """Raised when a provider response matches no known envelope shape.

    Fatal for that transcription call; the caller decides whether to retry
    or abort.
    """


# ---------------------------------------------------------------------------
# Envelope variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SegmentList:
    """Segments with start/end/text (Whisper verbose_json, LLM JSON)."""

    segments: Tuple[Dict[str, Any], ...]


@dataclass(frozen=True)
class WordList:
    """Per-word timing in milliseconds with no segment boundaries."""

    words: Tuple[Dict[str, Any], ...]


@dataclass(frozen=True)
class UtteranceList:
    """Provider-level speaker turns with start/end/text in seconds."""

    utterances: Tuple[Dict[str, Any], ...]


@dataclass(frozen=True)
class PlainText:
    """Text with no timing. duration_hint comes from the provider, if any."""

    text: str
    duration_hint: Optional[float] = None


@dataclass(frozen=True)
class SubtitleDocument:
    """A provider that answered with an SRT document directly."""

    intervals: Tuple[Interval, ...]


Envelope = Union[SegmentList, WordList, UtteranceList, PlainText, SubtitleDocument]


# ---------------------------------------------------------------------------
# Shape schemas
# ---------------------------------------------------------------------------

_NUMBER_OR_NULL = {"type": ["number", "null"]}
_STRING_OR_NULL = {"type": ["string", "null"]}

_TIMED_TEXT_ITEM = {
    "type": "object",
    "properties": {
        "start": _NUMBER_OR_NULL,
        "end": _NUMBER_OR_NULL,
        "text": _STRING_OR_NULL,
    },
}

SEGMENT_LIST_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["segments"],
    "properties": {
        "segments": {"type": "array", "items": _TIMED_TEXT_ITEM},
        "full_text": _STRING_OR_NULL,
        "text": _STRING_OR_NULL,
    },
}

WORD_LIST_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["words"],
    "properties": {
        "words": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["text", "start", "end"],
                "properties": {
                    "text": {"type": "string"},
                    "start": {"type": "number"},
                    "end": {"type": "number"},
                },
            },
        },
        "text": _STRING_OR_NULL,
        "audio_duration": _NUMBER_OR_NULL,
    },
}

UTTERANCE_LIST_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["utterances"],
    "properties": {
        "utterances": {"type": "array", "items": _TIMED_TEXT_ITEM},
        "full_transcript": _STRING_OR_NULL,
    },
}

PLAIN_TEXT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["text"],
    "properties": {"text": {"type": "string"}},
}

_VALIDATORS = {
    "segments": jsonschema.Draft7Validator(SEGMENT_LIST_SCHEMA),
    "words": jsonschema.Draft7Validator(WORD_LIST_SCHEMA),
    "utterances": jsonschema.Draft7Validator(UTTERANCE_LIST_SCHEMA),
    "text": jsonschema.Draft7Validator(PLAIN_TEXT_SCHEMA),
}


def _check(shape: str, payload: Dict[str, Any]) -> None:
    """Validate payload against a shape schema, re-raising as a format error."""
    try:
        _VALIDATORS[shape].validate(payload)
    except jsonschema.ValidationError as e:
        raise TranscriptionFormatError(
            "Provider response looks like a {} envelope but is invalid: {}".format(
                shape, e.message
            )
        ) from e


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def classify_envelope(payload: Any) -> Envelope:
    """Detect which envelope shape a raw provider response has.

    Args:
        payload: Decoded JSON (dict) or raw response text (str).

    Returns:
        One of the envelope variants.

    Raises:
        TranscriptionFormatError: If the payload matches no known shape.
    """
    if isinstance(payload, str):
        return _classify_text(payload)

    if not isinstance(payload, dict):
        raise TranscriptionFormatError(
            "Unrecognized transcription response of type {}".format(type(payload).__name__)
        )

    # Gladia nests utterances under result.transcription
    result = payload.get("result")
    if isinstance(result, dict) and isinstance(result.get("transcription"), dict):
        payload = result["transcription"]

    if "segments" in payload:
        _check("segments", payload)
        if payload["segments"]:
            return SegmentList(segments=tuple(payload["segments"]))
        return PlainText(text=payload.get("full_text") or payload.get("text") or "")

    if "words" in payload:
        _check("words", payload)
        if payload["words"]:
            return WordList(words=tuple(payload["words"]))
        return PlainText(
            text=payload.get("text") or "",
            duration_hint=payload.get("audio_duration"),
        )

    if "utterances" in payload:
        _check("utterances", payload)
        if payload["utterances"]:
            return UtteranceList(utterances=tuple(payload["utterances"]))
        return PlainText(text=payload.get("full_transcript") or "")

    if "full_transcript" in payload:
        return PlainText(text=payload.get("full_transcript") or "")

    if "text" in payload:
        _check("text", payload)
        return PlainText(text=payload["text"])

    raise TranscriptionFormatError(
        "Unrecognized transcription response with keys: {}".format(
            ", ".join(sorted(payload)) or "(none)"
        )
    )


def _classify_text(text: str) -> Envelope:
    """Classify a text response: SRT document, embedded JSON, or plain text."""
    if "-->" in text:
        intervals = parse_srt(text)
        if intervals:
            return SubtitleDocument(intervals=tuple(intervals))

    match = _JSON_OBJECT_RE.search(text)
    if match:
        try:
            decoded = json.loads(match.group(0))
        except json.JSONDecodeError:
            logger.debug("Embedded JSON did not decode; treating response as plain text")
        else:
            if isinstance(decoded, dict):
                try:
                    return classify_envelope(decoded)
                except TranscriptionFormatError:
                    logger.debug("Embedded JSON has no known shape; treating as plain text")

    return PlainText(text=text)


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def words_to_segments(
    words: List[Dict[str, Any]],
    max_segment_s: float = WORD_SEGMENT_MAX_S,
) -> List[Dict[str, Any]]:
    """Group millisecond-timed words into segments of seconds.

    HOW: Accumulate words; close the segment once it spans >= max_segment_s
    or the current word ends with sentence punctuation. Flush the remainder.

    Returns:
        List of {"start", "end", "text"} dicts in seconds.
    """
    segments: List[Dict[str, Any]] = []
    texts: List[str] = []
    start = 0.0
    end = 0.0

    for word in words:
        if not texts:
            start = word["start"] / 1000.0
        texts.append(word["text"])
        end = word["end"] / 1000.0

        if end - start >= max_segment_s or _SENTENCE_END_RE.search(word["text"]):
            segments.append({"start": start, "end": end, "text": " ".join(texts)})
            texts = []

    if texts:
        segments.append({"start": start, "end": end, "text": " ".join(texts)})

    return segments


def _resolve_duration(
    fallback_duration: Optional[float],
    default_duration: float,
) -> float:
    if fallback_duration is not None and fallback_duration > 0:
        return float(fallback_duration)
    return default_duration


def _timed_items_to_intervals(items, missing_end: float) -> List[Interval]:
    intervals = []
    for i, item in enumerate(items, 1):
        start = item.get("start")
        end = item.get("end")
        intervals.append(Interval(
            index=i,
            start=float(start) if start is not None else 0.0,
            end=float(end) if end is not None else missing_end,
            text=(item.get("text") or "").strip(),
        ))
    return intervals


def normalize_envelope(
    payload: Any,
    fallback_duration: Optional[float] = None,
    default_duration: float = FILE_DEFAULT_DURATION_S,
) -> List[Interval]:
    """Convert a raw provider response into the common interval sequence.

    Args:
        payload: Decoded JSON, raw response text, or an already-classified
                 envelope variant.
        fallback_duration: Best estimate of the audio duration in seconds
                           (from the media prober); None or <= 0 = unknown.
        default_duration: Span used when the duration is unknown. Call
                          sites pass CHUNK_DEFAULT_DURATION_S or keep
                          FILE_DEFAULT_DURATION_S.

    Returns:
        Intervals indexed 1..N by position.

    Raises:
        TranscriptionFormatError: If the payload shape is unrecognized.
    """
    if isinstance(payload, (SegmentList, WordList, UtteranceList, PlainText, SubtitleDocument)):
        envelope = payload
    else:
        envelope = classify_envelope(payload)

    if isinstance(envelope, SubtitleDocument):
        return list(envelope.intervals)

    if isinstance(envelope, SegmentList):
        missing_end = _resolve_duration(fallback_duration, default_duration)
        return _timed_items_to_intervals(envelope.segments, missing_end)

    if isinstance(envelope, UtteranceList):
        return _timed_items_to_intervals(envelope.utterances, 0.0)

    if isinstance(envelope, WordList):
        return _timed_items_to_intervals(words_to_segments(list(envelope.words)), 0.0)

    hint = envelope.duration_hint if envelope.duration_hint else fallback_duration
    duration = _resolve_duration(hint, default_duration)
    return [Interval(index=1, start=0.0, end=duration, text=envelope.text.strip())]
