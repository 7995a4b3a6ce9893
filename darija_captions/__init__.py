"""Darija Captions: video to dialect-normalized subtitle files.

WHY: Speech-to-text providers return timing in incompatible shapes (segment
lists, word lists, utterances, bare text) and none of them produce subtitles
that respect display budgets. This package normalizes every provider result
into one interval model, re-times chunked transcriptions, enforces line and
block budgets, and renders SRT, WebVTT, and plain text.

HOW: Ingest (media + provider clients) → normalize (core envelopes) →
re-assemble and optimize (core) → format (pluggable formatters) → optional
text transform (Darija / MSA / mixed cleanup).

RULES:
- Every stage consumes the same Interval sequence and returns a new one
- Intervals are immutable; stages never mutate their input
- Adding an output encoding = one new formatter module, no core changes
"""

__version__ = "2.0.0"
