"""Interval model and its transformation pipeline.

WHY: The core package is the stable heart of the tool: the Interval value
type plus every pure transformation over interval sequences. Formatters, the
pipeline, and the provider clients all build on it.

HOW: ir.py defines the data structures, timecode.py and srt.py handle the
primary encoding, envelopes.py normalizes provider responses, assembler.py
re-times chunked transcriptions, optimizer.py enforces display budgets.

RULES:
- No I/O in this package; callers read and write files
- Every function returns a new sequence; inputs are never mutated
"""
