"""Chunk re-assembly onto a single timeline.

WHY: Long recordings are split into fixed-length audio chunks and transcribed
independently, so every chunk's intervals start near zero. Before the
optimizer or any formatter sees them they must be moved back to where the
chunk sits in the source audio.

HOW: Shift each chunk's intervals by the chunk's start offset, concatenate in
chunk order, renumber 1..N.

RULES:
- Chunk order is the caller's order; nothing is re-sorted
- Text is preserved exactly
- No deduplication or smoothing across chunk boundaries; a word spoken over
  a boundary may be lost or duplicated
"""

from __future__ import annotations

from typing import Iterable, List, Sequence

from darija_captions.core.ir import ChunkTranscript, Interval
from darija_captions.core.srt import format_srt, parse_srt, renumber


def reassemble_chunks(chunks: Iterable[ChunkTranscript]) -> List[Interval]:
    """Merge per-chunk interval sequences into one global sequence.

    Args:
        chunks: One ChunkTranscript per audio chunk, in chunk order.

    Returns:
        Shifted intervals with contiguous 1-based indices.
    """
    merged: List[Interval] = []
    for chunk in chunks:
        merged.extend(interval.shifted(chunk.offset_s) for interval in chunk.intervals)
    return renumber(merged)


def merge_srt_chunks(documents: Sequence[str], offsets: Sequence[float]) -> str:
    """Re-assemble per-chunk SRT documents into one SRT document.

    Raises:
        ValueError: If documents and offsets differ in length.
    """
    if len(documents) != len(offsets):
        raise ValueError(
            "Got {} chunk documents but {} offsets".format(len(documents), len(offsets))
        )
    chunks = [
        ChunkTranscript(intervals=parse_srt(doc), offset_s=float(offset))
        for doc, offset in zip(documents, offsets)
    ]
    return format_srt(reassemble_chunks(chunks))
