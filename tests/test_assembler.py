"""Tests for chunk re-assembly onto the global timeline.

WHY: Chunked transcription only works if every chunk's intervals land back
at the chunk's real position in the source audio.

RULES:
- Each interval moves by exactly its chunk's offset
- Output indices are contiguous 1..N in chunk order
- Text is untouched
"""

import pytest

from darija_captions.core.assembler import merge_srt_chunks, reassemble_chunks
from darija_captions.core.ir import ChunkTranscript
from darija_captions.core.srt import parse_srt


class TestReassembleChunks:
    """reassemble_chunks() behavior."""

    def test_offsets_applied(self, make_intervals):
        chunks = [
            ChunkTranscript(make_intervals((0.0, 2.0, "a"), (2.0, 4.0, "b")), offset_s=0.0),
            ChunkTranscript(make_intervals((1.0, 3.0, "c")), offset_s=300.0),
            ChunkTranscript(make_intervals((0.5, 1.5, "d")), offset_s=600.0),
        ]
        merged = reassemble_chunks(chunks)
        assert [(i.index, i.start, i.end, i.text) for i in merged] == [
            (1, 0.0, 2.0, "a"),
            (2, 2.0, 4.0, "b"),
            (3, 301.0, 303.0, "c"),
            (4, 600.5, 601.5, "d"),
        ]

    def test_shift_invariant(self, make_intervals):
        """Every output start equals the chunk-local start plus the offset."""
        local = make_intervals((0.25, 1.0), (5.5, 9.0), (29.0, 30.0))
        merged = reassemble_chunks([ChunkTranscript(local, offset_s=120.0)])
        for before, after in zip(local, merged):
            assert after.start == pytest.approx(before.start + 120.0)
            assert after.duration == pytest.approx(before.duration)

    def test_empty_chunk_skipped(self, make_intervals):
        chunks = [
            ChunkTranscript([], offset_s=0.0),
            ChunkTranscript(make_intervals((0.0, 1.0, "only")), offset_s=60.0),
        ]
        merged = reassemble_chunks(chunks)
        assert [(i.index, i.start) for i in merged] == [(1, 60.0)]

    def test_no_chunks(self):
        assert reassemble_chunks([]) == []

    def test_inputs_not_mutated(self, make_intervals):
        local = make_intervals((0.0, 1.0))
        reassemble_chunks([ChunkTranscript(local, offset_s=10.0)])
        assert local[0].start == 0.0


class TestMergeSrtChunks:
    """merge_srt_chunks() string-level convenience."""

    def test_merges_documents(self):
        docs = [
            "1\n00:00:00,000 --> 00:00:01,000\nfirst",
            "1\n00:00:00,500 --> 00:00:02,000\nsecond",
        ]
        merged = parse_srt(merge_srt_chunks(docs, [0, 300]))
        assert [(i.index, i.start, i.end) for i in merged] == [(1, 0.0, 1.0), (2, 300.5, 302.0)]

    def test_length_mismatch(self):
        with pytest.raises(ValueError):
            merge_srt_chunks(["1\n00:00:00,000 --> 00:00:01,000\nx"], [0, 60])
