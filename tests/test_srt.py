"""Tests for the SRT interval parser and formatter."""

from darija_captions.core.ir import Interval
from darija_captions.core.srt import format_srt, parse_srt, renumber


class TestParseSrt:
    """parse_srt() block handling."""

    def test_parses_blocks_in_order(self, sample_srt):
        intervals = parse_srt(sample_srt)
        assert [i.index for i in intervals] == [1, 2]
        assert intervals[0].start == 0.0
        assert intervals[0].end == 2.5
        assert intervals[0].text == "واش نتا مزيان؟"

    def test_multiline_text_preserved(self, sample_srt):
        intervals = parse_srt(sample_srt)
        assert intervals[1].text == "ça va, bzaf\nsecond line"

    def test_crlf_line_endings(self, sample_srt):
        assert parse_srt(sample_srt.replace("\n", "\r\n")) == parse_srt(sample_srt)

    def test_empty_document(self):
        assert parse_srt("") == []
        assert parse_srt("\n\n  \n") == []

    def test_malformed_timecode_block_dropped(self):
        doc = (
            "1\n00:00:00,000 --> 00:00:01,000\nkeep\n\n"
            "2\nnot a timecode\ndrop me\n\n"
            "3\n00:00:02,000 --> 00:00:03,000\nalso keep"
        )
        intervals = parse_srt(doc)
        assert [i.text for i in intervals] == ["keep", "also keep"]

    def test_short_block_dropped(self):
        doc = "1\n00:00:00,000 --> 00:00:01,000\n\n2\n00:00:01,000 --> 00:00:02,000\nok"
        intervals = parse_srt(doc)
        assert [i.text for i in intervals] == ["ok"]

    def test_bad_index_uses_position(self):
        doc = "x\n00:00:00,000 --> 00:00:01,000\nfirst\n\n?\n00:00:01,000 --> 00:00:02,000\nsecond"
        assert [i.index for i in parse_srt(doc)] == [1, 2]

    def test_blank_line_with_spaces_separates_blocks(self):
        doc = "1\n00:00:00,000 --> 00:00:01,000\na\n   \n2\n00:00:01,000 --> 00:00:02,000\nb"
        assert len(parse_srt(doc)) == 2

    def test_vtt_style_timecodes_accepted(self):
        doc = "1\n00:00:00.500 --> 00:00:01.250\nhello"
        interval = parse_srt(doc)[0]
        assert (interval.start, interval.end) == (0.5, 1.25)


class TestFormatSrt:
    """format_srt() rendering."""

    def test_renders_blocks(self, make_intervals):
        intervals = make_intervals((0.0, 1.5, "one"), (1.5, 3.2, "two\nlines"))
        assert format_srt(intervals) == (
            "1\n00:00:00,000 --> 00:00:01,500\none\n\n"
            "2\n00:00:01,500 --> 00:00:03,200\ntwo\nlines"
        )

    def test_empty_sequence(self):
        assert format_srt([]) == ""

    def test_renumbers_sparse_indices(self):
        intervals = [
            Interval(index=7, start=0.0, end=1.0, text="a"),
            Interval(index=9, start=1.0, end=2.0, text="b"),
        ]
        assert format_srt(intervals).startswith("1\n")
        assert "\n\n2\n" in format_srt(intervals)

    def test_empty_text_only(self):
        assert format_srt([Interval(index=1, start=0.0, end=12.5, text="")]) == ""

    def test_empty_text_skipped_mid_sequence(self):
        intervals = [
            Interval(index=1, start=0.0, end=1.0, text="a"),
            Interval(index=2, start=1.0, end=2.0, text=""),
            Interval(index=3, start=2.0, end=3.0, text="  "),
            Interval(index=4, start=3.0, end=4.0, text="c"),
        ]
        doc = format_srt(intervals)
        assert "\n\n\n" not in doc
        assert doc == (
            "1\n00:00:00,000 --> 00:00:01,000\na\n\n"
            "2\n00:00:03,000 --> 00:00:04,000\nc"
        )
        assert [(i.index, i.text) for i in parse_srt(doc)] == [(1, "a"), (2, "c")]


class TestRoundTrip:
    """parse_srt(format_srt(seq)) == renumber(seq) for well-formed input."""

    def test_round_trip(self):
        seq = [
            Interval(index=4, start=0.0, end=1.234, text="واش"),
            Interval(index=5, start=1.234, end=4.0, text="line one\nline two"),
            Interval(index=6, start=3.9, end=7.001, text="overlap ok"),
        ]
        assert parse_srt(format_srt(seq)) == renumber(seq)

    def test_renumber_does_not_mutate(self, make_intervals):
        seq = make_intervals((0, 1), (1, 2))
        shuffled = [seq[1], seq[0]]
        result = renumber(shuffled)
        assert [i.index for i in result] == [1, 2]
        assert shuffled[0].index == 2
