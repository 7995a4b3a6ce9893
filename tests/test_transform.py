"""Tests for rule-based cleanup, Darija scoring and the chat-backed cleaner.

RULES:
- Rule functions are pure and return "" for empty input
- The cleaner never changes interval timing
- Strict Darija re-asks at most strict_retries times
"""

import asyncio

import pytest

from darija_captions.api.retry import NO_RETRY
from darija_captions.core.ir import Interval
from darija_captions.transform import (
    TextCleaner,
    apply_script,
    darija_quality_score,
    rule_based_clean,
    sanitize_text,
    transliterate_to_arabizi,
)
from darija_captions.transform.cleaner import Captions, parse_variations
from darija_captions.transform.rules import (
    apply_forbidden_word_filter,
    basic_darija_conversion,
    basic_mixed_cleaning,
    basic_msa_normalization,
)


class TestRules:
    """Pure text transforms."""

    def test_sanitize_drops_symbols(self):
        assert sanitize_text("hello 😀 مرحبا") == "hello مرحبا"

    def test_sanitize_keeps_french_accents(self):
        assert sanitize_text("ça va, très bien") == "ça va, très bien"

    def test_sanitize_without_latin(self):
        assert sanitize_text("hello مرحبا 42", preserve_latin=False) == "مرحبا 42"

    def test_empty_input(self):
        for fn in (sanitize_text, basic_mixed_cleaning, basic_msa_normalization,
                   basic_darija_conversion, transliterate_to_arabizi):
            assert fn("") == ""

    def test_forbidden_filter(self):
        assert apply_forbidden_word_filter("هذا مزيان، سوف نشوف") == "مزيان، نشوف"

    def test_forbidden_filter_keeps_longer_words(self):
        assert apply_forbidden_word_filter("هذاك مزيان") == "هذاك مزيان"

    def test_score_formula(self):
        score = darija_quality_score("هذا سوف يكون")
        assert (score.score, score.forbidden_hits, score.marker_hits) == (64, 2, 0)

    def test_score_rewards_markers(self):
        assert darija_quality_score("واش نتا مزيان دابا").score == 118

    def test_score_floor(self):
        assert darija_quality_score(" ".join(["هذا"] * 10)).score == 0

    def test_darija_conversion(self):
        assert basic_darija_conversion("أريد أن أذهب الآن") == "بغيت كنمشي دابا"

    def test_msa_normalization(self):
        assert basic_msa_normalization("واش بزاف") == "هل كثيرا"

    def test_mixed_cleaning(self):
        assert basic_mixed_cleaning("euh salam mmm ça va") == "salam ça va"

    def test_arabizi(self):
        assert transliterate_to_arabizi("حب") == "7b"
        assert transliterate_to_arabizi("شعب") == "ch3b"
        assert transliterate_to_arabizi("قلب ok") == "9lb ok"

    def test_apply_script(self):
        assert apply_script("حب", "arabic") == "حب"
        assert apply_script("حب", "latin") == "7b"


class TestRuleBasedClean:
    """rule_based_clean() no-chat fallback."""

    def test_darija(self):
        assert rule_based_clean("أريد أن أذهب الآن") == "بغيت كنمشي دابا"

    def test_latin_script(self):
        assert rule_based_clean("الآن", style="darija", script="latin") == "daba"

    def test_invalid_style(self):
        with pytest.raises(ValueError, match="Invalid style"):
            rule_based_clean("x", style="klingon")


class TestTextCleaner:
    """TextCleaner over a scripted chat client."""

    def test_style_defaults(self, fake_chat):
        assert TextCleaner(fake_chat).darija_strict is True
        assert TextCleaner(fake_chat, style="mixed").darija_strict is False
        assert TextCleaner(fake_chat, style="mixed", darija_strict=True).darija_strict is True

    def test_invalid_script(self, fake_chat):
        with pytest.raises(ValueError, match="Invalid script"):
            TextCleaner(fake_chat, script="cyrillic")

    def test_msa_single_call(self, chat_factory):
        chat = chat_factory(["هل أنت بخير"])
        result = asyncio.run(TextCleaner(chat, style="msa").clean_document("واش نتا مزيان"))
        assert result == "هل أنت بخير"
        assert len(chat.calls) == 1
        assert chat.calls[0][0]["role"] == "system"
        assert chat.calls[0][1] == {"role": "user", "content": "واش نتا مزيان"}

    def test_darija_document_polishes(self, chat_factory):
        chat = chat_factory(["واش نتا مزيان", "واش نتا مزيان؟"])
        cleaner = TextCleaner(chat, style="darija", darija_strict=False)
        assert asyncio.run(cleaner.clean_document("هل أنت بخير")) == "واش نتا مزيان؟"
        assert len(chat.calls) == 2

    def test_strict_reasks_until_score_passes(self, chat_factory):
        chat = chat_factory(["x", "هذا سوف لن", "هذا الذي", "دابا مزيان"])
        result = asyncio.run(TextCleaner(chat, style="darija").clean_block("هل أنت بخير"))
        assert result == "دابا مزيان"
        assert len(chat.calls) == 4

    def test_strict_retry_cap(self, chat_factory):
        chat = chat_factory(default="هذا سوف لن")
        asyncio.run(TextCleaner(chat, style="darija", strict_retries=2).clean_block("نص"))
        assert len(chat.calls) == 4

    def test_strict_output_filtered(self, chat_factory):
        chat = chat_factory(["x", "هذا مزيان بزاف"])
        result = asyncio.run(TextCleaner(chat, style="darija").clean_block("نص"))
        assert result == "مزيان بزاف"

    def test_empty_answer_keeps_original(self, chat_factory):
        chat = chat_factory([""])
        assert asyncio.run(TextCleaner(chat, style="msa").clean_block("salam")) == "salam"

    def test_blank_input_skips_chat(self, fake_chat):
        cleaner = TextCleaner(fake_chat, style="msa")
        assert asyncio.run(cleaner.clean_document("   ")) == ""
        assert asyncio.run(cleaner.clean_block("")) == ""
        assert fake_chat.calls == []

    def test_latin_script(self, fake_chat):
        cleaner = TextCleaner(fake_chat, style="mixed", script="latin")
        assert asyncio.run(cleaner.clean_block("حب")) == "7b"

    def test_intervals_keep_timing_and_fall_back(self, chat_factory):
        chat = chat_factory([RuntimeError("boom"), "زوين"])
        intervals = [
            Interval(index=1, start=0.0, end=1.0, text="واحد"),
            Interval(index=2, start=1.0, end=2.5, text="جميل"),
        ]
        cleaner = TextCleaner(chat, style="msa", retry_policy=NO_RETRY)
        cleaned = asyncio.run(cleaner.clean_intervals(intervals))
        assert [(i.index, i.start, i.end, i.text) for i in cleaned] == [
            (1, 0.0, 1.0, "واحد"),
            (2, 1.0, 2.5, "زوين"),
        ]

    def test_safe_mode_softens_document(self, chat_factory):
        chat = chat_factory(["نص فصيح", "نص لطيف"])
        cleaner = TextCleaner(chat, style="msa", safe_mode=True)
        assert asyncio.run(cleaner.clean_document("واش")) == "نص لطيف"
        assert len(chat.calls) == 2
        assert "الكلمات القوية" in chat.calls[1][0]["content"]
        assert chat.calls[1][1]["content"] == "نص فصيح"

    def test_safe_mode_leaves_blocks_alone(self, chat_factory):
        chat = chat_factory(["نص"])
        asyncio.run(TextCleaner(chat, style="msa", safe_mode=True).clean_block("واش"))
        assert len(chat.calls) == 1


class TestDiarize:
    """TextCleaner.diarize()."""

    def test_labels_speakers(self, chat_factory):
        chat = chat_factory(["[Speaker A] salam [Speaker B] labas"])
        result = asyncio.run(TextCleaner(chat, style="mixed").diarize("salam labas"))
        assert result == "[Speaker A] salam [Speaker B] labas"
        system, user = chat.calls[0]
        assert system["role"] == "system"
        assert "[Speaker A]" in user["content"]
        assert user["content"].endswith("salam labas")

    def test_latin_script(self, chat_factory):
        chat = chat_factory(["[Speaker A] حب"])
        cleaner = TextCleaner(chat, style="mixed", script="latin")
        assert asyncio.run(cleaner.diarize("حب")) == "[Speaker A] 7b"

    def test_blank_input_skips_chat(self, fake_chat):
        assert asyncio.run(TextCleaner(fake_chat).diarize("  ")) == ""
        assert fake_chat.calls == []


class TestGenerateCaptions:
    """TextCleaner.generate_captions() and parse_variations()."""

    def test_caption_and_variations(self, chat_factory):
        chat = chat_factory([
            "شوفو هاد الفيديو 🎬",
            'ها هوما:\n{"neutral": "n", "hype": "h", "classy": "c"}',
        ])
        captions = asyncio.run(TextCleaner(chat, style="darija").generate_captions("نص"))
        assert captions == Captions(
            caption="شوفو هاد الفيديو 🎬",
            variations={"neutral": "n", "hype": "h", "classy": "c"},
        )
        assert len(chat.calls) == 2
        assert '"neutral"' in chat.calls[1][1]["content"]
        assert chat.calls[0][1]["content"].endswith("النص:\nنص")

    def test_variations_without_json_fall_back(self, chat_factory):
        chat = chat_factory(["cap", "sorry, no json"])
        captions = asyncio.run(TextCleaner(chat, style="mixed").generate_captions("x"))
        assert captions.variations == {"neutral": "cap", "hype": "cap 🔥", "classy": "cap"}

    def test_variations_call_failure_falls_back(self, chat_factory):
        chat = chat_factory(["cap", RuntimeError("boom")])
        cleaner = TextCleaner(chat, style="msa", retry_policy=NO_RETRY)
        captions = asyncio.run(cleaner.generate_captions("x"))
        assert captions.caption == "cap"
        assert captions.variations["hype"] == "cap 🔥"

    def test_caption_failure_propagates(self, chat_factory):
        chat = chat_factory([RuntimeError("down")])
        with pytest.raises(RuntimeError):
            asyncio.run(TextCleaner(chat, retry_policy=NO_RETRY).generate_captions("x"))

    def test_latin_script(self, chat_factory):
        chat = chat_factory(["حب", '{"neutral": "حب"}'])
        captions = asyncio.run(TextCleaner(chat, script="latin").generate_captions("x"))
        assert captions == Captions(caption="7b", variations={"neutral": "7b"})

    @pytest.mark.parametrize("answer", ["", "{not json}", "{}", "plain words"])
    def test_parse_variations_fallback(self, answer):
        assert parse_variations(answer, "c") == {"neutral": "c", "hype": "c 🔥", "classy": "c"}
