"""Rule-based text cleanup, dialect fallbacks, transliteration and scoring.

WHY: Cleaning normally goes through a chat model, but the tool must still
produce something useful when no chat provider is configured, and the
strict Darija mode needs a cheap way to tell whether a model's answer
still reads like Modern Standard Arabic.

HOW: Each transform is a pure str -> str function built from regex
substitutions. Word boundaries use Python's Unicode-aware ``\\b``, so the
rules apply to Arabic words as well as Latin ones. The quality score counts
MSA "forbidden" words and Darija markers delimited by whitespace or
Arabic/Latin punctuation.

RULES:
- sanitize_text keeps Arabic blocks, Latin letters (accented too), digits
  and common punctuation; everything else becomes a space; whitespace
  collapses
- darija_quality_score = max(0, 100 - 18 * forbidden + 6 * markers)
- apply_script("latin") transliterates to Arabizi; any other script is a no-op
- Empty input returns "" from every transform
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Pattern, Sequence, Tuple

DARIJA_FORBIDDEN_WORDS = (
    "سوف", "يجب", "لذلك", "هذا", "هذه", "الذي", "التي", "إن", "قد", "لن", "لم",
    "ليس", "حيث", "بينما", "كذلك", "وبالتالي", "من أجل", "على الرغم", "بالتالي",
    "بالرغم", "لعل", "لكن", "ولكن", "إذ", "إذن", "عندما", "إلى", "إلا أن",
)

DARIJA_MARKERS = (
    "دابا", "غادي", "علاش", "كيفاش", "شنو", "شكون", "فين", "واش", "بزاف", "مزيان",
    "ماشي", "حيت", "راه", "واخا", "يالاه", "هادشي", "ديال", "ديالي", "ديالك",
    "آش", "إوا", "بصح", "هاكا", "كن", "كت", "غادي", "خاصني", "بغيت",
)

STRICT_DARIJA_MIN_SCORE = 70

_DELIMS = r"\s\u200f\u200e؟،؛.!"
_DISALLOWED = re.compile(
    r"[^\u0600-\u06FF\u0750-\u077F\u08A0-\u08FFA-Za-z\u00C0-\u024F0-9\s.,!؟،؛…\-–()\"'«»]"
)
_WHITESPACE = re.compile(r"\s+")
_LATIN = re.compile(r"[A-Za-z\u00C0-\u024F]")


def _term_pattern(term: str) -> Pattern[str]:
    return re.compile(r"(^|[{d}]){t}(?=$|[{d}])".format(d=_DELIMS, t=re.escape(term)))


_FORBIDDEN_PATTERNS = [_term_pattern(t) for t in DARIJA_FORBIDDEN_WORDS]
_MARKER_PATTERNS = [_term_pattern(t) for t in DARIJA_MARKERS]


def _collapse(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def _rules(pairs: Sequence[Tuple[str, str]]) -> List[Tuple[Pattern[str], str]]:
    return [(re.compile(p), r) for p, r in pairs]


def sanitize_text(text: str, preserve_latin: bool = True) -> str:
    """Drop characters outside Arabic, Latin, digits and punctuation."""
    if not text:
        return ""
    if not preserve_latin:
        text = _LATIN.sub("", text)
    return _collapse(_DISALLOWED.sub(" ", text))


def apply_forbidden_word_filter(text: str) -> str:
    """Remove standalone MSA words that have no place in Darija."""
    for pattern in _FORBIDDEN_PATTERNS:
        text = pattern.sub(" ", text)
    return _collapse(text)


@dataclass(frozen=True)
class DarijaScore:
    score: int
    forbidden_hits: int
    marker_hits: int


def _count_hits(text: str, patterns: Sequence[Pattern[str]]) -> int:
    return sum(len(p.findall(text)) for p in patterns)


def darija_quality_score(text: str) -> DarijaScore:
    """Score how much a text reads as Darija rather than MSA (0 and up)."""
    forbidden = _count_hits(text, _FORBIDDEN_PATTERNS)
    markers = _count_hits(text, _MARKER_PATTERNS)
    return DarijaScore(
        score=max(0, 100 - forbidden * 18 + markers * 6),
        forbidden_hits=forbidden,
        marker_hits=markers,
    )


# ---------------------------------------------------------------------------
# Style fallbacks
# ---------------------------------------------------------------------------

_MIXED_RULES = [
    (re.compile(r"\b(aaa+|mmm+|euh+|uh+|erm+)\b", re.IGNORECASE), ""),
    (re.compile(r"\b(آه+|ممم+|إيه+|اه+)\b"), ""),
    (re.compile(r"\b(يعني)\s+\1\b"), r"\1"),
]

_MSA_RULES = _rules([
    (r"\bواش\b", "هل"),
    (r"\bبزاف\b", "كثيرا"),
    (r"\bشنو\b", "ماذا"),
    (r"\bعلاش\b", "لماذا"),
    (r"\bفين\b", "أين"),
    (r"\bدابا\b", "الآن"),
    (r"\bغادي\b", "سوف"),
])

# Order matters: multi-word phrases before their single-word parts.
_DARIJA_RULES = _rules([
    # greetings
    (r"\bمرحباً?\s*بكم\b", "مرحبا بيكم"),
    (r"\bأهلاً?\s*وسهلاً?\b", "مرحبا"),
    (r"\bمرحباً?\b", "مرحبا"),
    (r"\bالسلام عليكم\b", "السلام"),
    # verbs
    (r"\bأريد\s*أن\b", "بغيت"),
    (r"\bأريد\b", "بغيت"),
    (r"\bأرغب\b", "بغيت"),
    (r"\bأذهب\b", "كنمشي"),
    (r"\bذهبت\b", "مشيت"),
    (r"\bسأذهب\b", "غادي نمشي"),
    (r"\bستجدون\b", "غادي تلقاو"),
    (r"\bستجد\b", "غادي تلقى"),
    (r"\bسنجد\b", "غادي نلقاو"),
    (r"\bسأجد\b", "غادي نلقى"),
    (r"\bتجدون\b", "كتلقاو"),
    (r"\bنجد\b", "كنلقاو"),
    (r"\bأجد\b", "كنلقى"),
    # questions
    (r"\bماذا\b", "شنو"),
    (r"\bما\s*هو\b", "شنو"),
    (r"\bما\s*هي\b", "شنو"),
    (r"\bلماذا\b", "علاش"),
    (r"\bكيف\b", "كيفاش"),
    (r"\bأين\b", "فين"),
    (r"\bهل\b", "واش"),
    (r"\bمتى\b", "إمتى"),
    (r"\bكم\b", "شحال"),
    (r"\bمن\s*هو\b", "شكون"),
    # time
    (r"\bالآن\b", "دابا"),
    (r"\bسوف\b", "غادي"),
    (r"\bغداً\b", "غدا"),
    (r"\bأمس\b", "البارح"),
    # quantities
    (r"\bكثير(اً)?\b", "بزاف"),
    (r"\bجداً?\b", "بزاف"),
    (r"\bقليل(اً)?\b", "شوية"),
    # adjectives
    (r"\bجيد\b", "مزيان"),
    (r"\bحسن\b", "مزيان"),
    (r"\bممتاز\b", "واعر"),
    (r"\bجميل\b", "زوين"),
    (r"\bسيء\b", "خايب"),
    # negation and affirmation
    (r"\bلا\s*شيء\b", "والو"),
    (r"\bليس\b", "ماشي"),
    (r"\bلست\b", "ماشي"),
    (r"\bحسناً?\b", "واخا"),
    (r"\bنعم\b", "آه"),
    # existence
    (r"\bيوجد\b", "كاين"),
    (r"\bتوجد\b", "كاينة"),
    (r"\bهناك\b", "كاين"),
    # knowledge
    (r"\bلا\s*أعرف\b", "معرفتش"),
    (r"\bأعرف\b", "كنعرف"),
    (r"\bلا\s*أفهم\b", "مافهمتش"),
    (r"\bأفهم\b", "كنفهم"),
    # commands
    (r"\b[أا]نظر\b", "شوف"),
    (r"\bتعال\b", "أجي"),
    (r"\b[اإ]ذهب\b", "سير"),
    (r"\bأعطني\b", "عطيني"),
    (r"\bأخبرني\b", "قولي"),
    (r"\bقل\s*لي\b", "قولي"),
    (r"\bانتظر\b", "تسنى"),
    # pronouns and prepositions
    (r"\bمعي\b", "معايا"),
    (r"\bمعك\b", "معاك"),
    (r"\bمعه\b", "معاه"),
    (r"\bمعها\b", "معاها"),
    (r"\bلدي\b", "عندي"),
    (r"\bلديك\b", "عندك"),
    (r"\bأحتاج\b", "خاصني"),
    (r"\bيمكن(ني)?\b", "نقدر"),
    (r"\bأستطيع\b", "نقدر"),
    (r"\bالذي\b", "اللي"),
    (r"\bالتي\b", "اللي"),
    (r"\bلكي\b", "باش"),
    # fillers
    (r"\bآه+\b", ""),
    (r"\bإيه+\b", ""),
    (r"\bممم+\b", ""),
    (r"\bأه+\b", ""),
    (r"\bيعني\s*يعني\b", "يعني"),
])


def _apply_rules(text: str, rules: Sequence[Tuple[Pattern[str], str]]) -> str:
    for pattern, replacement in rules:
        text = pattern.sub(replacement, text)
    return text


def basic_mixed_cleaning(text: str) -> str:
    """Drop hesitation fillers and doubled "يعني" without changing language."""
    if not text:
        return ""
    return _collapse(_apply_rules(text, _MIXED_RULES))


def basic_msa_normalization(text: str) -> str:
    """Replace the most common Darija words with their MSA equivalents."""
    if not text:
        return ""
    return _apply_rules(text, _MSA_RULES).strip()


def basic_darija_conversion(text: str) -> str:
    """Rewrite common MSA words and phrases into Darija."""
    if not text:
        return ""
    return _collapse(_apply_rules(text, _DARIJA_RULES))


# ---------------------------------------------------------------------------
# Script
# ---------------------------------------------------------------------------

_ARABIZI = str.maketrans({
    "ا": "a", "أ": "a", "إ": "i", "آ": "a",
    "ب": "b", "ت": "t", "ث": "t", "ج": "j",
    "ح": "7", "خ": "5", "د": "d", "ذ": "d",
    "ر": "r", "ز": "z", "س": "s", "ش": "ch",
    "ص": "s", "ض": "d", "ط": "t", "ظ": "d",
    "ع": "3", "غ": "gh", "ف": "f", "ق": "9",
    "ك": "k", "ل": "l", "م": "m", "ن": "n",
    "ه": "h", "و": "w", "ي": "y", "ى": "a",
    "ة": "a", "ء": "2", "ئ": "2", "ؤ": "2",
    # harakat and tatweel
    "ّ": "", "َ": "", "ً": "", "ُ": "",
    "ٌ": "", "ِ": "", "ٍ": "", "ْ": "", "ـ": "",
})


def transliterate_to_arabizi(text: str) -> str:
    """Map Arabic letters to Arabizi (3 for ع, 7 for ح, ...); others pass through."""
    if not text:
        return ""
    return text.translate(_ARABIZI)


def apply_script(text: str, script: str) -> str:
    if script == "latin":
        return transliterate_to_arabizi(text)
    return text
