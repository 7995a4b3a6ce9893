"""Text transform stage: dialect normalization of transcript text.

Chat-backed cleaning lives in cleaner.py; the rule-based fallbacks,
transliteration and the Darija quality score live in rules.py.
"""

from darija_captions.transform.cleaner import (
    SCRIPTS,
    STYLES,
    Captions,
    TextCleaner,
    rule_based_clean,
)
from darija_captions.transform.rules import (
    apply_script,
    darija_quality_score,
    sanitize_text,
    transliterate_to_arabizi,
)

__all__ = [
    "Captions",
    "SCRIPTS",
    "STYLES",
    "TextCleaner",
    "apply_script",
    "darija_quality_score",
    "rule_based_clean",
    "sanitize_text",
    "transliterate_to_arabizi",
]
