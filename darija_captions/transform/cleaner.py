"""Style-aware text cleaning over a chat provider.

WHY: Raw transcripts of Moroccan speech come back as a mix of Darija, MSA,
French and English with fillers and stutters. Readers want one consistent
register: pure Darija, MSA, or the original mix with the noise removed.

HOW: TextCleaner sends short instructions plus the text to a chat client,
each call wrapped in a RetryPolicy. Darija cleaning optionally runs a
strict pass: the answer is sanitized and scored, then stripped of MSA
function words; while the score of the unfiltered answer stays below
STRICT_DARIJA_MIN_SCORE the model is asked again, at most ``strict_retries``
more times. clean_intervals() applies clean_block() to every subtitle block
independently. diarize() and generate_captions() work on the cleaned
document and produce the speaker-labelled transcript and social captions.

RULES:
- Styles: "mixed", "darija", "msa"; scripts: "arabic", "latin"
- darija_strict defaults to True for style "darija", False otherwise
- An empty model answer falls back to the input text
- A block whose cleaning fails keeps its original text; timing never changes
- rule_based_clean() is the no-chat fallback with the same style/script contract
- safe_mode adds one softening pass to clean_document(), not to blocks
- Caption variations that are not a JSON object fall back to
  neutral/hype/classy copies of the caption
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence

from darija_captions.api.retry import RetryPolicy
from darija_captions.core.ir import Interval
from darija_captions.transform.rules import (
    DARIJA_FORBIDDEN_WORDS,
    STRICT_DARIJA_MIN_SCORE,
    apply_forbidden_word_filter,
    apply_script,
    basic_darija_conversion,
    basic_mixed_cleaning,
    basic_msa_normalization,
    darija_quality_score,
    sanitize_text,
)

logger = logging.getLogger(__name__)

STYLES = ("mixed", "darija", "msa")
SCRIPTS = ("arabic", "latin")

_KEEP_FOREIGN = "خلي الكلمات الفرنسية والإنجليزية كما هي. رجع غير النص."

_PROMPTS: Dict[str, str] = {
    "mixed": "نظّف النص: حيّد التكرار والتأتأة والفيلرز، بلا ترجمة وبلا تبديل اللغة. " + _KEEP_FOREIGN,
    "msa": "حوّل النص إلى العربية الفصحى السليمة. " + _KEEP_FOREIGN,
    "darija": "حوّل النص للدارجة المغربية كما كيهضرو الناس فالشارع، بلا فصحى. " + _KEEP_FOREIGN,
    "darija_polish": "نظّف النص: حيّد التكرار وزيد ترقيم خفيف. " + _KEEP_FOREIGN,
    "strict": "أنت مدقق دارجة صارم. ممنوع الفصحى. ممنوع هاد الكلمات: {forbidden}. " + _KEEP_FOREIGN,
    "strict_retry": "عاود صحّح النص للدارجة الصارمة. " + _KEEP_FOREIGN,
    "safe_mode": "بدّل الكلمات القوية بكلمات أخف، خلي المعنى. رجع النص فقط.",
    "diarization_system": "أنت محلل نصوص. حاول تميز بين المتكلمين بناء على السياق والأسلوب.",
    "diarization": "حلل النص وميّز المتكلمين. حط [Speaker A] أو [Speaker B] قبل كل جزء. رجع النص مع labels.",
    "caption_system": "أنت خبير في كتابة captions لمنصات التواصل الاجتماعي.",
    "variations_system": "أنت خبير في كتابة captions. رجع دائما JSON صالح بدون أي نص إضافي.",
}

_CAPTION_PROMPTS: Dict[str, str] = {
    "darija": "خرج caption قصير (1–2 سطور) بالدارجة المغربية 100%، ستايل ريلز/تيك توك، "
              "خفيف ومفهوم، و CTA بسيط، وزيد حتى 2 emojis. بلا فصحى!",
    "mixed": "خرج caption قصير (1–2 سطور) بنفس أسلوب النص الأصلي بدون ترجمة. خلّي أي كلمات "
             "فرنسية/إنجليزية كما هي، و CTA بسيط مع 1-2 emojis.",
    "msa": "اكتب caption قصير (1–2 سطور) بالعربية الفصحى بدون تغيير الكلمات غير العربية، "
           "مع CTA بسيط و 1-2 emojis.",
}

_VARIATION_REGISTERS: Dict[str, str] = {
    "darija": "بالدارجة المغربية 100%",
    "mixed": "بنفس أسلوب الكلام (دارجة + فرنسي/إنجليزي كما هو)",
    "msa": "بالعربية الفصحى بدون تغيير الكلمات غير العربية",
}

_VARIATIONS_PROMPT = (
    "من هاد النص، خرج 3 captions {register}:\n"
    "1. neutral: عادي و مفهوم\n"
    "2. hype: حماسي و منشط\n"
    "3. classy: أنيق و راقي\n\n"
    "كل caption: 1-2 سطور، CTA خفيف، max 2 emojis.\n"
    "رجع JSON:\n"
    '{{"neutral": "...", "hype": "...", "classy": "..."}}'
)

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


@dataclass(frozen=True)
class Captions:
    """A social-media caption plus its tone variations (neutral/hype/classy)."""

    caption: str
    variations: Dict[str, str]


def parse_variations(answer: str, caption: str) -> Dict[str, str]:
    """Pull the ``{...}`` JSON object out of a model answer.

    Falls back to neutral/hype/classy built from ``caption`` when the answer
    has no decodable object.
    """
    match = _JSON_OBJECT_RE.search(answer or "")
    if match:
        try:
            decoded = json.loads(match.group(0))
        except json.JSONDecodeError:
            logger.debug("Caption variations were not valid JSON")
        else:
            if isinstance(decoded, dict) and decoded:
                return {str(key): str(value) for key, value in decoded.items()}
    return {"neutral": caption, "hype": caption + " 🔥", "classy": caption}


def _validate(style: str, script: str) -> None:
    if style not in STYLES:
        raise ValueError("Invalid style '{}'. Use one of: {}".format(style, ", ".join(STYLES)))
    if script not in SCRIPTS:
        raise ValueError("Invalid script '{}'. Use one of: {}".format(script, ", ".join(SCRIPTS)))


def rule_based_clean(text: str, style: str = "darija", script: str = "arabic") -> str:
    """Clean text without a chat provider."""
    _validate(style, script)
    if style == "darija":
        cleaned = basic_darija_conversion(text)
    elif style == "msa":
        cleaned = basic_msa_normalization(text)
    else:
        cleaned = basic_mixed_cleaning(text)
    return apply_script(sanitize_text(cleaned, preserve_latin=True), script)


class TextCleaner:
    """Chat-backed cleaner for one style/script combination.

    Args:
        chat_client: Anything with ``async chat(messages, temperature) -> str``
                     (normally an open ProviderClient).
        style: "mixed", "darija" or "msa".
        darija_strict: Enforce strict Darija; None picks the style default.
        script: "arabic" or "latin" (Arabizi).
        retry_policy: Wraps every chat call.
        strict_retries: Extra strict passes allowed while the score is low.
        safe_mode: Soften strong words in the cleaned document.
    """

    def __init__(
        self,
        chat_client,
        style: str = "darija",
        darija_strict: Optional[bool] = None,
        script: str = "arabic",
        retry_policy: Optional[RetryPolicy] = None,
        strict_retries: int = 2,
        safe_mode: bool = False,
    ) -> None:
        _validate(style, script)
        self._chat = chat_client
        self.style = style
        self.script = script
        self.darija_strict = (style == "darija") if darija_strict is None else darija_strict
        self._retry = retry_policy or RetryPolicy()
        self._strict_retries = strict_retries
        self.safe_mode = safe_mode

    async def _ask(self, instruction: str, text: str, temperature: float = 0.2,
                   system: Optional[str] = None) -> str:
        """One chat call; with ``system`` the instruction moves into the user turn."""
        if system:
            messages = [
                {"role": "system", "content": system},
                {"role": "user", "content": "{}\n\n{}".format(instruction, text)},
            ]
        else:
            messages = [
                {"role": "system", "content": instruction},
                {"role": "user", "content": text},
            ]
        return await self._retry.call(self._chat.chat, messages, temperature)

    async def _strict_pass(self, instruction: str, text: str):
        """Ask once; return the filtered answer and the score of the unfiltered one."""
        answer = sanitize_text(await self._ask(instruction, text), preserve_latin=True)
        return apply_forbidden_word_filter(answer), darija_quality_score(answer).score

    async def _enforce_strict(self, text: str) -> str:
        forbidden = "، ".join(DARIJA_FORBIDDEN_WORDS)
        enforced, score = await self._strict_pass(_PROMPTS["strict"].format(forbidden=forbidden), text)
        retries = 0
        while score < STRICT_DARIJA_MIN_SCORE and retries < self._strict_retries:
            logger.debug("Darija score %d below %d, asking again", score, STRICT_DARIJA_MIN_SCORE)
            enforced, score = await self._strict_pass(_PROMPTS["strict_retry"], enforced or text)
            retries += 1
        return enforced or text

    async def _convert(self, text: str, polish: bool) -> str:
        if self.style != "darija":
            return await self._ask(_PROMPTS[self.style], text)

        converted = await self._ask(_PROMPTS["darija"], text, temperature=0.3) or text
        if polish:
            converted = await self._ask(_PROMPTS["darija_polish"], converted) or converted
        if self.darija_strict:
            converted = await self._enforce_strict(converted)
        return converted

    def _finish(self, cleaned: str, original: str) -> str:
        cleaned = sanitize_text(cleaned, preserve_latin=True) or original
        return apply_script(cleaned, self.script) or original

    async def clean_document(self, text: str) -> str:
        """Clean a whole flattened transcript."""
        if not text.strip():
            return ""
        cleaned = await self._convert(text, polish=True)
        if self.safe_mode:
            cleaned = await self._ask(_PROMPTS["safe_mode"], cleaned) or cleaned
        logger.info("Transcript cleaned (%s)", self.style)
        return self._finish(cleaned, text)

    async def clean_block(self, text: str) -> str:
        """Clean one subtitle block's text."""
        if not text.strip():
            return text
        return self._finish(await self._convert(text, polish=False), text)

    async def clean_intervals(self, intervals: Sequence[Interval]) -> List[Interval]:
        """Clean each interval's text, keeping timing and indices."""
        cleaned: List[Interval] = []
        for interval in intervals:
            try:
                text = await self.clean_block(interval.text)
            except Exception as e:
                logger.warning("Block %d kept unchanged: %s", interval.index, e)
                text = interval.text
            cleaned.append(replace(interval, text=text or interval.text))
        return cleaned

    async def diarize(self, text: str) -> str:
        """Label speaker turns with [Speaker A] / [Speaker B].

        The labels are the model's guess from wording alone; no audio is used.
        """
        if not text.strip():
            return ""
        labelled = await self._ask(
            _PROMPTS["diarization"],
            text,
            temperature=0.3,
            system=_PROMPTS["diarization_system"],
        )
        logger.warning("Speaker diarization is heuristic-based")
        return apply_script(labelled or text, self.script)

    async def generate_captions(self, text: str) -> Captions:
        """Write a short social caption and three tone variations for the text."""
        caption = await self._ask(
            _CAPTION_PROMPTS[self.style],
            "النص:\n" + text,
            temperature=0.7,
            system=_PROMPTS["caption_system"],
        )
        try:
            answer = await self._ask(
                _VARIATIONS_PROMPT.format(register=_VARIATION_REGISTERS[self.style]),
                "النص:\n" + text,
                temperature=0.8,
                system=_PROMPTS["variations_system"],
            )
        except Exception as e:
            logger.warning("Caption variations failed, deriving them from the caption: %s", e)
            answer = ""
        variations = parse_variations(answer, caption)
        return Captions(
            caption=apply_script(caption, self.script),
            variations={key: apply_script(value, self.script) for key, value in variations.items()},
        )
