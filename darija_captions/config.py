"""Configuration constants, provider table, and .env loading.

WHY: Provider endpoints, models, display budgets, and media limits are plain
data. Keeping them in one module makes them easy to find and override, and
lets clients receive their provider settings as an immutable value instead of
reaching into a mutable global registry.

HOW: python-dotenv loads the .env file on import. Each provider is a frozen
ProviderConfig; the PROVIDERS table is a read-only mapping. Display and media
defaults are module-level constants that can be overridden via environment
variables. load_api_key() gives a clear error when a key is missing.

RULES:
- PROVIDERS is read-only (MappingProxyType of frozen dataclasses)
- stt_kind selects the transcription protocol; None means chat-only
- Auto-detection walks STT_AUTO_PRIORITY / CHAT_AUTO_PRIORITY in order
- API keys come from the environment, never from source
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional

from dotenv import load_dotenv

# Load .env from the project root (where the tool is run from)
load_dotenv()


@dataclass(frozen=True)
class ProviderConfig:
    """Static settings for one remote provider.

    Attributes:
        name: Registry key, e.g. ``"groq"``.
        base_url: API root without trailing slash.
        env_key: Environment variable holding the API key.
        stt_kind: Transcription protocol (``"openai_compatible"``,
                  ``"assemblyai"``, ``"gladia"``, ``"gemini"``,
                  ``"openrouter"``) or None.
        stt_model: Default transcription model, if any.
        chat_model: Default chat model, or None when the provider has no chat.
        response_format: ``response_format`` form field for
                         OpenAI-compatible transcription, if any.
        poll_interval_s: Seconds between polls for async providers.
    """

    name: str
    base_url: str
    env_key: str
    stt_kind: Optional[str] = None
    stt_model: Optional[str] = None
    chat_model: Optional[str] = None
    response_format: Optional[str] = None
    poll_interval_s: float = 3.0


PROVIDERS: Mapping[str, ProviderConfig] = MappingProxyType({
    "gladia": ProviderConfig(
        name="gladia",
        base_url="https://api.gladia.io/v2",
        env_key="GLADIA_API_KEY",
        stt_kind="gladia",
        stt_model="gladia-default",
        poll_interval_s=3.0,
    ),
    "assemblyai": ProviderConfig(
        name="assemblyai",
        base_url="https://api.assemblyai.com/v2",
        env_key="ASSEMBLYAI_API_KEY",
        stt_kind="assemblyai",
        stt_model="assemblyai-default",
        poll_interval_s=5.0,
    ),
    "groq": ProviderConfig(
        name="groq",
        base_url="https://api.groq.com/openai/v1",
        env_key="GROQ_API_KEY",
        stt_kind="openai_compatible",
        stt_model="whisper-large-v3",
        chat_model="llama-3.3-70b-versatile",
        response_format="verbose_json",
    ),
    "openai": ProviderConfig(
        name="openai",
        base_url="https://api.openai.com/v1",
        env_key="OPENAI_API_KEY",
        stt_kind="openai_compatible",
        stt_model="whisper-1",
        chat_model="gpt-4o-mini",
        response_format="verbose_json",
    ),
    "gemini": ProviderConfig(
        name="gemini",
        base_url="https://generativelanguage.googleapis.com/v1beta",
        env_key="GEMINI_API_KEY",
        stt_kind="gemini",
        stt_model="gemini-1.5-flash",
        chat_model="gemini-1.5-flash",
    ),
    "openrouter": ProviderConfig(
        name="openrouter",
        base_url="https://openrouter.ai/api/v1",
        env_key="OPENROUTER_API_KEY",
        stt_kind="openrouter",
        stt_model="google/gemini-2.0-flash-exp:free",
        chat_model="google/gemini-2.0-flash-exp:free",
    ),
    "deepseek": ProviderConfig(
        name="deepseek",
        base_url="https://api.deepseek.com/v1",
        env_key="DEEPSEEK_API_KEY",
        chat_model="deepseek-chat",
    ),
})

STT_AUTO_PRIORITY = ("gladia", "assemblyai", "groq", "openai", "gemini", "openrouter")
CHAT_AUTO_PRIORITY = ("openai", "groq", "openrouter", "gemini", "deepseek")

AUDIO_MODEL_HINTS = ("whisper", "gemini", "audio", "speech", "transcribe")


def is_audio_capable_model(provider: str, model: Optional[str]) -> bool:
    """True when the provider/model pair accepts audio input.

    Whisper endpoints always do; LLM providers only for model names that
    carry one of AUDIO_MODEL_HINTS.
    """
    if not model:
        return False
    if provider in ("openai", "groq"):
        return True
    if provider in ("gemini", "openrouter"):
        name = model.lower()
        return any(hint in name for hint in AUDIO_MODEL_HINTS)
    return False


def get_provider(name: str) -> ProviderConfig:
    """Look up a provider by name.

    Raises:
        ValueError: If the name is not in PROVIDERS.
    """
    try:
        return PROVIDERS[name]
    except KeyError:
        raise ValueError(
            "Unknown provider '{}'. Available: {}".format(
                name, ", ".join(sorted(PROVIDERS))
            )
        ) from None


# ---------------------------------------------------------------------------
# Display budgets and media defaults
# ---------------------------------------------------------------------------

MAX_CHARS_PER_LINE = int(os.getenv("DARIJA_MAX_CHARS_PER_LINE", "42"))
MAX_LINES_PER_BLOCK = int(os.getenv("DARIJA_MAX_LINES_PER_BLOCK", "2"))

SUPPORTED_EXTENSIONS: frozenset = frozenset({
    ".mp4", ".mov", ".mkv", ".webm", ".avi", ".m4v", ".flv",
})
"""Video file extensions accepted as pipeline input (lowercase, with dot)."""

MAX_FILE_SIZE_MB = 2000
AUDIO_SAMPLE_RATE = 16000
AUDIO_CHANNELS = 1

TEMP_ROOT = Path(os.getenv("DARIJA_TEMP_DIR", os.path.join(tempfile.gettempdir(), "darija-captions")))


def load_api_key(provider: str) -> str:
    """Load a provider's API key from the environment.

    RULES:
    - Raises ValueError if the key is missing or empty
    - Never returns a default/placeholder value
    """
    config = get_provider(provider)
    key = os.getenv(config.env_key, "").strip()
    if not key:
        raise ValueError(
            "{} API key not configured. Add {} to the .env file.".format(
                provider, config.env_key
            )
        )
    return key


def has_api_key(provider: str) -> bool:
    """True when the provider's key variable is set to a non-empty value."""
    config = PROVIDERS.get(provider)
    if config is None:
        return False
    return bool(os.getenv(config.env_key, "").strip())


def detect_stt_provider(stt_model: Optional[str] = None) -> Optional[str]:
    """Return the first STT-capable provider with a configured key, or None.

    OpenRouter is skipped unless its model (``stt_model`` when given) is
    audio-capable.
    """
    for name in STT_AUTO_PRIORITY:
        if not has_api_key(name):
            continue
        if name == "openrouter" and not is_audio_capable_model(
            name, stt_model or PROVIDERS[name].stt_model
        ):
            continue
        return name
    return None


def detect_chat_provider(preferred: Optional[str] = None) -> Optional[str]:
    """Return a chat-capable provider with a configured key, or None.

    The preferred provider wins when it has both a key and a chat model.
    """
    if preferred and has_api_key(preferred) and PROVIDERS[preferred].chat_model:
        return preferred
    for name in CHAT_AUTO_PRIORITY:
        if has_api_key(name) and PROVIDERS[name].chat_model:
            return name
    return None
