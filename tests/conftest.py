"""Shared test fixtures for the darija_captions test suite.

WHY: Several test modules need the same small SRT documents, provider
payloads and a chat stand-in. Centralizing them keeps the expected values
in one place.

HOW: Module-level constants hold the sample data; fixtures hand out fresh
copies. FakeChat records every message list it receives and answers from
a scripted queue.

RULES:
- Provider API keys are removed from the environment for every test
- Sample timings are exact multiples of 1 ms
"""

import copy
from typing import Any, Dict, List, Optional

import pytest

from darija_captions.config import PROVIDERS
from darija_captions.core.ir import Interval


SAMPLE_SRT = (
    "1\n"
    "00:00:00,000 --> 00:00:02,500\n"
    "واش نتا مزيان؟\n"
    "\n"
    "2\n"
    "00:00:02,500 --> 00:00:05,000\n"
    "ça va, bzaf\n"
    "second line"
)

GROQ_VERBOSE_JSON: Dict[str, Any] = {
    "task": "transcribe",
    "language": "arabic",
    "duration": 5.0,
    "text": "واش نتا مزيان؟ ça va",
    "segments": [
        {"id": 0, "start": 0.0, "end": 2.5, "text": " واش نتا مزيان؟"},
        {"id": 1, "start": 2.5, "end": 5.0, "text": " ça va"},
    ],
}

ASSEMBLYAI_COMPLETED: Dict[str, Any] = {
    "id": "tr_123",
    "status": "completed",
    "text": "hi there. bye",
    "audio_duration": 3,
    "words": [
        {"text": "hi", "start": 0, "end": 400, "confidence": 0.9},
        {"text": "there.", "start": 400, "end": 900, "confidence": 0.9},
        {"text": "bye", "start": 1000, "end": 1300, "confidence": 0.9},
    ],
}

GLADIA_DONE: Dict[str, Any] = {
    "id": "gl_1",
    "status": "done",
    "result": {
        "transcription": {
            "full_transcript": "salam labas",
            "utterances": [
                {"start": 0.1, "end": 1.2, "text": "salam", "language": "ar"},
                {"start": 1.4, "end": 2.0, "text": " labas ", "language": "ar"},
            ],
        },
    },
}


def _make_intervals(*spans, text: str = "x") -> List[Interval]:
    """Build intervals 1..N from (start, end) pairs or (start, end, text) triples."""
    intervals = []
    for i, span in enumerate(spans, 1):
        if len(span) == 3:
            start, end, body = span
        else:
            start, end = span
            body = text
        intervals.append(Interval(index=i, start=start, end=end, text=body))
    return intervals


class FakeChat:
    """Chat client stand-in with scripted replies.

    Each reply is either a string (returned) or an exception (raised).
    When the queue runs dry, ``default`` is returned, or the user text
    is echoed back when default is None.
    """

    def __init__(self, replies: Optional[List[Any]] = None, default: Optional[str] = None) -> None:
        self.replies = list(replies or [])
        self.default = default
        self.calls: List[List[Dict[str, str]]] = []

    async def chat(self, messages, temperature: float = 0.7) -> str:
        self.calls.append(messages)
        if self.replies:
            reply = self.replies.pop(0)
            if isinstance(reply, Exception):
                raise reply
            return reply
        if self.default is not None:
            return self.default
        return messages[-1]["content"]


@pytest.fixture(autouse=True)
def _no_provider_keys(monkeypatch):
    """Keep tests independent of any .env file on the developer's machine."""
    for config in PROVIDERS.values():
        monkeypatch.delenv(config.env_key, raising=False)


@pytest.fixture
def sample_srt():
    return SAMPLE_SRT


@pytest.fixture
def fake_chat():
    return FakeChat()


@pytest.fixture
def make_intervals():
    """Factory: make_intervals((0, 1, "a"), (1, 2)) -> [Interval, Interval]."""
    return _make_intervals


@pytest.fixture
def chat_factory():
    """Factory for FakeChat instances with scripted replies."""
    return FakeChat


@pytest.fixture
def groq_verbose_json():
    """Whisper-style verbose_json response (segments in seconds)."""
    return copy.deepcopy(GROQ_VERBOSE_JSON)


@pytest.fixture
def assemblyai_completed():
    """Completed AssemblyAI transcript (words in milliseconds)."""
    return copy.deepcopy(ASSEMBLYAI_COMPLETED)


@pytest.fixture
def gladia_done():
    """Finished Gladia job (utterances nested under result.transcription)."""
    return copy.deepcopy(GLADIA_DONE)
