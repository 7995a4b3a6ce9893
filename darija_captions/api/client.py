"""Async HTTP client for speech-to-text and chat providers.

WHY: The pipeline needs to send audio to one of several transcription
providers and text to a chat model, without knowing each provider's auth
scheme, upload dance, or polling protocol. This module hides all of that
behind one client class whose transcribe() always returns Interval lists.

HOW: ProviderClient wraps httpx.AsyncClient and is configured by an
immutable ProviderConfig from config.PROVIDERS. transcribe() dispatches on
the provider's stt_kind:
  openai_compatible: multipart POST /audio/transcriptions (verbose_json)
  assemblyai       : upload → create transcript → poll → word list
  gladia           : upload → start transcription → poll result_url → utterances
  gemini           : generateContent with inline audio, JSON answer
  openrouter       : chat completion with input_audio, JSON answer
Every raw payload goes through core.envelopes.normalize_envelope().

RULES:
- Always use the async context manager (async with ProviderClient(...) as c:)
- Non-2xx responses raise ProviderAPIError (401 and 429 get clear messages)
- Polling: fixed interval per provider, at most max_poll_attempts polls,
  then TranscriptionTimeoutError
- Retries are NOT done here; callers wrap calls in a RetryPolicy
- Envelope-shape failures propagate as TranscriptionFormatError
"""

from __future__ import annotations

import asyncio
import base64
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import httpx

from darija_captions.config import (
    ProviderConfig,
    get_provider,
    is_audio_capable_model,
    load_api_key,
)
from darija_captions.core.envelopes import (
    CHUNK_DEFAULT_DURATION_S,
    FILE_DEFAULT_DURATION_S,
    normalize_envelope,
)
from darija_captions.core.ir import Interval

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_MAX_POLL_ATTEMPTS = 60

_WHISPER_HINT_PROMPT = (
    "هاد الفيديو بالدارجة المغربية. كلمات شائعة: واش، كيفاش، علاش، فين، "
    "شكون، شنو، مزيان، بزاف، دابا، غادي، بغيت، خاصني، والو، واخا، كاين، ماشي"
)

_LLM_TRANSCRIBE_PROMPT = (
    "Transcribe this audio exactly as spoken in Moroccan Darija. Keep French "
    "and English words as they are. Drop filler sounds. Split the speech into "
    "segments with approximate timestamps and answer with JSON only:\n"
    '{{"segments": [{{"start": 0.0, "end": 3.5, "text": "..."}}], "full_text": "..."}}\n'
    "Requested language: {language}. Audio duration: {duration} seconds."
)


class ProviderAPIError(Exception):
    """Raised when a provider returns a non-2xx response.

    RULES:
    - Always include status_code and message
    - status_code drives the retry predicate (429/5xx are transient)
    """

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__("API error {}: {}".format(status_code, message))


class TranscriptionError(Exception):
    """Raised when a provider reports a failed job or returns no result."""


class TranscriptionTimeoutError(TimeoutError):
    """Raised when polling runs out of attempts before the job completes."""


class ProviderClient:
    """Async client for one transcription/chat provider.

    RULES:
    - provider may be a registry name or a ProviderConfig
    - api_key defaults to load_api_key(provider)
    - stt_model / chat_model override the provider defaults
    - transport is for tests (httpx.MockTransport)
    """

    def __init__(
        self,
        provider: Union[str, ProviderConfig],
        api_key: Optional[str] = None,
        stt_model: Optional[str] = None,
        chat_model: Optional[str] = None,
        poll_interval_s: Optional[float] = None,
        max_poll_attempts: int = _MAX_POLL_ATTEMPTS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = get_provider(provider) if isinstance(provider, str) else provider
        self._api_key = api_key or load_api_key(self.config.name)
        self.stt_model = stt_model or self.config.stt_model
        self.chat_model = chat_model or self.config.chat_model
        self._poll_interval_s = (
            self.config.poll_interval_s if poll_interval_s is None else poll_interval_s
        )
        self._max_poll_attempts = max_poll_attempts
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def name(self) -> str:
        return self.config.name

    async def __aenter__(self) -> ProviderClient:
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(300.0, connect=30.0),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "ProviderClient must be used as an async context manager: "
                "async with ProviderClient(...) as client: ..."
            )
        return self._client

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    def _auth(self) -> Dict[str, Any]:
        """Per-provider auth: headers and/or query params."""
        kind = self.config.name
        if kind == "gladia":
            return {"headers": {"x-gladia-key": self._api_key}}
        if kind == "assemblyai":
            return {"headers": {"Authorization": self._api_key}}
        if kind == "gemini":
            return {"params": {"key": self._api_key}}
        headers = {"Authorization": "Bearer {}".format(self._api_key)}
        if kind == "openrouter":
            headers["HTTP-Referer"] = "https://darija-captions.local"
            headers["X-Title"] = "Darija Captions"
        return {"headers": headers}

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send an authenticated request and raise on non-2xx.

        ``url`` may be absolute (Gladia result_url) or relative to base_url.
        """
        client = self._ensure_client()
        if not url.startswith("http"):
            url = self.config.base_url + url

        auth = self._auth()
        headers = dict(auth.get("headers", {}))
        headers.update(kwargs.pop("headers", {}) or {})
        params = dict(auth.get("params", {}))
        params.update(kwargs.pop("params", {}) or {})

        resp = await client.request(method, url, headers=headers, params=params, **kwargs)
        if resp.status_code >= 300:
            if resp.status_code == 401:
                message = "Invalid API key for {}. Check your {}".format(
                    self.name, self.config.env_key
                )
            elif resp.status_code == 429:
                message = "Rate limit exceeded on {}. Wait a moment and try again.".format(
                    self.name
                )
            else:
                message = resp.text
            raise ProviderAPIError(resp.status_code, message)
        return resp

    # ------------------------------------------------------------------
    # Transcription
    # ------------------------------------------------------------------

    async def transcribe(
        self,
        audio_path: Path,
        language: str = "auto",
        fallback_duration: Optional[float] = None,
    ) -> List[Interval]:
        """Transcribe one audio file into intervals in file-local time.

        Args:
            audio_path: Mono 16 kHz WAV file.
            language: "auto" or "ar".
            fallback_duration: Probed audio duration in seconds, used when
                               the provider returns no timing (None/0 = unknown).

        Returns:
            Intervals indexed 1..N.

        Raises:
            ProviderAPIError: On non-2xx responses.
            TranscriptionError: When the provider reports failure.
            TranscriptionTimeoutError: When polling runs out of attempts.
            TranscriptionFormatError: When the response shape is unknown.
            ValueError: When the provider cannot transcribe.
        """
        kind = self.config.stt_kind
        audio_path = Path(audio_path)
        logger.info("Transcribing %s with %s", audio_path.name, self.name)

        if kind == "openai_compatible":
            return await self._transcribe_openai_compatible(audio_path, language, fallback_duration)
        if kind == "assemblyai":
            return await self._transcribe_assemblyai(audio_path, language, fallback_duration)
        if kind == "gladia":
            return await self._transcribe_gladia(audio_path, language, fallback_duration)
        if kind == "gemini":
            return await self._transcribe_gemini(audio_path, language, fallback_duration)
        if kind == "openrouter":
            return await self._transcribe_openrouter(audio_path, language, fallback_duration)
        raise ValueError(
            "{} doesn't support transcription. Use gladia, assemblyai, groq, "
            "openai, gemini, or openrouter for STT.".format(self.name)
        )

    async def _transcribe_openai_compatible(
        self,
        audio_path: Path,
        language: str,
        fallback_duration: Optional[float],
    ) -> List[Interval]:
        data = {"model": self.stt_model, "prompt": _WHISPER_HINT_PROMPT}
        if language == "ar":
            data["language"] = "ar"
        if self.config.response_format:
            data["response_format"] = self.config.response_format

        resp = await self._request(
            "POST",
            "/audio/transcriptions",
            data=data,
            files={"file": ("audio.wav", audio_path.read_bytes(), "audio/wav")},
        )

        content_type = resp.headers.get("content-type", "")
        payload: Any = resp.json() if "json" in content_type else resp.text
        return normalize_envelope(payload, fallback_duration, FILE_DEFAULT_DURATION_S)

    async def _transcribe_assemblyai(
        self,
        audio_path: Path,
        language: str,
        fallback_duration: Optional[float],
    ) -> List[Interval]:
        logger.info("Uploading audio to AssemblyAI...")
        upload = await self._request(
            "POST",
            "/upload",
            content=audio_path.read_bytes(),
            headers={"Content-Type": "application/octet-stream"},
        )
        body: Dict[str, Any] = {
            "audio_url": upload.json()["upload_url"],
            "punctuate": True,
            "format_text": True,
        }
        if language == "ar":
            body["language_code"] = "ar"

        created = await self._request("POST", "/transcript", json=body)
        transcript_id = created.json()["id"]

        result = await self._poll(
            "/transcript/{}".format(transcript_id),
            done_status="completed",
            provider_label="AssemblyAI",
        )
        return normalize_envelope(result, fallback_duration, FILE_DEFAULT_DURATION_S)

    async def _transcribe_gladia(
        self,
        audio_path: Path,
        language: str,
        fallback_duration: Optional[float],
    ) -> List[Interval]:
        logger.info("Uploading audio to Gladia...")
        upload = await self._request(
            "POST",
            "/upload",
            files={"audio": ("audio.wav", audio_path.read_bytes(), "audio/wav")},
        )
        body: Dict[str, Any] = {
            "audio_url": upload.json()["audio_url"],
            "enable_code_switching": True,
            "detect_language": language != "ar",
        }
        if language == "ar":
            body["language"] = "ar"

        started = await self._request("POST", "/transcription", json=body)
        result = await self._poll(
            started.json()["result_url"],
            done_status="done",
            provider_label="Gladia",
        )
        return normalize_envelope(result, fallback_duration, FILE_DEFAULT_DURATION_S)

    def _llm_transcription_prompt(self, language: str, fallback_duration: Optional[float]) -> str:
        if not is_audio_capable_model(self.name, self.stt_model):
            raise ValueError(
                '{} model "{}" does not accept audio input.'.format(self.name, self.stt_model)
            )
        return _LLM_TRANSCRIBE_PROMPT.format(
            language="Arabic" if language == "ar" else "auto (Darija + French + English)",
            duration=fallback_duration if fallback_duration else CHUNK_DEFAULT_DURATION_S,
        )

    async def _transcribe_gemini(
        self,
        audio_path: Path,
        language: str,
        fallback_duration: Optional[float],
    ) -> List[Interval]:
        prompt = self._llm_transcription_prompt(language, fallback_duration)
        body = {
            "contents": [{
                "parts": [
                    {"text": prompt},
                    {"inline_data": {"mime_type": "audio/wav", "data": _b64(audio_path)}},
                ],
            }],
            "generationConfig": {"temperature": 0.2, "topK": 40, "topP": 0.95},
        }
        resp = await self._request(
            "POST", "/models/{}:generateContent".format(self.stt_model), json=body,
        )
        text = _gemini_text(resp.json(), "No transcription result from Gemini")
        return normalize_envelope(text, fallback_duration, CHUNK_DEFAULT_DURATION_S)

    async def _transcribe_openrouter(
        self,
        audio_path: Path,
        language: str,
        fallback_duration: Optional[float],
    ) -> List[Interval]:
        prompt = self._llm_transcription_prompt(language, fallback_duration)
        body = {
            "model": self.stt_model,
            "messages": [{
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {"type": "input_audio",
                     "input_audio": {"data": _b64(audio_path), "format": "wav"}},
                ],
            }],
            "temperature": 0.2,
        }
        resp = await self._request("POST", "/chat/completions", json=body)
        choices = resp.json().get("choices") or []
        if not choices:
            raise TranscriptionError("No transcription result from OpenRouter")
        text = choices[0]["message"]["content"] or ""
        return normalize_envelope(text, fallback_duration, CHUNK_DEFAULT_DURATION_S)

    async def _poll(self, url: str, done_status: str, provider_label: str) -> Dict[str, Any]:
        """Poll a job URL until it reports done_status or error."""
        logger.info("Processing... (this may take a moment)")
        for _ in range(self._max_poll_attempts):
            await asyncio.sleep(self._poll_interval_s)
            resp = await self._request("GET", url)
            result = resp.json()
            status = result.get("status")
            if status == done_status:
                return result
            if status == "error":
                raise TranscriptionError(
                    "{} error: {}".format(provider_label, result.get("error"))
                )
        raise TranscriptionTimeoutError("{} transcription timeout".format(provider_label))

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def chat(self, messages: List[Dict[str, str]], temperature: float = 0.7) -> str:
        """Send a chat conversation and return the stripped reply text.

        Raises:
            ValueError: If the provider has no chat model.
            ProviderAPIError: On non-2xx responses.
            TranscriptionError: If the reply is empty.
        """
        if not self.chat_model:
            raise ValueError("{} has no chat model configured".format(self.name))
        if self.name == "gemini":
            return await self._chat_gemini(messages, temperature)

        resp = await self._request(
            "POST",
            "/chat/completions",
            json={"model": self.chat_model, "messages": messages, "temperature": temperature},
        )
        data = resp.json()
        choices = data.get("choices") or []
        if not choices:
            raise TranscriptionError("No response from {}".format(self.name))
        return (choices[0]["message"]["content"] or "").strip()

    async def _chat_gemini(self, messages: List[Dict[str, str]], temperature: float) -> str:
        system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        contents = []
        for message in messages:
            if message["role"] == "system":
                continue
            role = "model" if message["role"] == "assistant" else "user"
            contents.append({"role": role, "parts": [{"text": message["content"]}]})

        if system:
            for content in contents:
                if content["role"] == "user":
                    part = content["parts"][0]
                    part["text"] = "{}\n\n{}".format(system, part["text"])
                    break

        resp = await self._request(
            "POST",
            "/models/{}:generateContent".format(self.chat_model),
            json={"contents": contents, "generationConfig": {"temperature": temperature}},
        )
        return _gemini_text(resp.json(), "No response from Gemini").strip()

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    async def test_connection(self) -> None:
        """Make one cheap authenticated request.

        Raises:
            ProviderAPIError: If the provider rejects the key or is down.
        """
        if self.name == "gladia":
            await self._request("GET", "/transcription")
        elif self.name == "assemblyai":
            await self._request("GET", "/transcript")
        elif self.name == "gemini":
            await self._request("GET", "/models/{}".format(self.chat_model or self.stt_model))
        else:
            await self._request("GET", "/models")

    async def list_models(self) -> List[str]:
        """Return the provider's model names, sorted."""
        if self.name in ("gladia", "assemblyai"):
            return ["provider-managed"]
        data = (await self._request("GET", "/models")).json()
        if self.name == "gemini":
            return sorted(m["name"] for m in data.get("models", []))
        return sorted(m["id"] for m in data.get("data", []))


def _gemini_text(data: Dict[str, Any], empty_message: str) -> str:
    """Extract the first candidate's text from a generateContent response."""
    candidates = data.get("candidates") or []
    if not candidates:
        raise TranscriptionError(empty_message)
    return candidates[0]["content"]["parts"][0]["text"]


def _b64(path: Path) -> str:
    return base64.b64encode(path.read_bytes()).decode("ascii")
