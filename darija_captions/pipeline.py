"""End-to-end pipeline: video in, subtitle and transcript files out.

WHY: The CLI (and anything embedding the tool) needs one call that runs
every stage in order with consistent error handling, temp-file cleanup and
output naming.

HOW: run_pipeline() checks ffmpeg, validates the input, resolves the STT and chat
providers, opens their clients, extracts audio with ffmpeg, transcribes the
whole file or each chunk through the retry policy, re-assembles chunk
intervals onto the global timeline, applies the readability optimizer and
writes the outputs. Cleaning runs last: one pass over the flattened
transcript and one pass per subtitle block.

RULES:
- Outputs of a stage are written only after that stage completes
- Base outputs: subtitles.srt / subtitles.vtt (per --format), transcript_raw.txt
- Cleaning outputs: transcript_clean_<style>.txt, subtitles_<style>.srt,
  subtitles_<style>.vtt (vtt only when the format includes it)
- With a chat provider: transcript_diarized.txt (diarization on),
  caption_<style>.txt and caption_variations_<style>.json (unless no_caption)
- Without a chat provider, cleaning falls back to rule_based_clean() and no
  styled subtitles, diarization or captions are produced
- ffmpeg availability is checked before anything else
- The temp directory is removed unless keep_temp is set
- Chunks are transcribed sequentially in chunk order
"""

from __future__ import annotations

import asyncio
import json
import logging
import shutil
import tempfile
import time
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from darija_captions.api.client import ProviderClient
from darija_captions.api.retry import RetryPolicy
from darija_captions.config import (
    TEMP_ROOT,
    detect_chat_provider,
    detect_stt_provider,
    get_provider,
    is_audio_capable_model,
    load_api_key,
)
from darija_captions.core.assembler import reassemble_chunks
from darija_captions.core.ir import ChunkTranscript, Interval
from darija_captions.core.optimizer import ReadabilityConfig, optimize_intervals
from darija_captions.formatters import FORMATTERS
from darija_captions.formatters.base import FormatterOutput
from darija_captions.media import (
    extract_audio,
    probe_duration,
    require_ffmpeg,
    split_audio,
    validate_input,
)
from darija_captions.transform.cleaner import SCRIPTS, STYLES, TextCleaner, rule_based_clean

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("srt", "vtt", "both")
LANGUAGES = ("auto", "ar")

ClientFactory = Callable[..., ProviderClient]

_STT_SUGGESTION = "Use gladia, assemblyai, groq, openai, gemini, or openrouter for STT."


@dataclass
class PipelineOptions:
    """Everything one pipeline run needs.

    ``provider`` is a shared preference; ``stt_provider`` / ``chat_provider``
    override it per role. None means auto-detect from configured keys.
    """

    input_path: Path
    output_dir: Path = Path("output")
    lang: str = "auto"
    format: str = "both"
    provider: Optional[str] = None
    stt_provider: Optional[str] = None
    chat_provider: Optional[str] = None
    stt_model: Optional[str] = None
    chat_model: Optional[str] = None
    chunk_minutes: float = 0.0
    style: str = "darija"
    script: str = "arabic"
    darija_strict: Optional[bool] = None
    no_clean: bool = False
    no_caption: bool = False
    safe_mode: bool = False
    diarization: bool = False
    keep_temp: bool = False
    readability: ReadabilityConfig = field(default_factory=ReadabilityConfig)
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)

    def validate(self) -> None:
        """Raise ValueError on option values outside their allowed sets."""
        if self.lang not in LANGUAGES:
            raise ValueError("Invalid lang '{}'. Use auto or ar.".format(self.lang))
        if self.format not in OUTPUT_FORMATS:
            raise ValueError("Invalid format '{}'. Use srt, vtt, or both.".format(self.format))
        if self.style not in STYLES:
            raise ValueError("Invalid style '{}'. Use mixed, darija, or msa.".format(self.style))
        if self.script not in SCRIPTS:
            raise ValueError("Invalid script '{}'. Use arabic or latin.".format(self.script))
        if self.chunk_minutes < 0:
            raise ValueError("chunk_minutes cannot be negative")


@dataclass
class PipelineResult:
    """Summary of a completed run."""

    output_dir: Path
    files: List[Path]
    intervals: List[Interval]
    stt_provider: str
    chat_provider: Optional[str]
    elapsed_s: float
    temp_dir: Optional[Path] = None


def _usable_stt(name: str, stt_model: Optional[str]) -> bool:
    config = get_provider(name)
    if not config.stt_kind:
        return False
    if config.stt_kind == "openrouter":
        return is_audio_capable_model(name, stt_model or config.stt_model)
    return True


def resolve_providers(options: PipelineOptions) -> Tuple[str, Optional[str]]:
    """Pick the STT provider and the (optional) chat provider.

    Raises:
        ValueError: When no STT provider is usable, or an explicitly
                    requested provider is unknown, has the wrong role,
                    or has no key.
    """
    stt_name = options.stt_provider
    if not stt_name and options.provider and _usable_stt(options.provider, options.stt_model):
        stt_name = options.provider
    if stt_name:
        config = get_provider(stt_name)
        if not config.stt_kind:
            raise ValueError(
                "{} doesn't support transcription. {}".format(stt_name, _STT_SUGGESTION)
            )
        if not _usable_stt(stt_name, options.stt_model):
            raise ValueError('{} STT model "{}" is not audio-capable. {}'.format(
                stt_name, options.stt_model or config.stt_model, _STT_SUGGESTION
            ))
        load_api_key(stt_name)
    else:
        stt_name = detect_stt_provider(options.stt_model)
        if stt_name is None:
            raise ValueError(
                "No API key found. Add GLADIA_API_KEY, ASSEMBLYAI_API_KEY, "
                "GROQ_API_KEY, OPENAI_API_KEY, GEMINI_API_KEY, or "
                "OPENROUTER_API_KEY (audio-capable model) to .env"
            )

    chat_name = options.chat_provider
    if chat_name:
        if not get_provider(chat_name).chat_model:
            raise ValueError("{} has no chat model; pick another chat provider".format(chat_name))
        load_api_key(chat_name)
    else:
        chat_name = detect_chat_provider(options.provider or stt_name)

    return stt_name, chat_name


def _default_client_factory(name: str, stt_model: Optional[str] = None,
                            chat_model: Optional[str] = None) -> ProviderClient:
    return ProviderClient(name, stt_model=stt_model, chat_model=chat_model)


def _write_outputs(outputs: Sequence[FormatterOutput], output_dir: Path) -> List[Path]:
    paths = []
    for output in outputs:
        path = output_dir / output.filename
        path.write_text(output.content, encoding="utf-8")
        logger.info("Saved: %s (%s)", output.filename, output.media_type)
        paths.append(path)
    return paths


def _subtitle_outputs(intervals: Sequence[Interval], stem: str, fmt: str,
                      always_srt: bool = False) -> List[FormatterOutput]:
    keys = []
    if always_srt or fmt in ("srt", "both"):
        keys.append("srt")
    if fmt in ("vtt", "both"):
        keys.append("vtt")
    outputs: List[FormatterOutput] = []
    for key in keys:
        formatter = FORMATTERS[key](stem)
        logger.debug("Rendering %d intervals as %s", len(intervals), formatter.name)
        outputs.extend(formatter.format(intervals))
    return outputs


async def transcribe_audio(
    client: ProviderClient,
    audio_path: Path,
    options: PipelineOptions,
    temp_dir: Path,
    on_status: Callable[[str], None],
) -> List[Interval]:
    """Transcribe the extracted audio, chunked when chunk_minutes > 0."""
    retry = options.retry_policy

    if options.chunk_minutes <= 0:
        duration = await asyncio.to_thread(probe_duration, audio_path)
        return await retry.call(client.transcribe, audio_path, options.lang, duration or None)

    chunk_seconds = options.chunk_minutes * 60
    chunks = await asyncio.to_thread(split_audio, audio_path, chunk_seconds, temp_dir)
    transcripts: List[ChunkTranscript] = []
    for number, chunk in enumerate(chunks, 1):
        on_status("Transcribing chunk {}/{}...".format(number, len(chunks)))
        duration = await asyncio.to_thread(probe_duration, chunk.path)
        intervals = await retry.call(client.transcribe, chunk.path, options.lang, duration or None)
        transcripts.append(ChunkTranscript(intervals=intervals, offset_s=chunk.offset_s))
    return reassemble_chunks(transcripts)


async def run_pipeline(
    options: PipelineOptions,
    on_status: Optional[Callable[[str], None]] = None,
    client_factory: ClientFactory = _default_client_factory,
) -> PipelineResult:
    """Run every stage for one input video.

    Args:
        options: Run configuration.
        on_status: Receives short progress lines (defaults to logger.info).
        client_factory: Builds a ProviderClient from
                        (name, stt_model=..., chat_model=...).

    Returns:
        PipelineResult listing the files written.

    Raises:
        ValueError: Invalid options or missing provider keys.
        MediaError: Unusable input or ffmpeg failure.
        ProviderAPIError, TranscriptionError, TranscriptionTimeoutError,
        TranscriptionFormatError: From the transcription stage.
    """
    status = on_status or logger.info
    started = time.monotonic()
    options.validate()

    status("Checking FFmpeg...")
    await asyncio.to_thread(require_ffmpeg)

    input_path = Path(options.input_path).resolve()
    validate_input(input_path)
    output_dir = Path(options.output_dir).resolve()
    output_dir.mkdir(parents=True, exist_ok=True)

    stt_name, chat_name = resolve_providers(options)
    status("STT provider: {} | chat provider: {}".format(stt_name, chat_name or "none"))

    TEMP_ROOT.mkdir(parents=True, exist_ok=True)
    temp_dir = Path(tempfile.mkdtemp(prefix="run-", dir=str(TEMP_ROOT)))
    written: List[Path] = []

    try:
        async with AsyncExitStack() as stack:
            stt_client = await stack.enter_async_context(
                client_factory(stt_name, stt_model=options.stt_model, chat_model=options.chat_model)
            )
            chat_client: Optional[ProviderClient] = None
            if chat_name == stt_name:
                chat_client = stt_client
            elif chat_name:
                chat_client = await stack.enter_async_context(
                    client_factory(chat_name, chat_model=options.chat_model)
                )

            status("Testing API connection...")
            await options.retry_policy.call(stt_client.test_connection)
            if chat_client is not None and chat_client is not stt_client:
                await options.retry_policy.call(chat_client.test_connection)

            status("Extracting audio...")
            audio_path = await asyncio.to_thread(extract_audio, input_path, temp_dir / "audio.wav")

            status("Transcribing audio...")
            intervals = await transcribe_audio(stt_client, audio_path, options, temp_dir, status)

            status("Optimizing subtitles...")
            intervals = optimize_intervals(intervals, options.readability)
            written += _write_outputs(_subtitle_outputs(intervals, "subtitles", options.format), output_dir)

            raw = FORMATTERS["plain_text"]().format(intervals)
            written += _write_outputs(raw, output_dir)

            if not options.no_clean:
                written += await _clean_outputs(intervals, raw[0].content, chat_client, options,
                                                output_dir, status)
    finally:
        if options.keep_temp:
            logger.info("Keeping temp files at: %s", temp_dir)
        else:
            shutil.rmtree(temp_dir, ignore_errors=True)

    elapsed = time.monotonic() - started
    status("Pipeline completed in {:.1f}s".format(elapsed))
    return PipelineResult(
        output_dir=output_dir,
        files=written,
        intervals=intervals,
        stt_provider=stt_name,
        chat_provider=chat_name,
        elapsed_s=elapsed,
        temp_dir=temp_dir if options.keep_temp else None,
    )


async def _clean_outputs(
    intervals: List[Interval],
    raw_text: str,
    chat_client: Optional[ProviderClient],
    options: PipelineOptions,
    output_dir: Path,
    status: Callable[[str], None],
) -> List[Path]:
    status("Cleaning transcript ({})...".format(options.style))
    clean_name = "transcript_clean_{}.txt".format(options.style)

    if chat_client is None:
        logger.warning("No chat provider available. Cleaning will be basic.")
        cleaned = rule_based_clean(raw_text, options.style, options.script)
        return _write_outputs([FormatterOutput(clean_name, cleaned, "text/plain")], output_dir)

    cleaner = TextCleaner(
        chat_client,
        style=options.style,
        darija_strict=options.darija_strict,
        script=options.script,
        retry_policy=options.retry_policy,
        safe_mode=options.safe_mode,
    )
    cleaned = await cleaner.clean_document(raw_text)
    written = _write_outputs([FormatterOutput(clean_name, cleaned, "text/plain")], output_dir)

    status("Generating {} subtitles...".format(options.style))
    styled = await cleaner.clean_intervals(intervals)
    stem = "subtitles_{}".format(options.style)
    written += _write_outputs(
        _subtitle_outputs(styled, stem, options.format, always_srt=True), output_dir
    )

    if options.diarization:
        status("Applying speaker diarization (heuristic)...")
        diarized = await cleaner.diarize(cleaned)
        written += _write_outputs(
            [FormatterOutput("transcript_diarized.txt", diarized, "text/plain")], output_dir
        )

    if not options.no_caption:
        status("Generating captions...")
        captions = await cleaner.generate_captions(cleaned)
        written += _write_outputs([
            FormatterOutput("caption_{}.txt".format(options.style), captions.caption, "text/plain"),
            FormatterOutput(
                "caption_variations_{}.json".format(options.style),
                json.dumps(captions.variations, ensure_ascii=False, indent=2),
                "application/json",
            ),
        ], output_dir)
    return written
