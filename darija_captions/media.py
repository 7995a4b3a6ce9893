"""ffmpeg collaborators: availability check, audio extraction, probing, chunking.

WHY: Every provider wants a small mono WAV rather than a multi-gigabyte video,
and long recordings are easier on providers when sent in fixed-length pieces.
ffmpeg does all of it; this module is the only place that shells out to it.

HOW: Each operation builds an argument list and runs it with subprocess.run,
capturing stderr. Duration comes from the "Duration:" banner ffmpeg prints
on stderr when reading the input.

RULES:
- Extracted audio: pcm_s16le, 16 kHz, mono (AUDIO_SAMPLE_RATE/AUDIO_CHANNELS)
- probe_duration() returns 0.0 when the banner is missing ("unknown")
- split_audio() returns the input unchanged when it fits in one chunk
  or its duration is unknown
- Chunk files are named chunk_<n>.wav at offsets 0, L, 2L, ...
- Non-zero ffmpeg exits raise MediaError with the stderr tail
- require_ffmpeg() raises MediaError with a per-platform install hint
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
import sys
from pathlib import Path
from typing import List

from darija_captions.config import (
    AUDIO_CHANNELS,
    AUDIO_SAMPLE_RATE,
    MAX_FILE_SIZE_MB,
    SUPPORTED_EXTENSIONS,
)
from darija_captions.core.ir import AudioChunk

logger = logging.getLogger(__name__)

_DURATION_RE = re.compile(r"Duration: (\d{2}):(\d{2}):(\d{2})\.(\d{2})")
_STDERR_TAIL = 800


class MediaError(RuntimeError):
    """Raised when an input file is unusable or ffmpeg fails."""


def _ffmpeg_bin() -> str:
    return os.environ.get("FFMPEG_PATH") or os.environ.get("FFMPEG_BIN") or "ffmpeg"


def _run(args: List[str]) -> subprocess.CompletedProcess:
    command = [_ffmpeg_bin()] + args
    logger.debug("Running: %s", " ".join(command))
    try:
        return subprocess.run(
            command,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            check=False,
        )
    except OSError as e:
        raise MediaError("ffmpeg could not be started: {}".format(e)) from e


_INSTALL_HINTS = {
    "win32": "Install FFmpeg with: winget install ffmpeg (or: choco install ffmpeg)",
    "darwin": "Install FFmpeg with: brew install ffmpeg",
    "linux": "Install FFmpeg with: sudo apt update && sudo apt install ffmpeg",
}


def check_ffmpeg() -> bool:
    """True when ``ffmpeg -version`` runs and exits cleanly."""
    try:
        return _run(["-version"]).returncode == 0
    except MediaError:
        return False


def ffmpeg_install_hint(platform: str = sys.platform) -> str:
    """One-line install instruction for the given sys.platform value."""
    return _INSTALL_HINTS.get(platform, _INSTALL_HINTS["linux"])


def require_ffmpeg() -> None:
    """Raise MediaError with an install hint when ffmpeg is unavailable."""
    if not check_ffmpeg():
        raise MediaError(
            "FFmpeg is not installed. {}. Or set FFMPEG_PATH.".format(ffmpeg_install_hint())
        )
    logger.info("FFmpeg is available")


def validate_input(path: Path) -> float:
    """Check that a video file exists, is supported and is small enough.

    Returns:
        File size in megabytes.

    Raises:
        MediaError: With a user-facing reason.
    """
    path = Path(path)
    if not path.is_file():
        raise MediaError("File not found: {}".format(path))

    ext = path.suffix.lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise MediaError("Unsupported format: {}. Supported: {}".format(
            ext or "(none)", ", ".join(sorted(SUPPORTED_EXTENSIONS))
        ))

    size_mb = path.stat().st_size / (1024 * 1024)
    if size_mb > MAX_FILE_SIZE_MB:
        raise MediaError("File too large: {:.2f}MB. Max: {}MB".format(size_mb, MAX_FILE_SIZE_MB))

    if not os.access(path, os.R_OK):
        raise MediaError("Cannot read file: {}".format(path))

    logger.info("Input validated: %s (%.2fMB)", path.name, size_mb)
    return size_mb


def extract_audio(input_path: Path, output_path: Path) -> Path:
    """Extract the audio track as mono 16 kHz 16-bit PCM WAV."""
    result = _run([
        "-i", str(input_path),
        "-vn",
        "-acodec", "pcm_s16le",
        "-ar", str(AUDIO_SAMPLE_RATE),
        "-ac", str(AUDIO_CHANNELS),
        "-y",
        str(output_path),
    ])
    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace")
        raise MediaError("FFmpeg failed with code {}: {}".format(
            result.returncode, stderr[-_STDERR_TAIL:]
        ))
    size_mb = Path(output_path).stat().st_size / (1024 * 1024)
    logger.info("Audio extracted to %s (%.2fMB)", output_path, size_mb)
    return Path(output_path)


def probe_duration(audio_path: Path) -> float:
    """Return the media duration in whole seconds, or 0.0 when unknown."""
    result = _run(["-i", str(audio_path), "-f", "null", "-"])
    stderr = result.stderr.decode("utf-8", errors="replace")
    match = _DURATION_RE.search(stderr)
    if not match:
        logger.debug("No duration banner for %s", audio_path)
        return 0.0
    hours, minutes, seconds = (int(g) for g in match.groups()[:3])
    return float(hours * 3600 + minutes * 60 + seconds)


def split_audio(audio_path: Path, chunk_seconds: float, output_dir: Path) -> List[AudioChunk]:
    """Cut audio into consecutive chunks of ``chunk_seconds``.

    Raises:
        ValueError: If chunk_seconds is not positive.
        MediaError: If a chunk cannot be written.
    """
    if chunk_seconds <= 0:
        raise ValueError("chunk_seconds must be positive, got {}".format(chunk_seconds))

    audio_path = Path(audio_path)
    duration = probe_duration(audio_path)
    if duration <= chunk_seconds:
        return [AudioChunk(path=audio_path, offset_s=0.0)]

    count = int(-(-duration // chunk_seconds))
    logger.info("Splitting audio into %d chunks...", count)

    chunks: List[AudioChunk] = []
    start = 0.0
    while start < duration:
        chunk_path = Path(output_dir) / "chunk_{}.wav".format(len(chunks))
        result = _run([
            "-i", str(audio_path),
            "-ss", _seconds_arg(start),
            "-t", _seconds_arg(chunk_seconds),
            "-acodec", "pcm_s16le",
            "-ar", str(AUDIO_SAMPLE_RATE),
            "-ac", str(AUDIO_CHANNELS),
            "-y",
            str(chunk_path),
        ])
        if result.returncode != 0:
            raise MediaError("Chunk split failed at {}s".format(_seconds_arg(start)))
        chunks.append(AudioChunk(path=chunk_path, offset_s=start))
        logger.debug(
            "Created chunk %d: %ss - %ss",
            len(chunks), _seconds_arg(start), _seconds_arg(min(start + chunk_seconds, duration)),
        )
        start += chunk_seconds
    return chunks


def _seconds_arg(value: float) -> str:
    """Render seconds without a trailing ``.0`` for whole values."""
    return str(int(value)) if float(value).is_integer() else str(value)
