"""Tests for the ffmpeg collaborators.

ffmpeg itself is never executed: subprocess.run is patched and the tests
check the argument lists and the parsing of its stderr.
"""

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from darija_captions import media
from darija_captions.media import (
    MediaError,
    check_ffmpeg,
    extract_audio,
    probe_duration,
    split_audio,
    validate_input,
)

BANNER = b"Input #0, wav, from 'a.wav':\n  Duration: 00:12:30.55, bitrate: 256 kb/s\n"


def _done(returncode=0, stderr=b""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=b"", stderr=stderr)


class TestProbeDuration:
    """probe_duration() parsing."""

    def test_parses_banner(self):
        with patch.object(media.subprocess, "run", return_value=_done(stderr=BANNER)):
            assert probe_duration(Path("a.wav")) == 750.0

    def test_hours(self):
        with patch.object(media.subprocess, "run", return_value=_done(stderr=b"Duration: 01:00:05.00")):
            assert probe_duration(Path("a.wav")) == 3605.0

    def test_missing_banner_is_unknown(self):
        with patch.object(media.subprocess, "run", return_value=_done(stderr=b"garbage")):
            assert probe_duration(Path("a.wav")) == 0.0


class TestExtractAudio:
    """extract_audio() command and failures."""

    def test_command(self, tmp_path, monkeypatch):
        monkeypatch.delenv("FFMPEG_PATH", raising=False)
        monkeypatch.delenv("FFMPEG_BIN", raising=False)
        out = tmp_path / "audio.wav"
        out.write_bytes(b"x")
        with patch.object(media.subprocess, "run", return_value=_done()) as run:
            assert extract_audio(tmp_path / "in.mp4", out) == out
        args = run.call_args[0][0]
        assert args[0] == "ffmpeg"
        assert args[args.index("-acodec") + 1] == "pcm_s16le"
        assert args[args.index("-ar") + 1] == "16000"
        assert args[args.index("-ac") + 1] == "1"
        assert "-vn" in args
        assert args[-1] == str(out)

    def test_failure(self, tmp_path):
        with patch.object(media.subprocess, "run", return_value=_done(1, b"Invalid data found")):
            with pytest.raises(MediaError, match="FFmpeg failed with code 1"):
                extract_audio(tmp_path / "in.mp4", tmp_path / "audio.wav")

    def test_ffmpeg_path_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("FFMPEG_PATH", "/opt/ffmpeg/bin/ffmpeg")
        out = tmp_path / "audio.wav"
        out.write_bytes(b"x")
        with patch.object(media.subprocess, "run", return_value=_done()) as run:
            extract_audio(tmp_path / "in.mp4", out)
        assert run.call_args[0][0][0] == "/opt/ffmpeg/bin/ffmpeg"


class TestSplitAudio:
    """split_audio() chunk layout."""

    def test_short_audio_passes_through(self, tmp_path):
        audio = tmp_path / "audio.wav"
        with patch.object(media.subprocess, "run", return_value=_done(stderr=b"Duration: 00:04:00.00")) as run:
            chunks = split_audio(audio, 300, tmp_path)
        assert [(c.path, c.offset_s) for c in chunks] == [(audio, 0.0)]
        assert run.call_count == 1

    def test_unknown_duration_passes_through(self, tmp_path):
        audio = tmp_path / "audio.wav"
        with patch.object(media.subprocess, "run", return_value=_done()):
            assert len(split_audio(audio, 300, tmp_path)) == 1

    def test_chunks_and_offsets(self, tmp_path):
        """12:30 at 5-minute chunks gives offsets 0, 300, 600."""
        with patch.object(media.subprocess, "run", return_value=_done(stderr=BANNER)) as run:
            chunks = split_audio(tmp_path / "audio.wav", 300, tmp_path)
        assert [c.offset_s for c in chunks] == [0.0, 300.0, 600.0]
        assert [c.path.name for c in chunks] == ["chunk_0.wav", "chunk_1.wav", "chunk_2.wav"]
        cut = run.call_args_list[2][0][0]
        assert cut[cut.index("-ss") + 1] == "300"
        assert cut[cut.index("-t") + 1] == "300"

    def test_chunk_failure(self, tmp_path):
        with patch.object(media.subprocess, "run", side_effect=[_done(stderr=BANNER), _done(1)]):
            with pytest.raises(MediaError, match="Chunk split failed at 0s"):
                split_audio(tmp_path / "audio.wav", 300, tmp_path)

    def test_rejects_non_positive_length(self, tmp_path):
        with pytest.raises(ValueError):
            split_audio(tmp_path / "audio.wav", 0, tmp_path)


class TestValidateInput:
    """validate_input() checks."""

    def test_valid(self, tmp_path):
        video = tmp_path / "clip.MP4"
        video.write_bytes(b"\0" * 1024)
        assert validate_input(video) == pytest.approx(1024 / (1024 * 1024))

    def test_missing(self, tmp_path):
        with pytest.raises(MediaError, match="File not found"):
            validate_input(tmp_path / "nope.mp4")

    def test_unsupported(self, tmp_path):
        doc = tmp_path / "notes.txt"
        doc.write_text("x")
        with pytest.raises(MediaError, match="Unsupported format: .txt"):
            validate_input(doc)

    def test_too_large(self, tmp_path, monkeypatch):
        video = tmp_path / "clip.mov"
        video.write_bytes(b"\0" * 2048)
        monkeypatch.setattr(media, "MAX_FILE_SIZE_MB", 0.001)
        with pytest.raises(MediaError, match="File too large"):
            validate_input(video)


class TestCheckFfmpeg:
    """check_ffmpeg() availability."""

    def test_available(self):
        with patch.object(media.subprocess, "run", return_value=_done()):
            assert check_ffmpeg() is True

    def test_missing_binary(self):
        with patch.object(media.subprocess, "run", side_effect=FileNotFoundError("ffmpeg")):
            assert check_ffmpeg() is False

    def test_nonzero_exit(self):
        with patch.object(media.subprocess, "run", return_value=_done(1)):
            assert check_ffmpeg() is False


class TestRequireFfmpeg:
    """require_ffmpeg() and the install hint."""

    def test_available(self):
        with patch.object(media.subprocess, "run", return_value=_done()):
            media.require_ffmpeg()

    def test_missing_raises_with_hint(self):
        with patch.object(media.subprocess, "run", side_effect=FileNotFoundError("ffmpeg")):
            with pytest.raises(MediaError, match="FFmpeg is not installed.*Install FFmpeg"):
                media.require_ffmpeg()

    @pytest.mark.parametrize("platform, command", [
        ("darwin", "brew install ffmpeg"),
        ("win32", "winget install ffmpeg"),
        ("linux", "apt install ffmpeg"),
        ("freebsd13", "apt install ffmpeg"),
    ])
    def test_install_hint(self, platform, command):
        assert command in media.ffmpeg_install_hint(platform)
