"""Command-line interface for Darija Captions.

WHY: Users turn a video into Darija subtitles from the terminal. The CLI
maps flags onto PipelineOptions, sets up logging (console plus a run.log
next to the outputs) and turns failures into exit codes.

HOW: argparse builds the options; asyncio.run() drives run_pipeline().
Status lines go to stderr via _status(); --list-models short-circuits the
pipeline and prints one model name per line to stdout.

RULES:
- Positional argument: input video path (not needed with --list-models)
- "auto" for --provider/--stt-provider/--chat-provider means auto-detect
- --darija-strict defaults to on for --style darija, off otherwise
- --preset picks a readability preset; --max-chars/--max-lines override it
- --no-caption, --safe-mode and --diarization only matter with a chat provider
- Exit codes: 0 success, 1 failure, 130 interrupted
- Status output goes to stderr (not stdout)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from darija_captions import __version__
from darija_captions.api.client import ProviderClient
from darija_captions.config import (
    MAX_CHARS_PER_LINE,
    MAX_LINES_PER_BLOCK,
    PROVIDERS,
    detect_stt_provider,
)
from darija_captions.core.optimizer import PRESETS, ReadabilityConfig
from darija_captions.pipeline import LANGUAGES, OUTPUT_FORMATS, PipelineOptions, run_pipeline
from darija_captions.transform.cleaner import SCRIPTS, STYLES

logger = logging.getLogger("darija_captions")

LOG_FILENAME = "run.log"
_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _status(msg: str) -> None:
    """Print a status message to stderr.

    Status output must not pollute stdout so the CLI can be piped.
    """
    print(msg, file=sys.stderr, flush=True)


def _auto(value: Optional[str]) -> Optional[str]:
    return None if value in (None, "auto") else value


def configure_logging(output_dir: Path, verbose: bool = False) -> List[logging.Handler]:
    """Attach a stderr handler and a run.log file handler to the package logger.

    Returns:
        The handlers added, so the caller can detach them when the run ends.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    logger.setLevel(logging.DEBUG)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    logger.addHandler(console)

    file_handler = logging.FileHandler(output_dir / LOG_FILENAME, mode="w", encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    logger.addHandler(file_handler)
    return [console, file_handler]


def _readability(args: argparse.Namespace) -> ReadabilityConfig:
    config = PRESETS[args.preset] if args.preset else ReadabilityConfig()
    if args.max_chars is not None:
        config = replace(config, max_chars_per_line=args.max_chars)
    if args.max_lines is not None:
        config = replace(config, max_lines_per_block=args.max_lines)
    return config


def build_options(args: argparse.Namespace) -> PipelineOptions:
    """Translate parsed arguments into PipelineOptions."""
    return PipelineOptions(
        input_path=Path(args.input_file),
        output_dir=Path(args.out),
        lang=args.lang,
        format=args.format,
        provider=_auto(args.provider),
        stt_provider=_auto(args.stt_provider),
        chat_provider=_auto(args.chat_provider),
        stt_model=args.stt_model,
        chat_model=args.chat_model,
        chunk_minutes=args.chunk_minutes,
        style=args.style,
        script=args.script,
        darija_strict=args.darija_strict,
        no_clean=args.no_clean,
        no_caption=args.no_caption,
        safe_mode=args.safe_mode,
        diarization=args.diarization,
        keep_temp=args.keep_temp,
        readability=_readability(args),
    )


async def _list_models(args: argparse.Namespace) -> List[str]:
    name = (
        _auto(args.provider)
        or _auto(args.stt_provider)
        or _auto(args.chat_provider)
        or detect_stt_provider()
    )
    if name is None:
        raise ValueError("No provider configured. Pass --provider or add an API key to .env")
    async with ProviderClient(name, stt_model=args.stt_model, chat_model=args.chat_model) as client:
        return await client.list_models()


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI."""
    provider_choices = ["auto"] + sorted(PROVIDERS)

    parser = argparse.ArgumentParser(
        prog="darija-captions",
        description="Turn a video into Moroccan Darija subtitles (SRT/WebVTT) "
                    "and cleaned transcripts.",
    )
    parser.add_argument("--version", action="version", version="%(prog)s " + __version__)
    parser.add_argument("input_file", nargs="?", help="Path to the input video file.")
    parser.add_argument("-o", "--out", default="output",
                        help="Output directory (default: %(default)s).")
    parser.add_argument("-l", "--lang", choices=LANGUAGES, default="auto",
                        help="Spoken language hint (default: %(default)s).")
    parser.add_argument("-f", "--format", choices=OUTPUT_FORMATS, default="both",
                        help="Subtitle format (default: %(default)s).")
    parser.add_argument("-p", "--provider", choices=provider_choices, default="auto",
                        help="Preferred provider for both roles (default: %(default)s).")
    parser.add_argument("--stt-provider", choices=provider_choices, default="auto",
                        help="Transcription provider override.")
    parser.add_argument("--chat-provider", choices=provider_choices, default="auto",
                        help="Chat provider override used for cleaning.")
    parser.add_argument("--stt-model", default=None, help="Transcription model override.")
    parser.add_argument("--chat-model", "--model", dest="chat_model", default=None,
                        help="Chat model override.")
    parser.add_argument("--chunk-minutes", type=float, default=0.0,
                        help="Split audio into chunks of N minutes (0 = off).")
    parser.add_argument("--style", choices=STYLES, default="darija",
                        help="Cleaning style (default: %(default)s).")
    parser.add_argument("--script", choices=SCRIPTS, default="arabic",
                        help="Output script (default: %(default)s).")
    parser.add_argument("--darija-strict", action=argparse.BooleanOptionalAction, default=None,
                        help="Strict Darija enforcement (default: on when --style darija).")
    parser.add_argument("--no-clean", action="store_true", help="Skip transcript cleaning.")
    parser.add_argument("--no-caption", action="store_true", help="Skip social caption generation.")
    parser.add_argument("--safe-mode", action="store_true",
                        help="Soften strong words in the cleaned transcript.")
    parser.add_argument("--diarization", action="store_true",
                        help="Write transcript_diarized.txt with heuristic speaker labels.")
    parser.add_argument("--keep-temp", action="store_true", help="Keep temporary files.")
    parser.add_argument("--preset", choices=sorted(PRESETS), default=None,
                        help="Readability preset.")
    parser.add_argument("--max-chars", type=int, default=None,
                        help="Max characters per subtitle line (default: {}).".format(MAX_CHARS_PER_LINE))
    parser.add_argument("--max-lines", type=int, default=None,
                        help="Max lines per subtitle block (default: {}).".format(MAX_LINES_PER_BLOCK))
    parser.add_argument("--list-models", action="store_true",
                        help="List models for the selected provider and exit.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug logging.")
    return parser


def run(argv: Optional[List[str]] = None) -> int:
    """Parse arguments, run the requested action and return an exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.list_models:
        try:
            for model in asyncio.run(_list_models(args)):
                print(model)
        except Exception as e:
            print("Error: {}".format(e), file=sys.stderr)
            return 1
        return 0

    if not args.input_file:
        parser.error("input_file is required unless --list-models is given")

    try:
        options = build_options(args)
    except ValueError as e:
        print("Error: {}".format(e), file=sys.stderr)
        return 1

    handlers = configure_logging(Path(args.out), args.verbose)
    try:
        result = asyncio.run(run_pipeline(options, on_status=_status))
    except KeyboardInterrupt:
        _status("\nCancelled by user.")
        return 130
    except Exception as e:
        logger.error("Pipeline failed: %s", e)
        print("Error: {}".format(e), file=sys.stderr)
        return 1
    finally:
        for handler in handlers:
            logger.removeHandler(handler)
            handler.close()

    _status("")
    _status("Done! Saved {} file(s) to {}".format(len(result.files), result.output_dir))
    for path in result.files:
        _status("  {}".format(path.name))
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for ``darija-captions`` and ``python -m darija_captions``."""
    sys.exit(run(argv))


if __name__ == "__main__":
    main()
