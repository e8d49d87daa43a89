#!/usr/bin/env python3
"""Whisper TFLite Transcriber - Main Entry Point.

Usage:
    python main.py transcribe speech.wav other.wav
    python main.py batch ./audio --output transcriptions.json
    python main.py --model whisper-base.en.tflite --english transcribe speech.wav
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from config import get_settings
from core.errors import AssetFormatError, EngineError
from core.tokens import clean_transcription
from services.batch import BatchTranscriber
from services.engine import WhisperEngine

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Offline speech-to-text with a Whisper TFLite model")
    parser.add_argument(
        "--model",
        type=Path,
        default=None,
        help="Path to the .tflite model (default: MODEL_MODEL_PATH)",
    )
    parser.add_argument(
        "--vocab",
        type=Path,
        default=None,
        help="Path to the filters/vocab asset (default: chosen by language mode)",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--multilingual", dest="multilingual", action="store_true", default=None)
    mode.add_argument("--english", dest="multilingual", action="store_false")
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: LOG_LEVEL or INFO)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    transcribe = commands.add_parser("transcribe", help="Transcribe one or more WAV files")
    transcribe.add_argument("files", nargs="+", type=Path)
    transcribe.add_argument("--raw", action="store_true", help="Keep placeholder tokens in the output")

    batch = commands.add_parser("batch", help="Transcribe per-language directories and write JSON")
    batch.add_argument("audio_dir", type=Path)
    batch.add_argument("--output", type=Path, default=None, help="JSON output path")

    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = get_settings()

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, args.log_level or settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    model_path = args.model or settings.model.model_path
    multilingual = settings.model.multilingual if args.multilingual is None else args.multilingual

    with WhisperEngine(settings) as engine:
        try:
            engine.load_model(model_path, multilingual, vocab_path=args.vocab)
        except (AssetFormatError, EngineError) as e:
            logger.error(f"Failed to load model: {e.message}")
            return 1

        if args.command == "transcribe":
            failures = 0
            for path in args.files:
                result = engine.transcribe_file(path)
                if not result.ok:
                    failures += 1
                    logger.error(f"{path}: {result.error.message}")
                    continue
                text = result.text if args.raw else clean_transcription(result.text)
                print(f"{path}: {text}")
            return 1 if failures else 0

        batch = BatchTranscriber(engine, settings.batch)
        results = batch.run(args.audio_dir)
        output_path = batch.write_json(results, args.output)
        print(json.dumps({"results": len(results), "output": str(output_path)}))
        return 0


if __name__ == "__main__":
    sys.exit(main())
