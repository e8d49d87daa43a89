"""Batch transcription of audio files grouped by language directory.

Expects a layout like::

    audio/
      english/clip1.wav
      french/sub/clip2.wav

Files are transcribed one at a time and the results written as a JSON array
of ``{filename, language, transcription, timeMs}`` objects.
"""

__all__ = [
    "BatchResult",
    "find_audio_files",
    "language_from_path",
    "BatchTranscriber",
]

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path

from config.settings import BatchSettings
from core.tokens import clean_transcription
from services.engine import WhisperEngine

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    """Transcription of one file in a batch."""

    filename: str
    language: str
    transcription: str
    time_ms: int
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "language": self.language,
            "transcription": self.transcription,
            "timeMs": self.time_ms,
        }


def find_audio_files(directory: Path, extensions: tuple[str, ...]) -> list[Path]:
    """Recursively collect audio files, sorted for a stable processing order."""
    suffixes = {ext.lower() for ext in extensions}
    return sorted(
        path for path in directory.rglob("*") if path.is_file() and path.suffix.lower() in suffixes
    )


def language_from_path(path: Path, languages: tuple[str, ...]) -> str:
    """Infer the language from a ``/<language>/`` path component."""
    parts = {part.lower() for part in path.parts[:-1]}
    for language in languages:
        if language.lower() in parts:
            return language.lower()
    return "unknown"


class BatchTranscriber:
    """Transcribe every audio file under per-language directories."""

    def __init__(self, engine: WhisperEngine, settings: BatchSettings | None = None):
        if settings is None:
            settings = BatchSettings()
        self.engine = engine
        self.settings = settings

        non_wav = sorted(ext for ext in settings.audio_extensions if ext.lower() != ".wav")
        if non_wav:
            logger.warning(f"Only WAV audio is decoded; files with {', '.join(non_wav)} will fail")

    def collect(self, audio_root: Path) -> list[tuple[Path, str]]:
        """Queue ``(file, language)`` pairs from each configured language directory."""
        queue: list[tuple[Path, str]] = []
        for language in self.settings.languages:
            lang_dir = audio_root / language
            if not lang_dir.is_dir():
                logger.warning(f"Language directory not found: {lang_dir}")
                continue
            logger.debug(f"Scanning directory: {lang_dir}")
            for path in find_audio_files(lang_dir, self.settings.audio_extensions):
                queue.append((path, language_from_path(path, self.settings.languages)))
        return queue

    def transcribe_one(self, path: Path, language: str) -> BatchResult:
        logger.info(f"Processing file: {path.name} (language: {language})")
        start_time = time.monotonic()
        result = self.engine.transcribe_file(path)
        elapsed_ms = int((time.monotonic() - start_time) * 1000)

        if not result.ok:
            logger.error(f"Transcription failed for {path.name}: {result.error.message}")
            return BatchResult(path.name, language, "", elapsed_ms, error=result.error.message)

        logger.info(f"Transcription completed for: {path.name} in {elapsed_ms}ms")
        return BatchResult(path.name, language, clean_transcription(result.text), elapsed_ms)

    def run(self, audio_root: str | Path) -> list[BatchResult]:
        """Transcribe all queued files sequentially."""
        audio_root = Path(audio_root)
        if not audio_root.is_dir():
            logger.error(f"Audio directory not found: {audio_root}")
            return []

        queue = self.collect(audio_root)
        if not queue:
            logger.warning("No audio files found to process")
            return []

        logger.info(f"Found {len(queue)} audio files to process")
        return [self.transcribe_one(path, language) for path, language in queue]

    def write_json(self, results: list[BatchResult], output_path: str | Path | None = None) -> Path:
        """Write results as a JSON array and return the path written."""
        output_path = Path(output_path or self.settings.output_path)
        output_path.write_text(
            json.dumps([r.to_dict() for r in results], indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        logger.info(f"Wrote {len(results)} results to {output_path}")
        return output_path
