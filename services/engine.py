"""Whisper TFLite engine lifecycle.

Owns the decoded filters/vocab asset, the model byte buffer and the
interpreter built from it. Pipeline per call:

    samples -> pad/trim to 30s -> log-mel (filters from asset)
            -> interpreter (LiteRT) -> token ids -> text

One ``WhisperEngine`` instance holds all state; a lock serializes
``load_model``, ``transcribe_*`` and ``free_model`` so concurrent callers
never re-enter asset decoding or interpreter construction.
"""

__all__ = [
    "EngineState",
    "ModelBuffer",
    "TranscriptionResult",
    "WhisperEngine",
]

import asyncio
import logging
import os
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path

import numpy as np
from numpy.typing import NDArray

from config.settings import Settings
from core.assets import FiltersVocab, decode_filters_vocab
from core.audio_processor import AudioProcessor
from core.errors import EngineError, EngineErrorReason, TranscriberError
from core.tokens import TokenDecoder
from core.wav_reader import read_wav_file
from services.features import MelSpectrogram, log_mel_spectrogram
from services.inference import InferenceEngine, LiteRTInterpreter

logger = logging.getLogger(__name__)

InterpreterFactory = Callable[[bytes], InferenceEngine]
FeatureExtractor = Callable[..., MelSpectrogram]


class EngineState(Enum):
    """Engine lifecycle states.

    State transitions:
        UNINITIALIZED -> READY (load_model)
        READY -> UNINITIALIZED (free_model)
    """

    UNINITIALIZED = auto()
    READY = auto()


class ModelBuffer:
    """Owned copy of the model file, released exactly once."""

    def __init__(self, data: bytes, path: Path | None = None):
        self._data: bytes | None = data
        self.path = path

    @classmethod
    def from_file(cls, path: str | Path) -> "ModelBuffer":
        """Read a model file completely.

        Raises:
            EngineError: MODEL_FILE_UNREADABLE if the file cannot be opened
                or the read comes up short.
        """
        path = Path(path)
        try:
            with open(path, "rb") as f:
                expected = os.fstat(f.fileno()).st_size
                data = f.read()
        except OSError as e:
            raise EngineError(
                EngineErrorReason.MODEL_FILE_UNREADABLE, f"Unable to open model file: {path} ({e})"
            ) from e

        if len(data) != expected:
            raise EngineError(
                EngineErrorReason.MODEL_FILE_UNREADABLE,
                f"Error reading model data from {path}: got {len(data)} of {expected} bytes",
            )
        return cls(data, path)

    @property
    def data(self) -> bytes:
        if self._data is None:
            raise RuntimeError("Model buffer already released")
        return self._data

    @property
    def released(self) -> bool:
        return self._data is None

    @property
    def size(self) -> int:
        return 0 if self._data is None else len(self._data)

    def release(self) -> bool:
        """Drop the buffer. Returns False if it was already released."""
        if self._data is None:
            return False
        self._data = None
        return True

    def __enter__(self) -> "ModelBuffer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


@dataclass
class TranscriptionResult:
    """Result from speech transcription."""

    text: str
    tokens: list[int] = field(default_factory=list)
    duration_seconds: float = 0.0
    elapsed_ms: float = 0.0
    error: TranscriberError | None = None

    @property
    def is_empty(self) -> bool:
        """Check if transcription is empty or just whitespace."""
        return not self.text or not self.text.strip()

    @property
    def ok(self) -> bool:
        return self.error is None


class WhisperEngine:
    """Whisper TFLite transcription engine.

    Usage:
        with WhisperEngine() as engine:
            engine.load_model("whisper-tiny.tflite", is_multilingual=True)
            result = engine.transcribe_file("speech.wav")
    """

    def __init__(
        self,
        settings: Settings | None = None,
        interpreter_factory: InterpreterFactory | None = None,
        feature_extractor: FeatureExtractor | None = None,
    ):
        if settings is None:
            settings = Settings()
        self.settings = settings

        self._interpreter_factory = interpreter_factory or LiteRTInterpreter.from_buffer
        self._feature_extractor = feature_extractor or log_mel_spectrogram
        self._processor = AudioProcessor(settings.audio)
        self._lock = threading.RLock()

        self._state = EngineState.UNINITIALIZED
        self._assets: FiltersVocab | None = None
        self._decoder: TokenDecoder | None = None
        self._model_buffer: ModelBuffer | None = None
        self._interpreter: InferenceEngine | None = None

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is EngineState.READY

    @property
    def assets(self) -> FiltersVocab | None:
        """Decoded filters/vocab (None until loaded)."""
        return self._assets

    def _num_threads(self) -> int:
        return self.settings.model.num_threads or os.cpu_count() or 1

    def load_model(
        self,
        model_path: str | Path,
        is_multilingual: bool,
        vocab_path: str | Path | None = None,
    ) -> bool:
        """Decode the filters/vocab asset and build the interpreter.

        Idempotent: returns False without doing anything if already loaded.

        Args:
            model_path: Path to the ``.tflite`` model.
            is_multilingual: Whether the model uses the multilingual vocabulary.
            vocab_path: Explicit filters/vocab asset; defaults to the configured
                English or multilingual asset.

        Returns:
            True if the model was loaded by this call.

        Raises:
            AssetFormatError: If the asset is malformed.
            EngineError: MODEL_FILE_UNREADABLE or ENGINE_BUILD_FAILED.
        """
        with self._lock:
            if self._state is EngineState.READY:
                logger.debug("Model already loaded, skipping")
                return False

            start_time = time.monotonic()
            logger.info("Initializing TFLite...")

            if vocab_path is None:
                vocab_path = self.settings.model.vocab_path(is_multilingual)
            vocab_path = Path(vocab_path)
            try:
                asset_bytes = vocab_path.read_bytes()
            except OSError as e:
                raise EngineError(
                    EngineErrorReason.MODEL_FILE_UNREADABLE,
                    f"Unable to read filters/vocab asset: {vocab_path} ({e})",
                ) from e

            assets = decode_filters_vocab(asset_bytes, is_multilingual)
            logger.info(
                f"Loaded {vocab_path.name}: n_mel={assets.filters.n_mel} "
                f"n_fft={assets.filters.n_fft} n_vocab={assets.vocab.n_explicit} "
                f"(total {len(assets.vocab)}, multilingual={is_multilingual})"
            )

            model_buffer = ModelBuffer.from_file(model_path)
            try:
                interpreter = self._interpreter_factory(model_buffer.data)
                interpreter.allocate_tensors()
            except Exception as e:
                model_buffer.release()
                raise EngineError(
                    EngineErrorReason.ENGINE_BUILD_FAILED,
                    f"Failed to build interpreter from {model_path}: {e}",
                ) from e

            self._assets = assets
            self._decoder = TokenDecoder(assets.vocab, assets.reserved)
            self._model_buffer = model_buffer
            self._interpreter = interpreter
            self._state = EngineState.READY

            elapsed_ms = (time.monotonic() - start_time) * 1000
            logger.info(
                f"Time taken for TFLite initialization: {elapsed_ms:.0f} ms "
                f"(model {model_buffer.size} bytes)"
            )
            return True

    def transcribe_buffer(self, samples: NDArray[np.float32]) -> TranscriptionResult:
        """Transcribe 16kHz mono float32 samples.

        Input is padded with zeros or trimmed to the fixed 30s window.

        Raises:
            EngineError: NOT_INITIALIZED if no model is loaded.
        """
        with self._lock:
            if self._state is not EngineState.READY:
                raise EngineError(
                    EngineErrorReason.NOT_INITIALIZED,
                    "Engine not initialized. Call load_model() first.",
                )

            audio = self.settings.audio
            start_time = time.monotonic()
            duration = self._processor.duration_seconds(samples)
            window = self._processor.fit_to_window(np.asarray(samples, dtype=np.float32))
            num_threads = self._num_threads()

            try:
                mel = self._feature_extractor(
                    window,
                    audio.target_sample_rate,
                    audio.n_fft,
                    audio.hop_length,
                    audio.n_mel,
                    num_threads,
                    self._assets.filters,
                )
            except Exception as e:
                logger.error(f"Failed to compute mel spectrogram: {e}")
                return self._failed(EngineErrorReason.FEATURE_EXTRACTION_FAILED, str(e), duration, start_time)

            spectrogram_ms = (time.monotonic() - start_time) * 1000
            logger.debug(f"Time taken for Spectrogram: {spectrogram_ms:.0f} ms")

            try:
                self._interpreter.set_input(0, mel.data)
                self._interpreter.set_num_threads(num_threads)
                self._interpreter.invoke()
                output = self._interpreter.output(0)
            except Exception as e:
                logger.error(f"Inference failed: {e}")
                return self._failed(EngineErrorReason.INFERENCE_FAILED, str(e), duration, start_time)

            # Output dims look like (1, ..., n_tokens)
            output_size = output.shape[-1] if output.ndim else 0
            tokens = [int(t) for t in output.reshape(-1)[:output_size]]
            logger.debug(f"Output size: {output_size}, first 20 tokens: {tokens[:20]}")

            decoded = self._decoder.decode(tokens)
            if decoded.stopped_early:
                logger.debug(f"Found EOT token at position {decoded.eot_position}")
            if decoded.unknown_ids:
                logger.warning(f"Tokens not found in vocabulary: {decoded.unknown_ids}")

            elapsed_ms = (time.monotonic() - start_time) * 1000
            logger.info(f"Transcribed {duration:.1f}s of audio in {elapsed_ms:.0f} ms: {decoded.text[:100]!r}")

            return TranscriptionResult(
                text=decoded.text,
                tokens=tokens,
                duration_seconds=duration,
                elapsed_ms=elapsed_ms,
            )

    def transcribe_file(self, path: str | Path) -> TranscriptionResult:
        """Transcribe a WAV file.

        Unreadable or unsupported files produce an empty result with
        ``error`` set rather than raising.

        Raises:
            EngineError: NOT_INITIALIZED if no model is loaded.
        """
        if not self.is_ready:
            raise EngineError(
                EngineErrorReason.NOT_INITIALIZED,
                "Engine not initialized. Call load_model() first.",
            )

        wav = read_wav_file(path, self.settings.audio)
        if wav.error is not None:
            return TranscriptionResult(text="", error=wav.error)
        if wav.is_empty:
            logger.warning(f"WAV file has no samples: {path}")
            return TranscriptionResult(text="")

        window = self.settings.audio.window_samples
        if len(wav.samples) < window:
            logger.info("Audio is shorter than 30 seconds, padding with zeros")
        elif len(wav.samples) > window:
            logger.info("Audio is longer than 30 seconds, using first 30 seconds")

        return self.transcribe_buffer(wav.samples)

    async def transcribe(self, samples: NDArray[np.float32]) -> TranscriptionResult:
        """Transcribe samples (async wrapper, runs inference in thread pool)."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.transcribe_buffer, samples)

    def free_model(self) -> bool:
        """Release the model buffer and interpreter.

        Returns:
            True if something was released, False if nothing was loaded.
        """
        with self._lock:
            if self._state is EngineState.UNINITIALIZED:
                return False

            if self._model_buffer is not None:
                logger.info(f"Freeing model buffer ({self._model_buffer.size} bytes)")
                self._model_buffer.release()
            self._model_buffer = None
            self._interpreter = None
            self._decoder = None
            self._assets = None
            self._state = EngineState.UNINITIALIZED
            return True

    def __enter__(self) -> "WhisperEngine":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.free_model()

    @staticmethod
    def _failed(
        reason: EngineErrorReason,
        message: str,
        duration: float,
        start_time: float,
    ) -> TranscriptionResult:
        return TranscriptionResult(
            text="",
            duration_seconds=duration,
            elapsed_ms=(time.monotonic() - start_time) * 1000,
            error=EngineError(reason, message),
        )
