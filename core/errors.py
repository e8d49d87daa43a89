"""Error taxonomy for asset decoding, audio normalization and the engine.

Every error carries a ``reason`` enum so callers can branch on the failure
kind without parsing messages.
"""

__all__ = [
    "TranscriberError",
    "AssetErrorReason",
    "AssetFormatError",
    "AudioErrorReason",
    "AudioFormatError",
    "EngineErrorReason",
    "EngineError",
]

from enum import Enum


class TranscriberError(Exception):
    """Base class for all transcriber errors."""

    reason: Enum

    def __init__(self, reason: Enum, message: str = ""):
        self.reason = reason
        self.message = message or reason.value
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.reason.name}: {self.message!r})"


class AssetErrorReason(str, Enum):
    """Why a filters/vocab asset could not be decoded."""

    BAD_MAGIC = "bad magic"
    TRUNCATED = "truncated"


class AssetFormatError(TranscriberError):
    """Raised when a filters/vocab asset buffer is malformed."""

    reason: AssetErrorReason


class AudioErrorReason(str, Enum):
    """Why a WAV file could not be normalized."""

    NOT_A_CONTAINER = "not a RIFF/WAVE file"
    NO_DATA_CHUNK = "data chunk not found"
    UNSUPPORTED_DEPTH = "unsupported bits per sample"
    UNSUPPORTED_FORMAT = "unsupported audio format"
    UNREADABLE = "file unreadable"


class AudioFormatError(TranscriberError):
    """Raised when a WAV container is malformed or unsupported."""

    reason: AudioErrorReason


class EngineErrorReason(str, Enum):
    """Why an engine operation failed."""

    NOT_INITIALIZED = "engine not initialized"
    MODEL_FILE_UNREADABLE = "model file unreadable"
    ENGINE_BUILD_FAILED = "engine build failed"
    FEATURE_EXTRACTION_FAILED = "feature extraction failed"
    INFERENCE_FAILED = "inference failed"


class EngineError(TranscriberError):
    """Raised (or reported) when the engine lifecycle or a transcription fails."""

    reason: EngineErrorReason
