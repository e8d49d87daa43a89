"""Feature extraction, inference and engine lifecycle services."""

from services.batch import BatchTranscriber
from services.engine import EngineState, TranscriptionResult, WhisperEngine
from services.features import log_mel_spectrogram
from services.inference import InferenceEngine, LiteRTInterpreter

__all__ = [
    "BatchTranscriber",
    "EngineState",
    "TranscriptionResult",
    "WhisperEngine",
    "log_mel_spectrogram",
    "InferenceEngine",
    "LiteRTInterpreter",
]
