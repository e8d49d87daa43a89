"""Core decoding and audio modules for the Whisper TFLite transcriber."""

from core.assets import FilterBank, FiltersVocab, ReservedTokens, Vocabulary, decode_filters_vocab
from core.audio_processor import AudioProcessor
from core.errors import AssetFormatError, AudioFormatError, EngineError, TranscriberError
from core.tokens import TokenDecoder, clean_transcription
from core.wav_reader import AudioHeader, WavReadResult, decode_wav, read_wav_file

__all__ = [
    "FilterBank",
    "FiltersVocab",
    "ReservedTokens",
    "Vocabulary",
    "decode_filters_vocab",
    "AudioProcessor",
    "AssetFormatError",
    "AudioFormatError",
    "EngineError",
    "TranscriberError",
    "TokenDecoder",
    "clean_transcription",
    "AudioHeader",
    "WavReadResult",
    "decode_wav",
    "read_wav_file",
]
