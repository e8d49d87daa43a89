"""Application settings using Pydantic Settings for type safety and env var support."""

__all__ = [
    "AudioSettings",
    "ModelSettings",
    "BatchSettings",
    "Settings",
    "get_settings",
]

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AudioSettings(BaseSettings):
    """Audio normalization and feature extraction configuration."""

    model_config = SettingsConfigDict(env_prefix="AUDIO_", env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Whisper expects 16kHz mono float32
    target_sample_rate: int = 16000

    # Fixed encoder window (30s at 16kHz = 480,000 samples)
    chunk_seconds: int = 30

    # STFT parameters (25ms window, 10ms hop at 16kHz)
    n_fft: int = 400
    hop_length: int = 160
    n_mel: int = 80

    @property
    def window_samples(self) -> int:
        """Number of samples in the fixed encoder window."""
        return self.target_sample_rate * self.chunk_seconds


class ModelSettings(BaseSettings):
    """Whisper TFLite model and filters/vocab asset configuration.

    The filters/vocab assets come in two variants:
    - filters_vocab_en.bin (English-only models, 51864 tokens)
    - filters_vocab_multilingual.bin (multilingual models, 51865 tokens)

    The variant must match the model, otherwise every reserved token id is
    off by one and decoding stops at the wrong place.
    """

    model_config = SettingsConfigDict(env_prefix="MODEL_", env_file=".env", env_file_encoding="utf-8", extra="ignore")

    model_path: Path = Path("whisper-tiny.tflite")
    asset_dir: Path = Path(".")
    filters_vocab_en: str = "filters_vocab_en.bin"
    filters_vocab_multilingual: str = "filters_vocab_multilingual.bin"

    multilingual: bool = True

    # None = use all available cores
    num_threads: int | None = Field(default=None, ge=1)

    def vocab_path(self, multilingual: bool) -> Path:
        """Return the filters/vocab asset path for the given mode."""
        name = self.filters_vocab_multilingual if multilingual else self.filters_vocab_en
        return self.asset_dir / name


class BatchSettings(BaseSettings):
    """Batch transcription configuration."""

    model_config = SettingsConfigDict(env_prefix="BATCH_", env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Only WAV is decoded; other extensions come back as NOT_A_CONTAINER errors
    audio_extensions: tuple[str, ...] = (".wav",)

    # Sub-directories of the audio root scanned for files, one per language
    languages: tuple[str, ...] = ("english", "french", "arabic", "farsi")

    output_path: Path = Path("transcriptions.json")


class Settings(BaseSettings):
    """Main application settings aggregating all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Sub-settings
    audio: AudioSettings = Field(default_factory=AudioSettings)
    model: ModelSettings = Field(default_factory=ModelSettings)
    batch: BatchSettings = Field(default_factory=BatchSettings)

    # Application settings
    debug: bool = False
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure a single Settings instance is shared across
    the application. Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
