"""Audio processing utilities for the transcription pipeline.

Handles:
- PCM byte decoding (int16, float32)
- Channel mixdown to mono
- Linear-interpolation sample rate conversion
- Padding/trimming to the fixed encoder window
"""

__all__ = ["AudioProcessor"]

import numpy as np
from numpy.typing import NDArray

from config.settings import AudioSettings


class AudioProcessor:
    """Sample-level audio processing for the Whisper front end."""

    def __init__(self, settings: AudioSettings | None = None):
        if settings is None:
            settings = AudioSettings()
        self.settings = settings

    @staticmethod
    def bytes_to_samples(audio_bytes: bytes, dtype: str) -> NDArray:
        """Convert raw little-endian audio bytes to a numpy array.

        Trailing bytes that do not form a whole sample are ignored.

        Args:
            audio_bytes: Raw audio bytes.
            dtype: Little-endian numpy dtype string, e.g. ``"<i2"`` or ``"<f4"``.

        Returns:
            Numpy array of samples in native byte order.
        """
        itemsize = np.dtype(dtype).itemsize
        usable = len(audio_bytes) - len(audio_bytes) % itemsize
        samples = np.frombuffer(audio_bytes[:usable], dtype=dtype)
        return samples.astype(np.dtype(dtype).newbyteorder("="))

    @staticmethod
    def normalize_samples(samples: NDArray) -> NDArray[np.float32]:
        """Normalize int16 samples to float32 range [-1.0, 1.0).

        Args:
            samples: Int16 audio samples (or averaged int16 values).

        Returns:
            Float32 normalized samples.
        """
        return (samples.astype(np.float32) / 32768.0).astype(np.float32)

    @staticmethod
    def mix_to_mono(samples: NDArray, num_channels: int) -> NDArray[np.float32]:
        """Average interleaved channels into a single mono channel.

        A trailing partial frame is dropped.

        Args:
            samples: Interleaved samples.
            num_channels: Number of interleaved channels.

        Returns:
            Float32 mono samples (not rescaled).
        """
        if num_channels < 1:
            raise ValueError(f"Invalid channel count: {num_channels}")
        if num_channels == 1:
            return samples.astype(np.float32)

        n_frames = len(samples) // num_channels
        frames = samples[: n_frames * num_channels].reshape(n_frames, num_channels)
        return frames.astype(np.float32).sum(axis=1, dtype=np.float32) / np.float32(num_channels)

    @staticmethod
    def resample(
        samples: NDArray[np.float32],
        from_rate: int,
        to_rate: int,
    ) -> NDArray[np.float32]:
        """Resample audio using linear interpolation.

        For output index ``i`` the source position is ``i * from_rate / to_rate``;
        the two bracketing samples are blended by the fractional part. The last
        input sample is held when there is no right neighbour. Output length is
        ``floor(len(samples) / ratio)``.

        Args:
            samples: Input audio samples.
            from_rate: Original sample rate.
            to_rate: Target sample rate.

        Returns:
            Resampled float32 samples.
        """
        if from_rate == to_rate:
            return samples.astype(np.float32)
        if from_rate <= 0 or to_rate <= 0:
            raise ValueError(f"Invalid sample rates: {from_rate} -> {to_rate}")

        ratio = from_rate / to_rate
        n_in = len(samples)
        # floor(n_in / ratio) without float rounding
        n_out = n_in * to_rate // from_rate
        if n_out == 0:
            return np.array([], dtype=np.float32)

        src = np.arange(n_out, dtype=np.float64) * ratio
        left = src.astype(np.int64)
        frac = (src - left).astype(np.float32)
        right = np.minimum(left + 1, n_in - 1)

        source = samples.astype(np.float32)
        blended = source[left] * (1.0 - frac) + source[right] * frac
        # No right neighbour: hold the last sample
        blended = np.where(left + 1 < n_in, blended, source[left])
        return blended.astype(np.float32)

    def resample_to_target(self, samples: NDArray[np.float32], from_rate: int) -> NDArray[np.float32]:
        """Resample to the configured target rate (16kHz by default)."""
        return self.resample(samples, from_rate, self.settings.target_sample_rate)

    @staticmethod
    def pad_or_trim(samples: NDArray[np.float32], length: int) -> NDArray[np.float32]:
        """Zero-pad on the right or keep the first ``length`` samples.

        Always returns a new array so callers may not alias the input.
        """
        out = np.zeros(length, dtype=np.float32)
        n = min(length, len(samples))
        out[:n] = samples[:n]
        return out

    def fit_to_window(self, samples: NDArray[np.float32]) -> NDArray[np.float32]:
        """Pad or trim to exactly the fixed encoder window."""
        return self.pad_or_trim(samples, self.settings.window_samples)

    def duration_seconds(self, samples: NDArray) -> float:
        """Duration of samples at the target rate."""
        return len(samples) / self.settings.target_sample_rate
