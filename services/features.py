"""Log-mel spectrogram front end (pure numpy, no torch or librosa dependency).

Replicates Whisper's preprocessing with numpy FFT, using the mel filter bank
decoded from the filters/vocab asset rather than a computed one so the
features match what the TFLite model was exported against.
"""

__all__ = [
    "MelSpectrogram",
    "log_mel_spectrogram",
]

import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from core.assets import FilterBank


@dataclass(frozen=True)
class MelSpectrogram:
    """Feature matrix of shape ``(n_mel, n_len)``."""

    n_mel: int
    n_len: int
    data: NDArray[np.float32]


def _hann_window(n_fft: int) -> NDArray[np.float32]:
    """Periodic Hann window matching torch.hann_window(n_fft)."""
    return (0.5 - 0.5 * np.cos(2.0 * np.pi * np.arange(n_fft) / n_fft)).astype(np.float32)


def _power_spectrum(frames: NDArray[np.float32], window: NDArray[np.float32], n_fft: int) -> NDArray:
    spectrum = np.fft.rfft(frames * window, n=n_fft)
    return np.abs(spectrum) ** 2


def log_mel_spectrogram(
    samples: NDArray[np.float32],
    sample_rate: int,
    n_fft: int,
    hop_length: int,
    n_mel: int,
    n_threads: int | None,
    filters: FilterBank,
) -> MelSpectrogram:
    """Convert audio to a Whisper-normalized log-mel spectrogram.

    Args:
        samples: Float32 mono samples (already padded/trimmed to the window).
        sample_rate: Sample rate of ``samples``; must be 16kHz.
        n_fft: STFT window size (400 for Whisper).
        hop_length: STFT hop (160 for Whisper).
        n_mel: Number of mel bins; must match the filter bank.
        n_threads: Worker threads for the FFT; None uses all cores.
        filters: Mel filter bank of shape ``(n_mel, n_fft // 2 + 1)``.

    Returns:
        MelSpectrogram with ``len(samples) // hop_length`` frames.

    Raises:
        ValueError: If the inputs are inconsistent with each other.
    """
    if sample_rate != 16000:
        raise ValueError(f"Mel front end requires 16kHz audio, got {sample_rate}Hz")
    if filters.n_mel != n_mel:
        raise ValueError(f"Filter bank has {filters.n_mel} mel bins, expected {n_mel}")
    n_freqs = n_fft // 2 + 1
    if filters.n_fft != n_freqs:
        raise ValueError(f"Filter bank has {filters.n_fft} frequency bins, expected {n_freqs}")
    if len(samples) < n_fft:
        raise ValueError(f"Need at least {n_fft} samples, got {len(samples)}")

    audio = np.asarray(samples, dtype=np.float32)

    # Reflect-pad signal (matching torch.stft center=True)
    pad_len = n_fft // 2
    audio_padded = np.pad(audio, (pad_len, pad_len), mode="reflect")

    n_frames = 1 + (len(audio_padded) - n_fft) // hop_length
    frames = np.lib.stride_tricks.as_strided(
        audio_padded,
        shape=(n_frames, n_fft),
        strides=(audio_padded.strides[0] * hop_length, audio_padded.strides[0]),
        writeable=False,
    )

    window = _hann_window(n_fft)
    n_threads = max(1, n_threads or os.cpu_count() or 1)

    if n_threads == 1:
        magnitudes = _power_spectrum(frames, window, n_fft)
    else:
        # numpy's FFT releases the GIL, so frame blocks run in parallel
        blocks = np.array_split(frames, n_threads)
        with ThreadPoolExecutor(max_workers=n_threads) as pool:
            parts = list(pool.map(lambda block: _power_spectrum(block, window, n_fft), blocks))
        magnitudes = np.concatenate(parts, axis=0)

    # Drop last time frame to match Whisper
    magnitudes = magnitudes[:-1].T  # (n_freqs, n_frames)

    mel_spec = filters.matrix @ magnitudes  # (n_mel, n_frames)

    # Log scale with Whisper normalization
    log_spec = np.log10(np.maximum(mel_spec, 1e-10))
    log_spec = np.maximum(log_spec, log_spec.max() - 8.0)
    log_spec = (log_spec + 4.0) / 4.0

    return MelSpectrogram(
        n_mel=n_mel,
        n_len=log_spec.shape[1],
        data=np.ascontiguousarray(log_spec, dtype=np.float32),
    )
