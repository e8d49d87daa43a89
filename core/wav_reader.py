"""RIFF/WAVE reader producing mono 16kHz float32 samples.

Supports 16-bit integer PCM (format 1) and 32-bit IEEE float (format 3) with
any channel count and sample rate. Other chunk types (LIST, fact, ...) between
``fmt `` and ``data`` are skipped.
"""

__all__ = [
    "WAV_HEADER_SIZE",
    "AudioHeader",
    "WavReadResult",
    "parse_wav_header",
    "decode_wav",
    "read_wav_file",
]

import logging
import struct
from dataclasses import dataclass
from pathlib import Path

import numpy as np
from numpy.typing import NDArray

from config.settings import AudioSettings
from core.audio_processor import AudioProcessor
from core.errors import AudioErrorReason, AudioFormatError

logger = logging.getLogger(__name__)

# riff_header, wav_size, wave_header, fmt_header, fmt_chunk_size,
# audio_format, num_channels, sample_rate, byte_rate, block_align, bits_per_sample
_HEADER = struct.Struct("<4sI4s4sIHHIIHH")
_CHUNK = struct.Struct("<4sI")

WAV_HEADER_SIZE = _HEADER.size  # 36 bytes of RIFF + fmt, data chunk scanned separately

FORMAT_PCM = 1
FORMAT_IEEE_FLOAT = 3

_FORMAT_NAMES = {FORMAT_PCM: "PCM", FORMAT_IEEE_FLOAT: "IEEE Float"}


@dataclass(frozen=True)
class AudioHeader:
    """Format metadata from the ``fmt `` chunk."""

    audio_format: int
    num_channels: int
    sample_rate: int
    bits_per_sample: int
    byte_rate: int = 0
    block_align: int = 0
    fmt_chunk_size: int = 16

    @property
    def format_name(self) -> str:
        return _FORMAT_NAMES.get(self.audio_format, "Unknown")


@dataclass
class WavReadResult:
    """Outcome of reading a WAV file; ``error`` is set on failure."""

    samples: NDArray[np.float32]
    header: AudioHeader | None = None
    error: AudioFormatError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def is_empty(self) -> bool:
        return len(self.samples) == 0


def parse_wav_header(data: bytes) -> AudioHeader:
    """Parse and validate the fixed RIFF/WAVE + fmt header.

    Raises:
        AudioFormatError: NOT_A_CONTAINER if the buffer is too short or the
            RIFF, WAVE or fmt tags do not match.
    """
    if len(data) < _HEADER.size:
        raise AudioFormatError(
            AudioErrorReason.NOT_A_CONTAINER,
            f"Not a valid WAV file: {len(data)} bytes is shorter than the header",
        )

    (
        riff,
        _wav_size,
        wave,
        fmt,
        fmt_chunk_size,
        audio_format,
        num_channels,
        sample_rate,
        byte_rate,
        block_align,
        bits_per_sample,
    ) = _HEADER.unpack_from(data, 0)

    if riff != b"RIFF" or wave != b"WAVE" or fmt != b"fmt ":
        raise AudioFormatError(
            AudioErrorReason.NOT_A_CONTAINER,
            f"Not a valid WAV file (tags {riff!r} {wave!r} {fmt!r})",
        )

    return AudioHeader(
        audio_format=audio_format,
        num_channels=num_channels,
        sample_rate=sample_rate,
        bits_per_sample=bits_per_sample,
        byte_rate=byte_rate,
        block_align=block_align,
        fmt_chunk_size=fmt_chunk_size,
    )


def _find_data_chunk(data: bytes, offset: int) -> bytes:
    """Scan chunks from ``offset`` until the ``data`` chunk and return its payload."""
    while offset + _CHUNK.size <= len(data):
        chunk_id, chunk_size = _CHUNK.unpack_from(data, offset)
        offset += _CHUNK.size
        if chunk_id == b"data":
            # Declared size may overrun a truncated file; keep what is present
            return data[offset : offset + chunk_size]
        offset += chunk_size

    raise AudioFormatError(AudioErrorReason.NO_DATA_CHUNK, "Data chunk not found in WAV file")


def decode_wav(
    data: bytes,
    processor: AudioProcessor | None = None,
) -> tuple[NDArray[np.float32], AudioHeader]:
    """Decode WAV bytes to mono float32 samples at the target rate.

    Args:
        data: Complete WAV file contents.
        processor: AudioProcessor providing the target rate.

    Returns:
        Tuple of (samples, header).

    Raises:
        AudioFormatError: If the container is invalid or unsupported.
    """
    if processor is None:
        processor = AudioProcessor()

    header = parse_wav_header(data)

    offset = _HEADER.size
    if header.fmt_chunk_size > 16:
        offset += header.fmt_chunk_size - 16

    payload = _find_data_chunk(data, offset)

    if header.num_channels == 0:
        raise AudioFormatError(AudioErrorReason.UNSUPPORTED_FORMAT, "WAV header declares zero channels")
    if header.sample_rate == 0:
        raise AudioFormatError(AudioErrorReason.UNSUPPORTED_FORMAT, "WAV header declares a zero sample rate")

    if header.audio_format == FORMAT_PCM:
        if header.bits_per_sample != 16:
            raise AudioFormatError(
                AudioErrorReason.UNSUPPORTED_DEPTH,
                f"Unsupported bits per sample: {header.bits_per_sample}",
            )
        pcm16 = processor.bytes_to_samples(payload, "<i2")
        mono = processor.mix_to_mono(pcm16, header.num_channels)
        samples = processor.normalize_samples(mono)
    elif header.audio_format == FORMAT_IEEE_FLOAT:
        raw = processor.bytes_to_samples(payload, "<f4")
        samples = processor.mix_to_mono(raw, header.num_channels)
    else:
        raise AudioFormatError(
            AudioErrorReason.UNSUPPORTED_FORMAT,
            f"Unsupported audio format: {header.audio_format}",
        )

    samples = processor.resample_to_target(samples, header.sample_rate)
    return samples, header


def read_wav_file(
    path: str | Path,
    settings: AudioSettings | None = None,
) -> WavReadResult:
    """Read a WAV file into mono float32 samples at the target rate.

    Never raises for I/O or format problems: the returned result carries an
    empty sample buffer and the error instead.
    """
    processor = AudioProcessor(settings)
    path = Path(path)

    try:
        data = path.read_bytes()
    except OSError as e:
        logger.error(f"Failed to open file: {path} ({e})")
        return WavReadResult(
            samples=np.array([], dtype=np.float32),
            error=AudioFormatError(AudioErrorReason.UNREADABLE, f"Failed to open file: {path}"),
        )

    if not data:
        logger.error(f"WAV file is empty: {path}")
        return WavReadResult(
            samples=np.array([], dtype=np.float32),
            error=AudioFormatError(AudioErrorReason.UNREADABLE, f"File is empty: {path}"),
        )

    try:
        samples, header = decode_wav(data, processor)
    except AudioFormatError as e:
        logger.error(f"{path}: {e.message}")
        return WavReadResult(samples=np.array([], dtype=np.float32), error=e)

    logger.info(
        f"Read {path.name}: {header.format_name}, {header.num_channels}ch, "
        f"{header.sample_rate}Hz, {header.bits_per_sample}-bit -> "
        f"{len(samples)} samples at {processor.settings.target_sample_rate}Hz"
    )
    return WavReadResult(samples=samples, header=header)
