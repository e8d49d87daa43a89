"""In-memory builders for filters/vocab assets and WAV files used by tests."""

import struct

import numpy as np

ASSET_MAGIC = 0x57535052


def build_asset(
    n_mel: int = 2,
    n_fft: int = 3,
    pieces: list[bytes] | None = None,
    coefficients: np.ndarray | None = None,
    magic: int = ASSET_MAGIC,
) -> bytes:
    """Serialize a filters/vocab asset."""
    if pieces is None:
        pieces = [b"Hello", b" world", b"!"]
    if coefficients is None:
        coefficients = np.arange(n_mel * n_fft, dtype=np.float32) / 10.0

    out = bytearray()
    out += struct.pack("<I", magic)
    out += struct.pack("<ii", n_mel, n_fft)
    out += np.asarray(coefficients, dtype="<f4").tobytes()
    out += struct.pack("<i", len(pieces))
    for piece in pieces:
        out += struct.pack("<i", len(piece))
        out += piece
    return bytes(out)


def build_wav(
    samples: np.ndarray,
    sample_rate: int = 16000,
    num_channels: int = 1,
    audio_format: int = 1,
    bits_per_sample: int = 16,
    fmt_extra: bytes = b"",
    chunks_before_data: list[tuple[bytes, bytes]] | None = None,
    include_data: bool = True,
) -> bytes:
    """Serialize interleaved samples as a RIFF/WAVE file.

    ``samples`` are written with the dtype implied by ``audio_format`` and
    ``bits_per_sample`` (int16 for PCM16, float32 for IEEE float); other
    depths are written as raw zero bytes of the right size.
    """
    if audio_format == 3:
        payload = np.asarray(samples, dtype="<f4").tobytes()
    elif bits_per_sample == 16:
        payload = np.asarray(samples, dtype="<i2").tobytes()
    else:
        payload = bytes(len(samples) * (bits_per_sample // 8))

    block_align = num_channels * bits_per_sample // 8
    fmt_chunk_size = 16 + len(fmt_extra)

    body = bytearray()
    body += b"WAVE"
    body += b"fmt "
    body += struct.pack(
        "<IHHIIHH",
        fmt_chunk_size,
        audio_format,
        num_channels,
        sample_rate,
        sample_rate * block_align,
        block_align,
        bits_per_sample,
    )
    body += fmt_extra
    for tag, content in chunks_before_data or []:
        body += tag + struct.pack("<I", len(content)) + content
    if include_data:
        body += b"data" + struct.pack("<I", len(payload)) + payload

    return b"RIFF" + struct.pack("<I", len(body)) + bytes(body)
