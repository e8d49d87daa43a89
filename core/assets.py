"""Decoder for the Whisper ``filters_vocab_*.bin`` asset.

Binary layout (little-endian):

    [magic:int32]                      'WSPR' = 0x57535052
    [n_mel:int32][n_fft:int32]
    [n_mel * n_fft x float32]          mel filter bank
    [n_vocab:int32]
    [n_vocab x (len:int32, bytes)]     BPE pieces, no terminator

Only the first ``n_vocab`` tokens are stored. The special/timestamp tail of
the vocabulary is synthesized up to the model's full size.
"""

__all__ = [
    "ASSET_MAGIC",
    "N_VOCAB_EN",
    "N_VOCAB_MULTILINGUAL",
    "FilterBank",
    "ReservedTokens",
    "TimestampToken",
    "ReservedToken",
    "ExtraToken",
    "Vocabulary",
    "FiltersVocab",
    "classify_token_id",
    "decode_filters_vocab",
    "load_filters_vocab",
]

import struct
from dataclasses import dataclass, field, fields
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

import numpy as np
from numpy.typing import NDArray

from core.errors import AssetErrorReason, AssetFormatError

ASSET_MAGIC = 0x57535052  # 'WSPR'

# Total vocabulary size including the synthesized tail
N_VOCAB_EN = 51864
N_VOCAB_MULTILINGUAL = 51865

_INT32 = struct.Struct("<i")


@dataclass(frozen=True)
class FilterBank:
    """Mel filter bank coefficients, row-major ``(n_mel, n_fft)``."""

    n_mel: int
    n_fft: int
    data: NDArray[np.float32]

    def __post_init__(self):
        if self.data.size != self.n_mel * self.n_fft:
            raise ValueError(
                f"Filter bank has {self.data.size} coefficients, "
                f"expected {self.n_mel} x {self.n_fft}"
            )
        self.data.flags.writeable = False

    @property
    def matrix(self) -> NDArray[np.float32]:
        """Coefficients as an ``(n_mel, n_fft)`` matrix view."""
        return self.data.reshape(self.n_mel, self.n_fft)


@dataclass(frozen=True)
class ReservedTokens:
    """Control token ids for a given vocabulary mode."""

    eot: int = 50256
    sot: int = 50257
    prev: int = 50360
    solm: int = 50361
    not_: int = 50362
    beg: int = 50363

    @classmethod
    def for_mode(cls, multilingual: bool) -> "ReservedTokens":
        """Return the reserved ids for English-only or multilingual models.

        Multilingual vocabularies carry one extra token ahead of the control
        block, so every reserved id moves up by one.
        """
        base = cls()
        if not multilingual:
            return base
        return cls(**{f.name: getattr(base, f.name) + 1 for f in fields(cls)})

    @property
    def names(self) -> dict[int, str]:
        """Map reserved id to its placeholder string."""
        return {
            self.eot: "[_EOT_]",
            self.sot: "[_SOT_]",
            self.prev: "[_PREV_]",
            self.solm: "[_SOLM_]",
            self.not_: "[_NOT_]",
            self.beg: "[_BEG_]",
        }

    @property
    def skipped(self) -> frozenset[int]:
        """Ids dropped silently during decoding (everything except EOT)."""
        return frozenset((self.sot, self.prev, self.solm, self.not_, self.beg))


@dataclass(frozen=True)
class TimestampToken:
    offset: int

    def render(self) -> str:
        return f"[_TT_{self.offset}]"


@dataclass(frozen=True)
class ReservedToken:
    name: str

    def render(self) -> str:
        return self.name


@dataclass(frozen=True)
class ExtraToken:
    index: int

    def render(self) -> str:
        return f"[_extra_token_{self.index}]"


def classify_token_id(
    token_id: int, reserved: ReservedTokens
) -> TimestampToken | ReservedToken | ExtraToken:
    """Classify a synthesized vocabulary slot.

    Ids above ``beg`` are timestamps, ids equal to a reserved id take the
    reserved name, and anything else is an unused placeholder.
    """
    if token_id > reserved.beg:
        return TimestampToken(token_id - reserved.beg)
    name = reserved.names.get(token_id)
    if name is not None:
        return ReservedToken(name)
    return ExtraToken(token_id)


@dataclass(frozen=True)
class Vocabulary:
    """Immutable id -> token string mapping."""

    id_to_token: Mapping[int, str]
    n_explicit: int = 0

    def __len__(self) -> int:
        return len(self.id_to_token)

    def __contains__(self, token_id: object) -> bool:
        return token_id in self.id_to_token

    def get(self, token_id: int) -> str | None:
        return self.id_to_token.get(token_id)

    @classmethod
    def build(
        cls,
        pieces: list[bytes],
        n_vocab_total: int,
        reserved: ReservedTokens,
    ) -> "Vocabulary":
        """Build from explicit BPE pieces plus the synthesized tail.

        Ids ``[len(pieces), n_vocab_total)`` are synthesized. When the asset
        carries ``n_vocab_total`` pieces or more, every explicit piece is kept
        and nothing is synthesized, so ``len(vocab)`` is ``len(pieces)``.
        """
        id_to_token: dict[int, str] = {
            i: piece.decode("utf-8", errors="replace") for i, piece in enumerate(pieces)
        }
        for i in range(len(pieces), n_vocab_total):
            id_to_token[i] = classify_token_id(i, reserved).render()
        return cls(id_to_token=MappingProxyType(id_to_token), n_explicit=len(pieces))


@dataclass(frozen=True)
class FiltersVocab:
    """Everything decoded from one asset buffer."""

    filters: FilterBank
    vocab: Vocabulary
    reserved: ReservedTokens
    multilingual: bool = False
    raw_pieces: tuple[bytes, ...] = field(default=(), repr=False)


class _Cursor:
    """Bounds-checked little-endian reader over a byte buffer."""

    def __init__(self, data: bytes):
        self._view = memoryview(data)
        self._pos = 0

    def _take(self, n: int, what: str) -> memoryview:
        if n < 0 or self._pos + n > len(self._view):
            raise AssetFormatError(
                AssetErrorReason.TRUNCATED,
                f"Asset truncated reading {what} at offset {self._pos} "
                f"(need {n} bytes, have {len(self._view) - self._pos})",
            )
        chunk = self._view[self._pos : self._pos + n]
        self._pos += n
        return chunk

    def int32(self, what: str) -> int:
        return _INT32.unpack(self._take(_INT32.size, what))[0]

    def float32_array(self, count: int, what: str) -> NDArray[np.float32]:
        if count < 0:
            raise AssetFormatError(AssetErrorReason.TRUNCATED, f"Negative {what} count: {count}")
        raw = self._take(count * 4, what)
        return np.frombuffer(raw, dtype="<f4").astype(np.float32)

    def raw(self, n: int, what: str) -> bytes:
        return bytes(self._take(n, what))


def decode_filters_vocab(data: bytes, multilingual: bool) -> FiltersVocab:
    """Decode a filters/vocab asset buffer.

    Args:
        data: Raw asset bytes.
        multilingual: Whether the paired model is multilingual. Selects the
            reserved-id shift and total vocabulary size.

    Returns:
        FiltersVocab with the filter bank, full vocabulary and reserved ids.

    Raises:
        AssetFormatError: On bad magic or a truncated buffer.
    """
    cursor = _Cursor(data)

    magic = cursor.int32("magic")
    if magic != ASSET_MAGIC:
        raise AssetFormatError(
            AssetErrorReason.BAD_MAGIC,
            f"Invalid vocab data (bad magic 0x{magic & 0xFFFFFFFF:08x})",
        )

    n_mel = cursor.int32("n_mel")
    n_fft = cursor.int32("n_fft")
    if n_mel < 0 or n_fft < 0:
        raise AssetFormatError(
            AssetErrorReason.TRUNCATED, f"Invalid filter dimensions {n_mel} x {n_fft}"
        )
    coefficients = cursor.float32_array(n_mel * n_fft, "mel filters")

    n_vocab = cursor.int32("n_vocab")
    if n_vocab < 0:
        raise AssetFormatError(AssetErrorReason.TRUNCATED, f"Negative vocabulary size: {n_vocab}")

    pieces = []
    for i in range(n_vocab):
        length = cursor.int32(f"token {i} length")
        pieces.append(cursor.raw(length, f"token {i}"))

    reserved = ReservedTokens.for_mode(multilingual)
    n_vocab_total = N_VOCAB_MULTILINGUAL if multilingual else N_VOCAB_EN

    return FiltersVocab(
        filters=FilterBank(n_mel=n_mel, n_fft=n_fft, data=coefficients),
        vocab=Vocabulary.build(pieces, n_vocab_total, reserved),
        reserved=reserved,
        multilingual=multilingual,
        raw_pieces=tuple(pieces),
    )


def load_filters_vocab(path: str | Path, multilingual: bool) -> FiltersVocab:
    """Read and decode a filters/vocab asset file.

    Raises:
        OSError: If the file cannot be read.
        AssetFormatError: If the contents are malformed.
    """
    return decode_filters_vocab(Path(path).read_bytes(), multilingual)
