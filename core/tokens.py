"""Token id -> text decoding for Whisper model output."""

__all__ = [
    "DecodedTokens",
    "TokenDecoder",
    "clean_transcription",
]

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from core.assets import ReservedTokens, Vocabulary

# Placeholders synthesized for the vocabulary tail
_PLACEHOLDER_PATTERN = re.compile(
    r"\[_extra_token_\d+\]|\[_TT_\d+\]|\[_(?:EOT|SOT|PREV|SOLM|NOT|BEG)_\]"
)


@dataclass
class DecodedTokens:
    """Result of decoding a token sequence."""

    text: str
    emitted: list[int] = field(default_factory=list)
    eot_position: int | None = None  # Index of the EOT token, if one was seen
    unknown_ids: list[int] = field(default_factory=list)

    @property
    def stopped_early(self) -> bool:
        return self.eot_position is not None


class TokenDecoder:
    """Map token ids to text, dropping control tokens and stopping at EOT."""

    def __init__(self, vocab: Vocabulary, reserved: ReservedTokens):
        self.vocab = vocab
        self.reserved = reserved
        self._skipped = reserved.skipped

    def decode(self, tokens: Iterable[int]) -> DecodedTokens:
        """Decode tokens in order.

        EOT ends decoding without being emitted. Other control tokens and
        negative ids are skipped. Ids missing from the vocabulary are skipped
        and reported in ``unknown_ids``.
        """
        parts: list[str] = []
        result = DecodedTokens(text="")

        for position, token in enumerate(tokens):
            token = int(token)
            if token == self.reserved.eot:
                result.eot_position = position
                break
            if token in self._skipped or token < 0:
                continue

            piece = self.vocab.get(token)
            if piece is None:
                result.unknown_ids.append(token)
                continue
            if piece:
                parts.append(piece)
                result.emitted.append(token)

        result.text = "".join(parts)
        return result

    def __call__(self, tokens: Iterable[int]) -> str:
        return self.decode(tokens).text


def clean_transcription(text: str) -> str:
    """Strip synthesized placeholder tokens (timestamps, extras, control names)."""
    if not text:
        return text
    return _PLACEHOLDER_PATTERN.sub("", text).strip()
