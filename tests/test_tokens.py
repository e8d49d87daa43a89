"""Tests for token decoding and placeholder clean-up."""

import unittest
from types import MappingProxyType

import numpy as np

from core.assets import ReservedTokens, Vocabulary, decode_filters_vocab
from core.tokens import TokenDecoder, clean_transcription
from tests.builders import build_asset

EN = ReservedTokens.for_mode(multilingual=False)
MULTI = ReservedTokens.for_mode(multilingual=True)


def _vocab(entries: dict[int, str]) -> Vocabulary:
    return Vocabulary(id_to_token=MappingProxyType(dict(entries)), n_explicit=len(entries))


class TestTokenDecoder(unittest.TestCase):
    """EOT stop, control-token suppression, unknown ids."""

    def setUp(self):
        self.decoder = TokenDecoder(_vocab({15: "hi", 16: " there", 17: ""}), EN)

    def test_stops_at_eot(self):
        result = self.decoder.decode([EN.sot, 15, EN.eot, 9999])
        self.assertEqual(result.text, "hi")
        self.assertEqual(result.eot_position, 2)
        self.assertTrue(result.stopped_early)
        # 9999 comes after EOT and is never looked up
        self.assertEqual(result.unknown_ids, [])

    def test_without_eot_processes_everything(self):
        result = self.decoder.decode([15, 9999, 16, 15])
        self.assertEqual(result.text, "hi therehi")
        self.assertIsNone(result.eot_position)
        self.assertEqual(result.unknown_ids, [9999])
        self.assertEqual(result.emitted, [15, 16, 15])

    def test_skips_all_control_tokens(self):
        tokens = [EN.sot, EN.prev, EN.not_, EN.beg, EN.solm, 15]
        self.assertEqual(self.decoder.decode(tokens).text, "hi")

    def test_ignores_negative_ids(self):
        self.assertEqual(self.decoder.decode([-1, 15, -50257]).text, "hi")

    def test_empty_piece_contributes_nothing(self):
        result = self.decoder.decode([17, 15, 17])
        self.assertEqual(result.text, "hi")
        self.assertEqual(result.emitted, [15])

    def test_eot_first(self):
        self.assertEqual(self.decoder.decode([EN.eot, 15]).text, "")

    def test_empty_sequence(self):
        result = self.decoder.decode([])
        self.assertEqual(result.text, "")
        self.assertFalse(result.stopped_early)

    def test_numpy_input(self):
        tokens = np.array([[15, 16, EN.eot]], dtype=np.int32).reshape(-1)
        self.assertEqual(self.decoder(tokens), "hi there")


class TestMultilingualDecoding(unittest.TestCase):
    """Reserved-id shift changes which ids stop or get skipped."""

    def setUp(self):
        assets = decode_filters_vocab(build_asset(pieces=[b"Bon", b"jour"]), multilingual=True)
        self.decoder = TokenDecoder(assets.vocab, assets.reserved)

    def test_english_eot_is_not_a_stop_token(self):
        # 50256 is an ordinary (placeholder) id in the multilingual vocabulary
        result = self.decoder.decode([MULTI.sot, 0, 1, 50256, MULTI.eot, 0])
        self.assertEqual(result.text, "Bonjour[_extra_token_50256]")
        self.assertEqual(result.eot_position, 4)

    def test_timestamps_are_emitted_as_placeholders(self):
        result = self.decoder.decode([MULTI.beg + 1, 0, MULTI.eot])
        self.assertEqual(result.text, "[_TT_1]Bon")


class TestCleanTranscription(unittest.TestCase):
    """Placeholder tokens are stripped from decoded text."""

    def test_removes_placeholders(self):
        text = "[_TT_12] Hello[_extra_token_50300] world[_EOT_][_SOT_][_PREV_][_NOT_][_BEG_][_SOLM_] "
        self.assertEqual(clean_transcription(text), "Hello world")

    def test_keeps_plain_text(self):
        self.assertEqual(clean_transcription(" plain [brackets] "), "plain [brackets]")

    def test_empty(self):
        self.assertEqual(clean_transcription(""), "")


if __name__ == "__main__":
    unittest.main()
