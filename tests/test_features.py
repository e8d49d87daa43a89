"""Tests for the numpy log-mel front end."""

import unittest

import numpy as np

from core.assets import FilterBank
from services.features import log_mel_spectrogram

N_SAMPLES = 16000 * 30


def _filters(n_mel: int = 80, n_freqs: int = 201, seed: int = 0) -> FilterBank:
    rng = np.random.default_rng(seed)
    data = rng.random(n_mel * n_freqs, dtype=np.float32) / n_freqs
    return FilterBank(n_mel=n_mel, n_fft=n_freqs, data=data)


class TestLogMelSpectrogram(unittest.TestCase):
    """Shape, normalization range, threading and input validation."""

    @classmethod
    def setUpClass(cls):
        t = np.arange(N_SAMPLES, dtype=np.float32) / 16000
        cls.samples = (0.5 * np.sin(2 * np.pi * 440 * t)).astype(np.float32)
        cls.filters = _filters()

    def _compute(self, samples=None, n_threads=1, filters=None, **overrides):
        kwargs = dict(sample_rate=16000, n_fft=400, hop_length=160, n_mel=80)
        kwargs.update(overrides)
        return log_mel_spectrogram(
            self.samples if samples is None else samples,
            n_threads=n_threads,
            filters=filters or self.filters,
            **kwargs,
        )

    def test_shape(self):
        mel = self._compute()
        self.assertEqual((mel.n_mel, mel.n_len), (80, 3000))
        self.assertEqual(mel.data.shape, (80, 3000))
        self.assertEqual(mel.data.dtype, np.float32)
        self.assertTrue(mel.data.flags.c_contiguous)

    def test_dynamic_range_clamped_to_8_decades(self):
        mel = self._compute()
        # (log - 4) / 4 scaling: max - min <= 8 / 4
        self.assertLessEqual(float(mel.data.max() - mel.data.min()), 2.0 + 1e-5)

    def test_threads_match_single_thread(self):
        single = self._compute(n_threads=1)
        threaded = self._compute(n_threads=4)
        np.testing.assert_allclose(single.data, threaded.data, rtol=1e-5, atol=1e-6)

    def test_silence(self):
        mel = self._compute(samples=np.zeros(N_SAMPLES, dtype=np.float32))
        # log10(1e-10) = -10 -> (-10 + 4) / 4
        np.testing.assert_allclose(mel.data, -1.5)

    def test_rejects_wrong_sample_rate(self):
        with self.assertRaises(ValueError):
            self._compute(sample_rate=8000)

    def test_rejects_mismatched_filters(self):
        with self.assertRaises(ValueError):
            self._compute(filters=_filters(n_mel=40))
        with self.assertRaises(ValueError):
            self._compute(filters=_filters(n_freqs=100))

    def test_rejects_too_few_samples(self):
        with self.assertRaises(ValueError):
            self._compute(samples=np.zeros(10, dtype=np.float32))


if __name__ == "__main__":
    unittest.main()
