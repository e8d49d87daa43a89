"""Tests for batch transcription over per-language directories."""

import json
import tempfile
import unittest
from pathlib import Path

import numpy as np

from config.settings import BatchSettings, ModelSettings, Settings
from services.batch import BatchTranscriber, find_audio_files, language_from_path
from services.engine import WhisperEngine
from tests.builders import build_asset, build_wav
from tests.test_engine import FakeInterpreter, RecordingExtractor

LANGUAGES = ("english", "french", "arabic")


class TestDiscovery(unittest.TestCase):
    """File discovery and language inference."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        for rel in ("english/a.wav", "english/deep/b.FLAC", "english/notes.txt", "french/c.ogg"):
            path = self.root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(b"")

    def tearDown(self):
        self._tmp.cleanup()

    def test_find_audio_files_recurses(self):
        found = find_audio_files(self.root / "english", (".wav", ".flac"))
        self.assertEqual([p.name for p in found], ["a.wav", "b.FLAC"])

    def test_language_from_path(self):
        self.assertEqual(language_from_path(Path("/data/audio/French/x.wav"), LANGUAGES), "french")
        self.assertEqual(language_from_path(Path("/data/audio/english/sub/x.wav"), LANGUAGES), "english")
        self.assertEqual(language_from_path(Path("/data/audio/klingon/x.wav"), LANGUAGES), "unknown")


class TestBatchTranscriber(unittest.TestCase):
    """End-to-end batch run with a fake interpreter."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

        model_path = self.tmp / "model.tflite"
        model_path.write_bytes(b"model")
        (self.tmp / "filters_vocab_multilingual.bin").write_bytes(build_asset())

        settings = Settings(model=ModelSettings(asset_dir=self.tmp, num_threads=1))
        output = np.array([[0, 1, 2, 50257]], dtype=np.int32)
        self.engine = WhisperEngine(
            settings,
            interpreter_factory=lambda content: FakeInterpreter(content, output),
            feature_extractor=RecordingExtractor(),
        )
        self.engine.load_model(model_path, True)

        self.audio = self.tmp / "audio"
        (self.audio / "english").mkdir(parents=True)
        (self.audio / "arabic" / "set1").mkdir(parents=True)
        (self.audio / "english" / "one.wav").write_bytes(build_wav(np.zeros(160, dtype=np.int16)))
        (self.audio / "arabic" / "set1" / "two.wav").write_bytes(build_wav(np.zeros(160, dtype=np.int16)))
        (self.audio / "english" / "broken.wav").write_bytes(b"not a wav file at all, only text here....")

        self.batch = BatchTranscriber(
            self.engine,
            BatchSettings(languages=LANGUAGES, output_path=self.tmp / "out.json"),
        )

    def tearDown(self):
        self.engine.free_model()
        self._tmp.cleanup()

    def test_run(self):
        results = self.batch.run(self.audio)
        by_name = {r.filename: r for r in results}
        self.assertEqual(set(by_name), {"one.wav", "two.wav", "broken.wav"})
        self.assertEqual(by_name["one.wav"].language, "english")
        self.assertEqual(by_name["one.wav"].transcription, "Hello world!")
        self.assertEqual(by_name["two.wav"].language, "arabic")
        self.assertEqual(by_name["broken.wav"].transcription, "")
        self.assertIsNotNone(by_name["broken.wav"].error)

    def test_default_extensions_skip_non_wav(self):
        (self.audio / "english" / "three.mp3").write_bytes(b"ID3")
        self.assertEqual(BatchSettings().audio_extensions, (".wav",))
        batch = BatchTranscriber(self.engine, BatchSettings(languages=LANGUAGES))
        names = {path.name for path, _ in batch.collect(self.audio)}
        self.assertEqual(names, {"one.wav", "two.wav", "broken.wav"})

    def test_non_wav_extensions_warn(self):
        with self.assertLogs("services.batch", level="WARNING") as logs:
            BatchTranscriber(self.engine, BatchSettings(audio_extensions=(".wav", ".mp3")))
        self.assertIn(".mp3", logs.output[0])

    def test_missing_root(self):
        self.assertEqual(self.batch.run(self.tmp / "nope"), [])

    def test_write_json(self):
        results = self.batch.run(self.audio)
        path = self.batch.write_json(results)
        data = json.loads(path.read_text(encoding="utf-8"))
        self.assertEqual(len(data), 3)
        self.assertEqual(set(data[0]), {"filename", "language", "transcription", "timeMs"})
        self.assertIsInstance(data[0]["timeMs"], int)


if __name__ == "__main__":
    unittest.main()
