"""
Tests for the Tesseract recognizer backend.

pytesseract is replaced with a stub module so no tesseract binary is needed.
"""

import sys
import types
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from recognition.tesseract_backend import (
    TesseractConfig,
    TesseractRecognizer,
    mean_confidence,
    preprocess_region,
)


def plate_image(h=30, w=100):
    img = np.full((h, w, 3), 255, dtype=np.uint8)
    img[8:22, 10:90] = 0
    return img


@pytest.fixture
def fake_pytesseract():
    module = types.ModuleType("pytesseract")
    module.pytesseract = types.SimpleNamespace(tesseract_cmd="tesseract")
    module.Output = types.SimpleNamespace(DICT="dict")
    module.get_tesseract_version = MagicMock(return_value="5.3.0")
    module.image_to_data = MagicMock(return_value={
        "text": ["", "P0X", "4G21", " "],
        "conf": ["-1", "90", "80", "-1"],
    })
    with patch.dict(sys.modules, {"pytesseract": module}):
        yield module


class TestPreprocess:
    """Upscale, binarize, pad."""

    def test_upscaled_to_min_height_with_border(self):
        out = preprocess_region(plate_image(30, 100), min_height=120, border_size=5)
        assert out.ndim == 2
        assert out.shape[0] == 120 + 10
        assert out.shape[1] == 400 + 10

    def test_binary_output(self):
        out = preprocess_region(plate_image(), min_height=120, border_size=5)
        assert set(np.unique(out)).issubset({0, 255})
        # Border is white
        assert out[0, :].min() == 255

    def test_tall_region_not_resized(self):
        out = preprocess_region(plate_image(200, 100), min_height=120, border_size=0)
        assert out.shape == (200, 100)

    def test_empty_region_rejected(self):
        with pytest.raises(ValueError):
            preprocess_region(np.zeros((0, 0, 3), dtype=np.uint8))


class TestMeanConfidence:
    def test_ignores_non_words(self):
        assert mean_confidence(["-1", "90", "80"]) == pytest.approx(0.85)

    def test_empty(self):
        assert mean_confidence([]) == 0.0
        assert mean_confidence(["-1", "x"]) == 0.0


class TestTesseractRecognizer:
    def test_read_joins_words(self, fake_pytesseract):
        recognizer = TesseractRecognizer(TesseractConfig())

        text, conf = recognizer.read(plate_image())

        assert text == "P0X4G21"
        assert conf == pytest.approx(0.85)
        _, kwargs = fake_pytesseract.image_to_data.call_args
        assert "--psm 7" in kwargs["config"]
        assert "tessedit_char_whitelist=ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789" in kwargs["config"]
        assert kwargs["lang"] == "eng"

    def test_no_text(self, fake_pytesseract):
        fake_pytesseract.image_to_data.return_value = {"text": ["", " "], "conf": ["-1", "-1"]}
        recognizer = TesseractRecognizer(TesseractConfig())
        assert recognizer.read(plate_image()) == ("", 0.0)

    def test_custom_binary_path(self, fake_pytesseract):
        TesseractRecognizer(TesseractConfig(tesseract_cmd="/opt/tess/bin/tesseract"))
        assert fake_pytesseract.pytesseract.tesseract_cmd == "/opt/tess/bin/tesseract"

    def test_keeps_last_input_image(self, fake_pytesseract):
        recognizer = TesseractRecognizer(TesseractConfig(min_height=120, border_size=5))
        assert recognizer.last_input_image is None

        recognizer.read(plate_image(30, 100))

        assert recognizer.last_input_image.shape == (130, 410)
        image_arg = fake_pytesseract.image_to_data.call_args[0][0]
        assert image_arg is recognizer.last_input_image

    def test_close_drops_last_input_image(self, fake_pytesseract):
        recognizer = TesseractRecognizer(TesseractConfig())
        recognizer.read(plate_image())

        recognizer.close()

        assert recognizer.last_input_image is None
