import unittest
from pathlib import Path
from unittest import mock

import pytesseract
from PIL import Image

from contact_cleaner.errors import OcrTimeoutError, ParseFailureError
from contact_cleaner.ocr_engine import OcrEngine, lines_from_data, tokens_from_data


DATA = {
    "text": ["", "Asha", "Rao", "9876543210", "  ", "Ravi"],
    "conf": ["-1", "91.5", "88", "95", "-1", "80"],
    "left": [0, 10, 60, 120, 0, 10],
    "top": [0, 5, 5, 6, 0, 40],
    "width": [500, 40, 30, 90, 0, 40],
    "height": [100, 12, 12, 12, 0, 12],
    "block_num": [0, 1, 1, 1, 1, 1],
    "par_num": [0, 1, 1, 1, 1, 1],
    "line_num": [0, 1, 1, 1, 1, 2],
}


class TestTesseractOutput(unittest.TestCase):
    def test_tokens(self) -> None:
        tokens = tokens_from_data(DATA)
        self.assertEqual([t.text for t in tokens], ["Asha", "Rao", "9876543210", "Ravi"])
        self.assertEqual((tokens[0].x, tokens[0].y, tokens[0].width), (10.0, 5.0, 40.0))
        self.assertAlmostEqual(tokens[0].confidence, 91.5)

    def test_lines(self) -> None:
        self.assertEqual(lines_from_data(DATA), ["Asha Rao 9876543210", "Ravi"])


@mock.patch("contact_cleaner.ocr_engine.pytesseract.get_tesseract_version", return_value="5.3.0")
class TestOcrEngine(unittest.TestCase):
    def setUp(self) -> None:
        self.image = Image.new("RGB", (20, 20), "white")

    def test_recognize_image(self, _version) -> None:
        with mock.patch("contact_cleaner.ocr_engine.pytesseract.image_to_data", return_value=DATA) as call:
            with OcrEngine(timeout=5) as engine:
                result = engine.recognize_image(self.image, "card.png")

        self.assertEqual(call.call_args.kwargs["timeout"], 5)
        self.assertEqual(result.source, "card.png")
        self.assertEqual(result.text, "Asha Rao 9876543210\nRavi")
        self.assertEqual(len(result.tokens), 4)
        self.assertAlmostEqual(result.confidence, (91.5 + 88 + 95 + 80) / 4)

    def test_timeout_is_reported(self, _version) -> None:
        error = RuntimeError("Tesseract process timeout")
        with mock.patch("contact_cleaner.ocr_engine.pytesseract.image_to_data", side_effect=error):
            with OcrEngine(timeout=1) as engine:
                with self.assertRaises(OcrTimeoutError):
                    engine.recognize_image(self.image, "slow.png")

    def test_timeout_is_a_parse_failure(self, _version) -> None:
        self.assertTrue(issubclass(OcrTimeoutError, ParseFailureError))

    def test_engine_is_released(self, _version) -> None:
        engine = OcrEngine()
        with self.assertRaises(ParseFailureError):
            with engine:
                engine.recognize(Path("notes.txt"))
        self.assertIsNone(engine.version)
        with self.assertRaises(RuntimeError):
            engine.recognize_image(self.image, "late.png")


def _pdf(*pages):
    """A stand-in for pdfplumber.open(...) holding the given pages."""
    opened = mock.MagicMock()
    opened.__enter__.return_value.pages = list(pages)
    opened.__exit__.return_value = False
    return opened


def _page(words, text=""):
    page = mock.Mock()
    page.extract_words.return_value = words
    page.extract_text.return_value = text
    return page


@mock.patch("contact_cleaner.ocr_engine.pytesseract.get_tesseract_version", return_value="5.3.0")
class TestPdfRecognition(unittest.TestCase):
    def setUp(self) -> None:
        self.typed = _page(
            [{"text": "Asha", "x0": 72.0, "x1": 108.0, "top": 36.0, "bottom": 45.0}],
            "Asha",
        )
        self.scanned = _page([])

    def test_text_layer_is_read_directly(self, _version) -> None:
        with mock.patch("contact_cleaner.ocr_engine.pdfplumber.open", return_value=_pdf(self.typed)), \
                mock.patch("contact_cleaner.ocr_engine.convert_from_path") as rasterize:
            with OcrEngine(dpi=144) as engine:
                results = engine.recognize_pdf(Path("list.pdf"))

        rasterize.assert_not_called()
        self.assertEqual(len(results), 1)
        self.assertEqual((results[0].source, results[0].text, results[0].confidence), ("list.pdf", "Asha", 100.0))
        token = results[0].tokens[0]
        self.assertEqual((token.x, token.y, token.width, token.height), (144.0, 72.0, 72.0, 18.0))

    def test_scanned_page_is_rasterized(self, _version) -> None:
        image = Image.new("RGB", (20, 20), "white")
        with mock.patch("contact_cleaner.ocr_engine.pdfplumber.open", return_value=_pdf(self.typed, self.scanned)), \
                mock.patch("contact_cleaner.ocr_engine.convert_from_path", return_value=[image]) as rasterize, \
                mock.patch("contact_cleaner.ocr_engine.pytesseract.image_to_data", return_value=DATA):
            with OcrEngine(dpi=300) as engine:
                results = engine.recognize_pdf(Path("scan.pdf"))

        rasterize.assert_called_once_with("scan.pdf", dpi=300, first_page=2, last_page=2)
        self.assertEqual([r.page_num for r in results], [0, 1])
        self.assertEqual(results[1].text, "Asha Rao 9876543210\nRavi")
        self.assertAlmostEqual(results[1].confidence, (91.5 + 88 + 95 + 80) / 4)

    def test_page_timeout_propagates(self, _version) -> None:
        image = Image.new("RGB", (20, 20), "white")
        with mock.patch("contact_cleaner.ocr_engine.pdfplumber.open", return_value=_pdf(self.scanned)), \
                mock.patch("contact_cleaner.ocr_engine.convert_from_path", return_value=[image]), \
                mock.patch("contact_cleaner.ocr_engine.pytesseract.image_to_data",
                           side_effect=RuntimeError("Tesseract process timeout")):
            with OcrEngine(timeout=1) as engine:
                with self.assertRaises(OcrTimeoutError):
                    engine.recognize_pdf(Path("scan.pdf"))

    def test_unreadable_pdf(self, _version) -> None:
        with mock.patch("contact_cleaner.ocr_engine.pdfplumber.open", side_effect=ValueError("No /Root object")):
            with OcrEngine() as engine:
                with self.assertRaisesRegex(ParseFailureError, "Could not read PDF broken.pdf"):
                    engine.recognize_pdf(Path("broken.pdf"))


class TestMissingTesseract(unittest.TestCase):
    def test_start_without_binary(self) -> None:
        with mock.patch(
            "contact_cleaner.ocr_engine.pytesseract.get_tesseract_version",
            side_effect=pytesseract.TesseractNotFoundError(),
        ):
            with self.assertRaises(ParseFailureError):
                OcrEngine().start()


if __name__ == "__main__":
    unittest.main()
