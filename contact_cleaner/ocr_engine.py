"""
OCR engine adapter.

Images go through Tesseract (pytesseract). PDFs use the embedded text layer
via pdfplumber and fall back to rasterizing (pdf2image) and OCR for pages
without one.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pdfplumber
import pytesseract
from pdf2image import convert_from_path
from PIL import Image
from pytesseract import Output

from .errors import OcrTimeoutError, ParseFailureError
from .models import OcrResult, TextToken


IMAGE_EXTENSIONS = {'.png', '.jpg', '.jpeg', '.bmp', '.tif', '.tiff', '.webp', '.gif'}
PDF_EXTENSIONS = {'.pdf'}

# PDF coordinates are in points (1/72 inch)
POINTS_PER_INCH = 72.0


def tokens_from_data(data: Dict[str, List[Any]]) -> List[TextToken]:
    """
    Convert pytesseract image_to_data output into tokens.

    Args:
        data: Output.DICT result

    Returns:
        Non-empty word tokens with a valid confidence
    """
    tokens = []

    for i, text in enumerate(data.get('text', [])):
        text = (text or '').strip()
        if not text:
            continue

        confidence = float(data['conf'][i])
        if confidence < 0:
            continue

        tokens.append(TextToken(
            text=text,
            x=float(data['left'][i]),
            y=float(data['top'][i]),
            width=float(data['width'][i]),
            height=float(data['height'][i]),
            confidence=confidence,
        ))

    return tokens


def lines_from_data(data: Dict[str, List[Any]]) -> List[str]:
    """Rebuild text lines from image_to_data output, grouped by block/par/line."""
    count = len(data.get('text', []))
    lines: Dict[Tuple[int, int, int], List[Tuple[int, str]]] = {}

    for i in range(count):
        text = (data['text'][i] or '').strip()
        if not text:
            continue
        key = (int(data['block_num'][i]), int(data['par_num'][i]), int(data['line_num'][i]))
        lines.setdefault(key, []).append((int(data['left'][i]), text))

    return [
        ' '.join(word for _, word in sorted(lines[key]))
        for key in sorted(lines)
    ]


def _mean_confidence(tokens: List[TextToken]) -> float:
    if not tokens:
        return 0.0
    return sum(t.confidence for t in tokens) / len(tokens)


class OcrEngine:
    """Scoped Tesseract recognizer; use as a context manager."""

    def __init__(
        self,
        lang: str = 'eng',
        timeout: float = 60.0,
        dpi: int = 200,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize OCR engine.

        Args:
            lang: Tesseract language code(s), e.g. "eng" or "eng+hin"
            timeout: Seconds allowed per recognition call (0 disables)
            dpi: Rasterization DPI for scanned PDF pages
            logger: Logger instance
        """
        self.lang = lang
        self.timeout = timeout
        self.dpi = dpi
        self.logger = logger or logging.getLogger(__name__)
        self.version: Optional[str] = None

    def start(self) -> None:
        """Check that the Tesseract binary is available."""
        try:
            self.version = str(pytesseract.get_tesseract_version())
        except pytesseract.TesseractNotFoundError as e:
            raise ParseFailureError(
                "Tesseract is not installed or not on PATH"
            ) from e
        self.logger.debug(f"Tesseract {self.version} ready (lang: {self.lang})")

    def _require_started(self) -> None:
        if self.version is None:
            raise RuntimeError("OCR engine not started. Call start() first.")

    def recognize_image(self, image: Image.Image, source: str, page_num: int = 0) -> OcrResult:
        """
        Run OCR on one image.

        Args:
            image: PIL image
            source: Source identifier for the result
            page_num: Page index for multi-page inputs

        Returns:
            OcrResult with text lines and word tokens

        Raises:
            OcrTimeoutError: If Tesseract exceeds the timeout
            ParseFailureError: If Tesseract fails on the image
        """
        self._require_started()

        try:
            data = pytesseract.image_to_data(
                image,
                lang=self.lang,
                output_type=Output.DICT,
                timeout=self.timeout,
            )
        except pytesseract.TesseractError as e:
            raise ParseFailureError(f"OCR failed on {source}: {e}") from e
        except RuntimeError as e:
            # pytesseract signals an expired timeout with a bare RuntimeError
            if 'timeout' in str(e).lower():
                raise OcrTimeoutError(
                    f"OCR timed out after {self.timeout:g}s on {source}"
                ) from e
            raise ParseFailureError(f"OCR failed on {source}: {e}") from e

        tokens = tokens_from_data(data)
        return OcrResult(
            source=source,
            text='\n'.join(lines_from_data(data)),
            tokens=tokens,
            confidence=_mean_confidence(tokens),
            page_num=page_num,
        )

    def _pdf_page_tokens(self, page) -> List[TextToken]:
        """Text-layer words of one pdfplumber page, scaled to pixels at self.dpi."""
        scale = self.dpi / POINTS_PER_INCH
        words = page.extract_words(
            x_tolerance=2,
            y_tolerance=2,
            keep_blank_chars=False
        )
        return [
            TextToken(
                text=word['text'],
                x=word['x0'] * scale,
                y=word['top'] * scale,
                width=(word['x1'] - word['x0']) * scale,
                height=(word['bottom'] - word['top']) * scale,
            )
            for word in words
        ]

    def recognize_pdf(self, pdf_path: Path) -> List[OcrResult]:
        """
        Extract tokens from every page of a PDF.

        Pages with a text layer are read directly (confidence 100); scanned
        pages are rasterized and OCR'd.

        Args:
            pdf_path: Path to PDF file

        Returns:
            One OcrResult per page
        """
        self._require_started()
        results = []

        try:
            with pdfplumber.open(pdf_path) as pdf:
                for page_num, page in enumerate(pdf.pages):
                    tokens = self._pdf_page_tokens(page)

                    if tokens:
                        results.append(OcrResult(
                            source=pdf_path.name,
                            text=page.extract_text() or '',
                            tokens=tokens,
                            confidence=100.0,
                            page_num=page_num,
                        ))
                        continue

                    self.logger.debug(f"No text layer on page {page_num + 1} of {pdf_path.name}, running OCR")
                    images = convert_from_path(
                        str(pdf_path),
                        dpi=self.dpi,
                        first_page=page_num + 1,
                        last_page=page_num + 1,
                    )
                    for image in images:
                        results.append(self.recognize_image(image, pdf_path.name, page_num))

        except ParseFailureError:
            raise
        except Exception as e:
            raise ParseFailureError(f"Could not read PDF {pdf_path.name}: {e}") from e

        return results

    def recognize(self, path: Path) -> List[OcrResult]:
        """
        Recognize an image or PDF file.

        Args:
            path: Input file

        Returns:
            One OcrResult per page (a single entry for images)

        Raises:
            ParseFailureError: If the file cannot be opened or recognized
        """
        path = Path(path)
        suffix = path.suffix.lower()

        if suffix in PDF_EXTENSIONS:
            return self.recognize_pdf(path)

        if suffix not in IMAGE_EXTENSIONS:
            raise ParseFailureError(f"Unsupported image type: {path.name}")

        try:
            with Image.open(path) as image:
                image.load()
                return [self.recognize_image(image, path.name)]
        except OSError as e:
            raise ParseFailureError(f"Could not open image {path.name}: {e}") from e

    def close(self) -> None:
        """Release the engine."""
        self.version = None
        self.logger.debug("OCR engine released")

    def __enter__(self):
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
