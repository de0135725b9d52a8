"""
Acquisition stage
Turns typed text, images and PDFs into RawSource text; the only stage doing I/O
"""
import asyncio
import io
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple, Union
import logging

import fitz  # PyMuPDF
import pytesseract
import requests
from PIL import Image
from pytesseract import Output

from ..core.config import AcquisitionConfig, Config
from ..core.models import OcrResult, RawSource, SourceKind
from ..core.utils import is_garbled


IMAGE_SUFFIXES = {'.png', '.jpg', '.jpeg', '.tif', '.tiff', '.bmp', '.gif', '.webp'}
TEXT_SUFFIXES = {'.txt', '.md', ''}


class AcquisitionError(Exception):
    """The source could not be turned into text"""


class AcquisitionTimeout(AcquisitionError):
    """A blocking acquisition step exceeded its time budget"""


# ---------------------------------------------------------------------------
# Service protocols
# ---------------------------------------------------------------------------

class OcrService(Protocol):
    def recognize(self, image: Image.Image) -> OcrResult:
        ...


class PdfDocument(Protocol):
    page_count: int

    def extract_page_text(self, page_num: int) -> str:
        ...

    def render_page(self, page_num: int, dpi: int) -> Image.Image:
        ...

    def close(self) -> None:
        ...

    def __enter__(self) -> "PdfDocument":
        ...

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        ...


class PdfTextService(Protocol):
    def open(self, path: Path) -> PdfDocument:
        ...


# ---------------------------------------------------------------------------
# Adapters
# ---------------------------------------------------------------------------

class PyMuPdfDocument:
    """
    PDF document backed by PyMuPDF
    Pages are loaded one at a time
    """

    def __init__(self, path: Path):
        self.path = path
        self.logger = logging.getLogger(__name__)
        self._doc: Optional[fitz.Document] = None

    def open(self) -> None:
        """Open the PDF file"""
        if not self.path.exists():
            raise FileNotFoundError(f"PDF file not found: {self.path}")

        self._doc = fitz.open(str(self.path))
        self.logger.debug(f"Opened {self.path.name}: {len(self._doc)} pages")

    def close(self) -> None:
        """Close the PDF file"""
        if self._doc:
            self._doc.close()
            self._doc = None

    @property
    def page_count(self) -> int:
        return len(self._doc) if self._doc else 0

    def extract_page_text(self, page_num: int) -> str:
        """
        Extract the text layer of one page

        Args:
            page_num: page number (0-indexed)

        Returns:
            page text in reading order
        """
        page = self._doc.load_page(page_num)
        return page.get_text("text", sort=True)

    def render_page(self, page_num: int, dpi: int) -> Image.Image:
        """
        Render one page to an RGB image

        Args:
            page_num: page number (0-indexed)
            dpi: render resolution

        Returns:
            Pillow image
        """
        page = self._doc.load_page(page_num)
        pix = page.get_pixmap(dpi=dpi, alpha=False)
        return Image.frombytes("RGB", (pix.width, pix.height), pix.samples)

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class PyMuPdfTextService:
    """PDF text layer and page rendering via PyMuPDF"""

    def open(self, path: Path) -> PyMuPdfDocument:
        return PyMuPdfDocument(Path(path))


class TesseractOcrService:
    """
    OCR via the local Tesseract binary
    Lines are rebuilt from word boxes; per-word confidences are kept
    """

    def __init__(self, language: str = "eng"):
        self.language = language

    def recognize(self, image: Image.Image) -> OcrResult:
        """
        Recognize text in an image

        Args:
            image: Pillow image

        Returns:
            OCR result with per-word confidences
        """
        data = pytesseract.image_to_data(image, lang=self.language, output_type=Output.DICT)

        lines: Dict[Tuple[int, int, int], List[str]] = {}
        confidences = []
        for i, word in enumerate(data["text"]):
            conf = float(data["conf"][i])
            if conf < 0 or not word.strip():
                continue
            key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
            lines.setdefault(key, []).append(word)
            confidences.append(conf)

        text_lines = []
        previous_paragraph = None
        for (block, paragraph, _), words in lines.items():
            if previous_paragraph is not None and previous_paragraph != (block, paragraph):
                text_lines.append("")
            text_lines.append(" ".join(words))
            previous_paragraph = (block, paragraph)

        return OcrResult(text="\n".join(text_lines), confidence_per_region=confidences or None)


class HttpOcrService:
    """
    OCR via an HTTP endpoint
    POSTs the image as PNG and expects {"text": ..., "confidences": [...]}
    """

    def __init__(self, endpoint: str, timeout: float = 120.0, retry_times: int = 3):
        self.endpoint = endpoint
        self.timeout = timeout
        self.retry_times = retry_times
        self.logger = logging.getLogger(__name__)

    def recognize(self, image: Image.Image) -> OcrResult:
        """
        Recognize text in an image

        Args:
            image: Pillow image

        Returns:
            OCR result
        """
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        payload = buffer.getvalue()

        last_error: Optional[Exception] = None
        for attempt in range(self.retry_times):
            try:
                response = requests.post(
                    self.endpoint,
                    files={"file": ("page.png", payload, "image/png")},
                    timeout=self.timeout
                )
                response.raise_for_status()

                result = response.json()
                return OcrResult(
                    text=result.get("text", ""),
                    confidence_per_region=result.get("confidences") or None
                )

            except requests.exceptions.Timeout as e:
                self.logger.warning(f"OCR request timed out (attempt {attempt + 1}/{self.retry_times})")
                last_error = e
                time.sleep(1)
            except requests.exceptions.RequestException as e:
                self.logger.warning(f"OCR request failed: {e}")
                last_error = e
                time.sleep(1)

        raise AcquisitionError(f"OCR endpoint unavailable: {last_error}")


def build_ocr_service(config: AcquisitionConfig) -> OcrService:
    """
    Create the OCR service named by the configuration

    Args:
        config: acquisition settings

    Returns:
        OCR service
    """
    if config.ocr_provider == "http":
        return HttpOcrService(config.ocr_endpoint, config.ocr_timeout, config.retry_times)
    return TesseractOcrService(config.ocr_language)


# ---------------------------------------------------------------------------
# Acquirer
# ---------------------------------------------------------------------------

class SourceAcquirer:
    """
    Source acquirer
    Blocking calls run in worker threads under timeouts; cancelling the
    awaiting task propagates CancelledError and leaves nothing behind
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        ocr_service: Optional[OcrService] = None,
        pdf_service: Optional[PdfTextService] = None
    ):
        """
        Initialize the acquirer

        Args:
            config: configuration object
            ocr_service: OCR service, built from the configuration when None
            pdf_service: PDF service, PyMuPDF when None
        """
        self.config = config or Config()
        self.acq_config: AcquisitionConfig = self.config.acquisition
        self.ocr_service = ocr_service or build_ocr_service(self.acq_config)
        self.pdf_service = pdf_service or PyMuPdfTextService()
        self.logger = logging.getLogger(__name__)

    async def acquire_text(self, text: str, origin: Optional[str] = None) -> RawSource:
        """
        Wrap typed text

        Args:
            text: typed recipe text
            origin: label for logs

        Returns:
            raw source
        """
        return RawSource(text=text or "", source_kind=SourceKind.TYPED, origin=origin)

    async def acquire_image(self, image: Union[str, Path, Image.Image]) -> RawSource:
        """
        OCR a photo of a recipe

        Args:
            image: image path or Pillow image

        Returns:
            raw source with OCR confidence
        """
        origin = None
        if not isinstance(image, Image.Image):
            path = Path(image)
            if not path.exists():
                raise AcquisitionError(f"Image file not found: {path}")
            origin = path.name

        result = await self._run_blocking(
            self._recognize_image, image,
            timeout=self.acq_config.ocr_timeout,
            what="image OCR"
        )
        confidence = self._check_confidence(result.mean_confidence, origin)

        self.logger.info(f"OCR produced {len(result.text)} chars from {origin or 'image'}")
        return RawSource(
            text=result.text,
            source_kind=SourceKind.OCR,
            origin=origin,
            ocr_confidence=confidence
        )

    async def acquire_pdf(self, path: Union[str, Path]) -> RawSource:
        """
        Read a PDF, falling back to OCR for scanned or broken text layers

        Args:
            path: PDF path

        Returns:
            raw source (pdf-text or pdf-ocr-fallback)
        """
        path = Path(path)
        if not path.exists():
            raise AcquisitionError(f"PDF file not found: {path}")

        text: Optional[str]
        stop = threading.Event()
        try:
            text = await self._run_blocking(
                self._read_text_layer, path, stop,
                timeout=self.acq_config.pdf_timeout,
                what="PDF text extraction",
                stop=stop
            )
        except AcquisitionTimeout:
            raise
        except AcquisitionError as e:
            self.logger.warning(f"Text layer of {path.name} unreadable, using OCR: {e}")
            text = None

        reason = self._ocr_fallback_reason(text)
        if reason is None:
            self.logger.info(f"Read {len(text)} chars from the text layer of {path.name}")
            return RawSource(text=text, source_kind=SourceKind.PDF_TEXT, origin=path.name)

        self.logger.info(f"Falling back to OCR for {path.name}: {reason}")
        stop = threading.Event()
        ocr_text, mean_confidence = await self._run_blocking(
            self._ocr_pdf, path, stop,
            timeout=self.acq_config.ocr_timeout,
            what="PDF OCR",
            stop=stop
        )
        confidence = self._check_confidence(mean_confidence, path.name)
        return RawSource(
            text=ocr_text,
            source_kind=SourceKind.PDF_OCR_FALLBACK,
            origin=path.name,
            ocr_confidence=confidence
        )

    async def acquire_path(self, path: Union[str, Path]) -> RawSource:
        """
        Acquire a file, dispatching on its suffix

        Args:
            path: file path

        Returns:
            raw source
        """
        path = Path(path)
        suffix = path.suffix.lower()

        if suffix == '.pdf':
            return await self.acquire_pdf(path)
        if suffix in IMAGE_SUFFIXES:
            return await self.acquire_image(path)
        if suffix in TEXT_SUFFIXES:
            if not path.exists():
                raise AcquisitionError(f"Text file not found: {path}")
            text = await self._run_blocking(
                self._read_text_file, path,
                timeout=self.acq_config.pdf_timeout,
                what="text file read"
            )
            return await self.acquire_text(text, origin=path.name)

        raise AcquisitionError(f"Unsupported file type: {path.suffix or path.name}")

    def _ocr_fallback_reason(self, text: Optional[str]) -> Optional[str]:
        """Why the text layer cannot be used, None when it can"""
        if text is None:
            return "text layer unreadable"
        stripped = text.strip()
        if len(stripped) < self.acq_config.min_text_chars:
            return f"only {len(stripped)} chars of text"
        garbled, ratio = is_garbled(stripped, self.acq_config.max_garble_ratio)
        if garbled:
            return f"text layer garbled (ratio {ratio:.2f})"
        return None

    def _check_confidence(self, confidence: Optional[float], origin: Optional[str]) -> Optional[float]:
        if confidence is not None and confidence < self.acq_config.low_confidence_threshold:
            self.logger.warning(
                f"Low OCR confidence for {origin or 'image'}: {confidence:.1f} "
                f"< {self.acq_config.low_confidence_threshold}"
            )
        return confidence

    async def _run_blocking(
        self,
        func: Callable[..., Any],
        *args,
        timeout: float,
        what: str,
        stop: Optional[threading.Event] = None
    ) -> Any:
        """
        Run a blocking call in a worker thread under a timeout

        The worker thread cannot be killed; when the call times out or is
        cancelled, stop is set so a page loop can end early.

        Raises:
            AcquisitionTimeout: the call exceeded the timeout
            AcquisitionError: the call raised
        """
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=timeout)
        except asyncio.CancelledError:
            if stop is not None:
                stop.set()
            raise
        except asyncio.TimeoutError as e:
            if stop is not None:
                stop.set()
            raise AcquisitionTimeout(f"{what} timed out after {timeout}s") from e
        except AcquisitionError:
            raise
        except Exception as e:
            raise AcquisitionError(f"{what} failed: {e}") from e

    def _recognize_image(self, image: Union[str, Path, Image.Image]) -> OcrResult:
        if isinstance(image, Image.Image):
            return self.ocr_service.recognize(image)
        with Image.open(image) as opened:
            return self.ocr_service.recognize(opened.convert("RGB"))

    def _read_text_layer(self, path: Path, stop: Optional[threading.Event] = None) -> str:
        """Page texts joined by blank lines; failing pages are skipped"""
        texts = []
        with self.pdf_service.open(path) as doc:
            for page_num in range(doc.page_count):
                if stop is not None and stop.is_set():
                    self.logger.info(f"Text extraction of {path.name} abandoned at page {page_num}")
                    break
                try:
                    page_text = doc.extract_page_text(page_num).strip()
                except Exception as e:
                    self.logger.error(f"Failed to read page {page_num} of {path.name}: {e}")
                    continue
                if page_text:
                    texts.append(page_text)
        return "\n\n".join(texts)

    def _ocr_pdf(
        self,
        path: Path,
        stop: Optional[threading.Event] = None
    ) -> Tuple[str, Optional[float]]:
        """Render and OCR the leading pages; returns (text, mean confidence)"""
        texts = []
        confidences: List[float] = []
        with self.pdf_service.open(path) as doc:
            page_total = min(doc.page_count, self.acq_config.max_ocr_pages)
            if doc.page_count > page_total:
                self.logger.warning(
                    f"{path.name} has {doc.page_count} pages, OCR limited to {page_total}"
                )
            for page_num in range(page_total):
                if stop is not None and stop.is_set():
                    self.logger.info(f"OCR of {path.name} abandoned after {page_num} pages")
                    break
                image = doc.render_page(page_num, self.acq_config.ocr_dpi)
                result = self.ocr_service.recognize(image)
                if result.text.strip():
                    texts.append(result.text.strip())
                confidences.extend(result.confidence_per_region or [])

        mean_confidence = sum(confidences) / len(confidences) if confidences else None
        return "\n\n".join(texts), mean_confidence

    @staticmethod
    def _read_text_file(path: Path) -> str:
        return path.read_text(encoding='utf-8', errors='replace')
