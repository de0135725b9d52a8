"""
Pipeline orchestration
Composes normalization, content bounding, parsing and validation
"""
import time
from pathlib import Path
from typing import List, Optional, Union
import logging

from .core.config import Config
from .core.models import (
    DiagnosticEvent,
    FailureField,
    FieldFailure,
    RawSource,
    SourceKind,
    ValidationResult
)
from .core.utils import emit_diagnostic
from .stages.acquirer import OcrService, PdfTextService, SourceAcquirer
from .stages.content_extractor import ContentExtractor
from .stages.normalizer import Normalizer
from .stages.parser import StructuralParser
from .stages.validator import Validator


class RecipePipeline:
    """
    Recipe extraction pipeline

    Flow:
    1. Acquisition: typed text, image OCR, PDF text layer or OCR fallback
    2. Normalization: ordered repair passes
    3. Content bounding: start and end markers
    4. Structural parsing: section state machine
    5. Validation: completeness rules

    Holds configuration and stage objects only; every call keeps its data in
    locals, so one instance can serve concurrent callers.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        ocr_service: Optional[OcrService] = None,
        pdf_service: Optional[PdfTextService] = None
    ):
        """
        Initialize the pipeline

        Args:
            config: configuration object, defaults when None
            ocr_service: OCR service for images and scanned PDFs
            pdf_service: PDF text and rendering service
        """
        self.config = config or Config()
        self.logger = logging.getLogger(__name__)

        self.normalizer = Normalizer(self.config)
        self.extractor = ContentExtractor(self.config)
        self.parser = StructuralParser(self.config)
        self.validator = Validator(self.config)

        self._ocr_service = ocr_service
        self._pdf_service = pdf_service
        self._acquirer: Optional[SourceAcquirer] = None

    @classmethod
    def from_config_file(cls, config_path: str) -> "RecipePipeline":
        """
        Create a pipeline from a YAML configuration file

        Args:
            config_path: path to the YAML file

        Returns:
            pipeline instance
        """
        config = Config.load(config_path)
        errors = config.validate()
        if errors:
            raise ValueError(f"Invalid configuration: {'; '.join(errors)}")
        return cls(config)

    @property
    def acquirer(self) -> SourceAcquirer:
        """Source acquirer, created on first use"""
        if self._acquirer is None:
            self._acquirer = SourceAcquirer(self.config, self._ocr_service, self._pdf_service)
        return self._acquirer

    def extract(self, source: Union[RawSource, str]) -> ValidationResult:
        """
        Turn raw recipe text into a validated record

        Never raises: internal failures degrade to each stage's fallback and
        are reported in the result's diagnostics.

        Args:
            source: raw source (a plain string is treated as typed text)

        Returns:
            validation result
        """
        diagnostics: List[DiagnosticEvent] = []
        start_time = time.time()

        try:
            if not isinstance(source, RawSource):
                source = RawSource(text=source, source_kind=SourceKind.TYPED)
            self._check_ocr_confidence(source, diagnostics)

            normalized = self.normalizer.normalize(source.text, diagnostics)
            bounded = self.extractor.extract(normalized, diagnostics)
            candidate = self.parser.parse(bounded, diagnostics)
            result = self.validator.validate(candidate, diagnostics)

        except Exception as e:
            self.logger.error(f"Pipeline failed: {e}")
            emit_diagnostic(self.logger, DiagnosticEvent(
                stage="pipeline",
                kind="pipeline_failed",
                message=str(e)
            ), diagnostics)
            return ValidationResult(
                valid=False,
                record=None,
                failures=[
                    FieldFailure(field=field_name, reason=f"pipeline failed: {e}")
                    for field_name in FailureField
                ],
                diagnostics=diagnostics
            )

        duration_ms = (time.time() - start_time) * 1000
        self.logger.info(
            f"Extracted {source.source_kind.value} source {source.origin or ''}: "
            f"valid={result.valid}, {len(result.diagnostics)} diagnostic(s), {duration_ms:.1f} ms"
        )
        return result

    async def extract_path(self, path: Union[str, Path]) -> ValidationResult:
        """
        Acquire a file and extract the recipe

        Args:
            path: text, image or PDF file

        Returns:
            validation result

        Raises:
            AcquisitionError: the file could not be read
        """
        source = await self.acquirer.acquire_path(path)
        return self.extract(source)

    async def extract_text(self, text: str, origin: Optional[str] = None) -> ValidationResult:
        """
        Extract a recipe from typed text

        Args:
            text: typed recipe text
            origin: label for logs

        Returns:
            validation result
        """
        source = await self.acquirer.acquire_text(text, origin)
        return self.extract(source)

    def _check_ocr_confidence(self, source: RawSource, diagnostics: List[DiagnosticEvent]) -> None:
        threshold = self.config.acquisition.low_confidence_threshold
        if source.ocr_confidence is not None and source.ocr_confidence < threshold:
            emit_diagnostic(self.logger, DiagnosticEvent(
                stage="acquirer",
                kind="low_ocr_confidence",
                message=f"mean OCR confidence {source.ocr_confidence:.1f} below {threshold}",
                detail={"source_kind": source.source_kind.value, "origin": source.origin}
            ), diagnostics)


def extract(source: Union[RawSource, str]) -> ValidationResult:
    """
    Extract a recipe with the default configuration

    Args:
        source: raw source

    Returns:
        validation result
    """
    return RecipePipeline().extract(source)
