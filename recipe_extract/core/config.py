"""
Configuration module
Loads the YAML configuration file into typed dataclasses
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional
import yaml
from dataclasses import dataclass, field


@dataclass
class NormalizationConfig:
    """Normalizer settings (each repair pass can be switched off)"""
    repair_structure: bool = True
    repair_steps: bool = True
    repair_fractions: bool = True
    comma_decimal: bool = True
    repair_measurements: bool = True
    repair_section_headers: bool = True
    repair_cooking_terms: bool = True
    normalize_temperatures: bool = True


@dataclass
class ExtractionConfig:
    """Content extractor settings"""
    title_lookback_lines: int = 3
    max_title_length: int = 80


@dataclass
class ParsingConfig:
    """Structural parser settings"""
    bullet_markers: str = "-*•"
    header_synonyms: bool = True
    infer_title: bool = True


@dataclass
class AcquisitionConfig:
    """Source acquisition settings (PDF text layer and OCR)"""
    min_text_chars: int = 50
    max_garble_ratio: float = 0.3
    ocr_provider: str = "tesseract"
    ocr_language: str = "eng"
    ocr_dpi: int = 300
    max_ocr_pages: int = 10
    ocr_timeout: float = 120.0
    pdf_timeout: float = 60.0
    low_confidence_threshold: float = 60.0
    ocr_endpoint: str = "http://localhost:8866/ocr"
    retry_times: int = 3


@dataclass
class RuntimeConfig:
    """Runtime settings"""
    log_level: str = "INFO"


@dataclass
class Config:
    """
    Configuration manager
    Loads settings from a YAML file and exposes them as typed sections
    """
    normalization: NormalizationConfig = field(default_factory=NormalizationConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    parsing: ParsingConfig = field(default_factory=ParsingConfig)
    acquisition: AcquisitionConfig = field(default_factory=AcquisitionConfig)
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    config_path: Optional[Path] = None

    @classmethod
    def load(cls, config_path: str) -> "Config":
        """
        Load configuration from a YAML file

        Args:
            config_path: path to the YAML file

        Returns:
            Config object
        """
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, 'r', encoding='utf-8') as f:
            raw_config = yaml.safe_load(f)

        config = cls.from_dict(raw_config or {})
        config.config_path = path
        return config

    @classmethod
    def from_dict(cls, raw_config: Dict[str, Any]) -> "Config":
        """
        Build configuration from a plain dictionary

        Missing sections and keys fall back to the dataclass defaults.

        Args:
            raw_config: configuration dictionary (same shape as the YAML file)

        Returns:
            Config object
        """
        # Normalization
        norm_cfg = raw_config.get('normalization', {}) or {}
        normalization = NormalizationConfig(
            repair_structure=norm_cfg.get('repair_structure', True),
            repair_steps=norm_cfg.get('repair_steps', True),
            repair_fractions=norm_cfg.get('repair_fractions', True),
            comma_decimal=norm_cfg.get('comma_decimal', True),
            repair_measurements=norm_cfg.get('repair_measurements', True),
            repair_section_headers=norm_cfg.get('repair_section_headers', True),
            repair_cooking_terms=norm_cfg.get('repair_cooking_terms', True),
            normalize_temperatures=norm_cfg.get('normalize_temperatures', True)
        )

        # Extraction
        extract_cfg = raw_config.get('extraction', {}) or {}
        extraction = ExtractionConfig(
            title_lookback_lines=extract_cfg.get('title_lookback_lines', 3),
            max_title_length=extract_cfg.get('max_title_length', 80)
        )

        # Parsing
        parsing_cfg = raw_config.get('parsing', {}) or {}
        parsing = ParsingConfig(
            bullet_markers=parsing_cfg.get('bullet_markers', "-*•"),
            header_synonyms=parsing_cfg.get('header_synonyms', True),
            infer_title=parsing_cfg.get('infer_title', True)
        )

        # Acquisition
        acq_cfg = raw_config.get('acquisition', {}) or {}
        acquisition = AcquisitionConfig(
            min_text_chars=acq_cfg.get('min_text_chars', 50),
            max_garble_ratio=acq_cfg.get('max_garble_ratio', 0.3),
            ocr_provider=acq_cfg.get('ocr_provider', 'tesseract'),
            ocr_language=acq_cfg.get('ocr_language', 'eng'),
            ocr_dpi=acq_cfg.get('ocr_dpi', 300),
            max_ocr_pages=acq_cfg.get('max_ocr_pages', 10),
            ocr_timeout=acq_cfg.get('ocr_timeout', 120.0),
            pdf_timeout=acq_cfg.get('pdf_timeout', 60.0),
            low_confidence_threshold=acq_cfg.get('low_confidence_threshold', 60.0),
            ocr_endpoint=acq_cfg.get('ocr_endpoint', 'http://localhost:8866/ocr'),
            retry_times=acq_cfg.get('retry_times', 3)
        )

        # Runtime
        runtime_cfg = raw_config.get('runtime', {}) or {}
        runtime = RuntimeConfig(
            log_level=runtime_cfg.get('log_level', 'INFO')
        )

        return cls(
            normalization=normalization,
            extraction=extraction,
            parsing=parsing,
            acquisition=acquisition,
            runtime=runtime
        )

    def validate(self) -> List[str]:
        """
        Validate configuration values

        Returns:
            list of error messages, empty when the configuration is valid
        """
        errors = []

        if self.extraction.title_lookback_lines < 0:
            errors.append("extraction.title_lookback_lines must be >= 0")
        if self.extraction.max_title_length <= 0:
            errors.append("extraction.max_title_length must be greater than 0")

        if not self.parsing.bullet_markers:
            errors.append("parsing.bullet_markers must not be empty")

        if self.acquisition.min_text_chars < 0:
            errors.append("acquisition.min_text_chars must be >= 0")
        if not 0 <= self.acquisition.max_garble_ratio <= 1:
            errors.append("acquisition.max_garble_ratio must be between 0 and 1")
        if self.acquisition.ocr_provider not in ("tesseract", "http"):
            errors.append("acquisition.ocr_provider must be 'tesseract' or 'http'")
        if self.acquisition.ocr_timeout <= 0 or self.acquisition.pdf_timeout <= 0:
            errors.append("acquisition timeouts must be greater than 0")
        if self.acquisition.max_ocr_pages <= 0:
            errors.append("acquisition.max_ocr_pages must be greater than 0")
        if self.acquisition.retry_times <= 0:
            errors.append("acquisition.retry_times must be greater than 0")

        if self.runtime.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR"):
            errors.append(f"runtime.log_level is not a valid level: {self.runtime.log_level}")

        return errors

    def __repr__(self) -> str:
        return (
            f"Config(path={self.config_path}, "
            f"ocr_provider={self.acquisition.ocr_provider}, "
            f"min_text_chars={self.acquisition.min_text_chars})"
        )
