# Recipe text extraction and normalization
from .core import Config, RawSource, SourceKind, ValidationResult
from .pipeline import RecipePipeline, extract

__all__ = ["Config", "RawSource", "SourceKind", "ValidationResult", "RecipePipeline", "extract"]
