# Core module
from .config import Config
from .models import (
    RawSource, SourceKind, StructuredRecipeCandidate, ValidationResult,
    FieldFailure, FailureField, DiagnosticEvent, OcrResult
)

__all__ = [
    "Config", "RawSource", "SourceKind", "StructuredRecipeCandidate",
    "ValidationResult", "FieldFailure", "FailureField", "DiagnosticEvent", "OcrResult"
]
