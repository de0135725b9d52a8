"""
Data models
Defines every structure passed between the pipeline stages
"""
from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional
from enum import Enum
import json
from datetime import datetime


class SourceKind(str, Enum):
    """Where the raw text came from"""
    TYPED = "typed"
    OCR = "ocr"
    PDF_TEXT = "pdf-text"
    PDF_OCR_FALLBACK = "pdf-ocr-fallback"


class FailureField(str, Enum):
    """Fields checked by the validator"""
    TITLE = "title"
    INGREDIENTS = "ingredients"
    INSTRUCTIONS = "instructions"


@dataclass(frozen=True)
class RawSource:
    """
    Raw source text
    Produced once per acquisition and discarded after the pipeline completes
    """
    text: str                               # raw text as delivered by the source
    source_kind: SourceKind                 # typed / ocr / pdf-text / pdf-ocr-fallback
    origin: Optional[str] = None            # file name, for logs only
    ocr_confidence: Optional[float] = None  # mean OCR confidence 0-100

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict"""
        return {
            "text": self.text,
            "source_kind": self.source_kind.value,
            "origin": self.origin,
            "ocr_confidence": self.ocr_confidence
        }


@dataclass
class OcrResult:
    """Result returned by an OCR service"""
    text: str
    confidence_per_region: Optional[List[float]] = None

    @property
    def mean_confidence(self) -> Optional[float]:
        """Mean region confidence, None when the service reports none"""
        if not self.confidence_per_region:
            return None
        return sum(self.confidence_per_region) / len(self.confidence_per_region)


@dataclass
class DiagnosticEvent:
    """
    Diagnostic event
    Emitted whenever a stage degrades to its fallback behaviour
    """
    stage: str                          # normalizer, content_extractor, parser, ...
    kind: str                           # pass_failed, no_start_marker, ...
    message: str
    detail: Dict[str, Any] = field(default_factory=dict)
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict"""
        return asdict(self)

    def to_json(self) -> str:
        """Convert to JSON string"""
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)


@dataclass
class StructuredRecipeCandidate:
    """
    Structured recipe candidate
    Built by the structural parser; treated as immutable once emitted.
    List order is the source order and is never re-sorted.
    """
    title: str = ""
    description: str = ""
    ingredients: List[str] = field(default_factory=list)
    instructions: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)
    metadata: Dict[str, str] = field(default_factory=dict)  # prep_time, cook_time, servings, ...

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict"""
        return {
            "title": self.title,
            "description": self.description,
            "ingredients": list(self.ingredients),
            "instructions": list(self.instructions),
            "notes": list(self.notes),
            "metadata": dict(self.metadata)
        }

    def to_json(self) -> str:
        """Convert to JSON string"""
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StructuredRecipeCandidate":
        """Create from dict"""
        return cls(
            title=data.get("title", ""),
            description=data.get("description", ""),
            ingredients=list(data.get("ingredients", [])),
            instructions=list(data.get("instructions", [])),
            notes=list(data.get("notes", [])),
            metadata=dict(data.get("metadata", {}))
        )


@dataclass
class FieldFailure:
    """A single failed validation rule"""
    field: FailureField
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict"""
        return {"field": self.field.value, "reason": self.reason}


@dataclass
class ValidationResult:
    """
    Validation result
    `record` carries whatever structure was recovered, even when invalid,
    so callers can offer it as an editable draft.
    """
    valid: bool
    record: Optional[StructuredRecipeCandidate] = None
    failures: List[FieldFailure] = field(default_factory=list)
    diagnostics: List[DiagnosticEvent] = field(default_factory=list)

    @property
    def failed_fields(self) -> List[FailureField]:
        """Fields that failed, in rule order"""
        return [failure.field for failure in self.failures]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict"""
        return {
            "valid": self.valid,
            "record": self.record.to_dict() if self.record else None,
            "failures": [failure.to_dict() for failure in self.failures],
            "diagnostics": [event.to_dict() for event in self.diagnostics]
        }

    def to_json(self, indent: Optional[int] = None) -> str:
        """Convert to JSON string"""
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=indent, default=str)
