"""
Validation stage
Checks the candidate record for structural completeness
"""
from typing import Callable, List, Optional, Tuple
import logging

from ..core.config import Config
from ..core.models import (
    DiagnosticEvent,
    FailureField,
    FieldFailure,
    StructuredRecipeCandidate,
    ValidationResult
)
from ..core.utils import emit_diagnostic


def check_title(candidate: StructuredRecipeCandidate) -> Optional[str]:
    """Title must be non-empty after trimming"""
    if not (candidate.title or "").strip():
        return "title is empty"
    return None


def check_ingredients(candidate: StructuredRecipeCandidate) -> Optional[str]:
    """At least one ingredient"""
    if len(candidate.ingredients) == 0:
        return "no ingredients found"
    return None


def check_instructions(candidate: StructuredRecipeCandidate) -> Optional[str]:
    """At least one instruction"""
    if len(candidate.instructions) == 0:
        return "no instructions found"
    return None


RULES: Tuple[Tuple[FailureField, Callable[[StructuredRecipeCandidate], Optional[str]]], ...] = (
    (FailureField.TITLE, check_title),
    (FailureField.INGREDIENTS, check_ingredients),
    (FailureField.INSTRUCTIONS, check_instructions),
)


class Validator:
    """
    Record validator
    Runs every rule and collects all failures; never repairs the record
    """

    def __init__(self, config: Optional[Config] = None):
        """
        Initialize the validator

        Args:
            config: configuration object
        """
        self.config = config or Config()
        self.logger = logging.getLogger(__name__)

    def validate(
        self,
        candidate: StructuredRecipeCandidate,
        diagnostics: Optional[List[DiagnosticEvent]] = None
    ) -> ValidationResult:
        """
        Validate a candidate record

        Args:
            candidate: record produced by the parser
            diagnostics: per-call event list, attached to the result

        Returns:
            validation result carrying the record and every failure
        """
        sink = diagnostics if diagnostics is not None else []
        failures = []

        for field_name, rule in RULES:
            try:
                reason = rule(candidate)
            except Exception as e:
                reason = f"rule could not be evaluated: {e}"
                emit_diagnostic(self.logger, DiagnosticEvent(
                    stage="validator",
                    kind="rule_failed",
                    message=str(e),
                    detail={"field": field_name.value}
                ), sink)
            if reason:
                failures.append(FieldFailure(field=field_name, reason=reason))

        if failures:
            self.logger.info(
                f"Validation failed: {', '.join(f.field.value for f in failures)}"
            )
        else:
            self.logger.info("Validation passed")

        return ValidationResult(
            valid=not failures,
            record=candidate if isinstance(candidate, StructuredRecipeCandidate) else None,
            failures=failures,
            diagnostics=sink
        )


def validate(
    candidate: StructuredRecipeCandidate,
    diagnostics: Optional[List[DiagnosticEvent]] = None
) -> ValidationResult:
    """
    Validate a candidate record with the default configuration

    Args:
        candidate: record produced by the parser
        diagnostics: per-call event list, attached to the result

    Returns:
        validation result
    """
    return Validator().validate(candidate, diagnostics)
