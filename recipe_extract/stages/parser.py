"""
Structural parsing stage
Folds the bounded text line by line through a section state machine
"""
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from functools import reduce
from typing import Dict, List, Optional, Tuple
import logging

from ..core.config import Config, ParsingConfig
from ..core.models import DiagnosticEvent, StructuredRecipeCandidate
from ..core.utils import emit_diagnostic


class Section(Enum):
    """Parser states"""
    NONE = "none"
    TITLE = "title"
    DESCRIPTION = "description"
    INGREDIENTS = "ingredients"
    INSTRUCTIONS = "instructions"
    NOTES = "notes"


CORE_HEADERS = {
    "title": Section.TITLE,
    "description": Section.DESCRIPTION,
    "ingredients": Section.INGREDIENTS,
    "instructions": Section.INSTRUCTIONS,
}

SYNONYM_HEADERS = {
    "directions": Section.INSTRUCTIONS,
    "method": Section.INSTRUCTIONS,
    "steps": Section.INSTRUCTIONS,
    "preparation": Section.INSTRUCTIONS,
    "you'll need": Section.INGREDIENTS,
    "you will need": Section.INGREDIENTS,
    "notes": Section.NOTES,
    "note": Section.NOTES,
    "tips": Section.NOTES,
    "tip": Section.NOTES,
}

_HEADER = re.compile(r"^([A-Za-z'’ ]+?)[ \t]*:[ \t]*(.*)$")
_NUMBERED = re.compile(r'^(\d+)\.(?!\d)[ \t]*(.*)$')
_NOTE_MARKER = re.compile(r'^(?:[-*•]|\d+[.)](?!\d))[ \t]*')

_METADATA_LABELED = re.compile(
    r'^(prep(?:aration)? time|cook(?:ing)? time|baking time|total time|yield|servings)'
    r'[ \t]*:[ \t]*(.+)$',
    re.IGNORECASE
)
_METADATA_VERB = re.compile(r'^(serves|makes)[ \t]+(\d.*)$', re.IGNORECASE)

METADATA_KEYS = {
    "prep time": "prep_time",
    "preparation time": "prep_time",
    "cook time": "cook_time",
    "cooking time": "cook_time",
    "baking time": "bake_time",
    "total time": "total_time",
    "yield": "yield",
    "servings": "servings",
    "serves": "servings",
    "makes": "yield",
}


def match_metadata(line: str) -> Optional[Tuple[str, str]]:
    """
    Match a recipe metadata line

    Args:
        line: trimmed line

    Returns:
        (metadata key, value), None when the line is not metadata
    """
    match = _METADATA_LABELED.match(line) or _METADATA_VERB.match(line)
    if not match:
        return None
    label = ' '.join(match.group(1).lower().split())
    return METADATA_KEYS[label], match.group(2).strip()


def is_metadata_line(line: str) -> bool:
    """Whether the line is prep/cook time, yield or servings"""
    return match_metadata(line.strip()) is not None


@dataclass(frozen=True)
class ParseRules:
    """Configuration-derived parsing rules"""
    headers: Dict[str, Section] = field(
        default_factory=lambda: {**CORE_HEADERS, **SYNONYM_HEADERS}
    )
    bullet_markers: str = "-*•"
    infer_title: bool = True

    @classmethod
    def from_config(cls, parsing: ParsingConfig) -> "ParseRules":
        headers = dict(CORE_HEADERS)
        if parsing.header_synonyms:
            headers.update(SYNONYM_HEADERS)
        return cls(
            headers=headers,
            bullet_markers=parsing.bullet_markers,
            infer_title=parsing.infer_title
        )

    def match_header(self, line: str) -> Optional[Tuple[Section, str]]:
        """
        Match a section header line

        Returns:
            (section, text after the colon), None when not a header
        """
        match = _HEADER.match(line)
        if not match:
            return None
        label = ' '.join(match.group(1).lower().replace('’', "'").split())
        section = self.headers.get(label)
        if section is None:
            return None
        return section, match.group(2).strip()


DEFAULT_RULES = ParseRules()


@dataclass(frozen=True)
class ParseState:
    """
    Parser state
    A new value is produced for every line; nothing is mutated
    """
    section: Section = Section.NONE
    title: str = ""
    awaiting_title: bool = False
    description: str = ""
    ingredients: Tuple[str, ...] = ()
    instructions: Tuple[str, ...] = ()
    notes: Tuple[str, ...] = ()
    metadata: Tuple[Tuple[str, str], ...] = ()

    def to_candidate(self) -> StructuredRecipeCandidate:
        """Emit the candidate record"""
        return StructuredRecipeCandidate(
            title=self.title,
            description=self.description,
            ingredients=list(self.ingredients),
            instructions=list(self.instructions),
            notes=list(self.notes),
            metadata=dict(self.metadata)
        )


def _append_description(description: str, text: str) -> str:
    return f"{description} {text}" if description else text


def _content(state: ParseState, text: str, rules: ParseRules) -> ParseState:
    """Handle a non-header, non-metadata line in the current section"""
    section = state.section

    if section is Section.NONE:
        if rules.infer_title and not state.title:
            return replace(state, title=text)
        return replace(state, description=_append_description(state.description, text))

    if section is Section.TITLE:
        if state.awaiting_title or not state.title:
            return replace(state, title=text, awaiting_title=False)
        return state

    if section is Section.DESCRIPTION:
        return replace(state, description=_append_description(state.description, text))

    if section is Section.INGREDIENTS:
        if text[0] not in rules.bullet_markers:
            return state
        item = text[1:].strip()
        if not item:
            return state
        return replace(state, ingredients=state.ingredients + (item,))

    if section is Section.INSTRUCTIONS:
        match = _NUMBERED.match(text)
        if not match or not match.group(2).strip():
            return state
        return replace(state, instructions=state.instructions + (match.group(2).strip(),))

    if section is Section.NOTES:
        note = _NOTE_MARKER.sub('', text).strip()
        if not note:
            return state
        return replace(state, notes=state.notes + (note,))

    return state


def step(state: ParseState, line: str, rules: ParseRules = DEFAULT_RULES) -> ParseState:
    """
    Advance the state machine by one line

    Args:
        state: current state
        line: next line of bounded text
        rules: header table, bullet markers and title inference switch

    Returns:
        next state
    """
    text = line.strip()
    if not text:
        return state

    metadata = match_metadata(text)
    if metadata:
        return replace(state, metadata=state.metadata + (metadata,))

    header = rules.match_header(text)
    if header is None:
        return _content(state, text, rules)

    section, remainder = header
    if section is Section.TITLE:
        return replace(
            state,
            section=section,
            title=remainder or state.title,
            awaiting_title=not remainder
        )
    if section is Section.DESCRIPTION:
        state = replace(state, section=section, description="")
    else:
        state = replace(state, section=section)

    if remainder:
        return _content(state, remainder, rules)
    return state


class StructuralParser:
    """
    Structural parser
    Turns bounded text into a candidate record; never raises
    """

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()
        self.rules = ParseRules.from_config(self.config.parsing)
        self.logger = logging.getLogger(__name__)

    def parse(
        self,
        bounded: str,
        diagnostics: Optional[List[DiagnosticEvent]] = None
    ) -> StructuredRecipeCandidate:
        """
        Parse bounded text

        Args:
            bounded: bounded text
            diagnostics: per-call event list receiving fallback events

        Returns:
            candidate record; empty when parsing fails
        """
        try:
            lines = (bounded or "").split('\n')
            final = reduce(lambda state, line: step(state, line, self.rules), lines, ParseState())
        except Exception as e:
            self.logger.error(f"Structural parsing failed: {e}")
            emit_diagnostic(self.logger, DiagnosticEvent(
                stage="parser",
                kind="parse_failed",
                message=str(e),
                detail={"input_length": len(bounded) if isinstance(bounded, str) else None}
            ), diagnostics)
            return StructuredRecipeCandidate()

        self.logger.debug(
            f"Parsed: {len(final.ingredients)} ingredients, "
            f"{len(final.instructions)} instructions, final section {final.section.value}"
        )
        return final.to_candidate()


def parse_structure(
    bounded: str,
    diagnostics: Optional[List[DiagnosticEvent]] = None
) -> StructuredRecipeCandidate:
    """
    Parse bounded text with the default configuration

    Args:
        bounded: bounded text
        diagnostics: per-call event list receiving fallback events

    Returns:
        candidate record
    """
    return StructuralParser().parse(bounded, diagnostics)
