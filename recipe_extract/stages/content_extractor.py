"""
Content boundary stage
Cuts the recipe body out of surrounding prose and boilerplate
"""
import re
from typing import List, Optional, Tuple
import logging

from ..core.config import Config, ExtractionConfig
from ..core.models import DiagnosticEvent
from ..core.utils import emit_diagnostic
from .parser import is_metadata_line


# Matched case-insensitively; the lowest offset wins regardless of order
START_MARKERS = (
    ("ingredients", r'ingredients[ \t]*:'),
    ("yield", r'yield[ \t]*:[^\n]*servings'),
    ("prep_time", r'prep time[ \t]*:'),
    ("preparation_time", r'preparation time[ \t]*:'),
    ("cook_time", r'cook time[ \t]*:'),
    ("baking_time", r'baking time[ \t]*:'),
    ("total_time", r'total time[ \t]*:'),
)

END_MARKERS = (
    ("nutritional_information", r'nutritional information'),
    ("nutrition_facts", r'nutrition facts'),
    ("serving_suggestion", r'serving suggestion'),
    ("source", r'source[ \t]*:'),
    ("adapted_from", r'adapted from'),
    ("recipe_by", r'recipe by'),
    ("enjoy", r'enjoy!'),
)

_START_PATTERNS = [(name, re.compile(p, re.IGNORECASE)) for name, p in START_MARKERS]
_END_PATTERNS = [(name, re.compile(p, re.IGNORECASE)) for name, p in END_MARKERS]

_TITLE_LABEL = re.compile(r'^title[ \t]*:', re.IGNORECASE)
_LIST_MARKER = re.compile(r'^(?:[-*•]|\d+[.)])')
_SENTENCE_END = re.compile(r'[.!?]$')
_LINE = re.compile(r'^[^\n]*', re.MULTILINE)


class ContentExtractor:
    """
    Content extractor
    Finds where the recipe starts and ends inside normalized text
    """

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()
        self.extract_config: ExtractionConfig = self.config.extraction
        self.logger = logging.getLogger(__name__)

    def extract(
        self,
        normalized: str,
        diagnostics: Optional[List[DiagnosticEvent]] = None
    ) -> str:
        """
        Bound the recipe content

        Args:
            normalized: normalized text
            diagnostics: per-call event list receiving fallback events

        Returns:
            bounded text; the full input when bounding fails
        """
        if not normalized:
            return ""

        try:
            return self._bound(normalized, diagnostics)
        except Exception as e:
            self.logger.error(f"Content extraction failed, keeping full text: {e}")
            emit_diagnostic(self.logger, DiagnosticEvent(
                stage="content_extractor",
                kind="extraction_failed",
                message=str(e),
                detail={"input_length": len(normalized)}
            ), diagnostics)
            return normalized

    def _bound(self, text: str, diagnostics: Optional[List[DiagnosticEvent]]) -> str:
        marker = self.find_start_marker(text)

        if marker is None:
            start = len(text) - len(text.lstrip())
            search_from = start
            emit_diagnostic(self.logger, DiagnosticEvent(
                stage="content_extractor",
                kind="no_start_marker",
                message="no start marker found, starting at the first line",
                detail={"input_length": len(text)}
            ), diagnostics)
        else:
            name, offset = marker
            line_start = text.rfind('\n', 0, offset) + 1
            start = self._look_back(text, line_start)
            search_from = offset + 1
            self.logger.debug(f"Start marker '{name}' at offset {offset}, content starts at {start}")

        end_marker = self.find_end_marker(text, search_from)
        end = end_marker[1] if end_marker else len(text)
        if end_marker:
            self.logger.debug(f"End marker '{end_marker[0]}' at offset {end}")

        return text[start:end].rstrip()

    @staticmethod
    def find_start_marker(text: str) -> Optional[Tuple[str, int]]:
        """
        Find the earliest start marker

        Args:
            text: normalized text

        Returns:
            (marker name, offset), None when no marker is present
        """
        found = []
        for name, pattern in _START_PATTERNS:
            match = pattern.search(text)
            if match:
                found.append((match.start(), name))
        if not found:
            return None
        offset, name = min(found)
        return name, offset

    @staticmethod
    def find_end_marker(text: str, after: int) -> Optional[Tuple[str, int]]:
        """
        Find the earliest end marker at or after an offset

        Args:
            text: normalized text
            after: first offset to search from

        Returns:
            (marker name, offset), None when no marker follows
        """
        found = []
        for name, pattern in _END_PATTERNS:
            match = pattern.search(text, after)
            if match:
                found.append((match.start(), name))
        if not found:
            return None
        offset, name = min(found)
        return name, offset

    def _look_back(self, text: str, line_start: int) -> int:
        """
        Move the start back over the title lines above the start marker

        A "Title:" line in the window wins; otherwise the nearest title-like
        line, skipping metadata lines such as "Serves 4" and one-sentence
        descriptions such as "A crusty loaf for beginners."

        Args:
            text: normalized text
            line_start: offset of the line holding the start marker

        Returns:
            new start offset
        """
        window_size = self.extract_config.title_lookback_lines
        if window_size <= 0 or line_start == 0:
            return line_start

        preceding = [
            (m.start(), m.group(0).strip())
            for m in _LINE.finditer(text, 0, line_start)
            if m.group(0).strip()
        ]
        window = list(reversed(preceding[-window_size:]))

        for offset, line in window:
            if _TITLE_LABEL.match(line):
                return offset

        for offset, line in window:
            if is_metadata_line(line) or self._is_sentence(line):
                continue
            if self._is_title_like(line):
                return offset
            break

        return line_start

    @staticmethod
    def _is_sentence(line: str) -> bool:
        return bool(_SENTENCE_END.search(line)) and not _LIST_MARKER.match(line)

    def _is_title_like(self, line: str) -> bool:
        """Short, unterminated, not a marker and not a list item"""
        if len(line) > self.extract_config.max_title_length:
            return False
        if line.endswith('.') or _LIST_MARKER.match(line):
            return False
        if not any(char.isalpha() for char in line):
            return False
        for _, pattern in _START_PATTERNS + _END_PATTERNS:
            if pattern.search(line):
                return False
        return True


def extract_content(
    normalized: str,
    diagnostics: Optional[List[DiagnosticEvent]] = None
) -> str:
    """
    Bound the recipe content with the default configuration

    Args:
        normalized: normalized text
        diagnostics: per-call event list receiving fallback events

    Returns:
        bounded text
    """
    return ContentExtractor().extract(normalized, diagnostics)
