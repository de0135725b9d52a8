"""
Text normalization stage
Repairs whitespace, OCR confusions, fractions, units and section headers
"""
import re
from dataclasses import dataclass
from typing import Callable, List, Optional
import logging

from ..core.config import Config, NormalizationConfig
from ..core.models import DiagnosticEvent
from ..core.utils import emit_diagnostic, strip_noise_chars


# Applying the pass list is repeated until the text stops changing
MAX_ROUNDS = 4

UNIT_TOKENS = r'cups?|tbsp|tsp|oz|lbs?|kg|ml'

VULGAR_FRACTIONS = {
    '½': '1/2', '⅓': '1/3', '⅔': '2/3', '¼': '1/4', '¾': '3/4',
    '⅕': '1/5', '⅖': '2/5', '⅗': '3/5', '⅘': '4/5', '⅙': '1/6',
    '⅚': '5/6', '⅐': '1/7', '⅛': '1/8', '⅜': '3/8', '⅝': '5/8',
    '⅞': '7/8', '⅑': '1/9', '⅒': '1/10',
}

UNIT_ABBREVIATIONS = {'c': 'cup', 'T': 'tbsp', 't': 'tsp'}

SECTION_HEADER_WORDS = (
    r'title|description|ingredients|instructions|directions|method|steps|'
    r'preparation|notes|tips'
)

COOKING_TERMS = frozenset({
    'preheat', 'mix', 'mixing', 'stir', 'stirring', 'whisk', 'whisking',
    'bake', 'baking', 'knead', 'kneading', 'fold', 'simmer', 'boil',
    'combine', 'sprinkle', 'oven', 'bowl', 'mixture', 'dough', 'batter',
    'skillet', 'saucepan', 'flour', 'sugar', 'butter',
})


# ---------------------------------------------------------------------------
# Compiled patterns
# ---------------------------------------------------------------------------

_MULTI_SPACE = re.compile(r'[ \t\u00a0\u2000-\u200a\u202f\u3000]+')
_MULTI_NEWLINE = re.compile(r'\n{3,}')

_INGREDIENT_PATTERN = re.compile(
    r'\d[ \t]?(?:' + UNIT_TOKENS + r'|cup5|tb5p|t5p|0z)(?![a-z])|'
    r'\d(?:' + UNIT_TOKENS + r')[a-z]|'
    r'\d[ \t]?(?:g|L)\b',
    re.IGNORECASE
)
_GLUED_UNIT_WORD = re.compile(r'(?<=\d)(' + UNIT_TOKENS + r')(?=[a-z]{3,})', re.IGNORECASE)
_MERGED_INGREDIENT = re.compile(r'(?<=[A-Za-z)])\.(?=\d+(?:[./]\d+)?(?:[ \t]|[A-Za-z]))')

_INLINE_STEP = re.compile(r'(?<=[.!?)])[ \t]+(?=Step[ \t]*\d+\b|\d{1,2}\.[ \t]+[A-Za-z])')
_GLUED_STEP = re.compile(r'(?<=[A-Za-z][.!?])(?=\d{1,2}\.[ \t]*[A-Za-z])')
_STEP_WORD_PREFIX = re.compile(r'^step[ \t]*(\d+)[ \t]*[:.)-]?[ \t]*', re.IGNORECASE | re.MULTILINE)
_STEP_PAREN_PREFIX = re.compile(r'^(\d{1,2})\)[ \t]+', re.MULTILINE)
_STEP_DOT_NO_SPACE = re.compile(r'^(\d{1,2})\.(?=[A-Za-z])', re.MULTILINE)
_STEP_LINE_NO_GAP = re.compile(r'(?<=[^\n])\n(?=\d{1,3}\.\s)')

_OCR_FRACTION = re.compile(r'(?<![A-Za-z0-9])[lI|]/([2348])(?!\d)')
_GLYPHS = '[' + ''.join(VULGAR_FRACTIONS) + ']'
_MIXED_GLYPH = re.compile(r'(\d)[ \t]*(' + _GLYPHS + ')')
_WORD_GLYPH = re.compile(r'(?<=[A-Za-z])(' + _GLYPHS + ')')
_GLYPH = re.compile(_GLYPHS)
_FRACTION_SLASH = re.compile(r'(\d)⁄(\d)')
_COMMA_DECIMAL = re.compile(r'(?<=\d),(?=\d)')

_OCR_UNIT_TOKENS = (
    (re.compile(r'(?<![A-Za-z])cup5\b'), 'cups'),
    (re.compile(r'(?<![A-Za-z])tb5p\b'), 'tbsp'),
    (re.compile(r'(?<![A-Za-z])t5p\b'), 'tsp'),
    (re.compile(r'(?<![A-Za-z0-9])0z\b'), 'oz'),
)
_UNIT_ABBREVIATION = re.compile(r'(\d)[ \t]*(c|T|t)\.(?=\s|$|[A-Za-z])')
_UNIT_SPACING = re.compile(r'(\d)[ \t]*(' + UNIT_TOKENS + r')\b', re.IGNORECASE)
_UNIT_SPACING_CASED = re.compile(r'(\d)[ \t]*(g|L)\b')

_OCR_HEADER_WORDS = (
    (re.compile(r'(?<![A-Za-z])[l1|]ngredients|Ingred[1l]ents', re.IGNORECASE), 'Ingredients'),
    (re.compile(r'(?<![A-Za-z])D[1l|]rections|Direct[1l]ons', re.IGNORECASE), 'Directions'),
    (re.compile(r'(?<![A-Za-z])[l1|]nstructions|Instruct[1l]ons', re.IGNORECASE), 'Instructions'),
)
_BARE_HEADER = re.compile(
    r'^(ingredients|instructions|directions|method|notes|tips)[ \t]*$',
    re.IGNORECASE | re.MULTILINE
)
_HEADER_NO_GAP = re.compile(
    r'(?<=[^\n])\n(?=(?:' + SECTION_HEADER_WORDS + r')[ \t]*:)',
    re.IGNORECASE
)

_WORD = re.compile(r'[A-Za-z]+')

_TEMP_PERIOD = re.compile(r'(?<!\d)(\d{3,})[ \t]?([FC])\.')
_TEMP_DEGREES = re.compile(r'(?<!\d)(\d+)[ \t]*degrees?[ \t]*([FC])(?:ahrenheit|elsius)?\b', re.IGNORECASE)
_TEMP_OCR_DEGREE = re.compile(r'(?<!\d)(\d{2,})[oO]([FC])\b')
_TEMP_SPACED_DEGREE = re.compile(r'(?<!\d)(\d+)[ \t]*°[ \t]*([FC])\b')


# ---------------------------------------------------------------------------
# Repair passes
# ---------------------------------------------------------------------------

def normalize_line_endings(text: str) -> str:
    """
    Convert line endings to LF

    Pre: any string.
    Post: the text contains no carriage returns.
    """
    return text.replace('\r\n', '\n').replace('\r', '\n')


def collapse_whitespace(text: str) -> str:
    """
    Collapse whitespace

    Pre: LF line endings.
    Post: no control or zero-width characters, single spaces, trimmed lines,
    at most one blank line in a row, no leading or trailing blank lines.
    """
    text = strip_noise_chars(text)
    text = _MULTI_SPACE.sub(' ', text)
    text = '\n'.join(line.strip() for line in text.split('\n'))
    text = _MULTI_NEWLINE.sub('\n\n', text)
    return text.strip()


def repair_recipe_structure(text: str) -> str:
    """
    Split glued units and merged ingredient lines

    Only runs when the text contains a quantity followed by a unit token.

    Pre: collapsed whitespace.
    Post: "2cupsflour" reads "2cups flour"; "flour.2 eggs" is split onto two
    lines after the period.
    """
    if not _INGREDIENT_PATTERN.search(text):
        return text
    text = _GLUED_UNIT_WORD.sub(r'\1 ', text)
    return _MERGED_INGREDIENT.sub('.\n', text)


def repair_numbered_steps(text: str) -> str:
    """
    Put numbered steps on their own lines

    Pre: collapsed whitespace.
    Post: every "Step n" / "n." that followed sentence punctuation mid-line
    starts a new line, with or without a space after the punctuation;
    line-initial "Step n:", "n)" and "n.Word" read "n. "; every step line is
    preceded by a blank line.
    """
    text = _INLINE_STEP.sub('\n', text)
    text = _GLUED_STEP.sub('\n', text)
    text = _STEP_WORD_PREFIX.sub(r'\1. ', text)
    text = _STEP_PAREN_PREFIX.sub(r'\1. ', text)
    text = _STEP_DOT_NO_SPACE.sub(r'\1. ', text)
    return _STEP_LINE_NO_GAP.sub('\n\n', text)


def repair_fractions(text: str) -> str:
    """
    Resolve OCR fraction confusions and Unicode fraction glyphs

    Pre: none.
    Post: "l/2", "I/4", "|/3" read "1/n"; vulgar fraction glyphs read "n/d"
    and are separated from a preceding whole number or word by one space;
    the fraction slash reads "/".
    """
    text = _OCR_FRACTION.sub(r'1/\1', text)
    text = _MIXED_GLYPH.sub(lambda m: f"{m.group(1)} {VULGAR_FRACTIONS[m.group(2)]}", text)
    text = _WORD_GLYPH.sub(lambda m: f" {VULGAR_FRACTIONS[m.group(1)]}", text)
    text = _GLYPH.sub(lambda m: VULGAR_FRACTIONS[m.group(0)], text)
    return _FRACTION_SLASH.sub(r'\1/\2', text)


def repair_comma_decimal(text: str) -> str:
    """
    Rewrite a comma between two digits as a decimal point

    Known limitation: "1,000" becomes "1.000".

    Post: no comma sits between two digits.
    """
    return _COMMA_DECIMAL.sub('.', text)


def repair_measurements(text: str) -> str:
    """
    Repair unit tokens

    Pre: fractions already resolved.
    Post: OCR unit tokens (cup5, tb5p, t5p, 0z) are spelled out, "c." / "T." /
    "t." after a quantity read cup / tbsp / tsp, and exactly one space
    separates a quantity from its unit.
    """
    for pattern, replacement in _OCR_UNIT_TOKENS:
        text = pattern.sub(replacement, text)
    text = _UNIT_ABBREVIATION.sub(
        lambda m: f"{m.group(1)} {UNIT_ABBREVIATIONS[m.group(2)]} ", text
    )
    text = _UNIT_SPACING.sub(r'\1 \2', text)
    return _UNIT_SPACING_CASED.sub(r'\1 \2', text)


def repair_section_headers(text: str) -> str:
    """
    Canonicalize section headers

    Post: OCR-damaged header words are spelled correctly, bare header lines
    end with a colon and every header line is preceded by a blank line.
    """
    for pattern, replacement in _OCR_HEADER_WORDS:
        text = pattern.sub(replacement, text)
    text = _BARE_HEADER.sub(r'\1:', text)
    return _HEADER_NO_GAP.sub('\n\n', text)


def _repair_term(match: re.Match) -> str:
    word = match.group(0)
    lower = word.lower()
    if lower not in COOKING_TERMS:
        return word
    if word.islower() or word.isupper() or word == word.capitalize():
        return word
    return lower.capitalize() if word[0].isupper() else lower


def repair_cooking_terms(text: str) -> str:
    """
    Repair mixed-case OCR damage in common recipe words

    Post: "PreHeat" reads "Preheat", "bOwl" reads "bowl". Lowercase,
    capitalized and all-caps words are left alone.
    """
    return _WORD.sub(_repair_term, text)


def normalize_temperatures(text: str) -> str:
    """
    Normalize temperatures to the degree sign form

    Post: "350F." reads "350°F.", "350 degrees F" and "350oF" read "350°F".
    The "<n>C." form needs three digits so "1 C. flour" and "12 C. water"
    keep their cups.
    """
    text = _TEMP_PERIOD.sub(r'\1°\2.', text)
    text = _TEMP_DEGREES.sub(lambda m: f"{m.group(1)}°{m.group(2).upper()}", text)
    text = _TEMP_OCR_DEGREE.sub(r'\1°\2', text)
    return _TEMP_SPACED_DEGREE.sub(r'\1°\2', text)


@dataclass(frozen=True)
class RepairPass:
    """A named text transformation and the config flag that enables it"""
    name: str
    func: Callable[[str], str]
    option: Optional[str] = None


DEFAULT_PASSES = (
    RepairPass("line_endings", normalize_line_endings),
    RepairPass("whitespace", collapse_whitespace),
    RepairPass("recipe_structure", repair_recipe_structure, "repair_structure"),
    RepairPass("numbered_steps", repair_numbered_steps, "repair_steps"),
    RepairPass("fractions", repair_fractions, "repair_fractions"),
    RepairPass("comma_decimal", repair_comma_decimal, "comma_decimal"),
    RepairPass("measurements", repair_measurements, "repair_measurements"),
    RepairPass("section_headers", repair_section_headers, "repair_section_headers"),
    RepairPass("cooking_terms", repair_cooking_terms, "repair_cooking_terms"),
    RepairPass("temperatures", normalize_temperatures, "normalize_temperatures"),
    RepairPass("tidy", collapse_whitespace),
)

FALLBACK_PASSES = DEFAULT_PASSES[:2]


class RepairPassError(Exception):
    """A repair pass raised"""

    def __init__(self, pass_name: str, error: Exception):
        super().__init__(f"repair pass '{pass_name}' failed: {error}")
        self.pass_name = pass_name
        self.error = error


class Normalizer:
    """
    Text normalizer
    Runs the ordered repair passes; never raises
    """

    def __init__(self, config: Optional[Config] = None):
        """
        Initialize the normalizer

        Args:
            config: configuration object, defaults when None
        """
        self.config = config or Config()
        self.norm_config: NormalizationConfig = self.config.normalization
        self.logger = logging.getLogger(__name__)

        self.passes: List[RepairPass] = [
            repair for repair in DEFAULT_PASSES
            if repair.option is None or getattr(self.norm_config, repair.option)
        ]

    def normalize(
        self,
        raw,
        diagnostics: Optional[List[DiagnosticEvent]] = None
    ) -> str:
        """
        Normalize raw text

        Args:
            raw: raw text (None, bytes and other objects are coerced)
            diagnostics: per-call event list receiving fallback events

        Returns:
            normalized text
        """
        try:
            text = self._coerce(raw)
        except Exception as e:
            self.logger.error(f"Cannot read input as text: {e}")
            emit_diagnostic(self.logger, DiagnosticEvent(
                stage="normalizer",
                kind="unreadable_input",
                message=str(e),
                detail={"input_type": type(raw).__name__}
            ), diagnostics)
            return ""

        if not text:
            return ""

        try:
            normalized, rounds = self._run_to_fixpoint(text)
        except RepairPassError as e:
            self.logger.error(f"Normalization failed, using whitespace-only cleanup: {e}")
            emit_diagnostic(self.logger, DiagnosticEvent(
                stage="normalizer",
                kind="pass_failed",
                message=str(e.error),
                detail={"pass": e.pass_name, "input_length": len(text)}
            ), diagnostics)
            return self.fallback(text)

        self.logger.debug(
            f"Normalized {len(text)} -> {len(normalized)} chars in {rounds} round(s)"
        )
        return normalized

    def fallback(self, text: str) -> str:
        """
        Minimal cleanup: line endings and whitespace only

        Args:
            text: raw text

        Returns:
            minimally cleaned text
        """
        for repair in FALLBACK_PASSES:
            text = repair.func(text)
        return text

    def _run_to_fixpoint(self, text: str) -> tuple[str, int]:
        """
        Apply the pass list until the output stops changing

        Args:
            text: raw text

        Returns:
            (normalized text, rounds used)
        """
        rounds = 0
        previous = None
        while text != previous and rounds < MAX_ROUNDS:
            previous = text
            text = self._apply_passes(text)
            rounds += 1
        return text, rounds

    def _apply_passes(self, text: str) -> str:
        """Apply every enabled pass once, in order"""
        for repair in self.passes:
            try:
                text = repair.func(text)
            except Exception as e:
                raise RepairPassError(repair.name, e) from e
        return text

    @staticmethod
    def _coerce(raw) -> str:
        """Turn the input into a str"""
        if raw is None:
            return ""
        if isinstance(raw, bytes):
            return raw.decode('utf-8', errors='replace')
        if not isinstance(raw, str):
            return str(raw)
        return raw


def normalize(raw, diagnostics: Optional[List[DiagnosticEvent]] = None) -> str:
    """
    Normalize raw text with the default configuration

    Args:
        raw: raw text
        diagnostics: per-call event list receiving fallback events

    Returns:
        normalized text
    """
    return Normalizer().normalize(raw, diagnostics)
