"""
Utility functions
Shared helpers for logging and text inspection
"""
import re
import logging
import unicodedata
from typing import List, Optional

from .models import DiagnosticEvent


def setup_logger(name: str, level: str = "INFO") -> logging.Logger:
    """
    Set up a logger

    Args:
        name: logger name
        level: log level

    Returns:
        configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(getattr(logging, level.upper()))
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def emit_diagnostic(
    logger: logging.Logger,
    event: DiagnosticEvent,
    sink: Optional[List[DiagnosticEvent]] = None
) -> None:
    """
    Log a diagnostic event and append it to the caller's sink

    Args:
        logger: stage logger
        event: diagnostic event
        sink: per-call event list, may be None
    """
    logger.warning(f"diagnostic: {event.to_json()}")
    if sink is not None:
        sink.append(event)


_NOISE_PATTERN = re.compile(
    r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]|'  # control characters
    r'[\ufeff\u200b-\u200f\u2060]'         # zero-width characters
)


def strip_noise_chars(text: str) -> str:
    """
    Remove control and zero-width characters

    Newlines, carriage returns and tabs are kept. No Unicode compatibility
    folding is applied, so vulgar fraction glyphs survive for the fraction pass.

    Args:
        text: input text

    Returns:
        text without noise characters
    """
    if not text:
        return ""
    return _NOISE_PATTERN.sub('', text)


def is_garbled(text: str, threshold: float = 0.1) -> tuple[bool, float]:
    """
    Detect garbled text (typical of PDFs with broken font encodings)

    Args:
        text: input text
        threshold: garbled ratio threshold

    Returns:
        (is garbled, garbled ratio)
    """
    if not text:
        return False, 0.0

    garble_count = 0
    total_count = 0

    for char in text:
        if char.isspace():
            continue
        total_count += 1
        category = unicodedata.category(char)
        # control, private-use and unassigned characters
        if category.startswith('C'):
            garble_count += 1
        # replacement character
        elif char == '\ufffd':
            garble_count += 1

    ratio = garble_count / total_count if total_count > 0 else 0.0
    return ratio > threshold, ratio

