"""
Input Validation Utilities

This module provides validation and normalization for thought input:
1. clean_content: Trims post text and enforces the length limit
2. normalize_font / normalize_category / normalize_color: Map presentation
   choices onto the known set, falling back to the default

Presentation choices are never rejected, only normalized: an unknown font
is not worth failing a post over.
"""

from restspace.exceptions import InvalidContent


MAX_CONTENT_LENGTH = 2000

VALID_FONTS = ("sans-serif", "serif", "mono")
VALID_CATEGORIES = ("thought", "diary", "aspiration")
VALID_COLORS = ("default", "rose", "amber", "sage", "sky", "lavender")


def clean_content(content) -> str:
    """
    Trim post text and check its length.

    Args:
        content: Raw text from the request body

    Returns:
        The trimmed text

    Raises:
        InvalidContent: if content is not a string, or is empty or longer
                        than MAX_CONTENT_LENGTH after trimming

    Examples:
        >>> clean_content("  hello  ")
        'hello'
    """
    if not isinstance(content, str):
        raise InvalidContent("Content required")
    trimmed = content.strip()
    if not trimmed or len(trimmed) > MAX_CONTENT_LENGTH:
        raise InvalidContent(f"Content must be 1-{MAX_CONTENT_LENGTH} characters")
    return trimmed


def _pick(value, allowed: tuple[str, ...]) -> str:
    return value if value in allowed else allowed[0]


def normalize_font(font) -> str:
    return _pick(font, VALID_FONTS)


def normalize_category(category) -> str:
    return _pick(category, VALID_CATEGORIES)


def normalize_color(color) -> str:
    return _pick(color, VALID_COLORS)
