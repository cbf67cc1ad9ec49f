"""Canonical forms for custom-property values.

The merger compares values through :func:`normalize_value` so that
``#ff0000``, ``rgb(255, 0, 0)`` and ``red`` count as the same value while
anything that is not a color only has its whitespace normalized.
"""

import logging
from functools import lru_cache

from tinycss2.color4 import Color

from .utils import (
    collapse_whitespace,
    color_to_srgb,
    format_number,
    is_dynamic_value,
    parse_css_color,
    to_8bit,
)

logger = logging.getLogger(__name__)


def format_canonical_rgb(r: float, g: float, b: float, alpha: float) -> str:
    """Render sRGB channels in the canonical ``rgb(R G B / A)`` notation."""
    channels = f"{to_8bit(r)} {to_8bit(g)} {to_8bit(b)}"
    if round(alpha, 3) >= 1:
        return f"rgb({channels})"
    return f"rgb({channels} / {format_number(alpha)})"


@lru_cache(maxsize=4096)
def normalize_value(value: str) -> str:
    """Normalize a CSS property value for comparison.

    Args:
        value: Raw declaration value

    Returns:
        Canonical ``rgb(...)`` text for colors, ``currentcolor`` for the
        keyword, otherwise the value with whitespace collapsed
    """
    text = collapse_whitespace(value or "")
    if not text:
        return ""

    # Variables and calc() are not safe to color-parse
    if is_dynamic_value(text):
        return text

    try:
        color = parse_css_color(text)
        if color == 'currentcolor':
            return 'currentcolor'
        if isinstance(color, Color):
            rgb = color_to_srgb(color)
            if rgb is not None:
                return format_canonical_rgb(*rgb)
    except (ValueError, ArithmeticError) as e:
        logger.debug(f"Treating {text!r} as a plain value: {e}")

    return text


def values_equal(left: str, right: str) -> bool:
    """Check whether two values are equivalent after normalization."""
    return normalize_value(left) == normalize_value(right)
