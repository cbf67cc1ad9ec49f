"""Rewrite color values in generated stylesheets to a single notation."""

import logging
from typing import Optional, Union

from .schema import DEFAULT_ALIAS_AT_RULE, ColorFormat
from .stylesheet import parse_document
from .utils import (
    clamp_chroma,
    clamp_unit,
    format_number,
    is_dynamic_value,
    parse_srgb,
    rgb_to_hex,
    srgb_to_oklch,
    to_8bit,
)

logger = logging.getLogger(__name__)


def format_color(value: str, target: Union[ColorFormat, str]) -> Optional[str]:
    """Render a color value in the target notation.

    Args:
        value: CSS color text
        target: Output notation

    Returns:
        Reformatted text, or None when the value is not a convertible color
    """
    target = ColorFormat(target)
    rgb = parse_srgb(value)
    if rgb is None:
        return None

    r, g, b, alpha = rgb
    alpha = clamp_unit(alpha)

    if target == ColorFormat.OKLCH:
        L, C, H = clamp_chroma(*srgb_to_oklch(r, g, b))
        channels = " ".join(format_number(channel, 4) for channel in (L, C, H))
        if round(alpha, 4) < 1:
            return f"oklch({channels} / {format_number(alpha, 4)})"
        return f"oklch({channels})"

    red, green, blue = (to_8bit(clamp_unit(channel)) for channel in (r, g, b))

    if target == ColorFormat.HEX:
        return rgb_to_hex(red, green, blue, alpha if alpha < 1 else None)

    if target == ColorFormat.RGBA:
        return f"rgba({red}, {green}, {blue}, {format_number(alpha)})"

    if round(alpha, 3) < 1:
        return f"rgba({red}, {green}, {blue}, {format_number(alpha)})"
    return f"rgb({red}, {green}, {blue})"


def transform_css_color_format(css: str, target: Union[ColorFormat, str],
                               alias_at_rule: str = DEFAULT_ALIAS_AT_RULE) -> str:
    """Rewrite custom-property colors in managed blocks to one notation.

    Values that reference variables, use ``calc()`` or are not colors are
    left untouched, as is everything outside the managed blocks.

    Args:
        css: Stylesheet text
        target: Output notation
        alias_at_rule: At-rule name of the alias block

    Returns:
        The stylesheet text with color values rewritten

    Raises:
        StylesheetParseError: If the stylesheet cannot be parsed
        ValueError: If target is not a known ColorFormat
    """
    target = ColorFormat(target)
    document = parse_document(css, alias_at_rule)

    rewritten = 0
    for block in document.blocks():
        for decl in block.declarations():
            if not decl.is_custom_property or not decl.value or is_dynamic_value(decl.value):
                continue
            formatted = format_color(decl.value, target)
            if formatted is not None and formatted != decl.value:
                decl.set_value(formatted)
                rewritten += 1

    logger.debug(f"Rewrote {rewritten} color values as {target.value}")
    return document.serialize()
