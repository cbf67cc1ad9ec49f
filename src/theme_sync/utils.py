"""Utility functions for color handling in generated stylesheets.

This module provides CSS color parsing (via tinycss2's Color Level 4 parser),
conversion of every supported color space to sRGB, Oklab/OKLCH conversion,
gamut mapping, and the small formatting helpers shared by the value
normalizer and the color format transform.
"""

import math
import re
from typing import Optional, Tuple, Union

from tinycss2.color4 import Color, parse_color

# r, g, b in the 0-1 range (may fall outside it for wide-gamut input), alpha 0-1
SrgbColor = Tuple[float, float, float, float]

_DYNAMIC_VALUE_RE = re.compile(r'(var|calc)\(', re.IGNORECASE)
_WHITESPACE_RE = re.compile(r'\s+')

# Matrices from https://www.w3.org/TR/css-color-4/#color-conversion-code
_XYZ_D65_TO_LINEAR_SRGB = (
    (3.2409699419045226, -1.537383177570094, -0.4986107602930034),
    (-0.9692436362808796, 1.8759675015077202, 0.04155505740717559),
    (0.05563007969699366, -0.20397695888897652, 1.0569715142428786),
)
_D50_TO_D65 = (
    (0.955473421488075, -0.02309845494876471, 0.06325924320057072),
    (-0.0283697093338637, 1.0099953980813041, 0.021041441191917323),
    (0.012314014864481998, -0.020507649298898964, 1.330365926242124),
)
_LINEAR_P3_TO_XYZ_D65 = (
    (0.4865709486482162, 0.26566769316909306, 0.1982172852343625),
    (0.2289745640697488, 0.6917385218365064, 0.079286914093745),
    (0.0, 0.04511338185890264, 1.043944368900976),
)


def collapse_whitespace(value: str) -> str:
    """Collapse internal whitespace runs to one space and trim the ends."""
    return _WHITESPACE_RE.sub(' ', value).strip()


def is_dynamic_value(value: str) -> bool:
    """Check whether a value references a variable or a computed expression."""
    return bool(_DYNAMIC_VALUE_RE.search(value))


def _multiply(matrix, vector) -> Tuple[float, float, float]:
    return tuple(sum(row[i] * vector[i] for i in range(3)) for row in matrix)


def srgb_decode(channel: float) -> float:
    """Convert a gamma-encoded sRGB channel to linear light."""
    sign = -1 if channel < 0 else 1
    magnitude = abs(channel)
    if magnitude <= 0.04045:
        return channel / 12.92
    return sign * ((magnitude + 0.055) / 1.055) ** 2.4


def srgb_encode(channel: float) -> float:
    """Convert a linear-light channel to gamma-encoded sRGB."""
    sign = -1 if channel < 0 else 1
    magnitude = abs(channel)
    if magnitude <= 0.0031308:
        return channel * 12.92
    return sign * (1.055 * magnitude ** (1 / 2.4) - 0.055)


def _xyz_d65_to_srgb(xyz) -> Tuple[float, float, float]:
    linear = _multiply(_XYZ_D65_TO_LINEAR_SRGB, xyz)
    return tuple(srgb_encode(channel) for channel in linear)


def parse_css_color(value: str) -> Union[Color, str, None]:
    """Parse a CSS color value.

    Args:
        value: Any CSS value text

    Returns:
        A tinycss2 Color, the string ``'currentcolor'``, or None when the
        value is not a single color
    """
    value = value.strip()
    if not value:
        return None
    try:
        return parse_color(value)
    except ValueError:
        # e.g. ``color()`` with no color space argument
        return None


def color_to_srgb(color: Color) -> Optional[SrgbColor]:
    """Convert a parsed color to gamma-encoded sRGB.

    Args:
        color: tinycss2 Color in any supported space

    Returns:
        (r, g, b, alpha) tuple, or None for spaces without a conversion path
        (a98-rgb, prophoto-rgb, rec2020) and for channels that overflow a float
    """
    space = color.space
    coordinates = tuple(coordinate or 0 for coordinate in color.coordinates)

    if space == 'srgb':
        rgb = coordinates
    elif space in ('hsl', 'hwb'):
        rgb = color.to('srgb').coordinates
    elif space == 'srgb-linear':
        rgb = tuple(srgb_encode(channel) for channel in coordinates)
    elif space in ('lab', 'lch'):
        rgb = _xyz_d65_to_srgb(_multiply(_D50_TO_D65, color.to('xyz-d50').coordinates))
    elif space in ('oklab', 'oklch'):
        rgb = _xyz_d65_to_srgb(color.to('xyz-d65').coordinates)
    elif space == 'xyz-d65':
        rgb = _xyz_d65_to_srgb(coordinates)
    elif space == 'xyz-d50':
        rgb = _xyz_d65_to_srgb(_multiply(_D50_TO_D65, coordinates))
    elif space == 'display-p3':
        linear = tuple(srgb_decode(channel) for channel in coordinates)
        rgb = _xyz_d65_to_srgb(_multiply(_LINEAR_P3_TO_XYZ_D65, linear))
    else:
        return None

    r, g, b = rgb
    if not all(math.isfinite(channel) for channel in (r, g, b, color.alpha)):
        return None
    return (r, g, b, color.alpha)


def parse_srgb(value: str) -> Optional[SrgbColor]:
    """Parse a CSS value straight to sRGB.

    Returns None for non-colors, ``currentcolor`` and unsupported spaces.
    """
    color = parse_css_color(value)
    if not isinstance(color, Color):
        return None
    return color_to_srgb(color)


def to_8bit(channel: float) -> int:
    """Scale a 0-1 channel to 0-255, rounding half up (not clamped)."""
    return int(math.floor(channel * 255 + 0.5))


def clamp_unit(channel: float) -> float:
    return min(1.0, max(0.0, channel))


def format_number(value: float, places: int = 3) -> str:
    """Format a float compactly (``0.5``, ``1``, ``0.333``)."""
    rounded = round(value, places)
    if rounded == int(rounded):
        return str(int(rounded))
    return f"{rounded:.{places}f}".rstrip('0').rstrip('.')


def rgb_to_hex(r: int, g: int, b: int, alpha: Optional[float] = None) -> str:
    """Convert RGB values to hex color string.

    Args:
        r, g, b: RGB values 0-255
        alpha: Optional alpha 0-1; appended as a fourth byte when given

    Returns:
        Hex color string with # prefix
    """
    hex_color = f"#{r:02x}{g:02x}{b:02x}"
    if alpha is not None:
        hex_color += f"{to_8bit(alpha):02x}"
    return hex_color


def linear_srgb_to_oklab(r: float, g: float, b: float) -> Tuple[float, float, float]:
    """Convert linear-light sRGB to Oklab (Björn Ottosson's reference matrices)."""
    l = 0.4122214708 * r + 0.5363325363 * g + 0.0514459929 * b
    m = 0.2119034982 * r + 0.6806995451 * g + 0.1073969566 * b
    s = 0.0883024619 * r + 0.2817188376 * g + 0.6299787005 * b

    l_, m_, s_ = (math.copysign(abs(x) ** (1 / 3), x) for x in (l, m, s))

    return (
        0.2104542553 * l_ + 0.7936177850 * m_ - 0.0040720468 * s_,
        1.9779984951 * l_ - 2.4285922050 * m_ + 0.4505937099 * s_,
        0.0259040371 * l_ + 0.7827717662 * m_ - 0.8086757660 * s_,
    )


def oklab_to_linear_srgb(L: float, a: float, b: float) -> Tuple[float, float, float]:
    """Convert Oklab to linear-light sRGB."""
    l_ = L + 0.3963377774 * a + 0.2158037573 * b
    m_ = L - 0.1055613458 * a - 0.0638541728 * b
    s_ = L - 0.0894841775 * a - 1.2914855480 * b

    l, m, s = l_ ** 3, m_ ** 3, s_ ** 3

    return (
        4.0767416621 * l - 3.3077115913 * m + 0.2309699292 * s,
        -1.2684380046 * l + 2.6097574011 * m - 0.3413193965 * s,
        -0.0041960863 * l - 0.7034186147 * m + 1.7076147010 * s,
    )


def srgb_to_oklch(r: float, g: float, b: float) -> Tuple[float, float, float]:
    """Convert gamma-encoded sRGB to OKLCH (lightness 0-1, chroma, hue degrees)."""
    L, a, b_ = linear_srgb_to_oklab(srgb_decode(r), srgb_decode(g), srgb_decode(b))
    chroma = math.hypot(a, b_)
    hue = math.degrees(math.atan2(b_, a)) % 360 if chroma > 1e-7 else 0.0
    return (L, chroma, hue)


def oklch_to_srgb(L: float, C: float, H: float) -> Tuple[float, float, float]:
    """Convert OKLCH to gamma-encoded sRGB."""
    a = C * math.cos(math.radians(H))
    b = C * math.sin(math.radians(H))
    return tuple(srgb_encode(channel) for channel in oklab_to_linear_srgb(L, a, b))


def in_srgb_gamut(r: float, g: float, b: float, epsilon: float = 1e-5) -> bool:
    """Check whether sRGB channels lie within the displayable 0-1 range."""
    return all(-epsilon <= channel <= 1 + epsilon for channel in (r, g, b))


def clamp_chroma(L: float, C: float, H: float, iterations: int = 24) -> Tuple[float, float, float]:
    """Reduce OKLCH chroma until the color fits the sRGB gamut.

    Lightness and hue are preserved; chroma is found by bisection.
    """
    L = min(1.0, max(0.0, L))
    if in_srgb_gamut(*oklch_to_srgb(L, C, H)):
        return (L, C, H)

    low, high = 0.0, C
    for _ in range(iterations):
        mid = (low + high) / 2
        if in_srgb_gamut(*oklch_to_srgb(L, mid, H)):
            low = mid
        else:
            high = mid
    return (L, low, H)
