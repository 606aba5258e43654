"""
Palette definitions for Mandelbrot coloring.

Each generator returns a read-only numpy array of shape (256, 3) with
RGB values (uint8). Palettes are rebuilt in full whenever the selection
or base color changes; nothing mutates a palette after it is created, so
one instance can be shared by every band worker of every render.

To add a new palette:
1. Define a generate_xxx_palette() function that returns the color array
2. Add it to the PALETTES dictionary at the bottom of this file
"""

import logging
import math

import numpy as np

from .errors import UnsupportedPaletteKind

logger = logging.getLogger(__name__)

PALETTE_SIZE = 256


def _new_palette():
    return np.zeros((PALETTE_SIZE, 3), dtype=np.uint8)


def _freeze(colors):
    colors.flags.writeable = False
    return colors


def _clamp(val):
    return max(0, min(255, val))


def _hsb_to_rgb(hue):
    """
    Convert a hue at full saturation and brightness to 0-255 RGB.

    Rounds each channel to nearest (x * 255 + 0.5), the same way
    java.awt.Color.HSBtoRGB does, so hue sweeps match the GPU shader.
    """
    h = (hue - math.floor(hue)) * 6.0
    f = h - math.floor(h)
    q = 1.0 - f
    t = f
    sector = int(h)
    if sector == 0:
        r, g, b = 1.0, t, 0.0
    elif sector == 1:
        r, g, b = q, 1.0, 0.0
    elif sector == 2:
        r, g, b = 0.0, 1.0, t
    elif sector == 3:
        r, g, b = 0.0, q, 1.0
    elif sector == 4:
        r, g, b = t, 0.0, 1.0
    else:
        r, g, b = 1.0, 0.0, q
    return int(r * 255 + 0.5), int(g * 255 + 0.5), int(b * 255 + 0.5)


def generate_grayscale_palette():
    """Grayscale: entry i is (i, i, i)."""
    colors = _new_palette()
    for i in range(PALETTE_SIZE):
        colors[i] = [i, i, i]
    return _freeze(colors)


def generate_base_color_palette(base_color):
    """
    Linear ramp from black to a user-picked base color.

    Args:
        base_color: (r, g, b) tuple with channels in 0-255

    Raises:
        ValueError if base_color is not three channels in range
    """
    try:
        r, g, b = (int(c) for c in base_color)
    except (TypeError, ValueError):
        raise ValueError(f"base color must be an (r, g, b) triple, got {base_color!r}")
    if not all(0 <= c <= 255 for c in (r, g, b)):
        raise ValueError(f"base color channels must be in 0..255, got {base_color!r}")

    colors = _new_palette()
    for i in range(PALETTE_SIZE):
        colors[i] = [(r * i) // 255, (g * i) // 255, (b * i) // 255]
    return _freeze(colors)


def generate_orange_black_palette():
    """
    Orange-Black: black -> orange (1.0, 0.6, 0.2).

    Computed in single precision; float64 truncates a few entries one lower.
    """
    colors = _new_palette()
    for i in range(PALETTE_SIZE):
        t = np.float32(i) / np.float32(255)
        colors[i] = [int(t * np.float32(255)), int(t * np.float32(153)), int(t * np.float32(51))]
    return _freeze(colors)


def generate_cyan_palette():
    """
    Cyan: starts deep blue, ends in a warm pink.

    Red climbs 0.2 -> 1.0, green 0.1 -> 0.5, blue falls 1.0 -> ~0.1.
    """
    colors = _new_palette()
    for i in range(PALETTE_SIZE):
        t = i / 255
        r = int(51 + t * 204)
        g = int(25 + t * 102)
        b = int(255 - t * 229)
        colors[i] = [_clamp(r), _clamp(g), _clamp(b)]
    return _freeze(colors)


def generate_blue_green_palette():
    """Blue-Green: deep blue -> aqua."""
    colors = _new_palette()
    for i in range(PALETTE_SIZE):
        t = i / 255
        r = int(25 + t * 51)      # 0.1 to ~0.3
        g = int(t * 230)          # 0 to ~0.9
        b = int(179 + t * 76)     # 0.7 to ~1.0
        colors[i] = [_clamp(r), _clamp(g), _clamp(b)]
    return _freeze(colors)


def generate_fire_palette():
    """
    Fire: black -> red -> yellow -> white.

    Each channel ramps up over its own third of the table.
    """
    colors = _new_palette()
    for i in range(PALETTE_SIZE):
        r_frac = min(1.0, i / 85.0)
        g_frac = min(1.0, max(0.0, (i - 85) / 85.0))
        b_frac = min(1.0, max(0.0, (i - 170) / 85.0))
        colors[i] = [int(255 * r_frac), int(255 * g_frac), int(255 * b_frac)]
    return _freeze(colors)


def _hue_sweep(hue_of):
    colors = _new_palette()
    for i in range(PALETTE_SIZE):
        colors[i] = _hsb_to_rgb(hue_of(i / PALETTE_SIZE))
    return _freeze(colors)


def generate_hsv1_palette():
    """One full hue rotation, linear in the index."""
    return _hue_sweep(lambda u: u)


def generate_hsv2_palette():
    """Hue rotation with a 0.8 power curve (spends longer in the blues)."""
    return _hue_sweep(lambda u: u ** 0.8)


def generate_hsv3_palette():
    """Hue rotation with a square-root curve."""
    return _hue_sweep(math.sqrt)


# Registry of fixed palettes, in the order the viewer lists them.
# Integer selectors index into this order.
PALETTES = {
    'Grayscale': generate_grayscale_palette,
    'Orange-Black': generate_orange_black_palette,
    'Cyan': generate_cyan_palette,
    'Blue-Green': generate_blue_green_palette,
    'Fire': generate_fire_palette,
    'HSV1': generate_hsv1_palette,
    'HSV2': generate_hsv2_palette,
    'HSV3': generate_hsv3_palette,
}

CUSTOM_PALETTE = 'Custom'
DEFAULT_PALETTE = 'Fire'
DEFAULT_BASE_COLOR = (0, 0, 255)


def _normalize(name):
    return ''.join(ch for ch in str(name).lower() if ch.isalnum())


_BY_KEY = {_normalize(name): name for name in PALETTES}


def resolve_palette_name(kind):
    """
    Resolve a palette selector to its canonical name.

    Args:
        kind: Palette name ("Blue-Green", "blue_green", ...), 'Custom',
              or an integer index into PALETTES order

    Returns:
        Canonical name from PALETTES, or CUSTOM_PALETTE

    Raises:
        UnsupportedPaletteKind if the selector matches nothing
    """
    if isinstance(kind, int) and not isinstance(kind, bool):
        names = list(PALETTES)
        if 0 <= kind < len(names):
            return names[kind]
        raise UnsupportedPaletteKind(kind)
    key = _normalize(kind)
    if key == _normalize(CUSTOM_PALETTE):
        return CUSTOM_PALETTE
    if key in _BY_KEY:
        return _BY_KEY[key]
    raise UnsupportedPaletteKind(kind)


def generate_palette(kind, base_color=None):
    """
    Build a palette by selector.

    Unknown selectors fail closed to grayscale instead of raising, so a
    stale or mistyped setting never takes the viewer down.

    Args:
        kind: See resolve_palette_name
        base_color: (r, g, b) used by the 'Custom' ramp (default blue)

    Returns:
        Read-only (256, 3) uint8 array
    """
    try:
        name = resolve_palette_name(kind)
    except UnsupportedPaletteKind:
        logger.warning("Unsupported palette kind %r, using Grayscale", kind)
        return generate_grayscale_palette()

    if name == CUSTOM_PALETTE:
        return generate_base_color_palette(base_color if base_color is not None else DEFAULT_BASE_COLOR)
    return PALETTES[name]()


def get_default_palette():
    """Get the default palette (Fire)."""
    return generate_fire_palette()


def list_palette_names():
    """Get list of available palette names, including the custom ramp."""
    return list(PALETTES.keys()) + [CUSTOM_PALETTE]
