"""
Mandelbrot escape-time computation using Numba JIT compilation.

This module contains the performance-critical per-pixel functions. All
of them iterate z -> z² + c from z = 0 and return a palette index, or
-1 for points that are painted black (inside the set).

Supported color modes:
- 0: Escape time (banded rings, index = iterations mod palette length)
- 1: Smooth (fractional escape count, no banding)
- 2: Orbit trap (minimum distance of the orbit to the origin)

Every kernel is compiled with nogil=True so that the tile scheduler's
worker threads run bands truly in parallel.
"""

import math
from enum import IntEnum

import numpy as np
from numba import jit


# Mode IDs
MODE_ESCAPE_TIME = 0
MODE_SMOOTH = 1
MODE_ORBIT_TRAP = 2

ESCAPE_RADIUS_SQ = 4.0          # |z|² bound for escape time and smooth
ORBIT_TRAP_RADIUS_SQ = 100.0    # loop bound only, never used for coloring
SMOOTH_STRETCH = 5.0            # palette steps per unit of smooth count
ORBIT_TRAP_FALLOFF = 5.0
ORBIT_TRAP_GAMMA = 1.5
LOG2 = math.log(2.0)


class ColorMode(IntEnum):
    """Coloring strategy applied to each pixel."""

    ESCAPE_TIME = MODE_ESCAPE_TIME
    SMOOTH = MODE_SMOOTH
    ORBIT_TRAP = MODE_ORBIT_TRAP

    @property
    def label(self):
        return self.name.replace('_', ' ').title()


def parse_color_mode(value):
    """
    Convert a mode selector to a ColorMode.

    Accepts ColorMode members, integers, and names in any case with
    spaces, dashes or underscores ("Orbit Trap", "orbit_trap").

    Raises:
        ValueError if the selector matches no mode
    """
    if isinstance(value, ColorMode):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return ColorMode(value)
    key = str(value).strip().upper().replace('-', '_').replace(' ', '_')
    try:
        return ColorMode[key]
    except KeyError:
        raise ValueError(f"unknown color mode: {value!r}")


@jit(nopython=True, nogil=True, cache=True)
def escape_iterations(x0, y0, max_iter):
    """
    Iterate z² + c while |z|² <= 4.

    Returns:
        (n, zr, zi): iteration count and the final z. n == max_iter means
        the orbit never escaped.
    """
    zr = 0.0
    zi = 0.0
    n = 0
    while zr * zr + zi * zi <= ESCAPE_RADIUS_SQ and n < max_iter:
        new_zr = zr * zr - zi * zi + x0
        zi = 2.0 * zr * zi + y0
        zr = new_zr
        n += 1
    return n, zr, zi


@jit(nopython=True, nogil=True, cache=True)
def escape_time_index(x0, y0, max_iter, n_colors):
    """Palette index for escape-time coloring (-1 = interior)."""
    n, zr, zi = escape_iterations(x0, y0, max_iter)
    if n >= max_iter:
        return -1
    return n % n_colors


@jit(nopython=True, nogil=True, cache=True)
def smooth_value(n, zr, zi):
    """Continuous escape estimate mu = n + 1 - log(log|z|) / log 2."""
    zn = math.sqrt(zr * zr + zi * zi)
    return n + 1 - math.log(math.log(zn)) / LOG2


@jit(nopython=True, nogil=True, cache=True)
def smooth_index(x0, y0, max_iter, n_colors):
    """Palette index for smooth coloring (-1 = interior)."""
    n, zr, zi = escape_iterations(x0, y0, max_iter)
    if n >= max_iter:
        return -1
    mu = smooth_value(n, zr, zi)
    idx = int(math.floor(mu * SMOOTH_STRETCH)) % n_colors
    return max(0, min(idx, n_colors - 1))


@jit(nopython=True, nogil=True, cache=True)
def orbit_trap_distance(x0, y0, max_iter):
    """Minimum |z| over the orbit z_1 .. z_n, stopping once |z|² > 100."""
    zr = 0.0
    zi = 0.0
    min_dist = np.inf
    for _ in range(max_iter):
        new_zr = zr * zr - zi * zi + x0
        zi = 2.0 * zr * zi + y0
        zr = new_zr
        r2 = zr * zr + zi * zi
        dist = math.sqrt(r2)
        if dist < min_dist:
            min_dist = dist
        if r2 > ORBIT_TRAP_RADIUS_SQ:
            break
    return min_dist


@jit(nopython=True, nogil=True, cache=True)
def orbit_trap_index(x0, y0, max_iter, n_colors):
    """Palette index for orbit-trap coloring. Never black."""
    min_dist = orbit_trap_distance(x0, y0, max_iter)
    t = math.exp(-min_dist * ORBIT_TRAP_FALLOFF)
    t = t ** ORBIT_TRAP_GAMMA
    idx = int(t * (n_colors - 1))
    return max(0, min(idx, n_colors - 1))


@jit(nopython=True, nogil=True, cache=True)
def color_index(x0, y0, max_iter, n_colors, mode):
    """Dispatch to the selected coloring function."""
    if mode == MODE_SMOOTH:
        return smooth_index(x0, y0, max_iter, n_colors)
    elif mode == MODE_ORBIT_TRAP:
        return orbit_trap_index(x0, y0, max_iter, n_colors)
    return escape_time_index(x0, y0, max_iter, n_colors)


@jit(nopython=True, nogil=True, cache=True)
def compute_band(x_min, x_max, y_min, y_max, width, height,
                 row_start, row_end, max_iter, mode, palette, out):
    """
    Color rows [row_start, row_end) of an image, writing into out.

    Row 0 maps to y_min. Only the band's own rows of out are touched, so
    disjoint bands can be filled from different threads without locking.

    Args:
        x_min, x_max, y_min, y_max: Aspect-normalized bounds of the image
        width, height: Full image dimensions
        row_start, row_end: Band to compute
        max_iter: Maximum iteration count
        mode: One of the MODE_* constants
        palette: Nx3 array of RGB colors (uint8)
        out: (height, width, 3) uint8 image, modified in place
    """
    n_colors = palette.shape[0]
    span_x = x_max - x_min
    span_y = y_max - y_min

    for py in range(row_start, row_end):
        y0 = y_min + py * span_y / height
        for px in range(width):
            x0 = x_min + px * span_x / width
            idx = color_index(x0, y0, max_iter, n_colors, mode)
            if idx < 0:
                out[py, px, 0] = 0
                out[py, px, 1] = 0
                out[py, px, 2] = 0
            else:
                out[py, px, 0] = palette[idx, 0]
                out[py, px, 1] = palette[idx, 1]
                out[py, px, 2] = palette[idx, 2]


# Pure function table used for single-pixel evaluation. The band kernel
# dispatches on the same MODE_* ids inside compiled code.
COLOR_FUNCTIONS = {
    ColorMode.ESCAPE_TIME: escape_time_index,
    ColorMode.SMOOTH: smooth_index,
    ColorMode.ORBIT_TRAP: orbit_trap_index,
}

_missing = set(ColorMode) - set(COLOR_FUNCTIONS)
if _missing:
    raise ImportError(f"no color function for modes: {sorted(m.name for m in _missing)}")


def color_pixel(x0, y0, max_iter, mode, palette):
    """
    Color a single point of the complex plane.

    Returns:
        (r, g, b) tuple of ints; (0, 0, 0) for interior points
    """
    index_fn = COLOR_FUNCTIONS[parse_color_mode(mode)]
    idx = index_fn(float(x0), float(y0), int(max_iter), int(palette.shape[0]))
    if idx < 0:
        return (0, 0, 0)
    r, g, b = palette[idx]
    return (int(r), int(g), int(b))


def warmup_jit(palette):
    """
    Warm up JIT compilation with a tiny dummy image.

    Call this once at startup to pre-compile the Numba functions for
    every color mode, avoiding a delay on the first real render.
    """
    dummy = np.zeros((4, 4, 3), dtype=np.uint8)
    for mode in ColorMode:
        compute_band(-2.0, 1.0, -1.5, 1.5, 4, 4, 0, 4, 10, int(mode), palette, dummy)
