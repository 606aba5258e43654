"""
Mandelbrot Set Compute-and-Color Engine

Renders the Mandelbrot set over any rectangle of the complex plane using
Numba-compiled kernels split into row bands across a thread pool, with
progressive (coarse-then-refined) rendering for interactive pan/zoom.

Quick Start:
    from mandelbrot import render, generate_palette, Viewport, ColorMode
    pixels = render(Viewport(-2.0, 1.0, -1.5, 1.5), 800, 800,
                    max_iterations=500, color_mode=ColorMode.SMOOTH,
                    palette=generate_palette('Fire'))

Or from command line (headless render with timing):
    python -m mandelbrot --width 800 --height 800 --mode smooth

Package Structure:
    - viewport.py: Viewport type and pixel <-> complex plane mapping
    - compute.py: JIT-compiled escape-time, smooth and orbit-trap coloring
    - palettes.py: 256-entry palette generators
    - scheduler.py: Render requests and the row-band tile scheduler
    - view.py: Pan/zoom/reset view state
    - renderer.py: Progressive render controller with auto-refine
    - config.py: settings.json loading
"""

from .compute import ColorMode, color_pixel, warmup_jit
from .config import Settings, load_settings
from .errors import InvalidViewport, MandelbrotError, UnsupportedPaletteKind, WorkerFailure
from .palettes import PALETTES, generate_grayscale_palette, generate_palette, list_palette_names
from .renderer import Frame, ProgressiveRenderer, RefineState
from .scheduler import RenderRequest, TileScheduler, make_request, render
from .view import ShaderUniforms, ViewState
from .viewport import DEFAULT_VIEWPORT, Viewport, map_viewport, pixel_to_complex

__version__ = "1.0.0"
__all__ = [
    "ColorMode",
    "DEFAULT_VIEWPORT",
    "Frame",
    "InvalidViewport",
    "MandelbrotError",
    "PALETTES",
    "ProgressiveRenderer",
    "RefineState",
    "RenderRequest",
    "Settings",
    "ShaderUniforms",
    "TileScheduler",
    "UnsupportedPaletteKind",
    "ViewState",
    "Viewport",
    "WorkerFailure",
    "color_pixel",
    "generate_grayscale_palette",
    "generate_palette",
    "list_palette_names",
    "load_settings",
    "make_request",
    "map_viewport",
    "pixel_to_complex",
    "render",
    "warmup_jit",
]
