"""
Viewer settings loaded from settings.json.

The JSON file beside this module supplies defaults for the render
controller. Any key missing from the file keeps its built-in default, and
a missing or unreadable file falls back to the built-in defaults entirely.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields, replace

from .compute import ColorMode, parse_color_mode
from .viewport import DEFAULT_VIEWPORT, Viewport

logger = logging.getLogger(__name__)

SETTINGS_PATH = os.path.join(os.path.dirname(__file__), 'settings.json')


@dataclass(frozen=True)
class Settings:
    max_iterations: int = 2000
    palette: str = 'Fire'
    base_color: tuple = (0, 0, 255)
    color_mode: ColorMode = ColorMode.ESCAPE_TIME
    auto_refine: bool = True
    coarse_scale: int = 4
    refine_delay_ms: int = 200
    multithreaded: bool = True
    show_timer: bool = True
    zoom_in_factor: float = 0.8
    zoom_out_factor: float = 1.2
    viewport: Viewport = DEFAULT_VIEWPORT

    @property
    def refine_delay(self) -> float:
        """Refine delay in seconds."""
        return self.refine_delay_ms / 1000.0

    def updated(self, **changes) -> "Settings":
        return _coerce(replace(self, **changes))


def _coerce(settings: Settings) -> Settings:
    """Convert JSON-ish values to their typed form and check ranges."""
    viewport = settings.viewport
    if not isinstance(viewport, Viewport):
        viewport = Viewport(*viewport)
    coerced = replace(
        settings,
        max_iterations=int(settings.max_iterations),
        base_color=tuple(int(c) for c in settings.base_color),
        color_mode=parse_color_mode(settings.color_mode),
        coarse_scale=int(settings.coarse_scale),
        refine_delay_ms=int(settings.refine_delay_ms),
        zoom_in_factor=float(settings.zoom_in_factor),
        zoom_out_factor=float(settings.zoom_out_factor),
        viewport=viewport,
    )
    if coerced.max_iterations < 1:
        raise ValueError(f"max_iterations must be >= 1, got {coerced.max_iterations}")
    if coerced.coarse_scale < 1:
        raise ValueError(f"coarse_scale must be >= 1, got {coerced.coarse_scale}")
    if coerced.refine_delay_ms < 0:
        raise ValueError(f"refine_delay_ms must be >= 0, got {coerced.refine_delay_ms}")
    return coerced


def load_settings(path=None) -> Settings:
    """
    Load settings from a JSON file.

    Args:
        path: JSON file to read (default: settings.json beside this module)

    Returns:
        Settings with file values merged over the built-in defaults
    """
    path = path or SETTINGS_PATH
    try:
        with open(path, 'r') as f:
            raw = json.load(f)
    except (FileNotFoundError, json.JSONDecodeError) as e:
        logger.warning("Could not load %s: %s", path, e)
        return Settings()

    if not isinstance(raw, dict):
        logger.warning("Ignoring %s: expected a JSON object", path)
        return Settings()

    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(raw) - known)
    if unknown:
        logger.warning("Ignoring unknown settings in %s: %s", path, ", ".join(unknown))

    try:
        return _coerce(replace(Settings(), **{k: v for k, v in raw.items() if k in known}))
    except (TypeError, ValueError) as e:
        logger.warning("Invalid settings in %s: %s", path, e)
        return Settings()
