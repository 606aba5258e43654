"""
Viewport type and the pixel <-> complex plane mapping.

Every render re-derives its horizontal extent from the output pixel size
(aspect locked to the vertical axis), so the stored viewport never has to
be square and resizing the window never stretches the image.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from .errors import InvalidViewport


@dataclass(frozen=True)
class Viewport:
    """Rectangle of the complex plane mapped onto the output image."""

    x_min: float
    x_max: float
    y_min: float
    y_max: float

    def __post_init__(self) -> None:
        values = (self.x_min, self.x_max, self.y_min, self.y_max)
        if not all(math.isfinite(v) for v in values):
            raise InvalidViewport(f"viewport bounds must be finite, got {values}")
        if not (self.x_min < self.x_max and self.y_min < self.y_max):
            raise InvalidViewport(f"viewport bounds are empty or inverted: {values}")

    @classmethod
    def from_center(cls, cx: float, cy: float, width: float, height: float) -> "Viewport":
        return cls(cx - width / 2, cx + width / 2, cy - height / 2, cy + height / 2)

    @property
    def width(self) -> float:
        return self.x_max - self.x_min

    @property
    def height(self) -> float:
        return self.y_max - self.y_min

    @property
    def center(self) -> tuple[float, float]:
        return (self.x_min + self.x_max) / 2, (self.y_min + self.y_max) / 2

    def as_tuple(self) -> tuple[float, float, float, float]:
        return self.x_min, self.x_max, self.y_min, self.y_max


DEFAULT_VIEWPORT = Viewport(-2.0, 1.0, -1.5, 1.5)


def _check_size(output_width: int, output_height: int) -> None:
    if output_width <= 0 or output_height <= 0:
        raise ValueError(f"output size must be positive, got {output_width}x{output_height}")


def map_viewport(viewport: Viewport, output_width: int, output_height: int) -> Viewport:
    """
    Aspect-normalize a viewport for an output size.

    The vertical extent is kept, the horizontal extent is rescaled to
    output_width / output_height, and the result stays centered on the
    viewport's center.
    """
    _check_size(output_width, output_height)
    aspect = output_width / output_height
    cx, cy = viewport.center
    new_h = viewport.height
    new_w = new_h * aspect
    return Viewport(cx - new_w / 2, cx + new_w / 2, cy - new_h / 2, cy + new_h / 2)


def pixel_to_complex(bounds: Viewport, output_width: int, output_height: int,
                     px: float, py: float) -> tuple[float, float]:
    """Map a pixel of the output image to its point c = x0 + i*y0."""
    _check_size(output_width, output_height)
    x0 = bounds.x_min + px * (bounds.x_max - bounds.x_min) / output_width
    y0 = bounds.y_min + py * (bounds.y_max - bounds.y_min) / output_height
    return x0, y0
