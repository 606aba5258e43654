"""
View state: the current viewport and the pan/zoom/reset operations.

Pixel coordinates follow the CPU image orientation: row 0 of the pixel
buffer is y_min, and y grows downward on screen. A backend with the
vertical axis flipped (the GPU shader draws from the bottom-left) mirrors
py before mapping; the viewport itself is the same for both.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .errors import InvalidViewport
from .viewport import DEFAULT_VIEWPORT, Viewport, map_viewport, pixel_to_complex

logger = logging.getLogger(__name__)

ZOOM_IN_FACTOR = 0.8
ZOOM_OUT_FACTOR = 1.2
MIN_PIXEL_SPAN = 1e-15  # below this float64 can no longer tell pixels apart


@dataclass(frozen=True)
class ShaderUniforms:
    """Parameters of the GPU backend, derived from the same view model."""

    resolution: tuple[int, int]
    center: tuple[float, float]
    zoom: float
    max_iterations: int
    color_mode: int
    palette_mode: int


class ViewState:
    """
    Owns the viewport shown in a canvas of width x height pixels.

    Only the interaction thread mutates a ViewState. Renders read a
    frozen Viewport snapshot, never the live object.
    """

    def __init__(self, width, height, viewport=None, default_viewport=DEFAULT_VIEWPORT,
                 zoom_in_factor=ZOOM_IN_FACTOR, zoom_out_factor=ZOOM_OUT_FACTOR):
        self.width = 1
        self.height = 1
        self.resize(width, height)
        self.default_viewport = self.set_viewport(default_viewport)
        if viewport is not None:
            self.set_viewport(viewport)
        self.zoom_in_factor = zoom_in_factor
        self.zoom_out_factor = zoom_out_factor

    def resize(self, width, height):
        if width < 1 or height < 1:
            raise ValueError(f"canvas size must be positive, got {width}x{height}")
        self.width = int(width)
        self.height = int(height)

    def bounds(self):
        """Aspect-normalized bounds of what the canvas currently shows."""
        return map_viewport(self.viewport, self.width, self.height)

    def set_viewport(self, viewport):
        """
        Replace the viewport.

        Accepts a Viewport or a (x_min, x_max, y_min, y_max) tuple. Invalid
        bounds raise InvalidViewport and leave the current viewport as is.
        """
        if not isinstance(viewport, Viewport):
            viewport = Viewport(*viewport)
        self.viewport = viewport
        return self.viewport

    def reset_view(self):
        self.viewport = self.default_viewport
        return self.viewport

    def pan(self, dx, dy):
        """
        Drag the view by (dx, dy) pixels.

        The plane moves with the pointer: dragging right shows points
        further left.
        """
        v = self.viewport
        dx_frac = v.width * dx / self.width
        dy_frac = v.height * dy / self.height
        return self.set_viewport((v.x_min - dx_frac, v.x_max - dx_frac,
                                  v.y_min - dy_frac, v.y_max - dy_frac))

    def zoom_at(self, px, py, factor):
        """
        Zoom so the point under pixel (px, py) becomes the new center.

        Args:
            px, py: Canvas pixel under the pointer
            factor: < 1 zooms in, > 1 zooms out

        Returns:
            The new viewport (unchanged if the zoom would exceed float64
            resolution)
        """
        if factor <= 0:
            raise ValueError(f"zoom factor must be positive, got {factor}")
        v = self.viewport
        cx, cy = pixel_to_complex(self.bounds(), self.width, self.height, px, py)
        new_w = v.width * factor
        new_h = v.height * factor

        if factor < 1 and min(new_w / self.width, new_h / self.height) < MIN_PIXEL_SPAN:
            logger.warning("Zoom limit reached (pixel span below %g), ignoring zoom", MIN_PIXEL_SPAN)
            return v
        try:
            return self.set_viewport(Viewport.from_center(cx, cy, new_w, new_h))
        except InvalidViewport as e:
            logger.warning("Rejected zoom at (%s, %s): %s", px, py, e)
            return v

    def scroll(self, px, py, rotation):
        """Mouse wheel: positive rotation zooms out, otherwise zooms in."""
        factor = self.zoom_out_factor if rotation > 0 else self.zoom_in_factor
        return self.zoom_at(px, py, factor)

    def shader_uniforms(self, request, palette_mode=0):
        """
        Derive GPU shader uniforms from a render request.

        zoom is the vertical extent of the viewport. The shader rebuilds its
        bounds from resolution, center and zoom exactly as map_viewport
        does, keeping CPU and GPU images consistent.
        """
        return ShaderUniforms(
            resolution=(request.render_width, request.render_height),
            center=request.viewport.center,
            zoom=request.viewport.height,
            max_iterations=request.max_iterations,
            color_mode=int(request.color_mode),
            palette_mode=int(palette_mode),
        )
