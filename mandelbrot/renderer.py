"""
Progressive (coarse-then-refined) Mandelbrot rendering.

The ProgressiveRenderer class handles:
- Snapshotting view state into an immutable RenderRequest per render
- Coarse previews during pan/zoom, followed by one full-resolution refine
  once the interaction burst settles (auto-refine)
- Discarding results that are stale by the time they finish
- Resetting to idle when a render fails
"""

import enum
import logging
import threading
from dataclasses import dataclass

import numpy as np

from .compute import parse_color_mode
from .config import load_settings
from .palettes import generate_palette
from .scheduler import RenderRequest, get_scheduler, make_request
from .view import ViewState

logger = logging.getLogger(__name__)


class RefineState(enum.Enum):
    IDLE = 'idle'
    COARSE_PENDING = 'coarse_pending'
    REFINE_PENDING = 'refine_pending'


class ThreadingTimer:
    """Runs one-shot delayed calls on threading.Timer threads."""

    def call_later(self, delay, fn):
        """Schedule fn after delay seconds. The returned handle has cancel()."""
        timer = threading.Timer(delay, fn)
        timer.daemon = True
        timer.start()
        return timer


@dataclass(frozen=True, eq=False)
class Frame:
    """A finished render handed to the display collaborator."""

    pixels: np.ndarray
    request: RenderRequest

    @property
    def is_coarse(self):
        return self.request.scale_factor > 1

    def upscaled(self):
        """Stretch the pixels to the display size (nearest neighbour)."""
        out_h, out_w = self.request.output_height, self.request.output_width
        src_h, src_w = self.pixels.shape[:2]
        if (src_h, src_w) == (out_h, out_w):
            return self.pixels
        rows = np.arange(out_h) * src_h // out_h
        cols = np.arange(out_w) * src_w // out_w
        return self.pixels[rows[:, None], cols]


class ProgressiveRenderer:
    """
    Drives renders for one canvas, with auto-refine during interaction.

    Usage:
        view = ViewState(800, 800)
        renderer = ProgressiveRenderer(view, on_frame=display)
        renderer.request_render()

        # In your input handlers:
        renderer.zoom_at(x, y, 0.5)   # coarse frame now, full frame ~200ms later
        renderer.pan(dx, dy)

    on_frame receives a Frame for every render that is still current when
    it completes. It may be called from the refine timer's thread; calls
    never overlap, and a frame is only delivered if no newer render has
    started by the time it is handed over.

    Attributes:
        state: RefineState of the auto-refine cycle
        scale_factor: Downscale used by the next render (1 = full resolution)
    """

    def __init__(self, view, on_frame, settings=None, scheduler=None, timer=None, on_error=None):
        """
        Initialize the renderer.

        Args:
            view: ViewState to render
            on_frame: Callable taking a Frame
            settings: Settings (default: load_settings())
            scheduler: TileScheduler (default: the shared one)
            timer: Object with call_later(delay, fn) (default: ThreadingTimer)
            on_error: Called with the exception when a timer-driven refine
                      fails; failures are logged if not given
        """
        settings = settings or load_settings()
        self.view = view
        self.on_frame = on_frame
        self.on_error = on_error
        self.settings = settings
        self.scheduler = scheduler or get_scheduler()
        self.timer = timer or ThreadingTimer()

        self.max_iterations = settings.max_iterations
        self.color_mode = settings.color_mode
        self.auto_refine = settings.auto_refine
        self.multithreaded = settings.multithreaded
        self.palette_name = settings.palette
        self.base_color = settings.base_color
        self.palette = generate_palette(self.palette_name, self.base_color)

        self.scale_factor = 1
        self.state = RefineState.IDLE
        self._pending = None
        self._refine_token = None
        self._generation = 0
        self.lock = threading.Lock()
        # held from the stale re-check through on_frame so deliveries cannot reorder
        self._deliver_lock = threading.RLock()

    @classmethod
    def for_canvas(cls, width, height, on_frame, settings=None, **kwargs):
        """Create a renderer and its ViewState from settings."""
        settings = settings or load_settings()
        view = ViewState(width, height, default_viewport=settings.viewport,
                         zoom_in_factor=settings.zoom_in_factor,
                         zoom_out_factor=settings.zoom_out_factor)
        return cls(view, on_frame, settings=settings, **kwargs)

    @property
    def pending_refine(self):
        return self._pending is not None

    # ------------------------------------------------------------------
    # Interaction (pan / zoom) - these drive the auto-refine cycle
    # ------------------------------------------------------------------

    def pan(self, dx, dy):
        with self.lock:
            self.view.pan(dx, dy)
        return self._interact()

    def zoom_at(self, px, py, factor):
        with self.lock:
            self.view.zoom_at(px, py, factor)
        return self._interact()

    def scroll(self, px, py, rotation):
        with self.lock:
            self.view.scroll(px, py, rotation)
        return self._interact()

    def _interact(self):
        """Coarse render now, full render once interaction stops."""
        if not self.auto_refine:
            return self._render()

        with self.lock:
            self._cancel_pending()
            self.scale_factor = self.settings.coarse_scale
            self.state = RefineState.COARSE_PENDING

        frame = self._render()

        with self.lock:
            if self.state is RefineState.COARSE_PENDING:
                token = object()
                self._refine_token = token
                self._pending = self.timer.call_later(
                    self.settings.refine_delay, lambda: self._refine(token)
                )
                self.state = RefineState.REFINE_PENDING
        return frame

    def _refine(self, token):
        with self.lock:
            if token is not self._refine_token:
                return  # superseded by a newer interaction
            self._pending = None
            self._refine_token = None
            self.scale_factor = 1
            self.state = RefineState.IDLE
        try:
            self._render()
        except Exception as e:
            if self.on_error is None:
                logger.exception("Refine render failed")
            else:
                self.on_error(e)

    def _cancel_pending(self):
        if self._pending is not None:
            self._pending.cancel()
        self._pending = None
        self._refine_token = None

    # ------------------------------------------------------------------
    # Settings changes - re-render at the current scale
    # ------------------------------------------------------------------

    def reset_view(self):
        with self.lock:
            self.view.reset_view()
        return self._render()

    def set_viewport(self, viewport):
        with self.lock:
            self.view.set_viewport(viewport)
        return self._render()

    def resize(self, width, height):
        with self.lock:
            self.view.resize(width, height)
        return self._render()

    def set_color_mode(self, mode):
        with self.lock:
            self.color_mode = parse_color_mode(mode)
        return self._render()

    def set_palette(self, kind):
        palette = generate_palette(kind, self.base_color)
        with self.lock:
            self.palette_name = kind
            self.palette = palette
        return self._render()

    def set_base_color(self, base_color):
        """Switch to the custom ramp built from base_color."""
        palette = generate_palette('Custom', base_color)
        with self.lock:
            self.base_color = tuple(base_color)
            self.palette_name = 'Custom'
            self.palette = palette
        return self._render()

    def set_max_iterations(self, max_iterations):
        if max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {max_iterations}")
        with self.lock:
            self.max_iterations = int(max_iterations)
        return self._render()

    def set_multithreaded(self, enabled):
        with self.lock:
            self.multithreaded = bool(enabled)

    def set_auto_refine(self, enabled):
        with self.lock:
            self.auto_refine = bool(enabled)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def snapshot(self):
        """Freeze the current view and settings into a RenderRequest."""
        with self.lock:
            return self._snapshot_locked()

    def _snapshot_locked(self):
        return make_request(
            self.view.viewport, self.view.width, self.view.height,
            self.max_iterations, self.color_mode, self.palette, self.scale_factor,
        )

    def request_render(self):
        """Render the current view at the current scale."""
        return self._render()

    def _render(self):
        """
        Render one snapshot and deliver it if it is still current.

        Returns:
            The delivered Frame, or None if the result was stale
        """
        with self.lock:
            self._generation += 1
            generation = self._generation
            request = self._snapshot_locked()
            parallel = self.multithreaded

        try:
            pixels = self.scheduler.render_request(request, parallel=parallel,
                                                   show_timer=self.settings.show_timer)
        except Exception:
            with self.lock:
                self._cancel_pending()
                self.scale_factor = 1
                self.state = RefineState.IDLE
            raise

        with self._deliver_lock:
            if self._is_stale(generation, request):
                logger.debug("Discarding stale frame for %s", request.viewport)
                return None
            frame = Frame(pixels, request)
            self.on_frame(frame)
        return frame

    def _is_stale(self, generation, request):
        with self.lock:
            return (generation != self._generation
                    or not request.same_view(self.view.viewport, self.view.width, self.view.height))

    def close(self):
        """Cancel any pending refine."""
        with self.lock:
            self._cancel_pending()
            self.scale_factor = 1
            self.state = RefineState.IDLE
