"""
Render requests and the row-band tile scheduler.

A render is described by an immutable RenderRequest snapshot. The
TileScheduler turns a request into a pixel buffer, either sequentially
(one pass, row-major) or by splitting the image into one contiguous
row band per worker and joining on all of them before returning.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Optional

import numpy as np

from .compute import ColorMode, compute_band, parse_color_mode
from .errors import WorkerFailure
from .viewport import Viewport, map_viewport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderRequest:
    """Everything a render reads, frozen at the moment the render starts."""

    viewport: Viewport
    output_width: int
    output_height: int
    max_iterations: int
    color_mode: ColorMode
    palette: np.ndarray = field(compare=False, repr=False)
    scale_factor: int = 1

    @property
    def render_width(self) -> int:
        return max(1, self.output_width // self.scale_factor)

    @property
    def render_height(self) -> int:
        return max(1, self.output_height // self.scale_factor)

    @property
    def bounds(self) -> Viewport:
        """Aspect-normalized bounds for the buffer actually computed."""
        return map_viewport(self.viewport, self.render_width, self.render_height)

    def same_view(self, viewport: Viewport, output_width: int, output_height: int) -> bool:
        return (self.viewport == viewport
                and self.output_width == output_width
                and self.output_height == output_height)


def _frozen_palette(palette) -> np.ndarray:
    palette = np.asarray(palette, dtype=np.uint8)
    if palette.ndim != 2 or palette.shape[1] != 3 or palette.shape[0] == 0:
        raise ValueError(f"palette must have shape (N, 3), got {palette.shape}")
    if palette.flags.writeable:
        palette = palette.copy()
        palette.flags.writeable = False
    return palette


def make_request(viewport, output_width, output_height, max_iterations, color_mode,
                 palette, scale_factor=1) -> RenderRequest:
    """
    Validate render parameters and snapshot them into a RenderRequest.

    Args:
        viewport: Viewport or (x_min, x_max, y_min, y_max)
        output_width, output_height: Display size in pixels
        max_iterations: Iteration bound (>= 1)
        color_mode: ColorMode or anything parse_color_mode accepts
        palette: (N, 3) uint8 colors; copied if still writeable
        scale_factor: Integer downscale (>= 1); 1 is full resolution

    Raises:
        InvalidViewport, ValueError
    """
    if not isinstance(viewport, Viewport):
        viewport = Viewport(*viewport)
    if int(output_width) < 1 or int(output_height) < 1:
        raise ValueError(f"output size must be positive, got {output_width}x{output_height}")
    if int(max_iterations) < 1:
        raise ValueError(f"max_iterations must be >= 1, got {max_iterations}")
    if int(scale_factor) < 1:
        raise ValueError(f"scale_factor must be >= 1, got {scale_factor}")
    return RenderRequest(
        viewport=viewport,
        output_width=int(output_width),
        output_height=int(output_height),
        max_iterations=int(max_iterations),
        color_mode=parse_color_mode(color_mode),
        palette=_frozen_palette(palette),
        scale_factor=int(scale_factor),
    )


def band_rows(height: int, workers: int) -> list[tuple[int, int]]:
    """
    Split rows [0, height) into contiguous bands, one per worker.

    Band i covers [i*height//workers, (i+1)*height//workers). Empty bands
    (more workers than rows) are dropped.
    """
    workers = max(1, workers)
    bands = []
    for i in range(workers):
        start = i * height // workers
        end = (i + 1) * height // workers
        if end > start:
            bands.append((start, end))
    return bands


@dataclass
class RenderStats:
    """Running render-time statistics for one execution policy."""

    count: int = 0
    total_ms: float = 0.0

    @property
    def mean_ms(self) -> float:
        return self.total_ms / self.count if self.count else 0.0

    def record(self, elapsed_ms: float) -> None:
        self.count += 1
        self.total_ms += elapsed_ms


BandFn = Callable[..., None]


class TileScheduler:
    """
    Populates pixel buffers from render requests.

    The thread pool is created on first parallel render and reused until
    close(). Band functions must release the GIL (compute_band is compiled
    with nogil) for bands to actually overlap.

    Usage:
        with TileScheduler() as scheduler:
            pixels = scheduler.render_request(request, parallel=True)
    """

    def __init__(self, workers: Optional[int] = None, band_fn: Optional[BandFn] = None):
        self.workers = workers or os.cpu_count() or 1
        self.band_fn = band_fn or compute_band
        self.stats = {'parallel': RenderStats(), 'sequential': RenderStats()}
        self._executor = None
        self._lock = threading.Lock()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.workers, thread_name_prefix='mandelbrot-band'
                )
            return self._executor

    def close(self) -> None:
        """Shut the pool down, waiting for running bands."""
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)

    def render_request(self, request: RenderRequest, parallel: bool = True,
                       show_timer: bool = True) -> np.ndarray:
        """
        Compute the full pixel buffer for a request.

        Full-resolution render times are always added to stats; show_timer
        controls whether they are also logged.

        Returns:
            (render_height, render_width, 3) uint8 array, row 0 at y_min

        Raises:
            WorkerFailure if any band fails in parallel mode
        """
        width, height = request.render_width, request.render_height
        bounds = request.bounds
        out = np.zeros((height, width, 3), dtype=np.uint8)
        head = (bounds.x_min, bounds.x_max, bounds.y_min, bounds.y_max, width, height)
        tail = (request.max_iterations, int(request.color_mode), request.palette, out)

        start = time.perf_counter()
        if parallel:
            self._run_bands(head, tail, height)
        else:
            self.band_fn(*head, 0, height, *tail)
        elapsed_ms = (time.perf_counter() - start) * 1000.0

        policy = 'parallel' if parallel else 'sequential'
        if request.scale_factor == 1:
            with self._lock:
                stats = self.stats[policy]
                stats.record(elapsed_ms)
                count, mean = stats.count, stats.mean_ms
            if show_timer:
                logger.info("[%s] Render time: %.2f ms (average over %d renders: %.2f ms)",
                            policy, elapsed_ms, count, mean)
        else:
            logger.debug("[%s] Coarse render (1/%d) in %.2f ms",
                         policy, request.scale_factor, elapsed_ms)
        return out

    def _run_bands(self, head, tail, height):
        executor = self._get_executor()
        submitted = [
            ((start, end), executor.submit(self.band_fn, *head, start, end, *tail))
            for start, end in band_rows(height, self.workers)
        ]
        # Join every band before looking at failures so nothing is still
        # writing into the buffer when the caller sees the error.
        wait([future for _, future in submitted])
        for band, future in submitted:
            error = future.exception()
            if error is not None:
                raise WorkerFailure(
                    f"band rows {band[0]}-{band[1]} failed: {error!r}", band=band
                ) from error


# Global instance for easy access
_scheduler = None
_scheduler_lock = threading.Lock()


def get_scheduler() -> TileScheduler:
    """
    Get the shared scheduler, creating it on first call.

    The pool is sized to the machine's CPU count and lives for the rest of
    the process.
    """
    global _scheduler
    with _scheduler_lock:
        if _scheduler is None:
            _scheduler = TileScheduler()
        return _scheduler


def render(viewport, output_width, output_height, max_iterations, color_mode, palette,
           scale_factor=1, parallel=True) -> np.ndarray:
    """
    Render the Mandelbrot set for a viewport.

    Args:
        viewport: Viewport or (x_min, x_max, y_min, y_max)
        output_width, output_height: Display size in pixels
        max_iterations: Maximum iteration count
        color_mode: ColorMode (or name/int)
        palette: (N, 3) uint8 palette
        scale_factor: Render at 1/scale_factor resolution (default 1)
        parallel: Split into row bands across the worker pool (default True)

    Returns:
        (output_height // scale_factor, output_width // scale_factor, 3) uint8

    Raises:
        InvalidViewport, ValueError, WorkerFailure
    """
    request = make_request(viewport, output_width, output_height, max_iterations,
                           color_mode, palette, scale_factor)
    return get_scheduler().render_request(request, parallel=parallel)
