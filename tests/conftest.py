import numpy as np
import pytest

from mandelbrot.config import Settings
from mandelbrot.palettes import generate_palette


class RecordingScheduler:
    """Stands in for TileScheduler: records requests, returns blank buffers."""

    def __init__(self, error=None, during_render=None):
        self.requests = []
        self.show_timer = []
        self.error = error
        self.during_render = during_render

    def render_request(self, request, parallel=True, show_timer=True):
        self.requests.append(request)
        self.show_timer.append(show_timer)
        if self.during_render is not None:
            self.during_render(request)
        if self.error is not None:
            raise self.error
        return np.zeros((request.render_height, request.render_width, 3), dtype=np.uint8)

    @property
    def scales(self):
        return [r.scale_factor for r in self.requests]


class _Handle:
    def __init__(self, delay, fn):
        self.delay = delay
        self.fn = fn
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualTimer:
    """Timer whose delayed calls only run when the test fires them."""

    def __init__(self):
        self.handles = []

    def call_later(self, delay, fn):
        handle = _Handle(delay, fn)
        self.handles.append(handle)
        return handle

    @property
    def live(self):
        return [h for h in self.handles if not h.cancelled]

    def fire_all(self):
        handles, self.handles = self.handles, []
        for handle in handles:
            if not handle.cancelled:
                handle.fn()


@pytest.fixture
def fire_palette():
    return generate_palette('Fire')


@pytest.fixture
def cyan_palette():
    """Palette with no black entries."""
    return generate_palette('Cyan')


@pytest.fixture
def settings():
    return Settings(max_iterations=50)


@pytest.fixture
def recording_scheduler():
    return RecordingScheduler()


@pytest.fixture
def manual_timer():
    return ManualTimer()
