import logging
import threading

import numpy as np
import pytest

from conftest import RecordingScheduler
from mandelbrot.compute import ColorMode
from mandelbrot.config import Settings
from mandelbrot.errors import WorkerFailure
from mandelbrot.palettes import generate_palette
from mandelbrot.renderer import Frame, ProgressiveRenderer, RefineState, ThreadingTimer
from mandelbrot.scheduler import TileScheduler, make_request
from mandelbrot.view import ViewState
from mandelbrot.viewport import DEFAULT_VIEWPORT


@pytest.fixture
def frames():
    return []


@pytest.fixture
def renderer(settings, recording_scheduler, manual_timer, frames):
    return ProgressiveRenderer(ViewState(120, 80), frames.append, settings=settings,
                               scheduler=recording_scheduler, timer=manual_timer)


def test_zoom_renders_coarse_then_arms_refine(renderer, recording_scheduler, manual_timer, frames):
    renderer.zoom_at(60, 40, 0.5)

    assert recording_scheduler.scales == [4]
    assert frames[0].pixels.shape == (20, 30, 3)
    assert frames[0].is_coarse
    assert renderer.state is RefineState.REFINE_PENDING
    assert renderer.pending_refine
    assert manual_timer.live[0].delay == pytest.approx(0.2)

    manual_timer.fire_all()

    assert recording_scheduler.scales == [4, 1]
    assert frames[-1].pixels.shape == (80, 120, 3)
    assert renderer.state is RefineState.IDLE
    assert renderer.scale_factor == 1
    assert not renderer.pending_refine


def test_rapid_pans_refine_once(renderer, recording_scheduler, manual_timer):
    renderer.pan(5, 0)
    renderer.pan(5, 3)

    assert len(manual_timer.live) == 1
    manual_timer.fire_all()

    full = [r for r in recording_scheduler.requests if r.scale_factor == 1]
    assert len(full) == 1
    assert full[0].viewport == renderer.view.viewport
    assert recording_scheduler.scales == [4, 4, 1]


def test_superseded_refine_callback_is_ignored(renderer, recording_scheduler, manual_timer):
    renderer.pan(5, 0)
    stale_callback = manual_timer.live[0].fn
    renderer.pan(5, 0)

    stale_callback()  # a timer that fired just before it was cancelled

    assert recording_scheduler.scales == [4, 4]
    assert renderer.state is RefineState.REFINE_PENDING


def test_auto_refine_disabled_renders_full_once(settings, recording_scheduler, manual_timer):
    renderer = ProgressiveRenderer(ViewState(50, 50), lambda f: None,
                                   settings=settings.updated(auto_refine=False),
                                   scheduler=recording_scheduler, timer=manual_timer)
    renderer.pan(3, 3)
    renderer.zoom_at(25, 25, 0.5)

    assert recording_scheduler.scales == [1, 1]
    assert manual_timer.handles == []
    assert renderer.state is RefineState.IDLE


def test_failure_resets_to_idle(settings, manual_timer):
    scheduler = RecordingScheduler(error=WorkerFailure("band failed", band=(0, 10)))
    renderer = ProgressiveRenderer(ViewState(40, 40), lambda f: None, settings=settings,
                                   scheduler=scheduler, timer=manual_timer)

    with pytest.raises(WorkerFailure):
        renderer.zoom_at(20, 20, 0.5)

    assert renderer.state is RefineState.IDLE
    assert renderer.scale_factor == 1
    assert not renderer.pending_refine
    assert manual_timer.live == []


def test_failure_cancels_pending_refine(renderer, recording_scheduler, manual_timer):
    renderer.pan(1, 1)
    recording_scheduler.error = WorkerFailure("band failed")

    with pytest.raises(WorkerFailure):
        renderer.set_max_iterations(100)

    assert manual_timer.live == []
    assert renderer.state is RefineState.IDLE


def test_refine_failure_reported_to_on_error(settings, manual_timer):
    errors = []
    scheduler = RecordingScheduler()
    renderer = ProgressiveRenderer(ViewState(40, 40), lambda f: None, settings=settings,
                                   scheduler=scheduler, timer=manual_timer, on_error=errors.append)
    renderer.pan(1, 1)
    scheduler.error = WorkerFailure("band failed")

    manual_timer.fire_all()

    assert len(errors) == 1
    assert renderer.state is RefineState.IDLE


def test_stale_result_is_discarded(settings, manual_timer, frames):
    view = ViewState(40, 40)
    # the view moves while the render is in flight
    scheduler = RecordingScheduler(during_render=lambda request: view.pan(10, 0))
    renderer = ProgressiveRenderer(view, frames.append, settings=settings,
                                   scheduler=scheduler, timer=manual_timer)

    assert renderer.request_render() is None
    assert frames == []


def test_request_snapshot_reflects_settings(renderer, recording_scheduler):
    renderer.set_color_mode('orbit_trap')
    renderer.set_palette('Cyan')
    renderer.set_max_iterations(321)

    request = recording_scheduler.requests[-1]
    assert request.color_mode is ColorMode.ORBIT_TRAP
    assert request.max_iterations == 321
    assert np.array_equal(request.palette, generate_palette('Cyan'))
    assert request.viewport == DEFAULT_VIEWPORT


def test_set_base_color_switches_to_custom(renderer, recording_scheduler):
    renderer.set_base_color((10, 20, 30))

    assert renderer.palette_name == 'Custom'
    assert tuple(recording_scheduler.requests[-1].palette[255]) == (10, 20, 30)


def test_reset_and_resize_render(renderer, recording_scheduler, frames):
    renderer.pan(30, 0)
    renderer.reset_view()
    renderer.resize(60, 30)

    assert recording_scheduler.requests[-2].viewport == DEFAULT_VIEWPORT
    assert frames[-1].request.output_width == 60


def test_frame_upscaled_fills_display():
    pixels = np.arange(2 * 3 * 3, dtype=np.uint8).reshape(2, 3, 3)
    request = make_request(DEFAULT_VIEWPORT, 12, 8, 10, 'smooth', generate_palette('Fire'),
                           scale_factor=4)
    frame = Frame(pixels, request)

    stretched = frame.upscaled()

    assert stretched.shape == (8, 12, 3)
    assert np.array_equal(stretched[0, 0], pixels[0, 0])
    assert np.array_equal(stretched[7, 11], pixels[1, 2])
    assert np.array_equal(stretched[3, 4], pixels[0, 1])


def test_threading_timer_refines_end_to_end(settings, fire_palette):
    refined = threading.Event()
    frames = []

    def on_frame(frame):
        frames.append(frame)
        if not frame.is_coarse:
            refined.set()

    with TileScheduler(workers=2) as scheduler:
        renderer = ProgressiveRenderer(ViewState(32, 24), on_frame,
                                       settings=settings.updated(refine_delay_ms=10),
                                       scheduler=scheduler, timer=ThreadingTimer())
        renderer.zoom_at(16, 12, 0.5)
        assert refined.wait(timeout=30)
        renderer.close()

    assert frames[0].pixels.shape == (6, 8, 3)
    assert frames[-1].pixels.shape == (24, 32, 3)
    assert renderer.state is RefineState.IDLE


def test_for_canvas_uses_settings(recording_scheduler, manual_timer):
    settings = Settings(max_iterations=50, zoom_in_factor=0.5, viewport=(-1.0, 1.0, -1.0, 1.0)).updated()
    renderer = ProgressiveRenderer.for_canvas(64, 64, lambda f: None, settings=settings,
                                              scheduler=recording_scheduler, timer=manual_timer)

    renderer.scroll(32, 32, -1)

    assert renderer.view.viewport.width == pytest.approx(1.0)
    renderer.reset_view()
    assert recording_scheduler.requests[-1].viewport == settings.viewport


def test_refine_frame_never_lands_after_newer_coarse_frame(settings, recording_scheduler, manual_timer):
    frames = []
    refine_delivering = threading.Event()
    release = threading.Event()

    def on_frame(frame):
        if not frame.is_coarse and not refine_delivering.is_set():
            refine_delivering.set()
            release.wait(timeout=5)
        frames.append(frame)

    renderer = ProgressiveRenderer(ViewState(40, 40), on_frame, settings=settings,
                                   scheduler=recording_scheduler, timer=manual_timer)
    renderer.pan(1, 1)
    refine = threading.Thread(target=manual_timer.fire_all)
    refine.start()
    assert refine_delivering.wait(timeout=5)

    # the user drags again while the full frame is being handed over
    interaction = threading.Thread(target=renderer.pan, args=(5, 0))
    interaction.start()
    interaction.join(timeout=0.2)
    release.set()
    refine.join(timeout=5)
    interaction.join(timeout=5)

    assert frames[-1].is_coarse
    assert frames[-1].request.viewport == renderer.view.viewport


def test_show_timer_passed_to_scheduler(settings, recording_scheduler, manual_timer):
    renderer = ProgressiveRenderer(ViewState(20, 20), lambda f: None,
                                   settings=settings.updated(show_timer=False),
                                   scheduler=recording_scheduler, timer=manual_timer)
    renderer.request_render()
    assert recording_scheduler.show_timer == [False]


def test_show_timer_off_keeps_render_times_quiet(settings, caplog):
    with TileScheduler(workers=2) as scheduler:
        renderer = ProgressiveRenderer(ViewState(16, 16), lambda f: None,
                                       settings=settings.updated(show_timer=False),
                                       scheduler=scheduler, timer=ThreadingTimer())
        with caplog.at_level(logging.INFO, logger='mandelbrot.scheduler'):
            renderer.request_render()

    assert 'Render time' not in caplog.text
    assert scheduler.stats['parallel'].count == 1


def test_mode_toggles_apply_to_next_render(renderer, recording_scheduler, manual_timer):
    renderer.set_auto_refine(False)
    renderer.set_multithreaded(False)
    renderer.pan(2, 2)

    assert recording_scheduler.scales == [1]
    assert manual_timer.handles == []
