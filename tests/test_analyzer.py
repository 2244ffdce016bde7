import gc

import numpy as np
import pytest

from emoset.audio.analyzer import (
    AnalyserTap,
    AnalyzerInitError,
    PlaybackElement,
    ProcessingGraph,
    RealtimeLevelAnalyzer,
    calculate_average_level,
)

from .conftest import make_sine


class ManualScheduler:
    """Runs frame callbacks only when the test asks for it."""

    def __init__(self):
        self.pending = {}
        self._next = 0

    def request_frame(self, callback):
        self._next += 1
        self.pending[self._next] = callback
        return self._next

    def cancel_frame(self, handle):
        self.pending.pop(handle, None)

    def run_frame(self):
        pending, self.pending = self.pending, {}
        for callback in pending.values():
            callback()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def element():
    el = PlaybackElement(make_sine(freq=1000.0, seconds=1.0, rate=16000, amplitude=0.9))
    yield el
    el.close()


def test_start_delivers_128_bins(element, scheduler):
    analyzer = RealtimeLevelAnalyzer(scheduler)
    updates = []

    handle = analyzer.start(element, updates.append)
    element.play()
    _ = element.read(1024)
    scheduler.run_frame()

    assert handle.running
    assert len(updates) == 2
    assert updates[-1].dtype == np.uint8
    assert len(updates[-1]) == 128
    assert updates[-1].max() > 0


def test_restart_reuses_graph(element, scheduler):
    analyzer = RealtimeLevelAnalyzer(scheduler)

    first = analyzer.start(element, lambda data: None)
    graph = analyzer.graph_for(element)
    first.stop()
    second = analyzer.start(element, lambda data: None)

    assert second.running
    assert analyzer.graph_for(element) is graph
    assert graph.tap_count == 1


def test_stop_keeps_audio_flowing(element, scheduler):
    analyzer = RealtimeLevelAnalyzer(scheduler)
    handle = analyzer.start(element, lambda data: None)
    element.play()

    handle.stop()
    block = element.read(512)

    assert not handle.running
    assert scheduler.pending == {}
    assert analyzer.graph_for(element).tap_count == 0
    assert np.abs(block).max() > 0


def test_stop_is_idempotent(element, scheduler):
    handle = RealtimeLevelAnalyzer(scheduler).start(element, lambda data: None)
    handle.stop()
    handle()
    assert not handle.running


def test_second_graph_on_element_fails():
    element = PlaybackElement(make_sine())
    _ = ProcessingGraph(element)
    with pytest.raises(AnalyzerInitError):
        ProcessingGraph(element)


def test_graph_failure_degrades_to_inert_handle(scheduler):
    element = PlaybackElement(make_sine())
    element.close()
    calls = []

    handle = RealtimeLevelAnalyzer(scheduler).start(element, calls.append)
    scheduler.run_frame()

    assert not handle.running
    assert calls == []
    handle.stop()


def test_closed_element_releases_graph(scheduler):
    analyzer = RealtimeLevelAnalyzer(scheduler)
    element = PlaybackElement(make_sine())
    graph = analyzer.graph_for(element)

    element.close()

    assert not analyzer.has_graph(element)
    assert graph.closed


def test_registry_does_not_keep_elements_alive(scheduler):
    analyzer = RealtimeLevelAnalyzer(scheduler)
    element = PlaybackElement(make_sine())
    graph = analyzer.graph_for(element)

    del element
    gc.collect()

    assert len(analyzer._graphs) == 0
    assert graph.closed


def test_failing_callback_stops_analysis(element, scheduler):
    def explode(data):
        raise RuntimeError("meter broke")

    handle = RealtimeLevelAnalyzer(scheduler).start(element, explode)
    assert not handle.running
    assert scheduler.pending == {}


def test_tap_silence_maps_to_zero():
    tap = AnalyserTap()
    tap.write(np.zeros((1, 256)))
    assert tap.get_byte_frequency_data().max() == 0


def test_tap_rejects_bad_fft_size():
    with pytest.raises(ValueError):
        AnalyserTap(fft_size=100)


def test_element_read_pads_at_end():
    element = PlaybackElement(make_sine(seconds=0.01, rate=16000))  # 160 frames
    element.play()
    block = element.read(256)
    assert block.shape == (256, 1)
    assert not block[160:].any()
    assert element.ended
    assert element.paused


def test_calculate_average_level():
    assert calculate_average_level(np.array([], dtype=np.uint8)) == 0.0
    assert calculate_average_level(np.array([0, 255], dtype=np.uint8)) == pytest.approx(127.5)


def test_graph_attached_elsewhere_is_reused(scheduler):
    element = PlaybackElement(make_sine(freq=1000.0, amplitude=0.9))
    graph = ProcessingGraph(element)

    handle = RealtimeLevelAnalyzer(scheduler).start(element, lambda data: None)

    assert handle.running
    assert element.graph is graph
    assert graph.tap_count == 1


def test_second_analyzer_reuses_graph(element, scheduler):
    first = RealtimeLevelAnalyzer(scheduler)
    first.start(element, lambda data: None).stop()
    graph = element.graph

    second = RealtimeLevelAnalyzer(scheduler)
    updates = []
    handle = second.start(element, updates.append)
    element.play()
    _ = element.read(512)
    scheduler.run_frame()

    assert handle.running
    assert second.graph_for(element) is graph
    assert updates[-1].max() > 0


def test_release_keeps_graph_for_live_element(element, scheduler):
    analyzer = RealtimeLevelAnalyzer(scheduler)
    analyzer.start(element, lambda data: None).stop()
    graph = element.graph

    analyzer.release(element)
    handle = analyzer.start(element, lambda data: None)

    assert not graph.closed
    assert handle.running
    assert analyzer.graph_for(element) is graph
