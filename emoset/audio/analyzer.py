"""Realtime level analysis of a playing clip.

A ``PlaybackElement`` plays a decoded buffer and can have exactly one
``ProcessingGraph`` attached to it for its whole lifetime, the same constraint
browser media elements impose on media-element sources. The element owns
that graph; analyzers reuse it and only create and drop cheap ``AnalyserTap``
objects on it, so starting and stopping a level meter never touches the
audio path.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import weakref
from collections.abc import Callable
from typing import Any, Protocol

import numpy as np
from numpy.typing import NDArray

from .codec import AudioProcessingError, SampleBuffer

logger = logging.getLogger(__name__)

FFT_SIZE: int = 256
SMOOTHING_TIME_CONSTANT: float = 0.8
MIN_DECIBELS: float = -100.0
MAX_DECIBELS: float = -30.0
FRAMES_PER_SECOND: int = 60

LevelCallback = Callable[[NDArray[np.uint8]], None]


class AnalyzerInitError(AudioProcessingError):
    """Raised when a processing graph cannot be attached to an element."""


class PlaybackElement:
    """Pull-based player for a SampleBuffer.

    The output device calls ``read`` for every block it needs. If a processing
    graph is attached, it sees each block after it is produced; the block
    returned to the device is never modified by the graph.
    """

    def __init__(self, buffer: SampleBuffer):
        self.buffer = buffer
        self.paused = True
        self._position = 0
        self.graph: ProcessingGraph | None = None
        self._close_listeners: list[Callable[[], None]] = []
        self._closed = False
        self._stream: Any = None
        self._lock = threading.Lock()

    @property
    def sample_rate(self) -> int:
        return self.buffer.sample_rate_hz

    @property
    def duration(self) -> float:
        return self.buffer.duration_seconds

    @property
    def current_time(self) -> float:
        return self._position / self.sample_rate

    @property
    def ended(self) -> bool:
        return self._position >= self.buffer.frame_count

    @property
    def closed(self) -> bool:
        return self._closed

    def play(self) -> None:
        if self.ended:
            self._position = 0
        self.paused = False

    def pause(self) -> None:
        self.paused = True

    def seek(self, seconds: float) -> None:
        frame = int(round(seconds * self.sample_rate))
        with self._lock:
            self._position = max(0, min(self.buffer.frame_count, frame))

    def attach_source(self, graph: ProcessingGraph) -> None:
        """Route produced blocks to a processing graph. Allowed once per element.

        The graph then belongs to the element and is closed with it.

        Raises:
            AnalyzerInitError: If a graph is already attached or the element is closed
        """
        if self._closed:
            raise AnalyzerInitError("Playback element is closed")
        if self.graph is not None:
            raise AnalyzerInitError("Playback element already has a processing graph")
        self.graph = graph

    def read(self, frame_count: int) -> NDArray[np.float32]:
        """Produce the next ``frame_count`` frames shaped (frames, channels)."""
        channels = self.buffer.channel_count
        with self._lock:
            if self.paused or self.ended:
                return np.zeros((frame_count, channels), dtype=np.float32)
            start = self._position
            end = min(start + frame_count, self.buffer.frame_count)
            self._position = end

        block = self.buffer.samples[:, start:end]
        graph = self.graph
        if graph is not None:
            graph.feed(block)

        out = np.zeros((frame_count, channels), dtype=np.float32)
        out[: end - start] = block.T
        if end >= self.buffer.frame_count:
            self.paused = True
        return out

    def open_stream(self, blocksize: int = 1024) -> None:
        """Start playback on the default output device.

        Note: This requires sounddevice (PortAudio).
        """
        import sounddevice as sd  # pyright: ignore[reportMissingTypeStubs]

        def callback(outdata: Any, frames: int, _time: Any, _status: Any) -> None:
            outdata[:] = self.read(frames)

        self._stream = sd.OutputStream(
            samplerate=self.sample_rate,
            channels=self.buffer.channel_count,
            dtype="float32",
            blocksize=blocksize,
            callback=callback,
        )
        self._stream.start()

    def add_close_listener(self, listener: Callable[[], None]) -> None:
        self._close_listeners.append(listener)

    def close(self) -> None:
        """Stop output and notify listeners that the element is discarded."""
        if self._closed:
            return
        self._closed = True
        self.paused = True
        if self._stream is not None:
            self._stream.stop()
            self._stream.close()
            self._stream = None
        listeners, self._close_listeners = self._close_listeners, []
        for listener in listeners:
            listener()
        if self.graph is not None:
            self.graph.close()


class AnalyserTap:
    """Frequency analysis over the most recent ``fft_size`` mono samples.

    Byte data follows the Web Audio analyser convention: Blackman window,
    magnitude normalised by the FFT size, exponential smoothing across
    frames, and a linear map of [min_db, max_db] onto [0, 255].
    """

    def __init__(
        self,
        fft_size: int = FFT_SIZE,
        smoothing: float = SMOOTHING_TIME_CONSTANT,
        min_db: float = MIN_DECIBELS,
        max_db: float = MAX_DECIBELS,
    ):
        if fft_size < 32 or fft_size & (fft_size - 1):
            raise ValueError(f"fft_size must be a power of two >= 32, got {fft_size}")
        self.fft_size = fft_size
        self.smoothing = smoothing
        self.min_db = min_db
        self.max_db = max_db
        self.connected = True
        self._window = np.blackman(fft_size)
        self._samples = np.zeros(fft_size, dtype=np.float64)
        self._smoothed = np.zeros(self.frequency_bin_count, dtype=np.float64)
        self._lock = threading.Lock()

    @property
    def frequency_bin_count(self) -> int:
        return self.fft_size // 2

    def write(self, block: NDArray[np.float64]) -> None:
        """Append a (channels, frames) block, downmixed to mono."""
        if not self.connected or block.size == 0:
            return
        mono = block.mean(axis=0) if block.ndim == 2 else block
        with self._lock:
            if len(mono) >= self.fft_size:
                self._samples = np.array(mono[-self.fft_size :], dtype=np.float64)
            else:
                self._samples = np.concatenate([self._samples[len(mono) :], mono])

    def get_byte_frequency_data(self) -> NDArray[np.uint8]:
        """Current smoothed spectrum as ``frequency_bin_count`` bytes."""
        with self._lock:
            spectrum = np.fft.rfft(self._samples * self._window)
        magnitude = np.abs(spectrum[: self.frequency_bin_count]) / self.fft_size
        self._smoothed = self.smoothing * self._smoothed + (1 - self.smoothing) * magnitude

        with np.errstate(divide="ignore"):
            db = 20 * np.log10(self._smoothed)
        scaled = (db - self.min_db) * (255.0 / (self.max_db - self.min_db))
        return np.clip(np.nan_to_num(scaled, neginf=0.0), 0, 255).astype(np.uint8)

    def disconnect(self) -> None:
        self.connected = False


class ProcessingGraph:
    """The one persistent graph of a playback element.

    Created once per element and owned by it; taps are connected and
    disconnected freely. The graph closes when the element closes or is
    garbage collected.
    """

    def __init__(self, element: PlaybackElement):
        self.sample_rate = element.sample_rate
        self._taps: list[AnalyserTap] = []
        self._lock = threading.Lock()
        self.closed = False
        element.attach_source(self)
        _ = weakref.finalize(element, self.close)

    @property
    def tap_count(self) -> int:
        return len(self._taps)

    def create_tap(self, fft_size: int = FFT_SIZE, smoothing: float = SMOOTHING_TIME_CONSTANT) -> AnalyserTap:
        tap = AnalyserTap(fft_size=fft_size, smoothing=smoothing)
        with self._lock:
            self._taps.append(tap)
        return tap

    def disconnect_tap(self, tap: AnalyserTap) -> None:
        tap.disconnect()
        with self._lock:
            if tap in self._taps:
                self._taps.remove(tap)

    def close(self) -> None:
        with self._lock:
            taps, self._taps = self._taps, []
        for tap in taps:
            tap.disconnect()
        self.closed = True

    def feed(self, block: NDArray[np.float64]) -> None:
        with self._lock:
            taps = list(self._taps)
        for tap in taps:
            tap.write(block)


class FrameScheduler(Protocol):
    """Display-frame callback scheduling (the animation-frame loop)."""

    def request_frame(self, callback: Callable[[], None]) -> Any: ...

    def cancel_frame(self, handle: Any) -> None: ...


class AsyncioFrameScheduler:
    """Schedules frame callbacks on the running asyncio loop at a fixed rate."""

    def __init__(self, fps: int = FRAMES_PER_SECOND, loop: asyncio.AbstractEventLoop | None = None):
        self.interval = 1.0 / fps
        self._loop = loop

    def request_frame(self, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(self.interval, callback)

    def cancel_frame(self, handle: asyncio.TimerHandle) -> None:
        handle.cancel()


class AnalysisHandle:
    """Cancellation handle for one running level analysis."""

    def __init__(
        self,
        graph: ProcessingGraph | None = None,
        tap: AnalyserTap | None = None,
        scheduler: FrameScheduler | None = None,
        on_update: LevelCallback | None = None,
    ):
        self._graph = graph
        self._tap = tap
        self._scheduler = scheduler
        self._on_update = on_update
        self._frame: Any = None
        self.running = tap is not None

    @classmethod
    def inert(cls) -> AnalysisHandle:
        """A handle that does nothing; returned when analysis cannot start."""
        return cls()

    def _tick(self) -> None:
        self._frame = None
        if not self.running or self._tap is None or self._on_update is None:
            return
        try:
            self._on_update(self._tap.get_byte_frequency_data())
        except Exception:
            logger.exception("Level update failed; stopping analysis")
            self.stop()
            return
        if self.running and self._scheduler is not None:
            self._frame = self._scheduler.request_frame(self._tick)

    def stop(self) -> None:
        """Stop updates and disconnect the tap. The graph and audio output stay intact."""
        self.running = False
        if self._frame is not None and self._scheduler is not None:
            self._scheduler.cancel_frame(self._frame)
            self._frame = None
        if self._tap is not None and self._graph is not None:
            self._graph.disconnect_tap(self._tap)
        self._tap = None

    def __call__(self) -> None:
        self.stop()


class RealtimeLevelAnalyzer:
    """Starts level analysis on playback elements, one persistent graph each.

    The graph belongs to the element, so any analyzer starting on an element
    that already has one reuses it. Each analyzer also keeps a weak lookup
    table keyed by element identity, which never keeps an element alive and
    is cleared when the element closes.
    """

    def __init__(self, scheduler: FrameScheduler | None = None, fft_size: int = FFT_SIZE):
        self.scheduler = scheduler or AsyncioFrameScheduler()
        self.fft_size = fft_size
        self._graphs: weakref.WeakKeyDictionary[PlaybackElement, ProcessingGraph] = (
            weakref.WeakKeyDictionary()
        )

    def has_graph(self, element: PlaybackElement) -> bool:
        return element in self._graphs

    def graph_for(self, element: PlaybackElement) -> ProcessingGraph:
        """Return the element's graph, creating it on first use.

        Raises:
            AnalyzerInitError: If the element is closed
        """
        graph = self._graphs.get(element)
        if graph is not None and not graph.closed:
            return graph

        graph = element.graph if element.graph is not None else ProcessingGraph(element)
        if graph.closed:
            raise AnalyzerInitError("Playback element is closed")

        self._graphs[element] = graph
        element_ref = weakref.ref(element)

        def forget() -> None:
            target = element_ref()
            if target is not None:
                self.release(target)

        element.add_close_listener(forget)
        return graph

    def start(self, element: PlaybackElement, on_update: LevelCallback) -> AnalysisHandle:
        """Begin per-frame analysis; ``on_update`` gets ``fft_size // 2`` byte bins.

        Returns an inert handle instead of raising if the graph cannot be built,
        so playback is never interrupted by a failing meter.
        """
        try:
            graph = self.graph_for(element)
        except AnalyzerInitError as e:
            logger.warning(f"Realtime analysis unavailable: {e}")
            return AnalysisHandle.inert()

        tap = graph.create_tap(fft_size=self.fft_size)
        handle = AnalysisHandle(graph=graph, tap=tap, scheduler=self.scheduler, on_update=on_update)
        handle._tick()
        return handle

    def release(self, element: PlaybackElement) -> None:
        """Forget the element. Its graph stays attached and is reused on the next start."""
        _ = self._graphs.pop(element, None)


def calculate_average_level(data: NDArray[np.uint8]) -> float:
    """Mean of analyser byte bins (0-255 scale)."""
    if len(data) == 0:
        return 0.0
    return float(np.mean(data))


# Global instance for convenience
_analyzer: RealtimeLevelAnalyzer | None = None


def get_realtime_analyzer() -> RealtimeLevelAnalyzer:
    """Get the global realtime analyzer instance."""
    global _analyzer
    if _analyzer is None:
        _analyzer = RealtimeLevelAnalyzer()
    return _analyzer
