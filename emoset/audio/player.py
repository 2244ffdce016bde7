"""Per-player waveform state: envelope cache, progress rendering, seeking."""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from collections.abc import Awaitable, Callable

from .renderer import (
    DEFAULT_PLAYED_COLOR,
    DEFAULT_UNPLAYED_COLOR,
    RasterSurface,
    RenderMode,
    playback_progress,
    render_placeholder,
    render_waveform,
    seek_time,
)
from .waveform import PLAYBACK_SAMPLE_COUNT, WaveformEnvelope, WaveformError, envelope_from_bytes

logger = logging.getLogger(__name__)

AudioLoader = Callable[[], Awaitable[bytes]]


class WaveformPlayer:
    """Waveform display for one playing clip.

    The envelope is extracted at most once and lives only as long as this
    player. A failed extraction leaves the player in an error state that
    renders a placeholder; it never raises into the caller's playback path.
    """

    def __init__(
        self,
        load_audio: AudioLoader,
        duration: float,
        sample_count: int = PLAYBACK_SAMPLE_COUNT,
        played_color: str = DEFAULT_PLAYED_COLOR,
        unplayed_color: str = DEFAULT_UNPLAYED_COLOR,
    ):
        self._load_audio = load_audio
        self.duration = duration
        self.sample_count = sample_count
        self.played_color = played_color
        self.unplayed_color = unplayed_color
        self.current_time = 0.0
        self.envelope: WaveformEnvelope | None = None
        self.error: str | None = None
        self._load_lock = asyncio.Lock()

    @property
    def progress(self) -> float:
        return playback_progress(self.current_time, self.duration)

    @property
    def loaded(self) -> bool:
        return self.envelope is not None or self.error is not None

    async def load(self) -> WaveformEnvelope | None:
        """Extract the envelope on first call; later calls return the cached value.

        Decoding runs in a worker thread so the event loop stays responsive.
        """
        async with self._load_lock:
            if self.loaded:
                return self.envelope
            try:
                data = await self._load_audio()
                self.envelope = await asyncio.to_thread(envelope_from_bytes, data, self.sample_count)
            except (WaveformError, OSError) as e:
                logger.warning(f"Waveform unavailable: {e}")
                self.error = str(e)
            return self.envelope

    def update_time(self, current_time: float) -> float:
        """Record a playback tick and return the new progress fraction."""
        self.current_time = max(0.0, current_time)
        return self.progress

    def seek(self, x: float, width: float) -> float:
        """Map a click on the waveform to a playback time and move there."""
        self.current_time = seek_time(x, width, self.duration)
        return self.current_time

    def render(
        self,
        surface: RasterSurface,
        progress: float | None = None,
        mode: RenderMode = RenderMode.PROGRESS,
        played_color: str | None = None,
        unplayed_color: str | None = None,
    ) -> RasterSurface:
        """Draw the cached envelope, or a placeholder if there is none.

        ``progress`` defaults to the player's own playback position.
        """
        unplayed = unplayed_color or self.unplayed_color
        if self.envelope is None:
            return render_placeholder(surface, unplayed)
        return render_waveform(
            surface,
            self.envelope.values,
            self.progress if progress is None else progress,
            mode=mode,
            played_color=played_color or self.played_color,
            unplayed_color=unplayed,
        )


class WaveformPlayerCache:
    """Keeps the most recently used players so repeat renders skip decoding.

    Keys should identify immutable audio (a storage key plus bucket count).
    """

    def __init__(self, max_players: int = 64):
        self.max_players = max_players
        self._players: OrderedDict[tuple[str, int], WaveformPlayer] = OrderedDict()

    def __len__(self) -> int:
        return len(self._players)

    def get(
        self, key: str, load_audio: AudioLoader, duration: float, sample_count: int = PLAYBACK_SAMPLE_COUNT
    ) -> WaveformPlayer:
        cache_key = (key, sample_count)
        player = self._players.get(cache_key)
        if player is None or player.error is not None:
            player = WaveformPlayer(load_audio, duration, sample_count)
            self._players[cache_key] = player
            while len(self._players) > self.max_players:
                _ = self._players.popitem(last=False)
        else:
            self._players.move_to_end(cache_key)
        return player

    def clear(self) -> None:
        self._players.clear()
