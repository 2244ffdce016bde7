import pytest

from emoset.audio.codec import encode_wav
from emoset.audio.player import WaveformPlayer, WaveformPlayerCache
from emoset.audio.renderer import RasterSurface

from .conftest import make_sine


def loader_for(data: bytes, calls: list[int]):
    async def load() -> bytes:
        calls.append(1)
        return data

    return load


async def test_envelope_is_extracted_once():
    calls: list[int] = []
    player = WaveformPlayer(loader_for(encode_wav(make_sine(seconds=0.2)), calls), duration=0.2)

    first = await player.load()
    second = await player.load()

    assert first is second
    assert first is not None and len(first) == 300
    assert calls == [1]


async def test_bad_audio_renders_placeholder():
    calls: list[int] = []
    player = WaveformPlayer(loader_for(b"garbage", calls), duration=1.0)

    assert await player.load() is None
    assert player.error is not None

    surface = player.render(RasterSurface(100, 20))
    assert surface.image.getpixel((50, 2)) == (255, 255, 255, 255)


async def test_loader_oserror_is_contained():
    async def broken() -> bytes:
        raise ConnectionError("network down")

    player = WaveformPlayer(broken, duration=1.0)
    assert await player.load() is None
    assert "network down" in (player.error or "")


def test_progress_and_seek():
    player = WaveformPlayer(loader_for(b"", []), duration=10.0)

    assert player.update_time(2.5) == pytest.approx(0.25)
    assert player.seek(x=150, width=200) == pytest.approx(7.5)
    assert player.progress == pytest.approx(0.75)


def test_cache_reuses_players_per_key_and_bucket_count():
    cache = WaveformPlayerCache(max_players=2)
    load = loader_for(b"", [])

    first = cache.get("audio-files/a.wav", load, duration=1.0)
    assert cache.get("audio-files/a.wav", load, duration=1.0) is first
    assert cache.get("audio-files/a.wav", load, duration=1.0, sample_count=50) is not first

    _ = cache.get("audio-files/b.wav", load, duration=1.0)
    assert len(cache) == 2
    assert cache.get("audio-files/a.wav", load, duration=1.0) is not first


async def test_cache_retries_failed_players():
    cache = WaveformPlayerCache()
    broken = cache.get("audio-files/x.wav", loader_for(b"garbage", []), duration=1.0)
    assert await broken.load() is None

    calls: list[int] = []
    healthy = cache.get("audio-files/x.wav", loader_for(encode_wav(make_sine(seconds=0.2)), calls), 0.2)
    assert healthy is not broken
    assert await healthy.load() is not None
    assert calls == [1]


async def test_render_overrides_progress_and_colors():
    player = WaveformPlayer(loader_for(encode_wav(make_sine(seconds=0.2)), []), duration=0.2)
    _ = await player.load()

    surface = player.render(
        RasterSurface(100, 20), progress=1.0, played_color="#ff0000", unplayed_color="#0000ff"
    )
    red, _, blue, _ = surface.image.getpixel((50, 10))
    assert red > blue
