import httpx
import numpy as np
import pytest

from emoset.audio.codec import SampleBuffer, encode_wav
from emoset.audio.waveform import (
    WaveformError,
    block_bounds,
    compute_envelope,
    envelope_from_bytes,
    extract_waveform,
)

from .conftest import make_sine


def test_block_bounds_drop_trailing_frames():
    bounds = block_bounds(frame_count=10, sample_count=3)
    assert bounds == [(0, 3), (3, 6), (6, 9)]


def test_trailing_frames_do_not_reach_last_bucket():
    samples = np.zeros(10)
    samples[9] = 1.0
    envelope = compute_envelope(SampleBuffer(samples=samples, sample_rate_hz=8000), 3)
    assert envelope.values == (0.0, 0.0, 0.0)


def test_envelope_has_requested_length():
    for n in (1, 7, 100, 300):
        envelope = compute_envelope(make_sine(seconds=0.2), n)
        assert len(envelope) == n
        assert all(v >= 0 for v in envelope.values)


def test_silent_envelope_is_all_zero():
    buffer = SampleBuffer(samples=np.zeros(4000), sample_rate_hz=8000)
    assert set(compute_envelope(buffer, 50).values) == {0.0}


def test_envelope_uses_first_channel_only():
    left = np.zeros(1000)
    right = np.ones(1000)
    envelope = compute_envelope(SampleBuffer(samples=np.stack([left, right]), sample_rate_hz=8000), 10)
    assert envelope.peak == 0.0


def test_envelope_tracks_loudness():
    quiet = np.full(500, 0.1)
    loud = np.full(500, 0.8)
    envelope = compute_envelope(SampleBuffer(samples=np.concatenate([quiet, loud]), sample_rate_hz=8000), 2)
    assert envelope[0] == pytest.approx(0.1)
    assert envelope[1] == pytest.approx(0.8)


def test_fewer_frames_than_buckets():
    envelope = compute_envelope(SampleBuffer(samples=np.full(3, 0.5), sample_rate_hz=8000), 5)
    # block size is 0, so every bucket is empty
    assert envelope.values == (0.0, 0.0, 0.0, 0.0, 0.0)


def test_invalid_sample_count():
    with pytest.raises(ValueError):
        compute_envelope(make_sine(), 0)


def test_envelope_from_garbage_bytes():
    with pytest.raises(WaveformError):
        envelope_from_bytes(b"not audio at all")


async def test_extract_waveform_fetches_url():
    data = encode_wav(make_sine(seconds=0.1))

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/clip.wav"
        return httpx.Response(200, content=data)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        envelope = await extract_waveform("https://storage.test/clip.wav", 300, client=client)

    assert len(envelope) == 300


async def test_extract_waveform_http_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(WaveformError):
            await extract_waveform("https://storage.test/missing.wav", client=client)
