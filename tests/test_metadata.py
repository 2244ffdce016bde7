import math

import numpy as np
import pytest

from emoset.audio.codec import SampleBuffer
from emoset.audio.metadata import average_level_db, extract_metadata, rms_to_db

from .conftest import make_sine


def test_silence_is_floor():
    buffer = SampleBuffer(samples=np.zeros((2, 1000)), sample_rate_hz=8000)
    assert average_level_db(buffer) == -60.0


def test_full_scale_square_wave_is_zero_db():
    square = np.where(np.arange(1000) % 2 == 0, 1.0, -1.0)
    assert average_level_db(SampleBuffer(samples=square, sample_rate_hz=8000)) == pytest.approx(0.0)


def test_sine_level():
    # RMS of a sine with amplitude A is A / sqrt(2)
    buffer = make_sine(freq=100.0, seconds=1.0, rate=8000, amplitude=0.5)
    expected = 20 * math.log10(0.5 / math.sqrt(2))
    assert average_level_db(buffer) == pytest.approx(expected, abs=0.01)


def test_level_pools_channels():
    loud = np.full(1000, 0.5)
    quiet = np.zeros(1000)
    buffer = SampleBuffer(samples=np.stack([loud, quiet]), sample_rate_hz=8000)
    # mean square = 0.25 / 2
    assert average_level_db(buffer) == pytest.approx(20 * math.log10(math.sqrt(0.125)))


def test_level_clamped():
    assert rms_to_db(1e-9) == -60.0
    assert rms_to_db(0.0) == -60.0
    assert rms_to_db(4.0) == 0.0


def test_extract_metadata():
    metadata = extract_metadata(make_sine(seconds=0.5, rate=16000, channels=2))
    assert metadata.duration_seconds == pytest.approx(0.5)
    assert metadata.sample_rate_hz == 16000
    assert metadata.channel_count == 2
    assert -60.0 <= metadata.average_level_db <= 0.0


def test_extract_metadata_rejects_empty_buffer():
    with pytest.raises(ValueError):
        extract_metadata(SampleBuffer(samples=np.zeros((1, 0)), sample_rate_hz=16000))
