import struct

import numpy as np
import pytest

from emoset.audio.codec import (
    WAV_HEADER_SIZE,
    DecodeError,
    EncodeError,
    SampleBuffer,
    build_wav_header,
    decode_audio,
    encode_wav,
    float_to_pcm16,
)

from .conftest import make_sine


def test_one_second_of_silence():
    buffer = SampleBuffer(samples=np.zeros(44100), sample_rate_hz=44100)
    data = encode_wav(buffer)

    assert len(data) == 88244
    assert data[22:24] == b"\x01\x00"
    assert data[24:28] == b"\x44\xac\x00\x00"
    assert data[44:] == b"\x00" * 88200


def test_header_fields_stereo():
    channels, frames, rate = 2, 1000, 44100
    buffer = SampleBuffer(samples=np.zeros((channels, frames)), sample_rate_hz=rate)
    data = encode_wav(buffer)

    assert len(data) == WAV_HEADER_SIZE + frames * channels * 2
    assert data[0:4] == b"RIFF"
    assert data[8:16] == b"WAVEfmt "
    assert struct.unpack_from("<I", data, 4)[0] == 36 + frames * channels * 2
    assert struct.unpack_from("<I", data, 16)[0] == 16
    assert struct.unpack_from("<H", data, 20)[0] == 1
    assert struct.unpack_from("<H", data, 22)[0] == channels
    assert struct.unpack_from("<I", data, 24)[0] == rate
    assert struct.unpack_from("<I", data, 28)[0] == rate * channels * 2
    assert struct.unpack_from("<H", data, 32)[0] == channels * 2
    assert struct.unpack_from("<H", data, 34)[0] == 16
    assert data[36:40] == b"data"
    assert struct.unpack_from("<I", data, 40)[0] == frames * channels * 2


def test_samples_are_interleaved_frame_major():
    left = np.array([0.5, 0.25])
    right = np.array([-0.5, -1.0])
    data = encode_wav(SampleBuffer(samples=np.stack([left, right]), sample_rate_hz=8000))

    samples = np.frombuffer(data[44:], dtype="<i2")
    assert samples.tolist() == [16383, -16384, 8191, -32768]


def test_pcm16_scaling_is_asymmetric_and_clamped():
    values = float_to_pcm16(np.array([1.0, -1.0, 0.0, 2.0, -3.0, 0.99999]))
    assert values.tolist() == [32767, -32768, 0, 32767, -32768, 32766]


def test_round_trip_within_quantization():
    original = make_sine(freq=220.0, seconds=0.25, rate=22050, channels=2, amplitude=0.8)
    decoded = decode_audio(encode_wav(original))

    assert decoded.channel_count == original.channel_count
    assert decoded.sample_rate_hz == original.sample_rate_hz
    assert decoded.frame_count == original.frame_count
    assert np.max(np.abs(decoded.samples - original.samples)) <= 1 / 32767


def test_decode_rejects_text():
    with pytest.raises(DecodeError):
        decode_audio(b"this is definitely not an audio file, just some text")


def test_decode_rejects_empty_input():
    with pytest.raises(DecodeError):
        decode_audio(b"")


def test_encode_rejects_empty_buffer():
    with pytest.raises(EncodeError):
        encode_wav(SampleBuffer(samples=np.zeros((1, 0)), sample_rate_hz=16000))


def test_header_rejects_oversized_data():
    with pytest.raises(EncodeError):
        build_wav_header(channels=2, sample_rate=48000, frame_count=2**31)


def test_buffer_is_read_only():
    buffer = make_sine()
    with pytest.raises(ValueError):
        buffer.samples[0, 0] = 1.0
