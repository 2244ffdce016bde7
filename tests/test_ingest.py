import shutil
import subprocess

import pytest

from emoset.audio.codec import decode_audio
from emoset.ingest import UploadRejectedError, prepare_upload, validate_upload


def test_wav_is_stored_as_is(wav_bytes):
    prepared = prepare_upload("clip.wav", wav_bytes)

    assert prepared.wav_bytes == wav_bytes
    assert prepared.original_format == "wav"
    assert not prepared.is_converted
    assert prepared.metadata is not None
    assert prepared.metadata.sample_rate_hz == 16000


def test_unreadable_wav_keeps_null_metadata():
    prepared = prepare_upload("broken.WAV", b"RIFF but not really a wav file")
    assert prepared.metadata is None
    assert prepared.original_format == "wav"


def test_unparseable_mp3_is_rejected():
    with pytest.raises(UploadRejectedError):
        prepare_upload("clip.mp3", b"ID3 this is not an mp3 stream")


@pytest.mark.skipif(shutil.which("ffmpeg") is None, reason="ffmpeg not installed")
def test_mp3_is_converted(tmp_path, wav_bytes):
    source = tmp_path / "clip.wav"
    target = tmp_path / "clip.mp3"
    _ = source.write_bytes(wav_bytes)
    subprocess.run(["ffmpeg", "-v", "error", "-i", str(source), str(target)], check=True)

    prepared = prepare_upload("clip.mp3", target.read_bytes())

    assert prepared.is_converted
    assert prepared.original_format == "mp3"
    assert prepared.wav_bytes[:4] == b"RIFF"
    assert decode_audio(prepared.wav_bytes).sample_rate_hz == 16000


@pytest.mark.parametrize("name", ["clip.flac", "clip", "clip.wav.txt"])
def test_other_extensions_rejected(name):
    with pytest.raises(UploadRejectedError):
        validate_upload(name, 100)


def test_size_limits():
    with pytest.raises(UploadRejectedError):
        validate_upload("clip.wav", 0)
    with pytest.raises(UploadRejectedError):
        validate_upload("clip.wav", 2 * 1024 * 1024, max_upload_mb=1)
    assert validate_upload("CLIP.MP3", 10) == "mp3"
