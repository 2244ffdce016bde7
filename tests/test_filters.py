import pytest
from pydantic import ValidationError

from emoset.dataset.filters import FileFilter
from emoset.db.models import AudioFile


def clip(**overrides) -> AudioFile:
    fields = dict(
        filename="1_a.wav",
        original_filename="a.wav",
        file_path="audio-files/1_a.wav",
        file_size=2 * 1024 * 1024,
        original_format="wav",
        uploaded_by="Celina",
        emotion="happy",
        dataset_type="train",
        duration=3.0,
        sample_rate=44100,
        channels=2,
    )
    fields.update(overrides)
    return AudioFile(**fields)


def test_empty_filter_matches_everything():
    assert FileFilter().matches(clip())
    assert FileFilter().active_count == 0


def test_emotion_is_exact():
    assert FileFilter(emotion="happy").matches(clip())
    assert not FileFilter(emotion="hap").matches(clip())
    assert not FileFilter(emotion="Happy").matches(clip())


def test_ranges():
    assert FileFilter(duration_min=2, duration_max=4).matches(clip())
    assert not FileFilter(duration_min=3.5).matches(clip())
    assert not FileFilter(size_max_mb=1.5).matches(clip())
    assert FileFilter(size_min_mb=1.5, size_max_mb=2.5).matches(clip())


def test_channels_and_rate():
    assert FileFilter(channels="stereo").matches(clip())
    assert not FileFilter(channels="mono").matches(clip())
    assert not FileFilter(sample_rate=16000).matches(clip())


def test_unknown_metadata_is_not_excluded():
    unknown = clip(duration=None, sample_rate=None, channels=None)
    f = FileFilter(duration_min=10, sample_rate=16000, channels="mono")
    assert f.matches(unknown)
    assert f.active_count == 3


def test_dataset_type_and_uploader():
    assert FileFilter(dataset_type="TRAIN").matches(clip())
    assert not FileFilter(dataset_type="test").matches(clip())
    assert not FileFilter(dataset_type="test").matches(clip(dataset_type=None))
    assert not FileFilter(uploaded_by="Faruk").matches(clip())


def test_apply_keeps_order():
    files = [clip(emotion="sad"), clip(), clip(emotion="angry"), clip()]
    assert FileFilter(emotion="happy").apply(files) == [files[1], files[3]]


def test_bad_channel_layout_rejected():
    with pytest.raises(ValidationError):
        FileFilter(channels="surround")
