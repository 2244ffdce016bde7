import pytest

from emoset.config import DatasetConfig
from emoset.dataset.statistics import compute_statistics
from emoset.db.models import AudioFile


def clip(uploaded_by: str, emotion: str | None, dataset_type: str | None = None) -> AudioFile:
    return AudioFile(
        filename="1_a.wav",
        original_filename="a.wav",
        file_path="audio-files/1_a.wav",
        file_size=100,
        original_format="wav",
        uploaded_by=uploaded_by,
        emotion=emotion,
        dataset_type=dataset_type,
    )


def test_counts_per_member_and_emotion():
    files = [
        clip("Celina", "happy", "train"),
        clip("Celina", "sad", "test"),
        clip("Faruk", "happy", "train"),
        clip("Guest", "happy"),
        clip("Faruk", "bored"),
    ]
    stats = compute_statistics(files, DatasetConfig(team_members=["Celina", "Faruk"], target_clips=10))

    assert stats.total_files == 5
    assert stats.member_totals == {"Celina": 2, "Faruk": 2}
    assert stats.member_emotions["Celina"]["happy"] == 1
    assert stats.member_emotions["Faruk"]["happy"] == 1
    assert stats.emotion_totals["happy"] == 3
    assert stats.emotion_totals["sad"] == 1
    assert "bored" not in stats.emotion_totals
    assert stats.split_totals == {"train": 2, "test": 1, "validation": 0}
    assert stats.progress_percent == pytest.approx(50.0)
    assert stats.remaining_clips == 5


def test_members_fall_back_to_uploaders():
    stats = compute_statistics([clip("Zeynep", "happy"), clip(" Ali ", "sad")], DatasetConfig())
    assert stats.member_totals == {"Ali": 1, "Zeynep": 1}


def test_progress_is_capped():
    files = [clip("Celina", "happy") for _ in range(4)]
    stats = compute_statistics(files, DatasetConfig(target_clips=3))
    assert stats.progress_percent == 100.0
    assert stats.remaining_clips == 0
