from uuid import uuid4

import pytest

from emoset.audio.codec import encode_wav
from emoset.config import DatasetSplit
from emoset.dataset.filters import FileFilter
from emoset.db.operations import (
    BACKUP_NOTE,
    add_version,
    assign_dataset_split,
    create_file_with_version,
    delete_file,
    get_file,
    list_files,
    list_versions,
    restore_version,
    update_file_labels,
    upsert_user,
)
from emoset.ingest import prepare_upload

from .conftest import make_sine


def upload(name: str, freq: float = 440.0, channels: int = 1):
    return prepare_upload(name, encode_wav(make_sine(freq=freq, channels=channels)))


async def test_create_stores_blob_and_first_version(session, storage):
    prepared = upload("first.wav")

    audio_file = await create_file_with_version(
        session, storage, prepared, "Celina", emotion="happy", dataset_type="Train"
    )

    assert audio_file.current_version == 1
    assert audio_file.dataset_type == "train"
    assert audio_file.duration == pytest.approx(0.5)
    assert audio_file.sample_rate == 16000
    assert audio_file.channels == 1
    assert audio_file.audio_level is not None
    assert storage.download(audio_file.file_path) == prepared.wav_bytes

    versions = await list_versions(session, audio_file.id)
    assert [v.version_number for v in versions] == [1]
    assert versions[0].file_path == audio_file.file_path


async def test_update_labels(session, storage):
    audio_file = await create_file_with_version(session, storage, upload("labels.wav"), "Faruk")

    updated = await update_file_labels(
        session, audio_file.id, {"emotion": "sad", "description": "  sighing "}
    )
    assert updated.emotion == "sad"
    assert updated.description == "sighing"

    cleared = await update_file_labels(session, audio_file.id, {"emotion": ""})
    assert cleared.emotion is None
    assert cleared.description == "sighing"

    split = await assign_dataset_split(session, audio_file.id, DatasetSplit.VALIDATION)
    assert split.dataset_type == "validation"


async def test_update_rejects_bad_input(session, storage):
    audio_file = await create_file_with_version(session, storage, upload("bad.wav"), "Faruk")

    with pytest.raises(ValueError):
        await update_file_labels(session, audio_file.id, {"file_path": "x"})
    with pytest.raises(ValueError):
        await update_file_labels(session, audio_file.id, {"dataset_type": "holdout"})
    with pytest.raises(ValueError):
        await update_file_labels(session, uuid4(), {"emotion": "sad"})


async def test_add_version_becomes_current(session, storage):
    audio_file = await create_file_with_version(session, storage, upload("take.wav"), "Celina")
    stereo = upload("take.wav", freq=220.0, channels=2)

    version = await add_version(session, storage, audio_file.id, stereo, "Faruk", notes=" cleaner ")

    refreshed = await get_file(session, audio_file.id)
    assert version.version_number == 2
    assert version.notes == "cleaner"
    assert refreshed.current_version == 2
    assert refreshed.file_path == version.file_path
    assert refreshed.channels == 2
    assert refreshed.uploaded_by == "Celina"
    assert [v.version_number for v in await list_versions(session, audio_file.id)] == [2, 1]


async def test_restore_backs_up_current_version(session, storage):
    original = upload("restore.wav")
    audio_file = await create_file_with_version(session, storage, original, "Celina")
    second = upload("restore.wav", freq=880.0)
    _ = await add_version(session, storage, audio_file.id, second, "Celina")

    restored = await restore_version(session, storage, audio_file.id, 1)

    assert restored.current_version == 1
    assert storage.download(restored.file_path) == original.wav_bytes

    versions = await list_versions(session, audio_file.id)
    assert [v.version_number for v in versions] == [3, 2, 1]
    backup = versions[0]
    assert backup.notes == BACKUP_NOTE
    assert "backup" in backup.file_path
    assert storage.download(backup.file_path) == second.wav_bytes

    # the next upload continues after the backup
    third = await add_version(session, storage, audio_file.id, upload("restore.wav", freq=330.0), "Faruk")
    assert third.version_number == 4


async def test_restore_unknown_version(session, storage):
    audio_file = await create_file_with_version(session, storage, upload("missing.wav"), "Celina")
    with pytest.raises(ValueError):
        await restore_version(session, storage, audio_file.id, 7)


async def test_delete_removes_blobs_and_versions(session, storage):
    audio_file = await create_file_with_version(session, storage, upload("gone.wav"), "Celina")
    version = await add_version(session, storage, audio_file.id, upload("gone.wav", freq=660.0), "Celina")
    first_key = (await list_versions(session, audio_file.id))[-1].file_path

    _ = await delete_file(session, storage, audio_file.id)

    assert await get_file(session, audio_file.id) is None
    assert await list_versions(session, audio_file.id) == []
    assert not (storage.root / version.file_path).exists()
    assert not (storage.root / first_key).exists()


async def test_delete_survives_missing_blob(session, storage):
    audio_file = await create_file_with_version(session, storage, upload("orphan.wav"), "Celina")
    storage.delete(audio_file.file_path)

    _ = await delete_file(session, storage, audio_file.id)

    assert await get_file(session, audio_file.id) is None


async def test_list_files_with_filter(session, storage):
    _ = await create_file_with_version(session, storage, upload("a.wav"), "Celina", emotion="happy")
    _ = await create_file_with_version(session, storage, upload("b.wav", channels=2), "Faruk", emotion="sad")

    assert len(await list_files(session)) == 2
    happy = await list_files(session, FileFilter(emotion="happy"))
    assert [f.original_filename for f in happy] == ["a.wav"]
    stereo = await list_files(session, FileFilter(channels="stereo"))
    assert [f.original_filename for f in stereo] == ["b.wav"]


async def test_upsert_user(session):
    user = await upsert_user(session, "celina@example.com", "Celina")
    again = await upsert_user(session, "celina@example.com", None)

    assert again.id == user.id
    assert again.name == "Celina"
