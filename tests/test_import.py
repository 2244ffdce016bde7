from emoset.dataset.export import export_csv, parse_import_csv
from emoset.db.models import AudioFile


def test_english_headers():
    text = "ID,Emotion,Dataset Type,Description\nabc,Sad,VALIDATION,whispered\n"
    rows, skipped = parse_import_csv(text)

    assert skipped == 0
    assert rows[0].file_id == "abc"
    assert rows[0].changes == {"emotion": "sad", "dataset_type": "validation", "description": "whispered"}


def test_turkish_headers_and_labels():
    text = "\ufeffid,Duygu,Veri Seti Tipi,Açıklama\nabc,Kızgın,test,bağırıyor\n"
    rows, _ = parse_import_csv(text)
    assert rows[0].changes == {"emotion": "angry", "dataset_type": "test", "description": "bağırıyor"}


def test_empty_cells_clear_and_unknown_values_are_ignored():
    text = "id,emotion,dataset_type,description\nabc,,holdout,\n"
    rows, _ = parse_import_csv(text)
    assert rows[0].changes == {"emotion": None, "description": None}


def test_rows_without_id_or_changes_are_skipped():
    text = "ID,Emotion\n,happy\nabc,bored\ndef,happy\n"
    rows, skipped = parse_import_csv(text)
    assert [r.file_id for r in rows] == ["def"]
    assert skipped == 2


def test_export_can_be_reimported():
    audio_file = AudioFile(
        filename="1_a.wav",
        original_filename="a.wav",
        file_path="audio-files/1_a.wav",
        file_size=100,
        original_format="wav",
        uploaded_by="Faruk",
        emotion="fearful",
        dataset_type="train",
    )
    rows, skipped = parse_import_csv(export_csv([audio_file]))
    assert skipped == 0
    assert rows[0].file_id == str(audio_file.id)
    assert rows[0].changes == {"emotion": "fearful", "dataset_type": "train", "description": None}
