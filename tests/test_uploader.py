import io
import sqlite3
from unittest.mock import MagicMock, patch

import pytest

from shared.database import DatabaseManager
from studio.audio import AudioAnalysis
from studio.local_provider import LocalStorageProvider
from studio.uploader import BeatPublisher, MediaFile, PublishError, sanitize_filename, scan_directory


@pytest.fixture
def db(tmp_path):
    return DatabaseManager(str(tmp_path / "beatfolio.db"))


@pytest.fixture
def storage(tmp_path):
    provider = LocalStorageProvider()
    provider.authenticate({"endpoint": str(tmp_path / "media"), "bucket": "beats"})
    return provider


@pytest.fixture
def publisher(db, storage):
    return BeatPublisher(db, storage)


def _audio(name="beat.mp3", data=b"audio"):
    return MediaFile(name, io.BytesIO(data))


@pytest.mark.parametrize("name, expected", [
    ("My Beat.mp3", "My-Beat.mp3"),
    ("trap_loop #3.WAV", "trap-loop--3.wav"),
    ("ça va.flac", "-a-va.flac"),
    ("already-clean.ogg", "already-clean.ogg"),
])
def test_sanitize_filename(name, expected):
    assert sanitize_filename(name) == expected


def test_publish_stores_media_and_row(publisher, storage, db):
    beat = publisher.publish(_audio("Night Drive.mp3"), "  Night Drive ", cover=MediaFile("art.png", io.BytesIO(b"png")),
                             bpm="140", key="A minor", for_sale=True, price="19.99")

    assert beat.title == "Night Drive"
    assert beat.bpm == 140
    assert beat.price == 19.99
    assert beat.audio_path.startswith("audio/") and beat.audio_path.endswith("-Night-Drive.mp3")
    assert beat.cover_path.startswith("covers/")
    assert storage.local_path(beat.audio_path).read_bytes() == b"audio"
    assert storage.file_exists(beat.cover_path)
    assert db.get_beat(beat.id) == beat


def test_publish_uses_analyzer_for_missing_fields(db, storage):
    analyzer = MagicMock()
    analyzer.analyze.return_value = AudioAnalysis(bpm=87, key="G major")
    publisher = BeatPublisher(db, storage, analyzer)

    beat = publisher.publish(_audio(), "Title", key="E minor")

    assert beat.bpm == 87
    assert beat.key == "E minor"
    analyzed_path = analyzer.analyze.call_args.args[0]
    assert analyzed_path.endswith("beat.mp3")


def test_publish_tolerates_failed_analysis(db, storage):
    analyzer = MagicMock()
    analyzer.analyze.return_value = None
    beat = BeatPublisher(db, storage, analyzer).publish(_audio(), "Title")
    assert (beat.bpm, beat.key) == (0, "")


@pytest.mark.parametrize("kwargs", [
    {"title": ""},
    {"bpm": "fast"},
    {"bpm": -3},
    {"price": "free"},
])
def test_publish_validation(publisher, kwargs):
    args = {"audio": _audio(), "title": "Title"}
    args.update(kwargs)
    with pytest.raises(PublishError):
        publisher.publish(**args)


def test_publish_rejects_unsupported_files(publisher):
    with pytest.raises(PublishError):
        publisher.publish(_audio("notes.txt"), "Title")
    with pytest.raises(PublishError):
        publisher.publish(_audio(), "Title", cover=MediaFile("cover.bmp", io.BytesIO(b"")))


def test_failed_cover_upload_removes_stored_audio(db):
    storage = MagicMock()
    storage.file_exists.return_value = False
    storage.upload_file.return_value = True
    storage.upload_fileobj.return_value = False
    storage.delete_file.return_value = True
    publisher = BeatPublisher(db, storage)

    with pytest.raises(PublishError):
        publisher.publish(_audio(), "Title", cover=MediaFile("art.jpg", io.BytesIO(b"jpg")))

    audio_key = storage.upload_file.call_args.args[1]
    storage.delete_file.assert_called_once_with(audio_key)
    assert db.get_all_beats() == []


def test_update_metadata_replaces_cover(publisher, storage):
    beat = publisher.publish(_audio(), "Title", cover=MediaFile("a.png", io.BytesIO(b"1")))
    old_cover = beat.cover_path

    updated = publisher.update_metadata(beat.id, {"title": "New", "for_sale": "true", "price": 10},
                                        cover=MediaFile("b.png", io.BytesIO(b"2")))

    assert updated.title == "New"
    assert updated.for_sale is True
    assert updated.cover_path != old_cover
    assert not storage.file_exists(old_cover)
    assert storage.file_exists(updated.cover_path)


def test_update_metadata_unknown_beat(publisher):
    assert publisher.update_metadata("missing", {"title": "x"}) is None


def test_update_metadata_rejects_empty_title(publisher):
    beat = publisher.publish(_audio(), "Title")
    with pytest.raises(PublishError):
        publisher.update_metadata(beat.id, {"title": " "})


@pytest.mark.parametrize("fields", [{"title": 5}, {"key": ["A minor"]}, {"description": {"x": 1}}])
def test_update_metadata_rejects_non_string_text(publisher, fields):
    beat = publisher.publish(_audio(), "Title")
    with pytest.raises(PublishError):
        publisher.update_metadata(beat.id, fields)


def test_failed_update_removes_new_cover(publisher, storage, db):
    beat = publisher.publish(_audio(), "Title", cover=MediaFile("a.png", io.BytesIO(b"1")))

    with patch.object(db, "update_beat", side_effect=sqlite3.OperationalError("database is locked")), \
            patch.object(storage, "delete_file", wraps=storage.delete_file) as delete_file:
        with pytest.raises(sqlite3.OperationalError):
            publisher.update_metadata(beat.id, {}, cover=MediaFile("b.png", io.BytesIO(b"2")))

    new_cover = delete_file.call_args.args[0]
    assert new_cover.startswith("covers/")
    assert new_cover != beat.cover_path
    assert not storage.file_exists(new_cover)
    assert storage.file_exists(beat.cover_path)
    assert db.get_beat(beat.id).cover_path == beat.cover_path


def test_remove_deletes_media(publisher, storage, db):
    beat = publisher.publish(_audio(), "Title", cover=MediaFile("a.png", io.BytesIO(b"1")))

    assert publisher.remove(beat.id).id == beat.id
    assert not storage.file_exists(beat.audio_path)
    assert not storage.file_exists(beat.cover_path)
    assert publisher.remove(beat.id) is None


def test_update_profile_fields_and_slots(publisher, storage):
    profile = publisher.update_profile(
        {"pseudo": "DJ Test", "tagline": "", "twitter": "djtest", "backgroundBlur": "4"},
        images={"profilePicture": MediaFile("me.jpg", io.BytesIO(b"me"))},
    )
    assert profile.pseudo == "DJ Test"
    assert profile.tagline == "Producer"
    assert profile.socials.twitter == "djtest"
    assert profile.background_blur == 4
    picture = profile.profile_picture
    assert storage.file_exists(picture)

    profile = publisher.update_profile({"twitter": ""}, deletions=["profilePicture"])
    assert profile.profile_picture == ""
    assert profile.socials.twitter is None
    assert not storage.file_exists(picture)


def test_update_profile_unknown_slot(publisher):
    with pytest.raises(PublishError):
        publisher.update_profile({}, deletions=["avatar"])


def test_scan_directory(tmp_path):
    (tmp_path / "a.mp3").write_bytes(b"")
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "b.wav").write_bytes(b"")
    (tmp_path / "readme.txt").write_text("")

    found = scan_directory(str(tmp_path))
    assert sorted(p.name for p in found) == ["a.mp3", "b.wav"]
    assert scan_directory(str(tmp_path / "a.mp3"))[0].name == "a.mp3"
    assert scan_directory(str(tmp_path / "missing")) == []
