import pytest

from shared.constants import MAX_REACTION_COUNT, MAX_REACTION_DELTA
from shared.database import DatabaseManager
from shared.models import Beat, Profile, Socials


@pytest.fixture
def db(tmp_path):
    return DatabaseManager(str(tmp_path / "beatfolio.db"))


def _beat(**kwargs):
    values = dict(id=Beat.generate_id(), title="Night Drive", audio_path="audio/1-night-drive.mp3")
    values.update(kwargs)
    return Beat(**values)


def test_add_and_get_beat(db):
    beat = db.add_beat(_beat(bpm=140, key="A minor", for_sale=True, price=29.99))

    stored = db.get_beat(beat.id)
    assert stored == beat
    assert stored.like_count == 0 and stored.dislike_count == 0
    assert db.get_beat("missing") is None


def test_beats_newest_first(db):
    old = db.add_beat(_beat(title="Old", created_at="2024-01-01T00:00:00+00:00"))
    new = db.add_beat(_beat(title="New", created_at="2025-01-01T00:00:00+00:00"))
    assert [b.id for b in db.get_all_beats()] == [new.id, old.id]


def test_negative_initial_counts_are_floored(db):
    beat = db.add_beat(_beat(like_count=-3, dislike_count=2))
    assert db.get_beat(beat.id).like_count == 0
    assert db.get_beat(beat.id).dislike_count == 2


def test_apply_reaction_delta_clamps_at_zero(db):
    beat = db.add_beat(_beat(like_count=1))

    updated = db.apply_reaction_delta(beat.id, -1, 1)
    assert (updated.like_count, updated.dislike_count) == (0, 1)

    updated = db.apply_reaction_delta(beat.id, -5, -5)
    assert (updated.like_count, updated.dislike_count) == (0, 0)


def test_apply_reaction_delta_caps_counters(db):
    beat = db.add_beat(_beat(like_count=MAX_REACTION_COUNT - 1, dislike_count=MAX_REACTION_COUNT + 10))
    assert db.get_beat(beat.id).dislike_count == MAX_REACTION_COUNT

    updated = db.apply_reaction_delta(beat.id, MAX_REACTION_DELTA, MAX_REACTION_DELTA)

    assert (updated.like_count, updated.dislike_count) == (MAX_REACTION_COUNT, MAX_REACTION_COUNT)
    assert isinstance(updated.like_count, int)


def test_apply_reaction_delta_rejects_oversized_deltas(db):
    beat = db.add_beat(_beat(like_count=3))

    with pytest.raises(ValueError):
        db.apply_reaction_delta(beat.id, 2 ** 63, 0)

    assert db.get_beat(beat.id).like_count == 3


def test_apply_reaction_delta_unknown_beat(db):
    assert db.apply_reaction_delta("nope", 1, 0) is None


def test_delta_order_does_not_matter_when_no_clamp(db):
    a = db.add_beat(_beat(like_count=5, dislike_count=5))
    b = db.add_beat(_beat(like_count=5, dislike_count=5))
    deltas = [(1, 0), (-1, 1), (0, -1), (1, -1)]

    for d in deltas:
        db.apply_reaction_delta(a.id, *d)
    for d in reversed(deltas):
        db.apply_reaction_delta(b.id, *d)

    assert (db.get_beat(a.id).like_count, db.get_beat(a.id).dislike_count) == \
           (db.get_beat(b.id).like_count, db.get_beat(b.id).dislike_count) == (6, 4)


def test_update_beat_only_touches_editable_fields(db):
    beat = db.add_beat(_beat(like_count=4))

    updated = db.update_beat(beat.id, {"title": "Renamed", "like_count": 999, "bpm": 90})

    assert updated.title == "Renamed"
    assert updated.bpm == 90
    assert updated.like_count == 4
    assert db.update_beat("missing", {"title": "x"}) is None


def test_delete_beat_removes_comments(db):
    beat = db.add_beat(_beat())
    db.add_comment(beat.id, "Sam", "Hard")

    deleted = db.delete_beat(beat.id)

    assert deleted.id == beat.id
    assert db.get_beat(beat.id) is None
    assert db.get_comments(beat.id) == []
    assert db.delete_beat(beat.id) is None


def test_comments_oldest_first(db):
    beat = db.add_beat(_beat())
    first = db.add_comment(beat.id, "Sam", "First")
    second = db.add_comment(beat.id, "Alex", "Second")

    comments = db.get_comments(beat.id)
    assert [c.id for c in comments] == [first.id, second.id]
    assert comments[0].author == "Sam"


def test_profile_defaults_and_update(db):
    assert db.get_profile() == Profile()

    profile = Profile(pseudo="DJ Test", tagline="Trap", banner="profile/1-banner.png",
                      background_blur=8, socials=Socials(instagram="djtest"))
    db.update_profile(profile)

    assert db.get_profile() == profile


def test_corrupt_profile_falls_back_to_default(db):
    with db._transaction() as conn:
        conn.execute("INSERT OR REPLACE INTO settings (key, value) VALUES ('profile', '{oops')")
    assert db.get_profile() == Profile()


def test_stats(db):
    beat = db.add_beat(_beat(like_count=2, dislike_count=1))
    db.add_comment(beat.id, "Sam", "Nice")
    assert db.get_stats() == {"beats": 1, "comments": 1, "likes": 2, "dislikes": 1}
