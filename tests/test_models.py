import pytest

from shared.models import Beat, Comment, Profile, ReactionDelta, ReactionState


def test_reaction_state_wire_values():
    assert ReactionState(None) is ReactionState.NONE
    assert ReactionState("like") is ReactionState.LIKED
    assert ReactionState("dislike") is ReactionState.DISLIKED


def test_reaction_delta_payload():
    assert ReactionDelta(-1, 1).to_payload() == {"likeDelta": -1, "dislikeDelta": 1}
    assert ReactionDelta.from_payload({"likeDelta": 1}) == ReactionDelta(1, 0)
    assert ReactionDelta.from_payload({"likeDelta": None, "dislikeDelta": -1}) == ReactionDelta(0, -1)
    assert ReactionDelta().is_zero()
    assert not ReactionDelta(0, 1).is_zero()


@pytest.mark.parametrize("payload", [
    {"likeDelta": "1"},
    {"likeDelta": 0.5},
    {"dislikeDelta": False},
    {"dislikeDelta": [1]},
    {"likeDelta": 2 ** 63},
    {"dislikeDelta": -(2 ** 31) - 1},
])
def test_reaction_delta_rejects_invalid_values(payload):
    with pytest.raises(ValueError):
        ReactionDelta.from_payload(payload)


def test_beat_wire_form_uses_camel_case():
    beat = Beat(id="b1", title="T", audio_path="audio/a.mp3", cover_path="covers/c.png",
                like_count=3, for_sale=True, price=9.5, created_at="2025-01-01T00:00:00+00:00")
    data = beat.to_dict()

    assert data["audioPath"] == "audio/a.mp3"
    assert data["coverPath"] == "covers/c.png"
    assert data["likeCount"] == 3
    assert data["forSale"] is True
    assert "audio_path" not in data
    assert Beat.from_dict(data) == beat


def test_beat_from_dict_accepts_attribute_names_and_ignores_extras():
    beat = Beat.from_dict({"id": "b1", "title": "T", "audio_path": "a.mp3", "like_count": "4",
                           "audioUrl": "/media/a.mp3"})
    assert beat.audio_path == "a.mp3"
    assert beat.like_count == 4
    assert beat.bpm == 0


def test_comment_wire_form():
    comment = Comment(id="c1", beat_id="b1", author="Sam", content="Fire", created_at="2025-01-01")
    assert comment.to_dict()["beatId"] == "b1"
    assert Comment.from_dict(comment.to_dict()) == comment


def test_profile_defaults_and_wire_form():
    assert Profile.from_dict({}) == Profile()
    profile = Profile.from_dict({"pseudo": "DJ", "profilePicture": "profile/p.png", "backgroundBlur": "3",
                                 "socials": {"youtube": "dj", "email": ""}})
    assert profile.profile_picture == "profile/p.png"
    assert profile.background_blur == 3
    assert profile.to_dict()["socials"] == {"youtube": "dj"}
