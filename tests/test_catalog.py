from unittest.mock import MagicMock

import pytest
import requests

from player.catalog import CatalogClient
from player.interaction_ledger import InteractionLedger
from shared.models import ReactionState


def _response(payload):
    response = MagicMock()
    response.json.return_value = payload
    return response


BEATS = [
    {
        "id": "b1", "title": "Night Drive", "audioPath": "audio/1.mp3", "bpm": 140, "key": "A minor",
        "likeCount": 5, "dislikeCount": 2, "forSale": False, "price": None,
        "createdAt": "2025-01-01T00:00:00+00:00", "audioUrl": "/media/audio/1.mp3", "coverUrl": None,
    },
    {
        "id": "b2", "title": "Sunset", "audioPath": "audio/2.mp3", "likeCount": 0, "dislikeCount": 0,
        "audioUrl": "/media/audio/2.mp3", "coverUrl": "/media/covers/2.png",
    },
]


def test_fetch_beats():
    session = MagicMock()
    session.get.return_value = _response(BEATS)
    client = CatalogClient("http://beats.test", session=session, timeout=3)

    beats = client.fetch_beats()

    session.get.assert_called_once_with("http://beats.test/api/beats", timeout=3)
    assert [b.id for b in beats] == ["b1", "b2"]
    assert beats[0].like_count == 5
    assert beats[0].key == "A minor"


def test_http_errors_propagate():
    session = MagicMock()
    session.get.side_effect = requests.ConnectionError("down")
    with pytest.raises(requests.RequestException):
        CatalogClient(session=session).fetch_beats()


def test_ledger_rows_combine_counts_and_reactions():
    session = MagicMock()
    session.get.return_value = _response(BEATS)
    client = CatalogClient("http://beats.test", session=session)
    beats = client.fetch_beats()

    ledger = InteractionLedger()
    ledger.toggle_like("b1")
    ledger.toggle_dislike("b2")
    ledger.toggle_like("b2")

    rows = client.ledger_rows(beats, ledger)

    assert (rows[0].reaction, rows[0].likes, rows[0].dislikes) == (ReactionState.LIKED, 6, 2)
    assert (rows[1].reaction, rows[1].likes, rows[1].dislikes) == (ReactionState.LIKED, 1, 0)
    assert rows[1].cover_url == "/media/covers/2.png"


def test_comments_and_profile():
    session = MagicMock()
    session.get.side_effect = [
        _response([{"id": "c1", "beatId": "b1", "author": "Sam", "content": "Fire",
                    "createdAt": "2025-01-01T00:00:00+00:00"}]),
        _response({"pseudo": "DJ Test", "tagline": "Trap", "socials": {"instagram": "dj"}}),
    ]
    session.post.return_value = _response({"id": "c2", "beatId": "b1", "author": "Alex", "content": "Nice"})
    client = CatalogClient("http://beats.test", session=session)

    comments = client.fetch_comments("b1")
    assert comments[0].author == "Sam"
    session.get.assert_called_with("http://beats.test/api/beats/b1/comments", timeout=client.timeout)

    profile = client.fetch_profile()
    assert profile.pseudo == "DJ Test"
    assert profile.socials.instagram == "dj"

    posted = client.post_comment("b1", "Alex", "Nice")
    assert posted.id == "c2"
    session.post.assert_called_once_with(
        "http://beats.test/api/beats/b1/comments",
        json={"author": "Alex", "content": "Nice"},
        timeout=client.timeout,
    )
