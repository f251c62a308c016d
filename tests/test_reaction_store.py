import json

from player.reaction_store import ReactionStore
from shared.constants import INTERACTIONS_STORAGE_KEY
from shared.models import ReactionState


def test_missing_file_is_empty(tmp_path):
    assert ReactionStore(tmp_path / "nope.json").load() == {}


def test_save_preserves_other_namespaces(tmp_path):
    path = tmp_path / "state.json"
    path.write_text(json.dumps({"theme": "dark", INTERACTIONS_STORAGE_KEY: {"old": "like"}}))
    store = ReactionStore(path)

    store.save({"a": ReactionState.DISLIKED, "b": ReactionState.NONE})

    document = json.loads(path.read_text())
    assert document["theme"] == "dark"
    assert document[INTERACTIONS_STORAGE_KEY] == {"a": "dislike"}
    assert not path.with_suffix(".json.tmp").exists()


def test_invalid_entries_are_dropped(tmp_path):
    path = tmp_path / "state.json"
    path.write_text(json.dumps({INTERACTIONS_STORAGE_KEY: {"a": "like", "b": "love", "c": None}}))
    assert ReactionStore(path).load() == {"a": ReactionState.LIKED}


def test_non_mapping_record_is_empty(tmp_path):
    path = tmp_path / "state.json"
    path.write_text(json.dumps({INTERACTIONS_STORAGE_KEY: ["a", "like"]}))
    assert ReactionStore(path).load() == {}

    path.write_text(json.dumps([1, 2, 3]))
    assert ReactionStore(path).load() == {}


def test_save_failure_is_logged_not_raised(tmp_path, caplog):
    blocker = tmp_path / "file"
    blocker.write_text("")
    store = ReactionStore(blocker / "state.json")

    store.save({"a": ReactionState.LIKED})

    assert "Error saving reactions" in caplog.text
