from unittest.mock import patch

import pytest
from click.testing import CliRunner

from player.cli import cli as visitor_cli
from shared.config import AppConfig
from shared.database import DatabaseManager
from shared.models import Beat
from studio.cli import cli as studio_cli


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "config.json"
    AppConfig(
        database_path=str(tmp_path / "beatfolio.db"),
        storage_endpoint=str(tmp_path / "media"),
        analyze_uploads=False,
    ).save(path)
    return path


def test_studio_upload_list_delete(tmp_path, config_path):
    (tmp_path / "Night Drive.mp3").write_bytes(b"\x00" * 32)
    runner = CliRunner()

    result = runner.invoke(studio_cli, ["--config", str(config_path), "upload", str(tmp_path / "Night Drive.mp3"),
                                        "--bpm", "140", "--key", "A minor", "--no-analyze"])
    assert result.exit_code == 0, result.output
    assert "Published 1/1" in result.output

    beats = DatabaseManager(str(tmp_path / "beatfolio.db")).get_all_beats()
    assert [(b.title, b.bpm, b.key) for b in beats] == [("Night Drive", 140, "A minor")]

    result = runner.invoke(studio_cli, ["--config", str(config_path), "list"])
    assert result.exit_code == 0
    assert "Night" in result.output

    result = runner.invoke(studio_cli, ["--config", str(config_path), "delete", beats[0].id[:8], "--yes"])
    assert result.exit_code == 0, result.output
    assert DatabaseManager(str(tmp_path / "beatfolio.db")).get_all_beats() == []


def test_studio_edit_unknown_beat(config_path):
    result = CliRunner().invoke(studio_cli, ["--config", str(config_path), "edit", "zzz", "--title", "x"])
    assert result.exit_code != 0
    assert "No beat matches" in result.output


def test_visitor_like_sends_delta_and_remembers(tmp_path):
    beat = Beat(id="b1234567-0000", title="Night Drive", audio_path="audio/1.mp3", like_count=5, dislike_count=2)
    state_file = tmp_path / "state.json"

    with patch("player.cli.CatalogClient") as catalog_cls, patch("player.cli.ReactionSyncClient") as sync_cls:
        catalog_cls.return_value.fetch_beats.return_value = [beat]
        sync = sync_cls.return_value
        sync.timeout = 1
        sync.flush.return_value = True

        result = CliRunner().invoke(visitor_cli, ["--api-url", "http://beats.test", "--state-file", str(state_file),
                                                  "like", "b1234"])

    assert result.exit_code == 0, result.output
    assert "You like this beat" in result.output
    command = sync.call_args.args[0]
    assert command.beat_id == "b1234567-0000"
    assert command.delta.to_payload() == {"likeDelta": 1, "dislikeDelta": 0}
    assert '"b1234567-0000": "like"' in state_file.read_text()
