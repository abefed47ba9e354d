"""Tests for CLI commands: help, config, health, study and serve."""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

from typer.testing import CliRunner

from hanzi_session.interface.cli import app

runner = CliRunner()


VOCAB = [
    {
        "simplified": "水",
        "level": ["new-1"],
        "forms": [
            {"traditional": "水", "transcriptions": {"pinyin": "shuǐ"}, "meanings": ["water"]}
        ],
    }
]


# --- Help ---


def test_cli_help():
    """Test that help text is displayed correctly."""
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "hanzi-session" in result.stdout
    assert "study" in result.stdout
    assert "health" in result.stdout
    assert "config" in result.stdout


# --- Config ---


@patch("hanzi_session.interface.cli.resolve_config")
def test_config_show_command(mock_resolve_config):
    """Test config show command displays JSON."""
    mock_config = MagicMock()
    mock_config.model_dump.return_value = {
        "vocabulary_path": Path("/tmp/complete.json"),
        "level": "new-1",
        "card_count": 20,
    }
    mock_resolve_config.return_value = mock_config

    result = runner.invoke(app, ["config", "show"])

    assert result.exit_code == 0
    output_data = json.loads(result.stdout)
    assert output_data["vocabulary_path"] == str(Path("/tmp/complete.json"))
    assert output_data["level"] == "new-1"


def test_config_show_reads_toml(mock_home):
    config_dir = mock_home / ".config" / "hanzi-session"
    config_dir.mkdir(parents=True)
    (config_dir / "config.toml").write_text('level = "hsk-2"\ncard_count = 500\n')

    result = runner.invoke(app, ["config", "show"])

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["level"] == "hsk-2"
    assert data["card_count"] == 100


# --- Health ---


def test_health_json_all_up(mock_home, services):
    with patch("hanzi_session.application.factory.get_services", return_value=services):
        result = runner.invoke(app, ["health", "--json"])

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data == {
        "scheduling_available": True,
        "audio_available": True,
        "image_available": True,
        "progress_available": True,
    }


def test_health_reports_down_service(mock_home, services):
    services.image.healthy = False
    with patch("hanzi_session.application.factory.get_services", return_value=services):
        result = runner.invoke(app, ["health"])

    assert result.exit_code == 1
    assert "image" in result.stdout
    assert "down" in result.stdout


# --- Study ---


def test_study_without_vocabulary(mock_home, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    result = runner.invoke(app, ["study"])

    assert result.exit_code == 2
    assert "No vocabulary index configured" in result.stdout


def test_study_empty_level(mock_home, tmp_path, services):
    vocab = tmp_path / "complete.json"
    vocab.write_text(json.dumps(VOCAB, ensure_ascii=False), encoding="utf-8")

    with patch("hanzi_session.application.factory.get_services", return_value=services):
        result = runner.invoke(app, ["study", "--vocabulary", str(vocab), "--level", "hsk-9"])

    assert result.exit_code == 0
    assert "No flashcards found for level hsk-9" in result.stdout


def test_study_grades_a_card(mock_home, tmp_path, services):
    vocab = tmp_path / "complete.json"
    vocab.write_text(json.dumps(VOCAB, ensure_ascii=False), encoding="utf-8")
    services.scheduling.healthy = False

    with patch("hanzi_session.application.factory.get_services", return_value=services):
        result = runner.invoke(
            app,
            ["study", "--vocabulary", str(vocab), "--level", "new-1", "--no-prefetch"],
            input="\ny\n",
        )

    assert result.exit_code == 0, result.stdout
    assert "水" in result.stdout
    assert "shuǐ" in result.stdout
    assert "Session complete" in result.stdout
    assert "Correct: 1" in result.stdout
    assert services.progress.sessions[0].cards_studied == 1


# --- Server ---


@patch("uvicorn.run")
def test_serve_command(mock_run):
    result = runner.invoke(app, ["serve", "--port", "9000"])

    assert result.exit_code == 0
    mock_run.assert_called_once_with(
        "hanzi_session.server:app", host="127.0.0.1", port=9000, reload=False
    )
