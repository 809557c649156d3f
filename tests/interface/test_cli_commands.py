"""Tests for CLI commands: help, config, import, books, study, words, serve and migrate."""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from fluentflow.interface.cli import app

runner = CliRunner()


@pytest.fixture
def data_dir(isolated_config):
    return isolated_config / "data"


def invoke(data_dir: Path, *args: str, input: str | None = None):
    return runner.invoke(app, ["--data-dir", str(data_dir), *args], input=input)


def import_sample(data_dir: Path, tmp_path: Path) -> str:
    source = tmp_path / "greetings.txt"
    source.write_text("你好 === Hello, world.\n谢谢 === Thank you.\n", encoding="utf-8")
    result = invoke(data_dir, "import", str(source))
    assert result.exit_code == 0, result.output
    books = json.loads(invoke(data_dir, "books", "--json").stdout)
    return books[0]["id"]


def stored_document(data_dir: Path) -> dict:
    return json.loads((data_dir / "library.json").read_text(encoding="utf-8"))


# --- Help ---


def test_cli_help():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "Spaced-repetition" in result.stdout
    assert "study" in result.stdout
    assert "migrate" in result.stdout


# --- Config ---


@patch("fluentflow.interface.cli.resolve_config")
def test_config_show_command(mock_resolve_config):
    mock_config = MagicMock()
    mock_config.model_dump.return_value = {
        "backend": "sqlite",
        "data_dir": Path("/tmp/fluentflow"),
        "gemini_api_key": "secret",
    }
    mock_resolve_config.return_value = mock_config

    result = runner.invoke(app, ["config", "show"])

    assert result.exit_code == 0
    output_data = json.loads(result.stdout)
    assert output_data["backend"] == "sqlite"
    assert output_data["data_dir"] == str(Path("/tmp/fluentflow"))
    assert output_data["gemini_api_key"] == "***"


@patch("fluentflow.interface.cli.typer.launch")
def test_logs_command_creates_and_opens_dir(mock_launch, isolated_config, monkeypatch):
    log_dir = isolated_config / "logs"
    monkeypatch.setenv("FLUENTFLOW_LOG_DIR", str(log_dir))

    result = runner.invoke(app, ["logs"])

    assert result.exit_code == 0, result.output
    assert log_dir.is_dir()
    mock_launch.assert_called_once_with(str(log_dir))


# --- Library ---


def test_import_and_list(data_dir, tmp_path):
    import_sample(data_dir, tmp_path)

    result = invoke(data_dir, "books")

    assert result.exit_code == 0
    assert "greetings" in result.stdout
    assert "cards=2" in result.stdout


def test_import_missing_file(data_dir, tmp_path):
    result = invoke(data_dir, "import", str(tmp_path / "absent.txt"))
    assert result.exit_code == 1


def test_import_malformed_content(data_dir, tmp_path):
    source = tmp_path / "bad.txt"
    source.write_text("no delimiter here\n", encoding="utf-8")

    result = invoke(data_dir, "import", str(source), "--title", "Bad")

    assert result.exit_code == 1
    assert "Invalid format on line 1" in result.output


def test_books_empty(data_dir):
    result = invoke(data_dir, "books")
    assert result.exit_code == 0
    assert "No study books yet" in result.stdout


def test_show_and_delete(data_dir, tmp_path):
    book_id = import_sample(data_dir, tmp_path)

    shown = invoke(data_dir, "show", book_id)
    assert shown.exit_code == 0
    assert "Hello, world." in shown.stdout

    deleted = invoke(data_dir, "delete", book_id, "--yes")
    assert deleted.exit_code == 0
    assert stored_document(data_dir)["studyBooks"] == []


def test_show_unknown_book(data_dir):
    result = invoke(data_dir, "show", "missing")
    assert result.exit_code == 1
    assert "Book not found" in result.output


# --- Study ---


def test_study_fixed_mode_saves_progress(data_dir, tmp_path):
    book_id = import_sample(data_dir, tmp_path)

    # Bare words fill the blanks around the punctuation; the second card is skipped
    result = invoke(data_dir, "study", book_id, input="hello world\n:skip\n")

    assert result.exit_code == 0, result.output
    assert "Correct!" in result.stdout
    assert "Session saved. 1 correct" in result.stdout
    cards = stored_document(data_dir)["studyBooks"][0]["cards"]
    assert [c["memoryLevel"] for c in cards] == [2, 1]


def test_study_wrong_answer_is_recorded(data_dir, tmp_path):
    book_id = import_sample(data_dir, tmp_path)

    result = invoke(data_dir, "study", book_id, input="goodbye moon\n:quit\n")

    assert result.exit_code == 0, result.output
    assert "The correct answer is: Hello, world." in result.stdout
    card = stored_document(data_dir)["studyBooks"][0]["cards"][0]
    assert card["incorrectAnswers"] == ["goodbye, moon."]


def test_study_end_of_input_saves_answers(data_dir, tmp_path):
    book_id = import_sample(data_dir, tmp_path)

    # Input runs out before the second card is answered
    result = invoke(data_dir, "study", book_id, "--fixed", input="hello world\n")

    assert result.exit_code == 0, result.output
    assert "Stopping early." in result.stdout
    assert "Session saved. 1 correct" in result.stdout
    cards = stored_document(data_dir)["studyBooks"][0]["cards"]
    assert [c["memoryLevel"] for c in cards] == [2, 1]


def test_study_no_mistakes(data_dir, tmp_path):
    book_id = import_sample(data_dir, tmp_path)

    result = invoke(data_dir, "study", book_id, "--mode", "mistakes")

    assert result.exit_code == 0
    assert "No mistakes to review" in result.stdout


# --- Words ---


def test_words_list_empty(data_dir):
    result = invoke(data_dir, "words", "list")
    assert result.exit_code == 0
    assert "empty" in result.stdout


def test_words_study_empty_book(data_dir):
    result = invoke(data_dir, "words", "study")
    assert result.exit_code == 0
    assert "All caught up" in result.stdout


# --- Server ---


@patch("uvicorn.run")
def test_serve_command(mock_run):
    result = runner.invoke(app, ["serve", "--port", "9999"])

    assert result.exit_code == 0
    mock_run.assert_called_once_with(
        "fluentflow.server:app", host="127.0.0.1", port=9999, reload=False
    )


# --- Migrate ---


def test_migrate_text_library(data_dir, tmp_path):
    library = tmp_path / "library"
    (library / "Travel").mkdir(parents=True)
    (library / "Travel" / "section_1.txt").write_text("机场===Airport.\n", encoding="utf-8")

    first = invoke(data_dir, "migrate", str(library))
    second = invoke(data_dir, "migrate", str(library))

    assert first.exit_code == 0, first.output
    assert "1 migrated, 0 skipped" in first.stdout
    assert "0 migrated, 1 skipped" in second.stdout
    books = stored_document(data_dir)["studyBooks"]
    assert [(b["id"], b["cards"][0]["english"]) for b in books] == [("Travel", "Airport.")]


def test_migrate_dry_run_writes_nothing(data_dir, tmp_path):
    library = tmp_path / "library"
    (library / "Travel").mkdir(parents=True)
    (library / "Travel" / "section_1.txt").write_text("机场===Airport.\n", encoding="utf-8")

    result = invoke(data_dir, "migrate", str(library), "--dry-run")

    assert result.exit_code == 0
    assert "Would migrate 'Travel'" in result.stdout
    assert not (data_dir / "library.json").exists()
