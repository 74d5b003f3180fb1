from typer.testing import CliRunner

from calbill.__main__ import app


runner = CliRunner()


def test_help_lists_commands() -> None:
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "--plain" in result.stdout
    assert "--reference-dir" in result.stdout
    for command in ["sync", "preview", "refresh", "status"]:
        assert command in result.stdout


def test_version_flag() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.stdout


def test_json_and_plain_are_mutually_exclusive() -> None:
    result = runner.invoke(app, ["--json", "--plain", "sync", "--help"])
    assert result.exit_code == 2
    assert "mutually exclusive" in result.stdout


def test_sync_help_lists_date_options() -> None:
    result = runner.invoke(app, ["sync", "--help"])
    assert result.exit_code == 0
    for option in ["--events", "--date", "--days-ago", "--dry-run", "--no-refresh"]:
        assert option in result.stdout
