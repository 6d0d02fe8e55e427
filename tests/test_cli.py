from pathlib import Path

from typer.testing import CliRunner

from dbx_shell.cli import app

runner = CliRunner()


def test_connection_add_and_list(clean_dbx_home: Path):
    result = runner.invoke(
        app, ["connection", "add", "--name", "local", "--type", "sqlite", "--url", "x.db"]
    )
    assert result.exit_code == 0, result.output
    assert (clean_dbx_home / "connections.yaml").is_file()

    duplicate = runner.invoke(
        app, ["connection", "add", "--name", "local", "--type", "sqlite", "--url", "y.db"]
    )
    assert duplicate.exit_code == 1

    listing = runner.invoke(app, ["connection", "list"])
    assert listing.exit_code == 0
    assert "localsqlite" in listing.output


def test_run_prints_first_page(clean_dbx_home: Path, tmp_path: Path):
    db_path = tmp_path / "run.db"
    runner.invoke(
        app,
        ["connection", "add", "--name", "local", "--type", "sqlite", "--url", str(db_path)],
    )

    result = runner.invoke(app, ["run", "select 42 as answer"])

    assert result.exit_code == 0, result.output
    assert "answer" in result.output
    assert "42" in result.output


def test_run_on_unknown_connection_fails(clean_dbx_home: Path):
    result = runner.invoke(app, ["run", "select 1", "--on", "missing"])
    assert result.exit_code == 1
    assert "Unknown connection" in result.output
