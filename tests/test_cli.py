from typer.testing import CliRunner

from site_timer.cli import app

runner = CliRunner()


def test_watch_add_list_remove(tmp_path):
    db = str(tmp_path / "site_time.sqlite3")

    result = runner.invoke(app, ["watch", "add", "https://A.com/page", "--db", db])
    assert result.exit_code == 0, result.output
    assert "Watching 1 site(s)." in result.output

    result = runner.invoke(app, ["watch", "list", "--db", db])
    assert "a.com" in result.output.split()

    result = runner.invoke(app, ["watch", "remove", "a.com", "--db", db])
    assert result.exit_code == 0
    result = runner.invoke(app, ["watch", "list", "--db", db])
    assert "No sites in watchlist" in result.output


def test_summary_prints_watched_sites(tmp_path):
    db = str(tmp_path / "site_time.sqlite3")
    runner.invoke(app, ["watch", "add", "a.com", "--db", db])

    result = runner.invoke(app, ["summary", "--period", "today", "--db", db])
    assert result.exit_code == 0, result.output
    assert "a.com" in result.output
    assert "0s" in result.output


def test_summary_rejects_unknown_period(tmp_path):
    result = runner.invoke(app, ["summary", "--period", "year", "--db", str(tmp_path / "x.sqlite3")])
    assert result.exit_code != 0


def test_watch_add_rejects_malformed_hostname(tmp_path):
    result = runner.invoke(app, ["watch", "add", "not a host", "--db", str(tmp_path / "x.sqlite3")])
    assert result.exit_code != 0
