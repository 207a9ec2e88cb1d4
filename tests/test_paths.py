from pathlib import Path

from site_timer import paths


def test_db_path_honours_environment_override(monkeypatch, tmp_path):
    target = tmp_path / "custom.sqlite3"
    monkeypatch.setenv(paths.DB_ENV_VAR, str(target))

    assert paths.get_db_path() == target


def test_db_path_defaults_to_data_dir(monkeypatch, tmp_path):
    monkeypatch.delenv(paths.DB_ENV_VAR, raising=False)
    monkeypatch.setattr(paths, "get_data_dir", lambda: tmp_path)

    assert paths.get_db_path() == Path(tmp_path) / paths.DB_FILENAME
