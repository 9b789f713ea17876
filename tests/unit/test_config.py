from pathlib import Path

from careertrack.config import Settings, get_settings, repo_root


def test_env_overrides_use_prefix(monkeypatch) -> None:
    monkeypatch.setenv("CAREERTRACK_STALE_DAYS", "3")
    monkeypatch.setenv("CAREERTRACK_APPLICATION_LIMIT", "25")
    s = Settings()
    assert s.stale_days == 3
    assert s.application_limit == 25


def test_relative_database_path_is_anchored_at_repo_root() -> None:
    assert Settings(database_path="outputs/x.db").resolved_database_path() == repo_root() / "outputs" / "x.db"
    assert Settings(database_path="/tmp/x.db").resolved_database_path() == Path("/tmp/x.db")


def test_get_settings_is_cached() -> None:
    get_settings.cache_clear()
    assert get_settings() is get_settings()
    get_settings.cache_clear()
