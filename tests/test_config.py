from pathlib import Path


def test_env_overrides_and_validation(monkeypatch, fresh_config):
    monkeypatch.setenv("LETTERBOXD_HTTP_TIMEOUT", "2.5")
    monkeypatch.setenv("LETTERBOXD_MAX_CONCURRENT", "0")  # min clamp
    monkeypatch.setenv("LETTERBOXD_ENHANCE_CONCURRENCY", "8")
    monkeypatch.setenv("LETTERBOXD_HTTP2", "yes")
    monkeypatch.setenv("LETTERBOXD_BASE_URL", "http://localhost:8080/")

    cfg = fresh_config()

    assert cfg.HTTP_TIMEOUT == 2.5
    assert cfg.DEFAULT_MAX_CONCURRENT_PAGES == 1
    assert cfg.DEFAULT_ENHANCE_CONCURRENCY == 8
    assert cfg.HTTP2_ENABLED is True
    assert cfg.BASE_URL == "http://localhost:8080"


def test_cache_settings_respect_env(monkeypatch, fresh_config, tmp_path):
    cache_path = tmp_path / "custom.db"
    monkeypatch.setenv("LETTERBOXD_CACHE", "SQLite")
    monkeypatch.setenv("LETTERBOXD_CACHE_PATH", str(cache_path))

    cfg = fresh_config()

    assert cfg.CACHE_BACKEND == "sqlite"
    assert cfg.CACHE_PATH == cache_path


def test_invalid_env_values_fall_back_to_defaults(monkeypatch, fresh_config):
    # Use clearly invalid strings to exercise the ValueError branches
    monkeypatch.setenv("LETTERBOXD_HTTP_TIMEOUT", "not-a-float")
    monkeypatch.setenv("LETTERBOXD_MAX_CONCURRENT", "bad-int")
    monkeypatch.setenv("LETTERBOXD_MAX_HTTP_RETRIES", "-3")

    cfg = fresh_config()

    assert cfg.HTTP_TIMEOUT == 10.0
    assert cfg.DEFAULT_MAX_CONCURRENT_PAGES == 5
    assert cfg.MAX_HTTP_RETRIES == 1


def test_defaults(monkeypatch, fresh_config):
    for key in ("LETTERBOXD_CACHE", "LETTERBOXD_CACHE_PATH", "LETTERBOXD_HTTP2"):
        monkeypatch.delenv(key, raising=False)

    cfg = fresh_config()

    assert cfg.CACHE_BACKEND == "none"
    assert cfg.CACHE_PATH == Path("data/letterboxd-cache.db")
    assert cfg.HTTP2_ENABLED is False
    assert cfg.HEADING_ITEMS_PER_PAGE == 72
    assert cfg.FILMOGRAPHY_PROFESSIONS == ("actor", "director", "producer", "writer")
