"""Tests for settings, SearchConfig and the shared structlog configuration."""

from __future__ import annotations

import pytest
import structlog
from pydantic import ValidationError

from dealwear.config import SearchConfig, Settings


@pytest.fixture(autouse=True)
def _restore_logging():
    yield
    from dealwear.logging import configure_logging

    configure_logging()


class TestSettings:
    def test_pipeline_defaults(self, monkeypatch) -> None:
        for name in ("SEARCH_DEADLINE_SECONDS", "MAX_STORES_PER_SEARCH", "SEARCH_CACHE_DIR"):
            monkeypatch.delenv(name, raising=False)
        s = Settings(_env_file=None)
        assert s.search_deadline_seconds == 8.0
        assert s.max_stores_per_search == 2
        assert s.search_cache_ttl_seconds == 6 * 60 * 60
        assert s.search_cache_dir == ""

    def test_env_override_case_insensitive(self, monkeypatch) -> None:
        monkeypatch.setenv("max_results_limit", "10")
        monkeypatch.setenv("FETCH_RETRIES", "2")
        s = Settings(_env_file=None)
        assert s.max_results_limit == 10
        assert s.fetch_retries == 2


class TestSearchConfig:
    def test_from_settings(self, monkeypatch) -> None:
        monkeypatch.setenv("STORE_TIMEOUT_SECONDS", "1.5")
        monkeypatch.setenv("MAX_PRODUCTS_PER_STORE", "3")
        config = SearchConfig.from_settings(Settings(_env_file=None))
        assert config.store_timeout == 1.5
        assert config.max_products_per_store == 3

    def test_frozen(self) -> None:
        config = SearchConfig()
        with pytest.raises(ValidationError):
            config.search_deadline = 1.0

    def test_retries_bounded(self) -> None:
        with pytest.raises(ValidationError):
            SearchConfig(fetch_retries=3)

    def test_positive_timeouts(self) -> None:
        with pytest.raises(ValidationError):
            SearchConfig(store_timeout=0)


class TestConfigureLogging:
    """Logging is configured once from settings for the API process."""

    def test_log_level_respected(self, monkeypatch) -> None:
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        monkeypatch.setattr("dealwear.logging.settings", Settings(_env_file=None))

        from dealwear.logging import configure_logging

        configure_logging()

        # The wrapper class name encodes the filtering level
        bound = structlog.get_logger().bind()
        assert "Error" in type(bound).__name__

    def test_unknown_log_level_falls_back_to_info(self, monkeypatch) -> None:
        monkeypatch.setenv("LOG_LEVEL", "BOGUS")
        monkeypatch.setattr("dealwear.logging.settings", Settings(_env_file=None))

        from dealwear.logging import configure_logging

        configure_logging()

        bound = structlog.get_logger().bind()
        assert "Info" in type(bound).__name__

    def test_json_renderer_in_production(self, monkeypatch) -> None:
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setattr("dealwear.logging.settings", Settings(_env_file=None))

        from dealwear.logging import configure_logging

        configure_logging()

        renderer = structlog.get_config()["processors"][-1]
        assert isinstance(renderer, structlog.processors.JSONRenderer)

    def test_console_renderer_in_development(self, monkeypatch) -> None:
        monkeypatch.setenv("ENVIRONMENT", "development")
        monkeypatch.setattr("dealwear.logging.settings", Settings(_env_file=None))

        from dealwear.logging import configure_logging

        configure_logging()

        renderer = structlog.get_config()["processors"][-1]
        assert isinstance(renderer, structlog.dev.ConsoleRenderer)

    def test_log_file_creates_tee_writer(self, monkeypatch, tmp_path) -> None:
        monkeypatch.setenv("LOG_FILE", str(tmp_path / "search.log"))
        monkeypatch.setattr("dealwear.logging.settings", Settings(_env_file=None))

        from dealwear.logging import _TeeWriter, configure_logging

        configure_logging()

        factory = structlog.get_config()["logger_factory"]
        assert isinstance(factory._file, _TeeWriter)


class TestTeeWriter:
    def test_writes_to_stdout_and_file(self, tmp_path, capsys) -> None:
        from dealwear.logging import _TeeWriter

        log_path = tmp_path / "tee.log"
        writer = _TeeWriter(str(log_path))
        writer.write("store_fetch_failed\n")
        writer.flush()

        assert "store_fetch_failed" in log_path.read_text()
        assert "store_fetch_failed" in capsys.readouterr().out

    def test_degrades_on_bad_path(self, capsys) -> None:
        from dealwear.logging import _TeeWriter

        writer = _TeeWriter("/nonexistent/dir/impossible.log")
        writer.write("still works\n")
        writer.flush()
        captured = capsys.readouterr()
        assert "still works" in captured.out
        assert "WARNING" in captured.err

    def test_write_error_disables_file(self, tmp_path, capsys) -> None:
        from dealwear.logging import _TeeWriter

        writer = _TeeWriter(str(tmp_path / "fragile.log"))
        writer.write("before\n")
        writer._file.close()
        writer.write("after\n")
        assert writer._file is None
        assert "write failed" in capsys.readouterr().err.lower()


class TestRedaction:
    def test_api_key_masked_in_string_fields(self) -> None:
        from dealwear.logging import _redact_api_keys

        event = _redact_api_keys(
            None,
            "warning",
            {
                "event": "google_search_network_error",
                "error": "ReadTimeout for https://www.googleapis.com/customsearch/v1?key=AIza123&cx=abc&q=jeans",
                "attempt": 2,
            },
        )
        assert "AIza123" not in event["error"]
        assert "key=***&cx=abc" in event["error"]
        assert event["attempt"] == 2

    def test_plain_values_untouched(self) -> None:
        from dealwear.logging import _redact_api_keys

        event = {"event": "search_source", "query": "monkey=jeans"}
        assert _redact_api_keys(None, "info", dict(event)) == event
