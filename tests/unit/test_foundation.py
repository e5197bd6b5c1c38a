"""
Foundation Tests for FeedAlert
==============================

Test suite for core foundation components including database,
configuration, logging, exceptions and the process lock.
"""

import os
import sqlite3
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from feedalert.config.settings import (
    FeedAlertSettings,
    FeedSettings,
    FeedSource,
    FilteringSettings,
    NotifySettings,
    TelegramSettings,
)
from feedalert.database.connection import DatabaseConnection
from feedalert.database.schema import DatabaseSchema
from feedalert.utils.exceptions import (
    ConfigurationError,
    DatabaseError,
    ErrorCode,
    FeedAlertError,
    NetworkError,
    get_user_friendly_message,
)
from feedalert.utils.logging import PerformanceLogger, get_logger_for_component, setup_logger
from feedalert.utils.process_lock import scheduler_lock

VALID_TOKEN = "123456:ABC-DEF1234ghIkl-zyx57W2v1u123ew11"


class TestDatabaseSchema:
    """Test database schema creation and validation."""

    def test_create_tables(self, tmp_path):
        db_path = tmp_path / "test.db"
        DatabaseSchema(str(db_path)).create_tables()

        with sqlite3.connect(db_path) as conn:
            tables = {
                row[0] for row in conn.execute(
                    "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
                )
            }

        assert tables == {"feed_items", "fetch_state"}

    def test_verify_schema(self, tmp_path):
        schema = DatabaseSchema(str(tmp_path / "test.db"))

        assert not schema.verify_schema()

        schema.create_tables()
        assert schema.verify_schema()

    def test_flag_constraints(self, db_path):
        with sqlite3.connect(db_path) as conn:
            with pytest.raises(sqlite3.IntegrityError):
                conn.execute(
                    "INSERT INTO feed_items (title, published_at, source_id, deleted) "
                    "VALUES ('x', '2024-05-14 08:00:00', 1, 5)"
                )

    def test_row_defaults(self, db_path):
        with sqlite3.connect(db_path) as conn:
            conn.execute(
                "INSERT INTO feed_items (title, published_at, source_id) "
                "VALUES ('x', '2024-05-14 08:00:00', 1)"
            )
            deleted, read_flag = conn.execute(
                "SELECT deleted, read_flag FROM feed_items"
            ).fetchone()

        assert (deleted, read_flag) == (0, 1)


class TestDatabaseConnection:
    """Test database connection management and pooling."""

    def test_connection_pooling(self, tmp_path):
        db_manager = DatabaseConnection(str(tmp_path / "test.db"), pool_size=2)

        contexts = [db_manager.get_connection() for _ in range(3)]

        for context in contexts:
            with context as conn:
                assert conn.execute("SELECT 1").fetchone()[0] == 1

    def test_transaction_rollback(self, db_path):
        db_manager = DatabaseConnection(db_path)

        with db_manager.transaction() as conn:
            conn.execute("INSERT INTO fetch_state VALUES ('https://a.example.com', '2024-05-14 08:00:00')")

        with pytest.raises(ValueError):
            with db_manager.transaction() as conn:
                conn.execute("INSERT INTO fetch_state VALUES ('https://b.example.com', '2024-05-14 08:00:00')")
                raise ValueError("Test error")

        with db_manager.get_connection() as conn:
            urls = [row["feed_url"] for row in conn.execute("SELECT feed_url FROM fetch_state")]

        assert urls == ["https://a.example.com"]


class TestConfiguration:
    """Test configuration system."""

    def test_defaults(self):
        settings = FeedAlertSettings(_env_file=None)

        assert settings.feeds.default_expunge_days == 7
        assert settings.notify.mode == 2
        assert settings.notify.color == "#FF33B5E5"
        assert settings.filtering.continue_marker == "weiterlesen"
        assert settings.images.max_width == 128
        assert not settings.telegram.enabled

    def test_environment_overrides(self):
        with patch.dict(os.environ, {
            "FEEDALERT_NOTIFY__MODE": "3",
            "FEEDALERT_FILTERING__BLACKLIST": "Sponsored,Anzeige",
            "FEEDALERT_FEEDS": '{"sources": [{"url": "https://news.example.com/rss.xml", "source_id": 2}]}',
        }):
            settings = FeedAlertSettings(_env_file=None)

        assert settings.notify.mode == 3
        assert settings.filtering.blacklist_terms() == ["Sponsored", "Anzeige"]
        assert settings.feeds.sources[0].source_id == 2

    def test_blacklist_terms(self):
        assert FilteringSettings(blacklist="").blacklist_terms() == []
        assert FilteringSettings(blacklist="a,,b").blacklist_terms() == ["a", "b"]
        assert FilteringSettings(blacklist="Case Sensitive").blacklist_terms() == ["Case Sensitive"]

    def test_expunge_override(self):
        feeds = FeedSettings(default_expunge_days=5)
        plain = FeedSource(url="https://a.example.com/feed")
        custom = FeedSource(url="https://b.example.com/feed", expunge_days=2)

        assert feeds.expunge_days_for(plain) == 5
        assert feeds.expunge_days_for(custom) == 2

    @pytest.mark.parametrize("color", ["#33B5E5", "#FF33B5E5", "#ff33b5e5"])
    def test_valid_colors(self, color):
        assert NotifySettings(color=color).color == color

    @pytest.mark.parametrize("color", ["red", "#12345", "33B5E5"])
    def test_invalid_colors(self, color):
        with pytest.raises(ValidationError):
            NotifySettings(color=color)

    def test_invalid_mode(self):
        with pytest.raises(ValidationError):
            NotifySettings(mode=7)

    def test_invalid_source_url(self):
        with pytest.raises(ValidationError):
            FeedSource(url="not a url")

    def test_token_validation(self):
        assert TelegramSettings(bot_token=VALID_TOKEN, chat_id="1").enabled
        assert TelegramSettings(bot_token="dev_test").bot_token == "dev_test"
        assert TelegramSettings(bot_token="").bot_token is None

        with pytest.raises(ValidationError):
            TelegramSettings(bot_token="invalid-token")

    def test_token_without_chat_is_invalid(self, tmp_path):
        settings = FeedAlertSettings(
            _env_file=None,
            telegram=TelegramSettings(bot_token=VALID_TOKEN),
            database={"path": str(tmp_path / "db" / "feedalert.db")},
            logging={"file_path": None},
        )

        with pytest.raises(ConfigurationError):
            settings.validate_configuration()

    def test_validation_creates_directories(self, tmp_path):
        settings = FeedAlertSettings(
            _env_file=None,
            database={"path": str(tmp_path / "db" / "feedalert.db")},
            logging={"file_path": str(tmp_path / "logs" / "feedalert.log")},
        )

        settings.validate_configuration()

        assert (tmp_path / "db").is_dir()
        assert (tmp_path / "logs").is_dir()

    def test_debug_forces_debug_level(self):
        assert FeedAlertSettings(_env_file=None, debug=True).get_effective_log_level() == "DEBUG"

    def test_top_level_fields(self):
        assert set(FeedAlertSettings.model_fields) == {
            "feeds", "filtering", "notify", "images", "limits",
            "database", "logging", "telegram", "debug",
        }


class TestLogging:
    """Test logging system."""

    def test_logger_setup(self, tmp_path):
        log_file = tmp_path / "test.log"
        logger = setup_logger(
            name="feedalert_test_logger",
            level="INFO",
            log_file=str(log_file),
            console=False,
            structured=True,
        )

        logger.info("Test message")
        logger.error("Test error message")

        log_content = log_file.read_text()
        assert "Test message" in log_content
        assert "Test error message" in log_content

    def test_component_logger_context(self):
        logger = get_logger_for_component("feed_fetcher", feed_url="https://a.example.com", source_id=3)

        assert logger.extra == {
            "component": "feed_fetcher",
            "feed_url": "https://a.example.com",
            "source_id": 3,
        }
        assert logger.logger.name == "feedalert.feed_fetcher"

    def test_performance_logger(self, caplog):
        import logging

        caplog.set_level(logging.INFO)
        logger = logging.getLogger("test")

        with PerformanceLogger(logger, "refresh_cycle", sources=2):
            pass

        assert "Completed refresh_cycle" in caplog.text


class TestExceptions:
    """Test exception handling system."""

    def test_feedalert_error(self):
        error = FeedAlertError(
            message="Test error",
            error_code=ErrorCode.CONFIG_INVALID,
            context={"key": "value"},
            user_message="User-friendly message",
            recoverable=True,
        )

        assert str(error) == "[C001] Test error"
        assert error.to_dict()["error_code"] == "C001"
        assert error.to_dict()["context"]["key"] == "value"

    def test_specific_errors(self):
        db_error = DatabaseError(
            message="Connection failed",
            query="SELECT 1",
            error_code=ErrorCode.DATABASE_CONNECTION,
        )
        assert db_error.context["query"] == "SELECT 1"
        assert db_error.error_code == ErrorCode.DATABASE_CONNECTION

        network_error = NetworkError("timeout", feed_url="https://a.example.com")
        assert network_error.context["feed_url"] == "https://a.example.com"
        assert network_error.recoverable

    def test_user_friendly_message(self):
        assert get_user_friendly_message(NetworkError("x", user_message="Feed down")) == "Feed down"
        assert "unexpected" in get_user_friendly_message(ValueError("boom"))


class TestProcessLock:

    def test_second_lock_on_same_database_fails(self, tmp_path):
        first = scheduler_lock(str(tmp_path / "a.db"), lock_dir=str(tmp_path))
        second = scheduler_lock(str(tmp_path / "a.db"), lock_dir=str(tmp_path))

        assert first.acquire()
        try:
            assert not second.acquire()
        finally:
            first.release()

        assert second.acquire()
        second.release()

    def test_different_databases_do_not_conflict(self, tmp_path):
        first = scheduler_lock(str(tmp_path / "a.db"), lock_dir=str(tmp_path))
        second = scheduler_lock(str(tmp_path / "b.db"), lock_dir=str(tmp_path))

        with first, second:
            assert first.acquired and second.acquired
