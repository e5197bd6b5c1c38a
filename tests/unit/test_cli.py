"""
Unit Tests for the Command Line Interface
=========================================
"""

from datetime import timedelta

import pytest
from click.testing import CliRunner

import main
from feedalert.database.connection import DatabaseConnection
from feedalert.storage.feed_item_repository import FeedItemRepository
from feedalert.utils.dates import db_friendly_date, utc_now
from feedalert.utils.process_lock import scheduler_lock


@pytest.fixture
def settings(settings_factory):
    return settings_factory()


@pytest.fixture
def cli_env(settings, monkeypatch):
    """Point the CLI at test settings and a private database manager."""
    managers = []

    def db_manager(db_path, pool_size=3):
        if not managers:
            managers.append(DatabaseConnection(db_path, pool_size=pool_size))
        return managers[0]

    monkeypatch.setattr(main, "get_settings", lambda: settings)
    monkeypatch.setattr(main, "get_db_manager", db_manager)
    monkeypatch.setattr(main, "configure_application_logging", lambda **kwargs: None)

    yield CliRunner()

    for manager in managers:
        manager.close_all_connections()


@pytest.fixture
def stored_items(settings, make_record):
    """Insert a few records relative to the real clock used by the CLI."""
    from feedalert.database.schema import DatabaseSchema

    DatabaseSchema(settings.database.path).create_tables()
    db = DatabaseConnection(settings.database.path, pool_size=1)
    items = FeedItemRepository(db)
    now = utc_now()
    items.insert(make_record(title="Election night", published_at=db_friendly_date(now - timedelta(days=1))))
    items.insert(make_record(title="Weather", published_at=db_friendly_date(now - timedelta(days=2))))
    items.insert(make_record(title="Ancient", published_at=db_friendly_date(now - timedelta(days=40))))
    db.close_all_connections()


class TestCli:

    def test_help(self):
        result = CliRunner().invoke(main.cli, [])

        assert result.exit_code == 0
        assert "refresh" in result.output

    def test_init_db(self, cli_env, settings):
        from feedalert.database.schema import DatabaseSchema

        result = cli_env.invoke(main.cli, ["init-db"])

        assert result.exit_code == 0
        assert DatabaseSchema(settings.database.path).verify_schema()

    def test_check_config(self, cli_env):
        result = cli_env.invoke(main.cli, ["check-config"])

        assert result.exit_code == 0
        assert "Console" in result.output

    def test_check_config_without_sources_fails(self, settings_factory, monkeypatch):
        monkeypatch.setattr(main, "get_settings", lambda: settings_factory(sources=[]))

        result = CliRunner().invoke(main.cli, ["check-config"])

        assert result.exit_code == 1

    def test_list(self, cli_env, stored_items):
        result = cli_env.invoke(main.cli, ["list", "--source-id", "1", "--limit", "1"])

        assert result.exit_code == 0
        assert "Election" in result.output
        assert "Weather" not in result.output

    def test_search(self, cli_env, stored_items):
        result = cli_env.invoke(main.cli, ["search", "Weather"])

        assert result.exit_code == 0
        assert "Weather" in result.output
        assert "Election" not in result.output

    def test_cleanup(self, cli_env, stored_items, settings):
        result = cli_env.invoke(main.cli, ["cleanup", "--days", "5"])

        assert result.exit_code == 0
        assert "Removed 1 item(s)" in result.output

    def test_refresh_without_sources(self, settings_factory, monkeypatch):
        monkeypatch.setattr(main, "get_settings", lambda: settings_factory(sources=[]))
        monkeypatch.setattr(main, "configure_application_logging", lambda **kwargs: None)

        result = CliRunner().invoke(main.cli, ["refresh"])

        assert result.exit_code == 0
        assert "No feed sources configured" in result.output

    def test_refresh_rejects_malformed_url(self, cli_env):
        result = cli_env.invoke(main.cli, ["refresh", "--url", "not a url"])

        assert result.exit_code == 2
        assert "Invalid value for '--url'" in result.output

    def test_refresh_refuses_while_scheduler_holds_lock(self, cli_env, settings, tmp_path):
        held = scheduler_lock(settings.database.path)
        assert held.acquire()
        try:
            result = cli_env.invoke(main.cli, ["refresh"])
        finally:
            held.release()

        assert result.exit_code == 1
        assert "Another refresh is running" in result.output
        assert not (tmp_path / "feedalert.db").exists()
