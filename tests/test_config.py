"""Tests for command line settings and logging setup."""

import logging

import pytest

from panopticon.config import (
    DEFAULT_ACTOR_TREE_TIMEOUT,
    DEFAULT_TICK_RATE,
    AkkaSettings,
    JMXConnectionSettings,
    Settings,
    configure_logging,
    parse_settings,
)


def test_defaults():
    """Test an empty command line configures nothing."""
    settings = parse_settings([])

    assert settings.tick_rate == DEFAULT_TICK_RATE
    assert settings.tick_seconds == 2.0
    assert not settings.has_sources


def test_zmx_only():
    settings = parse_settings(["--zio-zmx", "localhost:6789"])

    assert settings.zio_zmx == "localhost:6789"
    assert settings.jmx is None
    assert settings.akka is None
    assert settings.has_sources


def test_jmx_requires_pool_name():
    """Test --jmx alone does not configure the pool source."""
    assert parse_settings(["--jmx", "localhost:9010"]).jmx is None


def test_jmx_settings():
    settings = parse_settings(
        [
            "--jmx",
            "localhost:9010",
            "--db-pool-name",
            "db",
            "--jmx-username",
            "admin",
            "--jmx-password",
            "secret",
        ]
    )

    assert settings.jmx == JMXConnectionSettings(
        address="localhost:9010",
        db_pool_name="db",
        username="admin",
        password="secret",
    )


def test_akka_requires_both_endpoints():
    assert parse_settings(["--actor-tree", "http://localhost/tree"]).akka is None


def test_akka_count_timeout_follows_tick_rate():
    """Test the actor count timeout is 80% of the tick rate."""
    settings = parse_settings(
        [
            "--actor-tree",
            "http://localhost/tree",
            "--actor-count",
            "http://localhost/count",
            "--tick-rate",
            "1000",
        ]
    )

    assert settings.akka == AkkaSettings(
        tree_address="http://localhost/tree",
        tree_timeout=DEFAULT_ACTOR_TREE_TIMEOUT,
        count_address="http://localhost/count",
        count_timeout=800,
    )


def test_tick_rate_must_be_positive():
    with pytest.raises(SystemExit):
        parse_settings(["--tick-rate", "0"])


def test_configure_logging_to_file(tmp_path):
    """Test logs go to the configured file."""
    log_file = tmp_path / "panopticon.log"
    settings = Settings(zio_zmx="localhost:6789", log_file=str(log_file), log_level="DEBUG")
    root = logging.getLogger("panopticon")
    handlers = list(root.handlers)

    try:
        configure_logging(settings)
        logging.getLogger("panopticon.fetcher").debug("hello from the worker")
        for handler in root.handlers:
            handler.flush()
    finally:
        for handler in root.handlers[len(handlers) :]:
            handler.close()
        root.handlers = handlers
        root.setLevel(logging.NOTSET)

    assert "hello from the worker" in log_file.read_text()


def test_configure_logging_without_file():
    """Test logs are discarded without a log file."""
    root = logging.getLogger("panopticon")
    handlers = list(root.handlers)

    try:
        configure_logging(Settings(zio_zmx="localhost:6789"))
        assert isinstance(root.handlers[-1], logging.NullHandler)
    finally:
        root.handlers = handlers
