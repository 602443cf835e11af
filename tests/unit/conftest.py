"""Shared fixtures for unit tests."""

import os
from collections.abc import Generator
from datetime import UTC, datetime
from typing import Any, cast

import pytest
from loguru import logger

from src.core.config import Settings, get_settings
from src.core.context import SettlementContext
from src.settlement.period import PeriodResolver, SettlementPeriod


@pytest.fixture
def mock_settings(monkeypatch: pytest.MonkeyPatch) -> Settings:
    """Provide a Settings object with test defaults.

    Returns:
        Settings: Real settings built from test environment variables.
    """
    monkeypatch.setenv("APP_NAME", "TestApp")
    monkeypatch.setenv("APP_VERSION", "1.0.0")
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("DEBUG", "false")

    return Settings()


@pytest.fixture(autouse=True)
def clean_lru_cache() -> Generator[None]:
    """Clear the LRU cache before and after each test to ensure isolation."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def clean_env(
    monkeypatch: pytest.MonkeyPatch,
) -> Generator[pytest.MonkeyPatch]:
    """Backup and restore environment variables to prevent test interference.

    Args:
        monkeypatch: Pytest monkeypatch fixture.

    Returns:
        pytest.MonkeyPatch: The monkeypatch instance for env manipulation.
    """
    original_env = os.environ.copy()

    # pytest-env values are restored by the tests that need them
    env_prefixes = [
        "APP_",
        "DEBUG",
        "SETTLEMENT_CONFIG__",
    ]
    for key in list(os.environ.keys()):
        if any(key.startswith(prefix) for prefix in env_prefixes):
            monkeypatch.delenv(key, raising=False)

    yield monkeypatch

    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture(autouse=True)
def clean_context() -> Generator[None]:
    """Reset the settlement run context around each test."""
    SettlementContext.clear()
    yield
    SettlementContext.clear()


@pytest.fixture
def resolver() -> PeriodResolver:
    """Period resolver with the default civil offset."""
    return PeriodResolver()


@pytest.fixture
def week_period(resolver: PeriodResolver) -> SettlementPeriod:
    """Settlement period of ISO week 7 of 2024 (Mon 12 to Sun 18 February)."""
    return resolver.resolve(7, 2024)


@pytest.fixture
def in_week() -> datetime:
    """An instant inside ``week_period``."""
    return datetime(2024, 2, 14, 12, 0, tzinfo=UTC)


@pytest.fixture
def log_records() -> Generator[list[dict[str, Any]]]:
    """Capture loguru records emitted during the test.

    Returns:
        list[dict[str, Any]]: Records in emission order.
    """
    records: list[dict[str, Any]] = []

    def sink(message: object) -> None:
        records.append(cast("Any", message).record)

    handler_id = logger.add(sink, level="DEBUG")
    yield records
    logger.remove(handler_id)
