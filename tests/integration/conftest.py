"""Shared fixtures for integration tests.

Integration tests run the whole settlement pipeline against the in-memory
collaborators of ``tests.fixtures.settlement_fakes``.
"""

from collections.abc import Generator

import pytest

from src.core.config import Settings, get_settings
from src.core.context import SettlementContext


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None]:
    """Clear the settings cache around each test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def clean_settlement_context() -> Generator[None]:
    """Reset the settlement run context around each test."""
    SettlementContext.clear()
    yield
    SettlementContext.clear()


@pytest.fixture
def settings(monkeypatch: pytest.MonkeyPatch) -> Settings:
    """Settings with the default engine configuration.

    Returns:
        Settings: Settings unaffected by settlement overrides in the shell.
    """
    for name in (
        "SETTLEMENT_CONFIG__CIVIL_TIME_OFFSET_HOURS",
        "SETTLEMENT_CONFIG__FLAT_TAX_RATE_PERCENT",
        "SETTLEMENT_CONFIG__COLLABORATOR_TIMEOUT_SECONDS",
        "SETTLEMENT_CONFIG__CLIP_FEED_WINDOW_TO_NOW",
    ):
        monkeypatch.delenv(name, raising=False)
    return Settings()
