"""Unit tests for collaborator read handling."""

import asyncio
from datetime import UTC, datetime
from typing import Any

import pytest

from src.core.exceptions import (
    ExternalSourceUnavailableError,
    InvalidRevenueError,
)
from src.settlement.ports import read_all, read_source
from tests.fixtures.settlement_fakes import FakeCharges

NOW = datetime(2024, 2, 14, 12, 0, tzinfo=UTC)


async def _returns(value: object) -> object:
    return value


async def _raises(error: BaseException) -> None:
    raise error


@pytest.mark.unit
@pytest.mark.asyncio
class TestReadSource:
    """Test the collaborator read wrapper."""

    async def test_returns_value(self) -> None:
        """Test successful reads pass their result through."""
        assert await read_source("charges", _returns([1, 2])) == [1, 2]

    async def test_wraps_collaborator_errors(
        self, log_records: list[dict[str, Any]]
    ) -> None:
        """Test any collaborator exception becomes EXTERNAL_SOURCE_UNAVAILABLE."""
        cause = OSError("connection reset")

        with pytest.raises(ExternalSourceUnavailableError) as exc_info:
            await read_source("external_feed", _raises(cause))

        assert exc_info.value.error_code == "EXTERNAL_SOURCE_UNAVAILABLE"
        assert exc_info.value.source == "external_feed"
        assert exc_info.value.context["source"] == "external_feed"
        assert exc_info.value.__cause__ is cause
        assert "connection reset" in exc_info.value.message
        assert log_records[-1]["level"].name == "WARNING"
        assert log_records[-1]["extra"]["source"] == "external_feed"

    async def test_engine_errors_propagate(self) -> None:
        """Test engine errors raised during the read are not rewrapped."""
        error = InvalidRevenueError("negative")

        with pytest.raises(InvalidRevenueError) as exc_info:
            await read_source("ledger_sales", _raises(error))

        assert exc_info.value is error

    async def test_cancellation_propagates(self) -> None:
        """Test cancellation is not reported as a collaborator failure."""
        with pytest.raises(asyncio.CancelledError):
            await read_source("charges", _raises(asyncio.CancelledError()))


@pytest.mark.unit
@pytest.mark.asyncio
class TestReadAll:
    """Test the concurrent read helper."""

    async def test_results_in_order(self) -> None:
        """Test results come back in the order the reads were given."""
        assert await read_all(_returns("a"), _returns("b"), _returns("c")) == [
            "a",
            "b",
            "c",
        ]

    async def test_no_reads(self) -> None:
        """Test an empty fan-out returns no results."""
        assert await read_all() == []

    async def test_failure_cancels_pending_reads(self) -> None:
        """Test the first failure cancels the reads still running."""
        slow = FakeCharges(delay=5)
        cause = OSError("connection reset")

        with pytest.raises(ExternalSourceUnavailableError) as exc_info:
            await read_all(
                read_source("charges", slow.list_charges("acme", NOW, NOW)),
                read_source("external_feed", _raises(cause)),
            )

        assert exc_info.value.source == "external_feed"
        assert exc_info.value.__cause__ is cause
        assert slow.cancelled is True

    async def test_engine_error_is_preferred(self) -> None:
        """Test an engine error wins over a plain exception."""
        error = InvalidRevenueError("negative")

        async def fails_while_cancelled() -> None:
            try:
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                raise error from None

        with pytest.raises(InvalidRevenueError) as exc_info:
            await read_all(fails_while_cancelled(), _raises(ValueError("plain")))

        assert exc_info.value is error

    async def test_nested_fan_outs_are_unwrapped(self) -> None:
        """Test a failure two fan-outs deep surfaces as itself."""
        cause = OSError("gone")

        with pytest.raises(ExternalSourceUnavailableError) as exc_info:
            await read_all(
                _returns(1),
                read_all(read_source("ledger_sales", _raises(cause))),
            )

        assert exc_info.value.source == "ledger_sales"
