"""Collaborator interfaces consumed by the settlement engine.

The engine never fetches anything itself: the surrounding application hands
it objects implementing these protocols (database readers, the external feed
HTTP client, ...). Every read is async so that independent reads of one
settlement can be issued concurrently.

Any exception escaping a collaborator is reported as
``EXTERNAL_SOURCE_UNAVAILABLE`` by ``read_source``; the settlement is then
aborted as a whole.
"""

import asyncio
from collections.abc import Awaitable, Coroutine, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from loguru import logger

from src.core.exceptions import BilanError, ExternalSourceUnavailableError
from src.core.types import CompanyId, EmployeeId
from src.settlement.charges import Charge
from src.settlement.company import CompanySettlementConfig
from src.settlement.identity import Employee
from src.settlement.revenue import FeedRecord, LedgerSale, TimedSession
from src.settlement.salary import RoleCompensationRule


class CompanyConfigReader(Protocol):
    """Returns the settlement configuration of a company."""

    async def get_company_config(
        self, company_id: CompanyId
    ) -> CompanySettlementConfig | None:
        """Return the company's configuration, or None if it does not exist."""
        ...


class CompensationReader(Protocol):
    """Returns the compensation rule of an employee's role in a company."""

    async def get_compensation_rule(
        self, employee_id: EmployeeId, company_id: CompanyId
    ) -> RoleCompensationRule | None:
        """Return the rule, or None when the employee has no role there."""
        ...


class LedgerSalesReader(Protocol):
    """Reads sales recorded in the local ledger."""

    async def list_sales(
        self, company_id: CompanyId, start: datetime, end: datetime
    ) -> Sequence[LedgerSale]:
        """Return the company's sales with ``start <= sold_at <= end``."""
        ...


class TimedSessionReader(Protocol):
    """Reads timed-service sessions."""

    async def list_sessions(
        self, company_id: CompanyId, start: datetime, end: datetime
    ) -> Sequence[TimedSession]:
        """Return the company's sessions of the range, in any state."""
        ...


class ExternalFeedClient(Protocol):
    """Client of the remote system of record for sales."""

    async def fetch_sales(
        self, feed_company_id: int | str, start_ts: int, end_ts: int
    ) -> Sequence[FeedRecord]:
        """Return productions and invoices between two Unix timestamps."""
        ...


class EmployeeDirectory(Protocol):
    """Lists the employees of a company, used for seller identity resolution."""

    async def list_employees(self, company_id: CompanyId) -> Sequence[Employee]:
        """Return every employee attached to the company."""
        ...


class ChargeReader(Protocol):
    """Reads expense records."""

    async def list_charges(
        self, company_id: CompanyId, start: datetime, end: datetime
    ) -> Sequence[Charge]:
        """Return the company's charges with ``start <= charged_at <= end``."""
        ...


@dataclass(frozen=True, slots=True)
class SettlementSources:
    """All collaborators needed to build a settlement."""

    companies: CompanyConfigReader
    compensation: CompensationReader
    ledger: LedgerSalesReader
    sessions: TimedSessionReader
    feed: ExternalFeedClient
    employees: EmployeeDirectory
    charges: ChargeReader


async def read_source[T](source: str, read: Awaitable[T]) -> T:
    """Await a collaborator read, reporting failures as unavailability.

    Engine errors raised while handling the read propagate unchanged.

    Args:
        source: Collaborator name used in logs and in the error context.
        read: The pending read.

    Returns:
        T: Whatever the collaborator returned.

    Raises:
        ExternalSourceUnavailableError: If the collaborator raised.
    """
    try:
        return await read
    except BilanError:
        raise
    except Exception as e:
        logger.warning(
            "Collaborator {} failed: {}",
            source,
            type(e).__name__,
            source=source,
        )
        msg = f"Could not read from {source}: {e}"
        raise ExternalSourceUnavailableError(source, msg, cause=e) from e


async def read_all(*reads: Coroutine[Any, Any, Any]) -> list[Any]:
    """Run independent reads concurrently and return their results in order.

    The first failure cancels the reads still pending, so no read outlives
    the settlement that issued it. The failure is re-raised on its own,
    preferring engine errors over anything else.

    Raises:
        BilanError: The first engine error raised by one of the reads.
    """
    try:
        async with asyncio.TaskGroup() as tg:
            tasks = [tg.create_task(read) for read in reads]
    except ExceptionGroup as eg:
        errors = _leaf_errors(eg)
        error = next((e for e in errors if isinstance(e, BilanError)), errors[0])
        raise error from error.__cause__
    return [task.result() for task in tasks]


def _leaf_errors(group: ExceptionGroup[Exception]) -> list[Exception]:
    errors: list[Exception] = []
    for error in group.exceptions:
        if isinstance(error, ExceptionGroup):
            errors.extend(_leaf_errors(error))
        else:
            errors.append(error)
    return errors
