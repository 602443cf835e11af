"""In-memory collaborators for settlement tests.

Each fake implements one of the protocols of ``src.settlement.ports`` over
plain collections and records the arguments it was called with. ``fail``
makes the read raise, ``delay`` makes it sleep first and ``cancelled``
records whether that sleep was cancelled.
"""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime

from src.core.types import CompanyId, EmployeeId
from src.settlement.charges import Charge
from src.settlement.company import CompanySettlementConfig
from src.settlement.identity import Employee
from src.settlement.ports import SettlementSources
from src.settlement.revenue import FeedRecord, LedgerSale, TimedSession
from src.settlement.salary import RoleCompensationRule


@dataclass
class FakeReader:
    """Common behaviour of the fakes."""

    fail: Exception | None = field(default=None, kw_only=True)
    delay: float = field(default=0.0, kw_only=True)
    calls: list[tuple[object, ...]] = field(default_factory=list, kw_only=True)
    cancelled: bool = field(default=False, kw_only=True)

    async def _read(self, *args: object) -> None:
        self.calls.append(args)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.fail is not None:
            raise self.fail


@dataclass
class FakeCompanies(FakeReader):
    configs: dict[CompanyId, CompanySettlementConfig] = field(default_factory=dict)

    async def get_company_config(
        self, company_id: CompanyId
    ) -> CompanySettlementConfig | None:
        await self._read(company_id)
        return self.configs.get(company_id)


@dataclass
class FakeCompensation(FakeReader):
    rules: dict[EmployeeId, RoleCompensationRule] = field(default_factory=dict)

    async def get_compensation_rule(
        self, employee_id: EmployeeId, company_id: CompanyId
    ) -> RoleCompensationRule | None:
        await self._read(employee_id, company_id)
        return self.rules.get(employee_id)


@dataclass
class FakeLedger(FakeReader):
    sales: Sequence[LedgerSale] = ()

    async def list_sales(
        self, company_id: CompanyId, start: datetime, end: datetime
    ) -> Sequence[LedgerSale]:
        await self._read(company_id, start, end)
        return self.sales


@dataclass
class FakeSessions(FakeReader):
    sessions: Sequence[TimedSession] = ()

    async def list_sessions(
        self, company_id: CompanyId, start: datetime, end: datetime
    ) -> Sequence[TimedSession]:
        await self._read(company_id, start, end)
        return self.sessions


@dataclass
class FakeFeed(FakeReader):
    records: Sequence[FeedRecord] = ()

    async def fetch_sales(
        self, feed_company_id: int | str, start_ts: int, end_ts: int
    ) -> Sequence[FeedRecord]:
        await self._read(feed_company_id, start_ts, end_ts)
        return self.records


@dataclass
class FakeEmployees(FakeReader):
    employees: Sequence[Employee] = ()

    async def list_employees(self, company_id: CompanyId) -> Sequence[Employee]:
        await self._read(company_id)
        return self.employees


@dataclass
class FakeCharges(FakeReader):
    charges: Sequence[Charge] = ()

    async def list_charges(
        self, company_id: CompanyId, start: datetime, end: datetime
    ) -> Sequence[Charge]:
        await self._read(company_id, start, end)
        return self.charges


def make_sources(
    *,
    companies: FakeCompanies | None = None,
    compensation: FakeCompensation | None = None,
    ledger: FakeLedger | None = None,
    sessions: FakeSessions | None = None,
    feed: FakeFeed | None = None,
    employees: FakeEmployees | None = None,
    charges: FakeCharges | None = None,
) -> SettlementSources:
    """Build a SettlementSources, defaulting every collaborator to empty."""
    return SettlementSources(
        companies=companies or FakeCompanies(),
        compensation=compensation or FakeCompensation(),
        ledger=ledger or FakeLedger(),
        sessions=sessions or FakeSessions(),
        feed=feed or FakeFeed(),
        employees=employees or FakeEmployees(),
        charges=charges or FakeCharges(),
    )
