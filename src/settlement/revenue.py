"""Revenue aggregation per seller.

A company earns revenue from one of two mutually exclusive source modes:

- **local**: commissions of sales recorded in the ledger plus the cost of
  completed timed-service sessions;
- **external**: productions and invoices declared in the external feed.

Each revenue event is attributed to a seller. Ledger sales carry their seller
and sessions their operator; feed records only carry a display name and an
external character id and go through seller identity resolution. Events that
cannot be attributed still count toward the company's revenue but are left
out of payroll and reported as diagnostics.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.core.constants import ZERO
from src.core.exceptions import InvalidRevenueError
from src.core.types import CompanyId, EmployeeId
from src.settlement.company import ExternalFeed, RevenueSourceMode
from src.settlement.identity import (
    DirectorySellerResolver,
    ResolutionFailure,
    SellerIdentityResolver,
)
from src.settlement.period import SettlementPeriod, to_feed_window

if TYPE_CHECKING:
    from src.settlement.ports import (
        EmployeeDirectory,
        ExternalFeedClient,
        LedgerSalesReader,
        TimedSessionReader,
    )


class RevenueSource(Enum):
    """Where a revenue event comes from."""

    LEDGER_SALE = "ledger_sale"
    TIMED_SESSION = "timed_session"
    EXTERNAL_FEED = "external_feed"


class SessionState(Enum):
    """Lifecycle state of a timed-service session."""

    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class FeedRecordKind(Enum):
    PRODUCTION = "production"
    INVOICE = "invoice"


class LedgerSale(BaseModel):
    """A sale recorded in the local ledger."""

    model_config = ConfigDict(frozen=True)

    sale_id: str | None = None
    seller_id: EmployeeId
    seller_name: str | None = None
    commission_total: Decimal = Field(
        ..., description="Revenue-attributable part of the sale, not its price"
    )
    sold_at: datetime


class TimedSession(BaseModel):
    """A timed-service session and its precomputed cost."""

    model_config = ConfigDict(frozen=True)

    session_id: str | None = None
    operator_id: EmployeeId | None = None
    operator_name: str | None = None
    state: SessionState
    cost: Decimal = ZERO
    completed_at: datetime | None = None


class FeedRecord(BaseModel):
    """A production or invoice declared by the external feed."""

    model_config = ConfigDict(frozen=True)

    kind: FeedRecordKind = FeedRecordKind.PRODUCTION
    display_name: str | None = None
    external_id: int | str | None = None
    revenue: Decimal = ZERO
    occurred_at: datetime | None = None

    @field_validator("revenue", mode="before")
    @classmethod
    def empty_revenue_to_zero(cls, v: Any) -> Any:
        """The feed sends revenue as a string that may be empty or missing."""
        if v is None or v == "":
            return ZERO
        return v


class RevenueEvent(BaseModel):
    """One revenue-generating event attributed (or not) to a seller."""

    model_config = ConfigDict(frozen=True)

    seller_id: EmployeeId | None
    company_id: CompanyId
    amount: Decimal
    occurred_at: datetime | None = None
    source: RevenueSource
    display_name: str | None = None
    external_id: int | str | None = None
    failure: ResolutionFailure | None = None

    @property
    def resolved(self) -> bool:
        return self.seller_id is not None


class UnresolvedSeller(BaseModel):
    """Diagnostic for revenue that could not be attributed to an employee."""

    model_config = ConfigDict(frozen=True)

    source: RevenueSource
    display_name: str | None
    external_id: int | str | None
    amount: Decimal
    reason: ResolutionFailure


class RevenueAggregate(BaseModel):
    """Revenue of one company for one period, per seller and in total."""

    model_config = ConfigDict(frozen=True)

    company_id: CompanyId
    period: SettlementPeriod
    per_seller: dict[EmployeeId, Decimal] = Field(default_factory=dict)
    seller_names: dict[EmployeeId, str] = Field(default_factory=dict)
    events: tuple[RevenueEvent, ...] = ()
    unresolved: tuple[UnresolvedSeller, ...] = ()

    @property
    def total_revenue(self) -> Decimal:
        """All revenue of the period, attributed or not."""
        return sum((event.amount for event in self.events), ZERO)

    @property
    def attributed_revenue(self) -> Decimal:
        return sum(self.per_seller.values(), ZERO)

    @property
    def unresolved_revenue(self) -> Decimal:
        return sum((item.amount for item in self.unresolved), ZERO)

    @property
    def revenue_by_source(self) -> dict[RevenueSource, Decimal]:
        totals = dict.fromkeys(RevenueSource, ZERO)
        for event in self.events:
            totals[event.source] += event.amount
        return totals


def _check_amount(amount: Decimal, source: RevenueSource, reference: object) -> None:
    if amount < ZERO:
        msg = f"Negative revenue {amount} in {source.value} {reference}"
        raise InvalidRevenueError(
            msg,
            context={"source": source.value, "reference": str(reference)},
        )


def events_from_ledger(
    company_id: CompanyId, period: SettlementPeriod, sales: Iterable[LedgerSale]
) -> list[RevenueEvent]:
    """Turn ledger sales of the period into revenue events."""
    events = []
    for sale in sales:
        if not period.contains(sale.sold_at):
            logger.debug("Skipping sale {} outside {}", sale.sale_id, period.label)
            continue
        _check_amount(sale.commission_total, RevenueSource.LEDGER_SALE, sale.sale_id)
        events.append(
            RevenueEvent(
                seller_id=sale.seller_id,
                company_id=company_id,
                amount=sale.commission_total,
                occurred_at=sale.sold_at,
                source=RevenueSource.LEDGER_SALE,
                display_name=sale.seller_name,
            )
        )
    return events


def events_from_sessions(
    company_id: CompanyId, period: SettlementPeriod, sessions: Iterable[TimedSession]
) -> list[RevenueEvent]:
    """Turn sessions completed within the period into revenue events.

    Running, paused and cancelled sessions earn nothing yet. A completed
    session without a completion time cannot be placed in any week and is
    skipped.
    """
    events = []
    for session in sessions:
        if session.state is not SessionState.COMPLETED:
            continue
        if session.completed_at is None:
            logger.debug(
                "Skipping completed session {} without completion time",
                session.session_id,
                cost=str(session.cost),
            )
            continue
        if not period.contains(session.completed_at):
            continue
        _check_amount(session.cost, RevenueSource.TIMED_SESSION, session.session_id)
        events.append(
            RevenueEvent(
                seller_id=session.operator_id,
                company_id=company_id,
                amount=session.cost,
                occurred_at=session.completed_at,
                source=RevenueSource.TIMED_SESSION,
                display_name=session.operator_name,
                failure=(
                    None
                    if session.operator_id is not None
                    else ResolutionFailure.MISSING_OPERATOR
                ),
            )
        )
    return events


def events_from_feed(
    company_id: CompanyId,
    records: Iterable[FeedRecord],
    resolver: SellerIdentityResolver,
) -> list[RevenueEvent]:
    """Turn external feed records into revenue events, resolving sellers."""
    events = []
    for record in records:
        _check_amount(record.revenue, RevenueSource.EXTERNAL_FEED, record.display_name)
        resolution = resolver.resolve(record.display_name, record.external_id)
        events.append(
            RevenueEvent(
                seller_id=resolution.employee_id,
                company_id=company_id,
                amount=record.revenue,
                occurred_at=record.occurred_at,
                source=RevenueSource.EXTERNAL_FEED,
                display_name=record.display_name,
                external_id=record.external_id,
                failure=resolution.failure,
            )
        )
    return events


def aggregate_events(
    company_id: CompanyId, period: SettlementPeriod, events: Sequence[RevenueEvent]
) -> RevenueAggregate:
    """Sum revenue events per resolved seller."""
    per_seller: dict[EmployeeId, Decimal] = defaultdict(lambda: ZERO)
    seller_names: dict[EmployeeId, str] = {}
    unresolved = []

    for event in events:
        if event.seller_id is None:
            unresolved.append(
                UnresolvedSeller(
                    source=event.source,
                    display_name=event.display_name,
                    external_id=event.external_id,
                    amount=event.amount,
                    reason=event.failure or ResolutionFailure.NO_MATCH,
                )
            )
            continue
        per_seller[event.seller_id] += event.amount
        if event.display_name and event.seller_id not in seller_names:
            seller_names[event.seller_id] = event.display_name

    if unresolved:
        logger.warning(
            "{} revenue events could not be attributed to a seller",
            len(unresolved),
            unresolved_count=len(unresolved),
        )

    return RevenueAggregate(
        company_id=company_id,
        period=period,
        per_seller=dict(per_seller),
        seller_names=seller_names,
        events=tuple(events),
        unresolved=tuple(unresolved),
    )


class RevenueAggregator:
    """Collects a company's revenue for a period from its revenue sources.

    Args:
        ledger: Reader of local ledger sales.
        sessions: Reader of timed-service sessions.
        feed: External sales feed client.
        employees: Employee directory used to resolve feed sellers.
        resolver: Resolver overriding the directory-based default.
        clip_feed_window_to_now: Clip the feed window of a running week.
    """

    def __init__(
        self,
        ledger: LedgerSalesReader,
        sessions: TimedSessionReader,
        feed: ExternalFeedClient,
        employees: EmployeeDirectory,
        resolver: SellerIdentityResolver | None = None,
        *,
        clip_feed_window_to_now: bool = True,
    ) -> None:
        self.ledger = ledger
        self.sessions = sessions
        self.feed = feed
        self.employees = employees
        self.resolver = resolver
        self.clip_feed_window_to_now = clip_feed_window_to_now

    async def aggregate(
        self,
        company_id: CompanyId,
        period: SettlementPeriod,
        mode: RevenueSourceMode,
        now: datetime | None = None,
    ) -> RevenueAggregate:
        """Aggregate the revenue of ``company_id`` over ``period``.

        Args:
            company_id: The company being settled.
            period: The settlement week.
            mode: The company's revenue source mode.
            now: Current instant, used to clip the external feed window.

        Returns:
            RevenueAggregate: Per-seller totals, raw events and diagnostics.
        """
        if isinstance(mode, ExternalFeed):
            events = await self._external_events(company_id, period, mode, now)
        else:
            events = await self._local_events(company_id, period)

        aggregate = aggregate_events(company_id, period, events)
        logger.debug(
            "Aggregated {} revenue events for {} sellers",
            len(aggregate.events),
            len(aggregate.per_seller),
            total_revenue=str(aggregate.total_revenue),
        )
        return aggregate

    async def _local_events(
        self, company_id: CompanyId, period: SettlementPeriod
    ) -> list[RevenueEvent]:
        from src.settlement.ports import read_all, read_source  # noqa: PLC0415

        sales, sessions = await read_all(
            read_source(
                "ledger_sales",
                self.ledger.list_sales(company_id, period.start, period.end),
            ),
            read_source(
                "timed_sessions",
                self.sessions.list_sessions(company_id, period.start, period.end),
            ),
        )
        return [
            *events_from_ledger(company_id, period, sales),
            *events_from_sessions(company_id, period, sessions),
        ]

    async def _external_events(
        self,
        company_id: CompanyId,
        period: SettlementPeriod,
        mode: ExternalFeed,
        now: datetime | None,
    ) -> list[RevenueEvent]:
        from src.settlement.ports import read_all, read_source  # noqa: PLC0415

        window = to_feed_window(period, now, clip_to_now=self.clip_feed_window_to_now)
        if window.is_empty:
            logger.info("Week {} has not started, skipping external feed", period.label)
            return []

        fetch = read_source(
            "external_feed",
            self.feed.fetch_sales(mode.feed_company_id, window.start_ts, window.end_ts),
        )
        if self.resolver is not None:
            records = await fetch
            resolver = self.resolver
        else:
            records, employees = await read_all(
                fetch,
                read_source(
                    "employee_directory", self.employees.list_employees(company_id)
                ),
            )
            resolver = DirectorySellerResolver(employees)

        return events_from_feed(company_id, records, resolver)
