"""Weekly settlement assembly.

``SettlementAssembler`` ties the engine together into one call producing the
weekly report (the *bilan*) of a company:

1. resolve the settlement period;
2. read the company configuration and validate its tax brackets;
3. aggregate revenue per seller and read the period's charges;
4. compute each seller's salary from their role's compensation rule;
5. ``taxable = max(0, revenue - payroll - deductible charges)``;
6. compute the tax;
7. ``net = taxable - tax``;
8. distribute the net profit;
9. assemble the report.

This is a linear pipeline with no stored intermediate state. Any failure
aborts the whole computation: no partial report is ever returned and callers
retry from step 1.
"""

import asyncio
import time
from collections.abc import Awaitable
from datetime import UTC, datetime
from decimal import Decimal

from loguru import logger
from pydantic import BaseModel, ConfigDict

from src.core.config import Settings, get_settings
from src.core.constants import MILLISECONDS_PER_SECOND, ZERO
from src.core.context import SettlementContext, generate_run_id
from src.core.exceptions import ExternalSourceUnavailableError, NotFoundError
from src.core.types import CompanyId, EmployeeId
from src.settlement.charges import ChargeSummary, summarize_charges
from src.settlement.company import CompanySettlementConfig
from src.settlement.distribution import (
    ProfitDistribution,
    ProfitDistributionConfig,
    distribute,
)
from src.settlement.identity import SellerIdentityResolver
from src.settlement.period import PeriodResolver, SettlementPeriod
from src.settlement.ports import SettlementSources, read_all, read_source
from src.settlement.revenue import (
    RevenueAggregate,
    RevenueAggregator,
    RevenueSource,
    UnresolvedSeller,
)
from src.settlement.salary import (
    PayrollLine,
    RoleCompensationRule,
    compute_salary_for_rule,
)
from src.settlement.tax import TaxComputation, compute_tax, validate_brackets


class SettlementReport(BaseModel):
    """The weekly financial settlement of one company."""

    model_config = ConfigDict(frozen=True)

    company_id: CompanyId
    company_name: str = ""
    period: SettlementPeriod

    total_revenue: Decimal
    revenue_by_source: dict[RevenueSource, Decimal]
    payroll: tuple[PayrollLine, ...] = ()
    total_payroll: Decimal
    total_retained_by_company: Decimal
    charges: ChargeSummary

    taxable_profit: Decimal
    tax: TaxComputation
    net_profit: Decimal

    distribution_config: ProfitDistributionConfig
    distribution: ProfitDistribution

    unresolved_sellers: tuple[UnresolvedSeller, ...] = ()
    sellers_without_rule: tuple[EmployeeId, ...] = ()

    @property
    def total_tax(self) -> Decimal:
        return self.tax.total_tax

    @property
    def deductible_charges(self) -> Decimal:
        return self.charges.deductible_total


class SettlementAssembler:
    """Builds settlement reports from the application's collaborators.

    Args:
        sources: The collaborators the engine reads from.
        resolver: Seller identity resolver for external feed records.
            Defaults to matching against the company's employee directory.
        settings: Application settings. Defaults to ``get_settings()``.
    """

    def __init__(
        self,
        sources: SettlementSources,
        resolver: SellerIdentityResolver | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.sources = sources
        self.settings = settings or get_settings()
        self.periods = PeriodResolver.from_settings(self.settings)
        self.revenue = RevenueAggregator(
            sources.ledger,
            sources.sessions,
            sources.feed,
            sources.employees,
            resolver,
            clip_feed_window_to_now=(
                self.settings.settlement_config.clip_feed_window_to_now
            ),
        )

    async def build_settlement(
        self,
        company_id: CompanyId,
        week: int,
        year: int,
        now: datetime | None = None,
    ) -> SettlementReport:
        """Build the settlement of ``company_id`` for ISO ``week`` of ``year``.

        Args:
            company_id: The company to settle.
            week: ISO week number.
            year: ISO week-numbering year.
            now: Current instant, used to clip the external feed window.

        Returns:
            SettlementReport: The complete weekly report.

        Raises:
            InvalidPeriodError: If the week does not exist.
            NotFoundError: If the company is unknown.
            InvalidTaxConfigError: If the company's brackets are unusable.
            InvalidRevenueError: If a revenue amount is negative.
            InvalidRoleConfigError: If a compensation rule is out of range.
            ExternalSourceUnavailableError: If a collaborator read failed or
                did not complete in time.
        """
        run_id = generate_run_id()
        SettlementContext.set_run_id(run_id)

        with logger.contextualize(
            settlement_run_id=run_id,
            company_id=company_id,
            week=week,
            year=year,
        ):
            logger.info("Settlement started")
            start_time = time.perf_counter()

            try:
                report = await self._build(company_id, week, year, now)
            except Exception as exc:
                duration_ms = _elapsed_ms(start_time)
                logger.error(
                    "Settlement failed",
                    duration_ms=round(duration_ms, 2),
                    error_type=type(exc).__name__,
                    error_message=str(exc),
                )
                raise
            finally:
                SettlementContext.clear()

            duration_ms = _elapsed_ms(start_time)
            logger.info(
                "Settlement completed",
                duration_ms=round(duration_ms, 2),
                total_revenue=str(report.total_revenue),
                net_profit=str(report.net_profit),
            )

            threshold_ms = self.settings.log_config.slow_settlement_threshold_ms
            if duration_ms > threshold_ms:
                logger.warning(
                    "Slow settlement detected",
                    duration_ms=round(duration_ms, 2),
                    threshold_ms=threshold_ms,
                )

            return report

    async def build_current_settlement(
        self, company_id: CompanyId, now: datetime | None = None
    ) -> SettlementReport:
        """Build the settlement of the week containing ``now``."""
        now = now or datetime.now(UTC)
        week, year = self.periods.current_week(now)
        return await self.build_settlement(company_id, week, year, now)

    async def _build(
        self,
        company_id: CompanyId,
        week: int,
        year: int,
        now: datetime | None,
    ) -> SettlementReport:
        period = self.periods.resolve(week, year)
        deadline = (
            asyncio.get_running_loop().time()
            + self.settings.settlement_config.collaborator_timeout_seconds
        )

        company = await self._bounded(
            "company_config",
            deadline,
            read_source(
                "company_config",
                self.sources.companies.get_company_config(company_id),
            ),
        )
        if company is None:
            msg = f"Company {company_id} not found"
            raise NotFoundError(msg, context={"company_id": company_id})
        brackets = validate_brackets(company.tax_brackets)

        revenue, charge_list = await self._bounded(
            "revenue_and_charges",
            deadline,
            read_all(
                self.revenue.aggregate(
                    company_id, period, company.revenue_source, now
                ),
                read_source(
                    "charges",
                    self.sources.charges.list_charges(
                        company_id, period.start, period.end
                    ),
                ),
            ),
        )
        charges = summarize_charges(charge_list)

        payroll, without_rule = await self._payroll(company, revenue, deadline)
        total_payroll = sum((line.final_salary for line in payroll), ZERO)
        total_retained = sum(
            (line.amount_retained_by_company for line in payroll), ZERO
        )

        total_revenue = revenue.total_revenue
        taxable_profit = max(
            ZERO, total_revenue - total_payroll - charges.deductible_total
        )
        tax = compute_tax(
            taxable_profit,
            brackets,
            Decimal(str(self.settings.settlement_config.flat_tax_rate_percent)),
        )
        net_profit = taxable_profit - tax.total_tax

        if company.distribution.total_percent != 100:
            logger.debug(
                "Distribution of {} does not add up to 100%",
                company_id,
                total_percent=str(company.distribution.total_percent),
            )

        return SettlementReport(
            company_id=company_id,
            company_name=company.name,
            period=period,
            total_revenue=total_revenue,
            revenue_by_source=revenue.revenue_by_source,
            payroll=tuple(payroll),
            total_payroll=total_payroll,
            total_retained_by_company=total_retained,
            charges=charges,
            taxable_profit=taxable_profit,
            tax=tax,
            net_profit=net_profit,
            distribution_config=company.distribution,
            distribution=distribute(net_profit, company.distribution),
            unresolved_sellers=revenue.unresolved,
            sellers_without_rule=tuple(without_rule),
        )

    async def _payroll(
        self,
        company: CompanySettlementConfig,
        revenue: RevenueAggregate,
        deadline: float,
    ) -> tuple[list[PayrollLine], list[EmployeeId]]:
        sellers = sorted(
            seller_id
            for seller_id, amount in revenue.per_seller.items()
            if amount > ZERO
        )
        rules: list[RoleCompensationRule | None] = await self._bounded(
            "compensation",
            deadline,
            read_all(
                *(
                    read_source(
                        "compensation",
                        self.sources.compensation.get_compensation_rule(
                            seller_id, company.company_id
                        ),
                    )
                    for seller_id in sellers
                )
            ),
        )

        payroll = []
        without_rule = []
        for seller_id, rule in zip(sellers, rules, strict=True):
            if rule is None:
                without_rule.append(seller_id)
                continue
            payroll.append(
                compute_salary_for_rule(
                    seller_id,
                    revenue.per_seller[seller_id],
                    rule,
                    employee_name=revenue.seller_names.get(seller_id),
                )
            )

        if without_rule:
            logger.warning(
                "{} sellers have revenue but no compensation rule",
                len(without_rule),
                sellers_without_rule=without_rule,
            )
        return payroll, without_rule

    async def _bounded[T](self, source: str, deadline: float, read: Awaitable[T]) -> T:
        """Await ``read`` unless the settlement's read deadline has passed.

        ``deadline`` is an event loop time shared by every read of one
        settlement, so their cumulative duration is bounded by
        ``collaborator_timeout_seconds``.
        """
        try:
            async with asyncio.timeout_at(deadline):
                return await read
        except TimeoutError as e:
            timeout = self.settings.settlement_config.collaborator_timeout_seconds
            logger.warning("Collaborator read {} timed out", source, source=source)
            msg = f"Reading {source} did not complete within the {timeout}s deadline"
            raise ExternalSourceUnavailableError(source, msg, cause=e) from e


def _elapsed_ms(start_time: float) -> float:
    return (time.perf_counter() - start_time) * MILLISECONDS_PER_SECOND
