"""Revenue-share salary computation with capping.

An employee earns a percentage of the revenue attributed to them. When their
role carries a salary cap, the payout stops at the cap and the excess stays
with the company:

    computed = revenue * share / 100
    final    = min(computed, cap)   if cap > 0 else computed
    retained = computed - final
    capped   = retained > 0

All arithmetic is exact Decimal arithmetic, so ``retained + final == computed``
holds for every input.
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from src.core.constants import PERCENT_BASE, ZERO
from src.core.exceptions import InvalidRevenueError, InvalidRoleConfigError
from src.core.types import EmployeeId
from src.settlement.money import percent_of, to_decimal


class RoleCompensationRule(BaseModel):
    """Compensation terms of an employee's role within one company.

    A missing or zero ``salary_cap`` means the role is uncapped. Ranges are
    checked by ``compute_salary`` so that a bad rule surfaces as
    ``INVALID_ROLE_CONFIG`` rather than a model validation error.
    """

    model_config = ConfigDict(frozen=True)

    revenue_share_percent: Decimal
    salary_cap: Decimal | None = None
    role_name: str | None = None

    @property
    def is_capped(self) -> bool:
        return self.salary_cap is not None and self.salary_cap > ZERO


class PayrollLine(BaseModel):
    """Salary of one seller for one settlement period."""

    model_config = ConfigDict(frozen=True)

    employee_id: EmployeeId
    employee_name: str | None = None
    role_name: str | None = None
    attributed_revenue: Decimal
    revenue_share_percent: Decimal
    salary_cap: Decimal = Field(default=ZERO, description="0 means uncapped")
    computed_salary: Decimal
    final_salary: Decimal
    is_capped: bool
    amount_retained_by_company: Decimal


def compute_salary(
    employee_id: EmployeeId,
    attributed_revenue: Decimal | int | float | str,
    revenue_share_percent: Decimal | int | float | str,
    salary_cap: Decimal | int | float | str | None = None,
    *,
    employee_name: str | None = None,
    role_name: str | None = None,
) -> PayrollLine:
    """Compute a seller's salary from their attributed revenue.

    Args:
        employee_id: The seller.
        attributed_revenue: Revenue attributed to the seller, never negative.
        revenue_share_percent: Share of the revenue paid as salary, 0 to 100.
        salary_cap: Maximum payable salary; None or 0 means uncapped.
        employee_name: Display name carried into the payroll line.
        role_name: Role name carried into the payroll line.

    Returns:
        PayrollLine: The computed salary and what the company retains.

    Raises:
        InvalidRevenueError: If the attributed revenue is negative.
        InvalidRoleConfigError: If the share is outside [0, 100] or the cap
            is negative.
    """
    revenue = to_decimal(attributed_revenue)
    share = to_decimal(revenue_share_percent)
    cap = to_decimal(salary_cap)
    context = {
        "employee_id": employee_id,
        "attributed_revenue": str(revenue),
        "revenue_share_percent": str(share),
        "salary_cap": str(cap),
    }

    if revenue < ZERO:
        msg = f"Attributed revenue of {employee_id} is negative: {revenue}"
        raise InvalidRevenueError(msg, context=context)
    if not ZERO <= share <= PERCENT_BASE:
        msg = f"Revenue share {share}% of {employee_id} is outside [0, 100]"
        raise InvalidRoleConfigError(msg, context=context)
    if cap < ZERO:
        msg = f"Salary cap {cap} of {employee_id} is negative"
        raise InvalidRoleConfigError(msg, context=context)

    computed = percent_of(revenue, share)
    final = min(computed, cap) if cap > ZERO else computed
    retained = computed - final

    return PayrollLine(
        employee_id=employee_id,
        employee_name=employee_name,
        role_name=role_name,
        attributed_revenue=revenue,
        revenue_share_percent=share,
        salary_cap=cap,
        computed_salary=computed,
        final_salary=final,
        is_capped=retained > ZERO,
        amount_retained_by_company=retained,
    )


def compute_salary_for_rule(
    employee_id: EmployeeId,
    attributed_revenue: Decimal,
    rule: RoleCompensationRule,
    *,
    employee_name: str | None = None,
) -> PayrollLine:
    """Compute a salary from a role compensation rule."""
    return compute_salary(
        employee_id,
        attributed_revenue,
        rule.revenue_share_percent,
        rule.salary_cap,
        employee_name=employee_name,
        role_name=rule.role_name,
    )
