"""Charge classification for the weekly settlement.

Charges (expenses) reduce the taxable profit when they are deductible.
Partially deductible charges are treated as fully deductible: this matches
how settlements have always been computed and materially changes tax
outcomes, so it is pinned down by ``DEDUCTIBLE_FOR_TAX`` rather than an
inline comparison.
"""

from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Final

from pydantic import BaseModel, ConfigDict, Field

from src.core.constants import ZERO


class Deductibility(Enum):
    """Tax treatment of a charge."""

    DEDUCTIBLE = "deductible"
    NON_DEDUCTIBLE = "non_deductible"
    PARTIALLY_DEDUCTIBLE = "partially_deductible"


DEDUCTIBLE_FOR_TAX: Final[frozenset[Deductibility]] = frozenset(
    {Deductibility.DEDUCTIBLE, Deductibility.PARTIALLY_DEDUCTIBLE}
)


class ChargeCategory(Enum):
    """Reporting buckets derived from a charge's free-text category."""

    SALARIES = "salaries"
    EXPENSE_NOTES = "expense_notes"
    COST_PRICE = "cost_price"
    MAINTENANCE = "maintenance"
    OTHER = "other"


# Category keywords, matched case-insensitively as substrings, first match wins
CATEGORY_KEYWORDS: Final[tuple[tuple[ChargeCategory, tuple[str, ...]], ...]] = (
    (ChargeCategory.SALARIES, ("salaire", "paie", "salary", "payroll")),
    (ChargeCategory.EXPENSE_NOTES, ("frais", "note", "expense")),
    (ChargeCategory.COST_PRICE, ("revient", "coût", "cout", "cost")),
    (ChargeCategory.MAINTENANCE, ("maintenance", "réparation", "repair")),
)


class Charge(BaseModel):
    """An expense record of the company."""

    model_config = ConfigDict(frozen=True)

    charge_id: str | None = None
    name: str = ""
    amount: Decimal = Field(..., ge=0)
    deductibility: Deductibility = Deductibility.DEDUCTIBLE
    category: str = ""
    recurring: bool = False
    charged_at: datetime | None = None

    @property
    def is_tax_deductible(self) -> bool:
        return self.deductibility in DEDUCTIBLE_FOR_TAX


def categorize(category: str) -> ChargeCategory:
    """Map a free-text category to its reporting bucket."""
    lowered = category.lower()
    for bucket, keywords in CATEGORY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return bucket
    return ChargeCategory.OTHER


class ChargeSummary(BaseModel):
    """Charge totals of one settlement period."""

    model_config = ConfigDict(frozen=True)

    deductible_total: Decimal = ZERO
    non_deductible_total: Decimal = ZERO
    partially_deductible_total: Decimal = ZERO
    recurring_total: Decimal = ZERO
    total: Decimal = ZERO
    by_category: dict[ChargeCategory, Decimal] = Field(default_factory=dict)
    count: int = 0


def summarize_charges(charges: Iterable[Charge]) -> ChargeSummary:
    """Classify and sum the charges of a period.

    ``deductible_total`` includes partially deductible charges; it is the
    amount subtracted from revenue to obtain the taxable profit.
    ``partially_deductible_total`` is reported separately for information.
    """
    deductible = non_deductible = partial = recurring = ZERO
    by_category = dict.fromkeys(ChargeCategory, ZERO)
    count = 0

    for charge in charges:
        count += 1
        if charge.is_tax_deductible:
            deductible += charge.amount
        else:
            non_deductible += charge.amount
        if charge.deductibility is Deductibility.PARTIALLY_DEDUCTIBLE:
            partial += charge.amount
        if charge.recurring:
            recurring += charge.amount
        by_category[categorize(charge.category)] += charge.amount

    return ChargeSummary(
        deductible_total=deductible,
        non_deductible_total=non_deductible,
        partially_deductible_total=partial,
        recurring_total=recurring,
        total=deductible + non_deductible,
        by_category=by_category,
        count=count,
    )
