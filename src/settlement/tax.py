"""Progressive corporate tax computation.

Tax is accumulated bracket by bracket: each bracket taxes the slice of the
taxable profit that falls between its bounds at its marginal rate. A company
without brackets pays a flat rate on the whole taxable profit.

``compute_tax`` is a pure numeric routine and trusts the order of the brackets
it is given; ``validate_brackets`` is what the settlement assembler runs on a
company's configuration beforehand.
"""

from collections.abc import Sequence
from decimal import Decimal

from loguru import logger
from pydantic import BaseModel, ConfigDict

from src.core.constants import FLAT_TAX_RATE_PERCENT, PERCENT_BASE, ZERO
from src.core.exceptions import InvalidInputError, InvalidTaxConfigError
from src.settlement.money import percent_of, round_rate, to_decimal


class TaxBracket(BaseModel):
    """A marginal-rate tier of the taxable profit.

    ``upper_bound`` None means the bracket is unbounded.
    """

    model_config = ConfigDict(frozen=True)

    lower_bound: Decimal
    upper_bound: Decimal | None = None
    rate_percent: Decimal

    @property
    def label(self) -> str:
        upper = "unbounded" if self.upper_bound is None else f"{self.upper_bound:,}"
        return f"{self.lower_bound:,} to {upper}"


class BracketTax(BaseModel):
    """Tax due within one bracket."""

    model_config = ConfigDict(frozen=True)

    lower_bound: Decimal
    upper_bound: Decimal | None
    rate_percent: Decimal
    taxed_amount: Decimal
    tax: Decimal


class TaxComputation(BaseModel):
    """Result of a tax computation."""

    model_config = ConfigDict(frozen=True)

    taxable_profit: Decimal
    total_tax: Decimal
    effective_rate_percent: Decimal
    breakdown: tuple[BracketTax, ...] = ()
    flat_rate_applied: bool = False

    @property
    def profit_after_tax(self) -> Decimal:
        return self.taxable_profit - self.total_tax

    def describe(self) -> str:
        """Render the computation the way it is shown on the weekly report."""
        if self.taxable_profit == ZERO:
            return "No taxable profit"

        if self.flat_rate_applied:
            rate = self.breakdown[0].rate_percent if self.breakdown else ZERO
            return f"{self.taxable_profit:,} x {rate}% = {self.total_tax:,}"

        lines = [f"Progressive tax on {self.taxable_profit:,}:"]
        for item in self.breakdown:
            upper = "unbounded" if item.upper_bound is None else f"{item.upper_bound:,}"
            lines.append(
                f"- {item.lower_bound:,} to {upper}: "
                f"{item.taxed_amount:,} x {item.rate_percent}% = {item.tax:,}"
            )
        lines.append(
            f"Total: {self.total_tax:,} "
            f"(effective rate: {self.effective_rate_percent}%)"
        )
        return "\n".join(lines)


def compute_tax(
    taxable_profit: Decimal | int | float | str,
    brackets: Sequence[TaxBracket],
    flat_rate_percent: Decimal | int | float = FLAT_TAX_RATE_PERCENT,
) -> TaxComputation:
    """Compute the tax due on ``taxable_profit``.

    Args:
        taxable_profit: Non-negative taxable profit.
        brackets: Brackets in ascending order; empty means flat rate.
        flat_rate_percent: Rate applied when ``brackets`` is empty.

    Returns:
        TaxComputation: Total tax, effective rate and per-bracket detail.

    Raises:
        InvalidInputError: If ``taxable_profit`` is negative.
    """
    profit = to_decimal(taxable_profit)
    if profit < ZERO:
        msg = f"Taxable profit must not be negative, got {profit}"
        raise InvalidInputError(msg, context={"taxable_profit": str(profit)})

    if not brackets:
        rate = to_decimal(flat_rate_percent)
        tax = percent_of(profit, rate)
        flat = BracketTax(
            lower_bound=ZERO,
            upper_bound=None,
            rate_percent=rate,
            taxed_amount=profit,
            tax=tax,
        )
        return TaxComputation(
            taxable_profit=profit,
            total_tax=tax,
            effective_rate_percent=_effective_rate(tax, profit),
            breakdown=(flat,) if profit > ZERO else (),
            flat_rate_applied=True,
        )

    breakdown: list[BracketTax] = []
    total = ZERO
    for bracket in brackets:
        if profit <= bracket.lower_bound:
            break

        upper = bracket.upper_bound
        top = profit if upper is None else min(profit, upper)
        taxed = max(ZERO, top - bracket.lower_bound)
        tax = percent_of(taxed, bracket.rate_percent)
        total += tax
        breakdown.append(
            BracketTax(
                lower_bound=bracket.lower_bound,
                upper_bound=bracket.upper_bound,
                rate_percent=bracket.rate_percent,
                taxed_amount=taxed,
                tax=tax,
            )
        )

        if bracket.upper_bound is None or profit <= bracket.upper_bound:
            break

    return TaxComputation(
        taxable_profit=profit,
        total_tax=total,
        effective_rate_percent=_effective_rate(total, profit),
        breakdown=tuple(breakdown),
    )


def _effective_rate(tax: Decimal, profit: Decimal) -> Decimal:
    if profit <= ZERO:
        return ZERO
    return round_rate(tax / profit * PERCENT_BASE)


def validate_brackets(brackets: Sequence[TaxBracket]) -> tuple[TaxBracket, ...]:
    """Check a company's brackets and return them in ascending order.

    Brackets may be stored in any order. Once sorted they must not overlap,
    each must span a non-empty range, only the last may be unbounded, and
    every rate must lie in [0, 100]. Gaps between consecutive brackets are
    accepted (profit inside a gap is untaxed) but logged.

    Raises:
        InvalidTaxConfigError: If the brackets cannot be applied.
    """
    ordered = tuple(sorted(brackets, key=lambda b: b.lower_bound))

    previous: TaxBracket | None = None
    for index, bracket in enumerate(ordered):
        context = {"bracket": bracket.label, "position": index}

        if bracket.lower_bound < ZERO:
            msg = f"Tax bracket {bracket.label} starts below zero"
            raise InvalidTaxConfigError(msg, context=context)
        if not ZERO <= bracket.rate_percent <= PERCENT_BASE:
            msg = f"Tax bracket {bracket.label} has rate {bracket.rate_percent}%"
            raise InvalidTaxConfigError(msg, context=context)
        upper = bracket.upper_bound
        if upper is not None and upper <= bracket.lower_bound:
            msg = f"Tax bracket {bracket.label} is empty or inverted"
            raise InvalidTaxConfigError(msg, context=context)

        if previous is not None:
            if previous.upper_bound is None:
                msg = f"Unbounded tax bracket {previous.label} is not the last one"
                raise InvalidTaxConfigError(msg, context=context)
            if bracket.lower_bound < previous.upper_bound:
                msg = f"Tax brackets {previous.label} and {bracket.label} overlap"
                raise InvalidTaxConfigError(msg, context=context)
            if bracket.lower_bound > previous.upper_bound:
                logger.warning(
                    "Gap between tax brackets {} and {}",
                    previous.label,
                    bracket.label,
                )
        elif bracket.lower_bound > ZERO:
            logger.warning("First tax bracket {} does not start at zero", bracket.label)

        previous = bracket

    if previous is not None and previous.upper_bound is not None:
        logger.warning(
            "Last tax bracket {} is bounded, profit above it is untaxed",
            previous.label,
        )

    return ordered
