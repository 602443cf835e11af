"""Post-tax profit distribution.

The net profit of a week is split into bonuses, dividends, treasury and a
city share using percentages configured per company. The percentages are
independent: nothing forces them to add up to 100, so a company may leave
part of its profit undistributed (or distribute more than it made). Whether
that should be allowed is still an open question for the system owner, so
the engine only exposes the total for callers that want to warn about it.
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from src.core.constants import PERCENT_BASE, ZERO
from src.settlement.money import percent_of, round_currency, to_decimal


class ProfitDistributionConfig(BaseModel):
    """Percentages of the net profit assigned to each share."""

    model_config = ConfigDict(frozen=True)

    bonuses_percent: Decimal = Field(default=Decimal(10), ge=0, le=100)
    dividends_percent: Decimal = Field(default=Decimal(30), ge=0, le=100)
    treasury_percent: Decimal = Field(default=Decimal(60), ge=0, le=100)
    city_percent: Decimal = Field(default=Decimal(0), ge=0, le=100)

    @property
    def total_percent(self) -> Decimal:
        return (
            self.bonuses_percent
            + self.dividends_percent
            + self.treasury_percent
            + self.city_percent
        )

    @property
    def undistributed_percent(self) -> Decimal:
        """Share of the net profit left unassigned; negative when over 100%."""
        return PERCENT_BASE - self.total_percent


class ProfitDistribution(BaseModel):
    """The four shares of a week's net profit, in whole currency units."""

    model_config = ConfigDict(frozen=True)

    bonuses: Decimal = ZERO
    dividends: Decimal = ZERO
    treasury: Decimal = ZERO
    city: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.bonuses + self.dividends + self.treasury + self.city


def distribute(
    net_profit: Decimal | int | float | str, config: ProfitDistributionConfig
) -> ProfitDistribution:
    """Split ``net_profit`` according to ``config``.

    Each share is rounded half-up to the nearest currency unit. A loss or a
    break-even week distributes nothing.
    """
    profit = to_decimal(net_profit)
    if profit <= ZERO:
        return ProfitDistribution()

    return ProfitDistribution(
        bonuses=round_currency(percent_of(profit, config.bonuses_percent)),
        dividends=round_currency(percent_of(profit, config.dividends_percent)),
        treasury=round_currency(percent_of(profit, config.treasury_percent)),
        city=round_currency(percent_of(profit, config.city_percent)),
    )
