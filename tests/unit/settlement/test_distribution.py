"""Unit tests for profit distribution and the money helpers."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from src.settlement.distribution import (
    ProfitDistribution,
    ProfitDistributionConfig,
    distribute,
)
from src.settlement.money import percent_of, round_currency, round_rate, to_decimal


@pytest.mark.unit
class TestProfitDistributionConfig:
    """Test the distribution percentages."""

    def test_defaults(self) -> None:
        """Test the default split."""
        config = ProfitDistributionConfig()

        assert config.bonuses_percent == Decimal(10)
        assert config.dividends_percent == Decimal(30)
        assert config.treasury_percent == Decimal(60)
        assert config.city_percent == Decimal(0)
        assert config.total_percent == Decimal(100)
        assert config.undistributed_percent == Decimal(0)

    def test_percentages_need_not_sum_to_100(self) -> None:
        """Test a company may leave part of its profit undistributed."""
        config = ProfitDistributionConfig(
            bonuses_percent=Decimal(10),
            dividends_percent=Decimal(10),
            treasury_percent=Decimal(10),
        )

        assert config.total_percent == Decimal(30)
        assert config.undistributed_percent == Decimal(70)

    @pytest.mark.parametrize("value", [-1, 101])
    def test_percent_range(self, value: int) -> None:
        """Test each percentage stays within [0, 100]."""
        with pytest.raises(ValidationError):
            ProfitDistributionConfig(bonuses_percent=Decimal(value))


@pytest.mark.unit
class TestDistribute:
    """Test the profit distributor."""

    def test_default_split(self) -> None:
        """Test 360 splits into 36 / 108 / 216 / 0."""
        shares = distribute(Decimal(360), ProfitDistributionConfig())

        assert shares == ProfitDistribution(
            bonuses=Decimal(36),
            dividends=Decimal(108),
            treasury=Decimal(216),
            city=Decimal(0),
        )
        assert shares.total == Decimal(360)

    def test_shares_round_half_up(self) -> None:
        """Test shares are rounded half-up to whole units."""
        shares = distribute(Decimal(5), ProfitDistributionConfig())

        # 0.5 / 1.5 / 3.0
        assert shares.bonuses == Decimal(1)
        assert shares.dividends == Decimal(2)
        assert shares.treasury == Decimal(3)

    def test_city_share(self) -> None:
        """Test the city share is computed like the others."""
        config = ProfitDistributionConfig(
            bonuses_percent=Decimal(0),
            dividends_percent=Decimal(0),
            treasury_percent=Decimal(0),
            city_percent=Decimal(25),
        )

        assert distribute(Decimal(1000), config).city == Decimal(250)

    @pytest.mark.parametrize("net_profit", [Decimal(0), Decimal(-1), Decimal(-5000)])
    def test_no_profit_distributes_nothing(self, net_profit: Decimal) -> None:
        """Test a loss or a break-even week distributes nothing."""
        shares = distribute(net_profit, ProfitDistributionConfig())

        assert shares == ProfitDistribution()
        assert shares.total == Decimal(0)


@pytest.mark.unit
class TestMoney:
    """Test the Decimal helpers."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (None, Decimal(0)),
            (Decimal("1.5"), Decimal("1.5")),
            (3, Decimal(3)),
            (0.1, Decimal("0.1")),
            ("12.30", Decimal("12.30")),
        ],
    )
    def test_to_decimal(self, value: object, expected: Decimal) -> None:
        """Test collaborator amounts convert without float noise."""
        assert to_decimal(value) == expected  # type: ignore[arg-type]

    def test_percent_of(self) -> None:
        """Test percentages are applied exactly."""
        assert percent_of(Decimal(1000), 12.5) == Decimal(125)

    @pytest.mark.parametrize(
        ("value", "expected"),
        [("0.5", "1"), ("1.49", "1"), ("2.5", "3"), ("-0.5", "-1")],
    )
    def test_round_currency(self, value: str, expected: str) -> None:
        """Test half-up rounding to whole units."""
        assert round_currency(Decimal(value)) == Decimal(expected)

    def test_round_rate(self) -> None:
        """Test rates keep two decimals."""
        assert round_rate(Decimal("11.665")) == Decimal("11.67")
