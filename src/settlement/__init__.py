"""Weekly financial settlement engine.

This package computes a company's weekly report (the *bilan*) from revenue,
payroll, charges, tax and profit distribution. It performs no persistence and
owns no wire format: every input is read through the collaborator protocols
in ``ports``, supplied by the surrounding application.

Core components:
- **period**: ISO week to UTC range resolution with a fixed civil offset
- **revenue**: Per-seller revenue aggregation over the local or external sources
- **identity**: Seller identity resolution for external feed records
- **salary**: Revenue-share salaries with capping
- **charges**: Charge classification by tax deductibility
- **tax**: Progressive bracket tax with a flat-rate fallback
- **distribution**: Post-tax profit distribution
- **assembler**: The end-to-end settlement pipeline

All monetary amounts are ``Decimal``; rounding only happens where the report
shows whole currency units.
"""

from src.settlement.assembler import SettlementAssembler, SettlementReport
from src.settlement.charges import Charge, ChargeSummary, Deductibility
from src.settlement.company import CompanySettlementConfig, ExternalFeed, LocalLedger
from src.settlement.distribution import ProfitDistributionConfig, distribute
from src.settlement.identity import DirectorySellerResolver, Employee
from src.settlement.period import PeriodResolver, SettlementPeriod
from src.settlement.ports import SettlementSources
from src.settlement.revenue import (
    FeedRecord,
    LedgerSale,
    RevenueAggregator,
    SessionState,
    TimedSession,
)
from src.settlement.salary import RoleCompensationRule, compute_salary
from src.settlement.tax import TaxBracket, compute_tax

__all__ = [
    "Charge",
    "ChargeSummary",
    "CompanySettlementConfig",
    "Deductibility",
    "DirectorySellerResolver",
    "Employee",
    "ExternalFeed",
    "FeedRecord",
    "LedgerSale",
    "LocalLedger",
    "PeriodResolver",
    "ProfitDistributionConfig",
    "RevenueAggregator",
    "RoleCompensationRule",
    "SessionState",
    "SettlementAssembler",
    "SettlementPeriod",
    "SettlementReport",
    "SettlementSources",
    "TaxBracket",
    "TimedSession",
    "compute_salary",
    "compute_tax",
    "distribute",
]
