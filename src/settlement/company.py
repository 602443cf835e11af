"""Company-level settlement configuration."""

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from src.core.types import CompanyId
from src.settlement.distribution import ProfitDistributionConfig
from src.settlement.tax import TaxBracket


class LocalLedger(BaseModel):
    """Revenue comes from the local sales ledger and timed sessions."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["local"] = "local"


class ExternalFeed(BaseModel):
    """Revenue comes exclusively from the external sales feed."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["external"] = "external"
    feed_company_id: int | str = Field(
        ..., description="Identifier of the company in the external feed"
    )


RevenueSourceMode = Annotated[LocalLedger | ExternalFeed, Field(discriminator="kind")]


class CompanySettlementConfig(BaseModel):
    """Everything the engine needs to know about the company being settled."""

    model_config = ConfigDict(frozen=True)

    company_id: CompanyId
    name: str = ""
    revenue_source: RevenueSourceMode = Field(default_factory=LocalLedger)
    tax_brackets: tuple[TaxBracket, ...] = ()
    distribution: ProfitDistributionConfig = Field(
        default_factory=ProfitDistributionConfig
    )
