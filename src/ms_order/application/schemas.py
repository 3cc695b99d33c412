"""Pydantic request schemas for ms_order API.

These are the only place untrusted trade payloads are parsed. Field-level
checks (positive, finite) happen here; balance and inventory checks are
left to the executor, which sees the live account.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from src.ms_common.enums import Outcome, TradeSide

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SyntheticTradeRequest(BaseModel):
    model_config = _CAMEL

    side: TradeSide
    ticker: str = Field(..., min_length=1, max_length=16)
    amount: float | None = Field(None, gt=0, allow_inf_nan=False, description="USD value")
    units: float | None = Field(None, gt=0, allow_inf_nan=False)

    @model_validator(mode="after")
    def _check_size(self) -> "SyntheticTradeRequest":
        if self.side == TradeSide.BUY:
            if self.amount is None or self.units is not None:
                raise ValueError("BUY takes amount only")
        elif (self.amount is None) == (self.units is None):
            raise ValueError("SELL takes exactly one of units or amount")
        return self


class PredictionTradeRequest(BaseModel):
    model_config = _CAMEL

    side: TradeSide
    market_id: str = Field(..., min_length=1, max_length=16)
    outcome: Outcome
    amount: float | None = Field(None, gt=0, allow_inf_nan=False, description="USD value")
    contracts: float | None = Field(None, gt=0, allow_inf_nan=False)

    @field_validator("market_id", mode="before")
    @classmethod
    def _market_id_as_text(cls, value: Any) -> Any:
        # Clients send instrument ids as numbers or strings.
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @model_validator(mode="after")
    def _check_size(self) -> "PredictionTradeRequest":
        if self.side == TradeSide.BUY and self.amount is None:
            raise ValueError("BUY requires amount")
        if self.side == TradeSide.SELL and self.contracts is None:
            raise ValueError("SELL requires contracts")
        return self
