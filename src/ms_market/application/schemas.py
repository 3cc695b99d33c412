"""Pydantic request schemas for ms_market API."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class PriceUpdateRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    ticker: str = Field(..., min_length=1, max_length=16)
    price: float = Field(..., gt=0, allow_inf_nan=False)


class SkipSessionsRequest(BaseModel):
    # Any value is accepted; the engine coerces it into 1..max like the WebSocket path.
    count: Any = 1
