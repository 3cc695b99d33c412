"""Pydantic request schemas for ms_account API."""

from pydantic import BaseModel, Field


class DepositRequest(BaseModel):
    amount: float = Field(..., gt=0, allow_inf_nan=False, description="USD amount to deposit")


class UsernameRequest(BaseModel):
    username: str = Field(..., description="3-20 characters: letters, digits or underscore")
