"""ms_account REST API — guest keyed by the x-guest-id header."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from src.ms_account.application.schemas import DepositRequest, UsernameRequest
from src.ms_account.application.service import AccountApplicationService
from src.ms_common.response import ApiResponse, success_response
from src.ms_engine.application.service import get_engine
from src.ms_engine.engine.engine import MarketEngine
from src.ms_gateway.auth.dependencies import get_guest_id

router = APIRouter(prefix="/account", tags=["account"])

_service = AccountApplicationService()


@router.get("")
async def get_account(
    request: Request,
    guest_id: Annotated[str, Depends(get_guest_id)],
    engine: Annotated[MarketEngine, Depends(get_engine)],
) -> ApiResponse:
    return success_response(_service.get_account(engine, guest_id), request)


@router.post("/deposit")
async def deposit(
    body: DepositRequest,
    request: Request,
    guest_id: Annotated[str, Depends(get_guest_id)],
    engine: Annotated[MarketEngine, Depends(get_engine)],
) -> ApiResponse:
    return success_response(_service.deposit(engine, guest_id, body), request)


@router.post("/username")
async def set_username(
    body: UsernameRequest,
    request: Request,
    guest_id: Annotated[str, Depends(get_guest_id)],
    engine: Annotated[MarketEngine, Depends(get_engine)],
) -> ApiResponse:
    return success_response(_service.set_username(engine, guest_id, body), request)


@router.post("/reset")
async def reset_account(
    request: Request,
    guest_id: Annotated[str, Depends(get_guest_id)],
    engine: Annotated[MarketEngine, Depends(get_engine)],
) -> ApiResponse:
    return success_response(_service.reset(engine, guest_id), request)
