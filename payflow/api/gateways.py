# payflow/api/gateways.py
import logging
from typing import Any, Awaitable, Callable, Dict

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ..gateways import GatewayResponse, GatewaySimulator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["mock-gateways"])

Operation = Callable[[GatewaySimulator, Dict[str, Any]], Awaitable[GatewayResponse]]


async def _handle(request: Request, op: Operation, label: str) -> JSONResponse:
    """Runs one mock gateway call; anything unexpected becomes a generic 500."""
    try:
        body = await request.json()
        if not isinstance(body, dict):
            raise ValueError("request body must be a JSON object")
        status, payload = await op(request.app.state.gateways, body)
        return JSONResponse(payload, status_code=status)
    except Exception:
        logger.exception("Mock %s API error", label)
        return JSONResponse(
            {"error": f"An unexpected error occurred in {label} mock."}, status_code=500
        )

@router.post("/card/authorize-payment")
async def authorize_payment(request: Request):
    return await _handle(request, GatewaySimulator.authorize_card, "card")


@router.post("/mpesa/initiate-payment")
async def initiate_payment(request: Request):
    return await _handle(request, GatewaySimulator.initiate_stk_push, "Mpesa")


@router.post("/mpesa/confirm-c2b")
async def confirm_c2b(request: Request):
    return await _handle(request, GatewaySimulator.confirm_c2b, "Mpesa C2B")
