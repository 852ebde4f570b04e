# payflow/api/admin_api.py
import logging
from collections import Counter
from decimal import Decimal
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import BaseModel, Field

from ..models import Transaction, TransactionStatus, TransferRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin-api", tags=["admin"])

# status paths used by the seeder, each one legal in the lifecycle
SEED_PATHS: List[List[TransactionStatus]] = [
    [],
    ["GATEWAY_SUCCESSFUL"],
    ["GATEWAY_SUCCESSFUL", "PROCESSING_SETTLEMENT"],
    ["GATEWAY_SUCCESSFUL", "PROCESSING_SETTLEMENT", "COMPLETED"],
    ["GATEWAY_SUCCESSFUL", "PROCESSING_SETTLEMENT", "FAILED_SETTLEMENT"],
    ["CANCELED_GATEWAY"],
]

SEED_NAMES = ["Amina Otieno", "Brian Kamau", "Chloe Wanjiru", "David Mwangi", "Esther Njeri"]


def require_admin(request: Request, authorization: Optional[str] = Header(None)):
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(401, "Missing Bearer token")
    token = authorization.split(" ", 1)[1]
    if token != request.app.state.settings.admin_token:
        raise HTTPException(401, "Invalid token")


class StatsOut(BaseModel):
    counts_by_status: Dict[str, int]
    transactions_total: int
    simulations_pending: int


class SeedRequest(BaseModel):
    count: int = Field(6, ge=1, le=500)


class SeedOut(BaseModel):
    created: List[Transaction]


class ResetOut(BaseModel):
    deleted: int
    timers_canceled: int


@router.get("/stats", response_model=StatsOut)
def get_stats(request: Request, _: None = Depends(require_admin)):
    items = request.app.state.service.list()
    counts = Counter(t.status for t in items)
    return StatsOut(
        counts_by_status=dict(counts),
        transactions_total=len(items),
        simulations_pending=len(request.app.state.simulator.pending()),
    )


@router.post("/seed", response_model=SeedOut, status_code=201)
def seed(request: Request, body: Optional[SeedRequest] = None, _: None = Depends(require_admin)):
    body = body or SeedRequest()
    service = request.app.state.service
    rng = request.app.state.rng

    created = []
    for i in range(body.count):
        name = SEED_NAMES[i % len(SEED_NAMES)]
        req = TransferRequest(
            amount=Decimal(rng.randint(50, 50000)),
            recipient_phone="+2547" + "".join(str(rng.randint(0, 9)) for _ in range(8)),
            sender_name=name,
            sender_email=name.lower().replace(" ", ".") + "@example.com",
        )
        tx = service.initiate_transfer(req)
        for status in SEED_PATHS[i % len(SEED_PATHS)]:
            tx = service.advance(tx.id, status)
        created.append(tx)

    logger.info("Seeded %d demo transactions", len(created))
    return SeedOut(created=created)


@router.post("/reset", response_model=ResetOut)
def reset(request: Request, _: None = Depends(require_admin)):
    canceled = request.app.state.simulator.cancel_all()
    deleted = request.app.state.service.repository.clear()
    logger.warning("Transaction store reset: %d deleted, %d timers canceled", deleted, canceled)
    return ResetOut(deleted=deleted, timers_canceled=canceled)
