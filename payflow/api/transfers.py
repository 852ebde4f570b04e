# payflow/api/transfers.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool

from ..errors import InvalidTransition
from ..models import StatusInfo, StatusUpdate, Transaction, TransferRequest
from ..simulator import SettlementSimulator
from ..state_machine import TransactionService, status_catalog

router = APIRouter(prefix="/v1/transfers", tags=["transfers"])


def get_service(request: Request) -> TransactionService:
    return request.app.state.service


def get_simulator(request: Request) -> SettlementSimulator:
    return request.app.state.simulator


@router.post("", response_model=Transaction, status_code=201)
async def create_transfer(
    req: TransferRequest,
    request: Request,
    service: TransactionService = Depends(get_service),
    simulator: SettlementSimulator = Depends(get_simulator),
):
    # store and publish may block (sql, kafka); timers need the loop thread
    tx = await run_in_threadpool(service.initiate_transfer, req)
    if request.app.state.settings.simulate_settlement:
        simulator.start(tx.id)
    return tx


@router.get("", response_model=List[Transaction])
def list_transfers(service: TransactionService = Depends(get_service)):
    return service.list()


@router.get("/statuses", response_model=List[StatusInfo])
def list_statuses():
    return status_catalog()


@router.get("/{transaction_id}", response_model=Transaction)
def get_transfer(transaction_id: str, service: TransactionService = Depends(get_service)):
    tx = service.read(transaction_id)
    if tx is None:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return tx


@router.post("/{transaction_id}/status", response_model=Transaction)
def advance_transfer(
    transaction_id: str,
    body: StatusUpdate,
    service: TransactionService = Depends(get_service),
):
    try:
        tx = service.advance(transaction_id, body.status)
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    if tx is None:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return tx


@router.post("/{transaction_id}/cancel-simulation")
def cancel_simulation(
    transaction_id: str,
    service: TransactionService = Depends(get_service),
    simulator: SettlementSimulator = Depends(get_simulator),
):
    if service.read(transaction_id) is None:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return {"canceled": simulator.cancel(transaction_id)}
