# payflow/state_machine.py
"""Transfer lifecycle.

    PENDING_GATEWAY -> GATEWAY_SUCCESSFUL -> PROCESSING_SETTLEMENT -> COMPLETED
                    \\-> CANCELED_GATEWAY                          \\-> FAILED_SETTLEMENT

Terminal records are never touched again. ``advance`` to the status a record
already has is a no-op, so repeated calls are safe.
"""
from __future__ import annotations

import logging
import uuid
from datetime import timedelta
from typing import Dict, FrozenSet, List, Optional

from .errors import InvalidTransition
from .events import EventPublisher, InMemoryEventBus, TransactionEvent
from .models import StatusInfo, Transaction, TransactionStatus, TransferRequest
from .repository import TransactionRepository
from .scheduling import Clock, SystemClock

logger = logging.getLogger(__name__)

INITIAL_STATUS: TransactionStatus = "PENDING_GATEWAY"

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "PENDING_GATEWAY": frozenset({"GATEWAY_SUCCESSFUL", "CANCELED_GATEWAY"}),
    "GATEWAY_SUCCESSFUL": frozenset({"PROCESSING_SETTLEMENT"}),
    "PROCESSING_SETTLEMENT": frozenset({"COMPLETED", "FAILED_SETTLEMENT"}),
    "COMPLETED": frozenset(),
    "FAILED_SETTLEMENT": frozenset(),
    "CANCELED_GATEWAY": frozenset(),
}

STATUS_DETAILS: Dict[str, tuple] = {
    "PENDING_GATEWAY": (
        "Pending Card Payment",
        "Waiting for payment completion via the card gateway.",
    ),
    "GATEWAY_SUCCESSFUL": (
        "Payment Successful",
        "Your card payment was successful. Preparing M-Pesa transfer.",
    ),
    "PROCESSING_SETTLEMENT": (
        "Processing M-Pesa Transfer",
        "Your funds are being transferred to the recipient's M-Pesa account.",
    ),
    "COMPLETED": (
        "Transfer Completed",
        "Funds successfully sent to the recipient's M-Pesa account.",
    ),
    "FAILED_SETTLEMENT": (
        "M-Pesa Transfer Failed",
        "The M-Pesa transfer could not be completed. Please contact support.",
    ),
    "CANCELED_GATEWAY": (
        "Card Payment Canceled",
        "The card payment was canceled or failed.",
    ),
}

# smallest step used to keep updated_at strictly moving forward
_TICK = timedelta(microseconds=1)


def allowed_transitions(status: str) -> FrozenSet[str]:
    return TRANSITIONS[status]


def is_terminal(status: str) -> bool:
    return not TRANSITIONS[status]


def status_catalog() -> List[StatusInfo]:
    return [
        StatusInfo(status=s, label=label, description=desc, terminal=is_terminal(s))
        for s, (label, desc) in STATUS_DETAILS.items()
    ]


def new_settlement_reference() -> str:
    return f"MPESA_{uuid.uuid4().hex[:10].upper()}"


class TransactionService:
    def __init__(
        self,
        repository: TransactionRepository,
        clock: Optional[Clock] = None,
        publisher: Optional[EventPublisher] = None,
    ):
        self.repository = repository
        self.clock = clock or SystemClock()
        self.publisher = publisher or InMemoryEventBus()

    def initiate_transfer(self, req: TransferRequest) -> Transaction:
        now = self.clock.now()
        tx = Transaction(
            id=str(uuid.uuid4()),
            amount=req.amount,
            currency="KES",
            recipient_phone=req.recipient_phone,
            status=INITIAL_STATUS,
            created_at=now,
            updated_at=now,
            sender_name=req.sender_name,
            sender_email=req.sender_email,
        )
        self.repository.upsert(tx)
        logger.info("Transfer %s created: %s KES -> %s", tx.id, tx.amount, tx.recipient_phone)
        self._emit("transaction.created", tx)
        return tx

    def read(self, transaction_id: str) -> Optional[Transaction]:
        return self.repository.get(transaction_id)

    def list(self) -> List[Transaction]:
        return self.repository.list()

    def advance(self, transaction_id: str, new_status: TransactionStatus) -> Optional[Transaction]:
        """Move a transaction to ``new_status``.

        Returns None for an unknown id, raises InvalidTransition for a move
        the lifecycle does not allow.
        """
        tx = self.repository.get(transaction_id)
        if tx is None:
            logger.warning("Transaction not found: %s", transaction_id)
            return None
        if tx.status == new_status:
            return tx
        if new_status not in TRANSITIONS[tx.status]:
            raise InvalidTransition(transaction_id, tx.status, new_status)

        previous = tx.status
        now = self.clock.now()
        if now <= tx.updated_at:
            now = tx.updated_at + _TICK

        changes = {"status": new_status, "updated_at": now}
        if new_status == "COMPLETED":
            changes["mpesa_transaction_id"] = new_settlement_reference()
        updated = tx.model_copy(update=changes)

        self.repository.upsert(updated)
        logger.info("Transaction %s: %s -> %s", transaction_id, previous, new_status)
        self._emit("transaction.status_changed", updated, previous)
        return updated

    def _emit(self, event_type: str, tx: Transaction, previous: Optional[str] = None) -> None:
        self.publisher.publish(
            TransactionEvent(
                event_type=event_type,
                transaction_id=tx.id,
                status=tx.status,
                previous_status=previous,
                occurred_at=tx.updated_at,
            )
        )
