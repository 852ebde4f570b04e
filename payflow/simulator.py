# payflow/simulator.py
"""Timer-driven settlement simulation.

One one-shot timer per transaction at a time; each step schedules the next
after it runs. A step whose record disappeared or moved on (manual update,
cancel) ends the chain without retrying.
"""
from __future__ import annotations

import logging
import random
from typing import Dict, List, Optional

from .errors import InvalidTransition
from .models import TransactionStatus
from .scheduling import Scheduler, TaskHandle
from .state_machine import TransactionService

logger = logging.getLogger(__name__)


class SettlementSimulator:
    def __init__(
        self,
        service: TransactionService,
        scheduler: Scheduler,
        rng: Optional[random.Random] = None,
        *,
        gateway_delay: float = 2.0,
        settlement_delay: float = 3.0,
        result_delay: float = 5.0,
        success_rate: float = 0.8,
    ):
        self.service = service
        self.scheduler = scheduler
        self.rng = rng or random.Random()
        self.gateway_delay = gateway_delay
        self.settlement_delay = settlement_delay
        self.result_delay = result_delay
        self.success_rate = success_rate
        self._timers: Dict[str, TaskHandle] = {}

    def start(self, transaction_id: str) -> bool:
        if transaction_id in self._timers:
            logger.info("Settlement simulation already running for %s", transaction_id)
            return False
        self._schedule(transaction_id, self.gateway_delay, self._confirm_gateway)
        return True

    def cancel(self, transaction_id: str) -> bool:
        handle = self._timers.pop(transaction_id, None)
        if handle is None:
            return False
        handle.cancel()
        logger.info("Settlement simulation canceled for %s", transaction_id)
        return True

    def cancel_all(self) -> int:
        ids = list(self._timers)
        for tid in ids:
            self.cancel(tid)
        return len(ids)

    def pending(self) -> List[str]:
        return list(self._timers)

    def settle_outcome(self) -> TransactionStatus:
        return "COMPLETED" if self.rng.random() < self.success_rate else "FAILED_SETTLEMENT"

    # -------------------------------------------------------------------
    # steps
    # -------------------------------------------------------------------

    def _confirm_gateway(self, transaction_id: str) -> None:
        if self._step(transaction_id, "PENDING_GATEWAY", "GATEWAY_SUCCESSFUL"):
            self._schedule(transaction_id, self.settlement_delay, self._begin_settlement)

    def _begin_settlement(self, transaction_id: str) -> None:
        if self._step(transaction_id, "GATEWAY_SUCCESSFUL", "PROCESSING_SETTLEMENT"):
            self._schedule(transaction_id, self.result_delay, self._finish_settlement)

    def _finish_settlement(self, transaction_id: str) -> None:
        self._step(transaction_id, "PROCESSING_SETTLEMENT", self.settle_outcome())

    def _step(self, transaction_id: str, expected: str, new_status: TransactionStatus) -> bool:
        self._timers.pop(transaction_id, None)
        tx = self.service.read(transaction_id)
        if tx is None:
            logger.warning("Simulation stopped, transaction %s is gone", transaction_id)
            return False
        if tx.status != expected:
            logger.info(
                "Simulation stopped for %s: status is %s, expected %s",
                transaction_id, tx.status, expected,
            )
            return False
        try:
            return self.service.advance(transaction_id, new_status) is not None
        except InvalidTransition as e:
            logger.warning("Simulation stopped: %s", e)
            return False

    def _schedule(self, transaction_id: str, delay: float, step) -> None:
        self._timers[transaction_id] = self.scheduler.call_later(
            delay, lambda: step(transaction_id)
        )
