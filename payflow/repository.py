# payflow/repository.py
"""Transaction stores.

Both stores are last-write-wins on the same id: ``upsert`` replaces the whole
record without any version check.
"""
from __future__ import annotations

import itertools
from datetime import timezone
from typing import Dict, List, Optional, Protocol

from sqlalchemy import delete, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .db import Base, TransactionRow
from .models import Transaction


class TransactionRepository(Protocol):
    def get(self, transaction_id: str) -> Optional[Transaction]: ...

    def list(self) -> List[Transaction]: ...

    def upsert(self, transaction: Transaction) -> Transaction: ...

    def clear(self) -> int: ...


class InMemoryTransactionRepository:
    def __init__(self) -> None:
        self._items: Dict[str, Transaction] = {}
        self._order: Dict[str, int] = {}
        self._seq = itertools.count()

    def get(self, transaction_id: str) -> Optional[Transaction]:
        tx = self._items.get(transaction_id)
        return tx.model_copy() if tx is not None else None

    def list(self) -> List[Transaction]:
        items = sorted(
            self._items.values(),
            key=lambda t: (t.created_at, self._order[t.id]),
            reverse=True,
        )
        return [t.model_copy() for t in items]

    def upsert(self, transaction: Transaction) -> Transaction:
        if transaction.id not in self._order:
            self._order[transaction.id] = next(self._seq)
        self._items[transaction.id] = transaction.model_copy()
        return transaction

    def clear(self) -> int:
        n = len(self._items)
        self._items.clear()
        self._order.clear()
        return n


def _to_model(row: TransactionRow) -> Transaction:
    created, updated = row.created_at, row.updated_at
    # sqlite drops tzinfo on the way back
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    if updated.tzinfo is None:
        updated = updated.replace(tzinfo=timezone.utc)
    return Transaction(
        id=row.id,
        amount=row.amount,
        currency=row.currency,
        recipient_phone=row.recipient_phone,
        status=row.status,
        created_at=created,
        updated_at=updated,
        sender_name=row.sender_name,
        sender_email=row.sender_email,
        mpesa_transaction_id=row.mpesa_transaction_id,
    )


class SqlTransactionRepository:
    """SQLAlchemy-backed store; creates the schema on construction."""

    def __init__(self, engine: Engine):
        self.engine = engine
        Base.metadata.create_all(engine)
        self._session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    def get(self, transaction_id: str) -> Optional[Transaction]:
        with self._session() as s:
            row = s.get(TransactionRow, transaction_id)
            return _to_model(row) if row else None

    def list(self) -> List[Transaction]:
        with self._session() as s:
            rows = s.scalars(
                select(TransactionRow).order_by(
                    TransactionRow.created_at.desc(), TransactionRow.seq.desc()
                )
            ).all()
            return [_to_model(r) for r in rows]

    def upsert(self, transaction: Transaction) -> Transaction:
        with self._session.begin() as s:
            row = s.get(TransactionRow, transaction.id)
            if row is None:
                row = TransactionRow(id=transaction.id, seq=self._next_seq(s))
                s.add(row)
            row.amount = transaction.amount
            row.currency = transaction.currency
            row.recipient_phone = transaction.recipient_phone
            row.status = transaction.status
            row.created_at = transaction.created_at
            row.updated_at = transaction.updated_at
            row.sender_name = transaction.sender_name
            row.sender_email = transaction.sender_email
            row.mpesa_transaction_id = transaction.mpesa_transaction_id
        return transaction

    def clear(self) -> int:
        with self._session.begin() as s:
            res = s.execute(delete(TransactionRow))
            return res.rowcount or 0

    @staticmethod
    def _next_seq(s: Session) -> int:
        current = s.scalar(select(func.max(TransactionRow.seq)))
        return (current or 0) + 1
