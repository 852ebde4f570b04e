# payflow/models.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

TransactionStatus = Literal[
    "PENDING_GATEWAY",
    "GATEWAY_SUCCESSFUL",
    "PROCESSING_SETTLEMENT",
    "COMPLETED",
    "FAILED_SETTLEMENT",
    "CANCELED_GATEWAY",
]
Currency = Literal["KES"]

KENYAN_PHONE_PATTERN = r"^\+254\d{9}$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
MIN_TRANSFER_AMOUNT = Decimal("50")
# matches the Numeric(12, 2) column
MAX_AMOUNT_DIGITS = 12

# amounts are Decimal internally, plain numbers on the wire
Amount = Annotated[
    Decimal,
    PlainSerializer(lambda v: float(v), return_type=float, when_used="json"),
]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Transaction(CamelModel):
    id: str
    amount: Amount = Field(..., gt=0)
    currency: Currency = "KES"
    recipient_phone: str = Field(..., pattern=KENYAN_PHONE_PATTERN)
    status: TransactionStatus
    created_at: datetime
    updated_at: datetime
    sender_name: Optional[str] = None
    sender_email: Optional[str] = None
    mpesa_transaction_id: Optional[str] = None


class TransferRequest(CamelModel):
    amount: Decimal = Field(..., ge=MIN_TRANSFER_AMOUNT, max_digits=MAX_AMOUNT_DIGITS, decimal_places=2)
    recipient_phone: str = Field(..., pattern=KENYAN_PHONE_PATTERN)
    sender_name: Optional[str] = Field(None, min_length=2, max_length=120)
    sender_email: Optional[str] = Field(None, pattern=EMAIL_PATTERN, max_length=254)


class StatusUpdate(BaseModel):
    status: TransactionStatus


class StatusInfo(BaseModel):
    status: TransactionStatus
    label: str
    description: str
    terminal: bool
