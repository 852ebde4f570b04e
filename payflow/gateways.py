# payflow/gateways.py
"""Mock payment gateways: card authorization and M-Pesa (STK push, C2B confirm).

Each call validates first, then sleeps for a random latency, then draws an
outcome. Calls are independent: the same input twice gives two draws.

Draw order per call is fixed: one ``rng.random()`` for latency, one for the
outcome (C2B success draws once more for the masked MSISDN).
"""
import asyncio
import logging
import math
import random
import uuid
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

Sleeper = Callable[[float], Awaitable[Any]]
GatewayResponse = Tuple[int, Dict[str, Any]]

CARD_FIELDS = ("cardNumber", "expiryMonth", "expiryYear", "cvv", "amount", "currency")
STK_FIELDS = ("phoneNumber", "amount", "accountReference", "transactionDesc")
C2B_FIELDS = ("paymentLinkId", "amount", "currency")

CARD_DECLINE_RATE = 0.2
STK_FAILURE_RATE = 0.2
C2B_FAILURE_RATE = 0.3

STK_ACCEPTED = "Success. Request accepted for processing"
STK_ERROR_CODE = "500.001.1001"
STK_ERROR_MESSAGE = (
    "Unable to lock subscriber, a transaction is already in process for the current subscriber"
)
C2B_OK_DESC = "The service request is processed successfully."
C2B_FAIL_DESC = "Transaction not found or still processing (simulated)."


def _mock_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12].upper()}"


def _missing(body: Dict[str, Any], fields, *, truthy_amount: bool = False) -> bool:
    for name in fields:
        value = body.get(name)
        if name == "amount" and not truthy_amount:
            if value is None:
                return True
        elif not value:
            return True
    return False


def _to_decimal(value: Any) -> Optional[Decimal]:
    if isinstance(value, bool):
        return None
    try:
        d = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    # must also fit a float, the card payload echoes it as a JSON number
    if not d.is_finite() or not math.isfinite(float(d)):
        return None
    return d


def format_amount(amount: Decimal) -> str:
    return str(amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


class GatewaySimulator:
    def __init__(self, rng: Optional[random.Random] = None, sleep: Optional[Sleeper] = None):
        self.rng = rng or random.Random()
        self.sleep = sleep or asyncio.sleep

    async def _latency(self, low: float, high: float) -> None:
        await self.sleep(low + self.rng.random() * (high - low))

    # -------------------------------------------------------------------
    # Card
    # -------------------------------------------------------------------

    async def authorize_card(self, body: Dict[str, Any]) -> GatewayResponse:
        if _missing(body, CARD_FIELDS):
            return 400, {"error": "Missing required fields: " + ", ".join(CARD_FIELDS)}
        amount = _to_decimal(body["amount"])
        if amount is None:
            return 400, {"error": "amount must be a number"}

        await self._latency(1.0, 2.0)
        last4 = str(body["cardNumber"])[-4:]
        currency = body["currency"]

        if self.rng.random() > CARD_DECLINE_RATE:
            txn_id = _mock_id("TRN_MOCK")
            logger.info("Card payment authorized: card ****%s, %s %s, id=%s", last4, amount, currency, txn_id)
            return 200, {
                "result": "SUCCESS",
                "transaction": {
                    "id": txn_id,
                    "type": "PAYMENT",
                    "amount": float(amount),
                    "currency": currency,
                },
                "response": {"gatewayCode": "APPROVED"},
            }

        explanation = "The transaction was declined by the issuing bank."
        logger.warning("Card payment declined: card ****%s, %s %s", last4, amount, currency)
        return 400, {
            "result": "FAILURE",
            "error": {"cause": "CARD_DECLINED", "explanation": explanation},
            "response": {"gatewayCode": "DECLINED_BY_BANK"},
        }

    # -------------------------------------------------------------------
    # M-Pesa
    # -------------------------------------------------------------------

    async def initiate_stk_push(self, body: Dict[str, Any]) -> GatewayResponse:
        if _missing(body, STK_FIELDS, truthy_amount=True):
            return 400, {"error": "Missing required fields: " + ", ".join(STK_FIELDS)}
        if _to_decimal(body["amount"]) is None:
            return 400, {"error": "amount must be a number"}

        await self._latency(1.0, 2.0)
        phone = body["phoneNumber"]

        if self.rng.random() > STK_FAILURE_RATE:
            merchant_request_id = _mock_id("MOCK_MRID")
            checkout_request_id = _mock_id("MOCK_CKID")
            logger.info(
                "STK push initiated: phone=%s amount=%s ref=%s checkout=%s",
                phone, body["amount"], body["accountReference"], checkout_request_id,
            )
            return 200, {
                "MerchantRequestID": merchant_request_id,
                "CheckoutRequestID": checkout_request_id,
                "ResponseCode": "0",
                "ResponseDescription": STK_ACCEPTED,
                "CustomerMessage": STK_ACCEPTED,
            }

        logger.warning("STK push failed: phone=%s amount=%s: %s", phone, body["amount"], STK_ERROR_MESSAGE)
        return 400, {
            "requestId": _mock_id("MOCK_ERR_REQID"),
            "errorCode": STK_ERROR_CODE,
            "errorMessage": STK_ERROR_MESSAGE,
        }

    async def confirm_c2b(self, body: Dict[str, Any]) -> GatewayResponse:
        if _missing(body, C2B_FIELDS):
            return 400, {"error": "Missing required fields: " + ", ".join(C2B_FIELDS)}
        amount = _to_decimal(body["amount"])
        if amount is None:
            return 400, {"error": "amount must be a number"}

        await self._latency(1.5, 3.0)
        reference = body["paymentLinkId"]

        if self.rng.random() > C2B_FAILURE_RATE:
            txn_id = _mock_id("C2B_MOCK")
            msisdn = f"2547XXXX{int(self.rng.random() * 1000):03d}"
            logger.info("C2B payment confirmed: account=%s amount=%s id=%s", reference, amount, txn_id)
            return 200, {
                "ResultCode": "0",
                "ResultDesc": C2B_OK_DESC,
                "ThirdPartyTransID": txn_id,
                "BillRefNumber": reference,
                "TransAmount": format_amount(amount),
                "MSISDN": msisdn,
            }

        logger.warning("C2B confirmation failed: account=%s amount=%s", reference, amount)
        return 400, {"ResultCode": "1", "ResultDesc": C2B_FAIL_DESC}
