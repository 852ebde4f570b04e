# payflow/connector.py
"""Client for the mock gateways, used by the public "pay" flow.

Each call maps the gateway's answer to the page the payer is sent to next.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests

from .config import Settings
from .errors import GatewayError

logger = logging.getLogger(__name__)

SUCCESS_PAGE = "/payment/successful"
FAILURE_PAGE = "/payment/failed"


@dataclass
class PaymentOutcome:
    successful: bool
    redirect: str
    reference: Optional[str] = None
    message: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


class GatewayClient:
    def __init__(self, base_url: str, session: Optional[requests.Session] = None, timeout: float = 15):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings, session: Optional[requests.Session] = None) -> "GatewayClient":
        return cls(settings.gateway_base_url, session=session)

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("Gateway call to %s failed: %s", url, e)
            raise GatewayError(f"gateway unreachable: {e}") from e
        try:
            data = resp.json()
        except ValueError as e:
            raise GatewayError(f"gateway returned non-JSON body (HTTP {resp.status_code})") from e
        if resp.status_code >= 500:
            raise GatewayError(data.get("error") or f"gateway error (HTTP {resp.status_code})")
        return data

    def pay_by_card(self, card_number: str, expiry_month: str, expiry_year: str, cvv: str,
                    amount, currency: str = "KES") -> PaymentOutcome:
        data = self._post("/api/card/authorize-payment", {
            "cardNumber": card_number,
            "expiryMonth": expiry_month,
            "expiryYear": expiry_year,
            "cvv": cvv,
            "amount": amount,
            "currency": currency,
        })
        if data.get("result") == "SUCCESS":
            return PaymentOutcome(True, SUCCESS_PAGE, data["transaction"]["id"], raw=data)
        err = data.get("error")
        message = err.get("explanation") if isinstance(err, dict) else err
        return PaymentOutcome(False, FAILURE_PAGE, message=message, raw=data)

    def pay_by_mpesa(self, phone_number: str, amount, account_reference: str,
                     transaction_desc: str) -> PaymentOutcome:
        data = self._post("/api/mpesa/initiate-payment", {
            "phoneNumber": phone_number,
            "amount": amount,
            "accountReference": account_reference,
            "transactionDesc": transaction_desc,
        })
        if data.get("ResponseCode") == "0":
            return PaymentOutcome(True, SUCCESS_PAGE, data["CheckoutRequestID"],
                                  message=data.get("CustomerMessage"), raw=data)
        return PaymentOutcome(False, FAILURE_PAGE, message=data.get("errorMessage") or data.get("error"), raw=data)

    def confirm_c2b(self, payment_link_id: str, amount, currency: str = "KES") -> PaymentOutcome:
        data = self._post("/api/mpesa/confirm-c2b", {
            "paymentLinkId": payment_link_id,
            "amount": amount,
            "currency": currency,
        })
        if data.get("ResultCode") == "0":
            return PaymentOutcome(True, SUCCESS_PAGE, data["ThirdPartyTransID"],
                                  message=data.get("ResultDesc"), raw=data)
        return PaymentOutcome(False, FAILURE_PAGE, message=data.get("ResultDesc") or data.get("error"), raw=data)
