"""
PayPal order verification (REST, no SDK).

Flow:
1. POST /v1/oauth2/token with client credentials (Basic auth)
2. GET /v2/checkout/orders/{order_id} with the bearer token

Transport failures, timeouts, 5xx and unparseable bodies raise
VerifierError (safe to retry with the same order reference). A 4xx on the
order lookup means PayPal does not know a payable order under that reference
and is returned as a non-completed order.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from ..exceptions import VerifierError
from ..utils.metrics import record_payment_verification

logger = logging.getLogger(__name__)


@dataclass
class PaymentOrder:
    """What the booking flow needs to know about a processor order"""
    order_id: str
    status: str
    payer: Dict[str, Any] = field(default_factory=dict)
    create_time: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    http_status: int = 200

    @property
    def is_completed(self) -> bool:
        return self.status.upper() == "COMPLETED"


class PaymentVerifier(ABC):

    @abstractmethod
    def get_order(self, order_reference: str) -> PaymentOrder:
        """Look up an order; raise VerifierError on transport failure."""


def _extract_amount(order: Dict[str, Any]) -> tuple:
    units = order.get("purchase_units") or []
    if not isinstance(units, list) or not units or not isinstance(units[0], dict):
        return None, None
    amount = units[0].get("amount") or {}
    if not isinstance(amount, dict):
        return None, None
    try:
        value = Decimal(str(amount["value"])) if "value" in amount else None
    except InvalidOperation:
        value = None
    return value, amount.get("currency_code")


class PayPalVerifier(PaymentVerifier):

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        base_url: str = "https://api-m.sandbox.paypal.com",
        token_timeout: float = 20.0,
        order_timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.base_url = base_url.rstrip("/")
        self.token_timeout = token_timeout
        self.order_timeout = order_timeout
        self.transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(base_url=self.base_url, transport=self.transport)

    def _get_access_token(self, client: httpx.Client) -> str:
        if not self.client_id or not self.client_secret:
            raise VerifierError("PayPal credentials are missing (CLIENT_ID / CLIENT_SECRET)")

        try:
            response = client.post(
                "/v1/oauth2/token",
                data={"grant_type": "client_credentials"},
                auth=(self.client_id, self.client_secret),
                headers={"Accept": "application/json"},
                timeout=self.token_timeout,
            )
        except httpx.TimeoutException as e:
            raise VerifierError("Timed out requesting a PayPal access token") from e
        except httpx.HTTPError as e:
            raise VerifierError(f"PayPal token request failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = None
        token = body.get("access_token") if isinstance(body, dict) else None
        if not token:
            logger.error(f"Invalid PayPal token response (HTTP {response.status_code}): {response.text[:300]}")
            raise VerifierError("Invalid PayPal token response")
        return token

    def get_order(self, order_reference: str) -> PaymentOrder:
        start_time = time.perf_counter()
        try:
            order = self._fetch_order(order_reference)
        except VerifierError:
            record_payment_verification("error", time.perf_counter() - start_time)
            raise
        record_payment_verification(
            "completed" if order.is_completed else "not_completed",
            time.perf_counter() - start_time
        )
        return order

    def _fetch_order(self, order_reference: str) -> PaymentOrder:
        with self._client() as client:
            token = self._get_access_token(client)
            try:
                response = client.get(
                    f"/v2/checkout/orders/{quote(order_reference, safe='')}",
                    headers={"Authorization": f"Bearer {token}"},
                    timeout=self.order_timeout,
                )
            except httpx.TimeoutException as e:
                raise VerifierError("Timed out fetching the PayPal order") from e
            except httpx.HTTPError as e:
                raise VerifierError(f"PayPal order request failed: {e}") from e

        logger.info(f"PayPal order {order_reference}: HTTP {response.status_code}")

        if response.status_code >= 500:
            raise VerifierError(
                f"PayPal server error ({response.status_code})",
                details={"status_code": response.status_code}
            )

        if response.status_code != 200:
            logger.warning(f"PayPal order lookup refused: {response.text[:500]}")
            return PaymentOrder(
                order_id=order_reference,
                status="UNVERIFIABLE",
                http_status=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise VerifierError("Invalid PayPal response (JSON)") from e
        if not isinstance(body, dict):
            raise VerifierError("Invalid PayPal response (not an object)")

        amount, currency = _extract_amount(body)
        return PaymentOrder(
            order_id=body.get("id") or order_reference,
            status=str(body.get("status") or "UNKNOWN"),
            payer=body.get("payer") or {},
            create_time=body.get("create_time"),
            amount=amount,
            currency=currency,
        )
