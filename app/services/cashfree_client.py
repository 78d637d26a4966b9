import hashlib
import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

import requests

from app.config import Settings
from app.exceptions import GatewayError

logger = logging.getLogger(__name__)

# provider's marker for a captured payment attempt
SETTLED_STATUS = "SUCCESS"

ORDER_ID_LENGTH = 12


def is_settled(payment_status: Optional[str]) -> bool:
    """Translate a provider payment_status into settled / not settled."""
    return payment_status == SETTLED_STATUS


def generate_order_id() -> str:
    unique_id = secrets.token_hex(16)
    return hashlib.sha256(unique_id.encode()).hexdigest()[:ORDER_ID_LENGTH]


def format_expiry(moment: datetime) -> str:
    """ISO-8601 with offset; naive datetimes are taken as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.isoformat(timespec="seconds")


@dataclass(frozen=True)
class GatewayConfig:
    client_id: str
    client_secret: str
    base_url: str = "https://sandbox.cashfree.com/pg"
    api_version: str = "2023-08-01"
    timeout_seconds: float = 20.0
    default_phone: str = "9999999999"

    @classmethod
    def from_settings(cls, settings: Settings) -> "GatewayConfig":
        return cls(
            client_id=settings.cashfree_client_id,
            client_secret=settings.cashfree_client_secret,
            base_url=settings.cashfree_base_url.rstrip("/"),
            api_version=settings.cashfree_api_version,
            timeout_seconds=settings.cashfree_timeout_seconds,
            default_phone=settings.default_customer_phone,
        )


@dataclass
class GatewaySession:
    order_id: str
    payment_session_id: str
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Verification:
    settled: bool
    details: Optional[Dict[str, Any]] = None


class CashfreeClient:
    """Thin wrapper over the Cashfree PG orders API.

    No retries: callers decide whether a failure is user visible. Every
    transport problem or non-2xx answer surfaces as ``GatewayError``.
    """

    def __init__(self, config: GatewayConfig, http: Optional[requests.Session] = None):
        self.config = config
        self.http = http or requests.Session()

    def _headers(self) -> Dict[str, str]:
        return {
            "x-client-id": self.config.client_id,
            "x-client-secret": self.config.client_secret,
            "x-api-version": self.config.api_version,
            "Content-Type": "application/json",
        }

    def _request(self, method: str, path: str, payload: Optional[dict] = None) -> Any:
        url = f"{self.config.base_url}{path}"
        try:
            response = self.http.request(
                method,
                url,
                json=payload,
                headers=self._headers(),
                timeout=self.config.timeout_seconds,
            )
        except requests.RequestException as e:
            logger.error(f"Cashfree {method} {path} transport failure: {e}")
            raise GatewayError(f"Payment gateway unreachable: {e}") from e

        if not response.ok:
            try:
                body = response.json()
            except ValueError:
                body = response.text
            logger.error(f"Cashfree {method} {path} failed: {response.status_code} {body}")
            raise GatewayError(
                "Payment gateway rejected the request",
                status_code=response.status_code,
                body=body,
            )

        try:
            return response.json()
        except ValueError as e:
            raise GatewayError(
                "Payment gateway returned a non-JSON body",
                status_code=response.status_code,
                body=response.text,
            ) from e

    def create_session(
        self,
        *,
        amount: Decimal,
        currency: str,
        user_id: str,
        user_email: str,
        user_name: str,
        document_id: str,
        return_url: str,
        order_id: Optional[str] = None,
        user_phone: Optional[str] = None,
        expires_at: Optional[datetime] = None,
    ) -> GatewaySession:
        order_id = order_id or generate_order_id()

        request = {
            "order_amount": float(amount),
            "order_currency": currency,
            "order_id": order_id,
            "customer_details": {
                "customer_id": str(user_id),
                "customer_phone": user_phone or self.config.default_phone,
                "customer_name": user_name,
                "customer_email": user_email,
            },
            "order_meta": {
                "return_url": return_url,
            },
            "order_tags": {
                "pdf_id": str(document_id),
            },
        }
        if expires_at is not None:
            # provider stops accepting payment once the local order would expire
            request["order_expiry_time"] = format_expiry(expires_at)

        logger.info(f"Creating Cashfree order {order_id} for document {document_id} ({amount} {currency})")
        data = self._request("POST", "/orders", request)

        session_id = data.get("payment_session_id") if isinstance(data, dict) else None
        if not session_id:
            raise GatewayError("Payment gateway returned no payment_session_id", body=data)

        return GatewaySession(order_id=order_id, payment_session_id=session_id, raw=data)

    def verify_session(self, order_id: str) -> Verification:
        """Settled when at least one payment attempt against the order succeeded."""
        logger.info(f"Verifying Cashfree payments for order {order_id}")
        attempts = self._request("GET", f"/orders/{order_id}/payments")

        if not isinstance(attempts, list):
            raise GatewayError("Unexpected payments payload", body=attempts)

        for attempt in attempts:
            if is_settled(attempt.get("payment_status")):
                return Verification(settled=True, details=attempt)

        logger.info(f"No settled payment for order {order_id} ({len(attempts)} attempts)")
        return Verification(settled=False, details=attempts[0] if attempts else None)

    def get_order(self, order_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/orders/{order_id}")
