"""Card processor adapters.

``SquareCardGateway`` exchanges a one-time card token for a charge through the
Square Payments REST API. ``FakeCardGateway`` mimics Square's sandbox test
nonces so the checkout can be exercised without credentials.
"""

import uuid
from dataclasses import dataclass, field
from typing import Optional, Protocol

import httpx

from storefront.core.logging_config import get_logger
from storefront.errors import PaymentDeclinedError, PaymentGatewayUnavailableError

logger = get_logger(__name__)

SQUARE_BASE_URLS = {
    "sandbox": "https://connect.squareupsandbox.com",
    "production": "https://connect.squareup.com",
}


@dataclass
class ChargeResult:
    payment_id: str
    status: str
    amount_cents: int
    receipt_url: Optional[str] = None
    raw: dict = field(default_factory=dict, repr=False)


class CardGateway(Protocol):
    def charge(
        self,
        source_id: str,
        amount_cents: int,
        idempotency_key: str,
        reference: str,
        buyer_email: Optional[str] = None,
    ) -> ChargeResult:
        """Charge the tokenized card. Raises PaymentDeclinedError or PaymentGatewayUnavailableError."""
        ...


class SquareCardGateway:
    def __init__(
        self,
        access_token: str,
        environment: str = "sandbox",
        location_id: Optional[str] = None,
        api_version: str = "2024-10-17",
        currency: str = "USD",
        timeout: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.access_token = access_token
        self.base_url = SQUARE_BASE_URLS.get(environment, SQUARE_BASE_URLS["sandbox"])
        self.location_id = location_id
        self.api_version = api_version
        self.currency = currency
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
            headers={
                "Authorization": f"Bearer {self.access_token}",
                "Square-Version": self.api_version,
                "Content-Type": "application/json",
            },
        )

    def _resolve_location(self, client: httpx.Client) -> str:
        if self.location_id:
            return self.location_id
        response = client.get("/v2/locations")
        self._raise_for_unavailable(response)
        locations = response.json().get("locations") or []
        if not locations:
            raise PaymentGatewayUnavailableError("No Square location is available for this account")
        self.location_id = locations[0]["id"]
        return self.location_id

    @staticmethod
    def _raise_for_unavailable(response: httpx.Response):
        if response.status_code >= 500 or response.status_code in (401, 403, 429):
            logger.error(
                "Card processor unavailable",
                extra={"extra_fields": {"status_code": response.status_code, "body": response.text[:500]}},
            )
            raise PaymentGatewayUnavailableError(
                f"Card processor returned {response.status_code}; please try again later"
            )

    @staticmethod
    def _decline_message(body: dict) -> str:
        errors = body.get("errors") or []
        if errors:
            first = errors[0]
            return first.get("detail") or first.get("code") or "Card was declined"
        return "Card was declined"

    def charge(
        self,
        source_id: str,
        amount_cents: int,
        idempotency_key: str,
        reference: str,
        buyer_email: Optional[str] = None,
    ) -> ChargeResult:
        try:
            with self._client() as client:
                body = {
                    "source_id": source_id,
                    "idempotency_key": idempotency_key,
                    "amount_money": {"amount": amount_cents, "currency": self.currency},
                    "location_id": self._resolve_location(client),
                    "reference_id": reference,
                    "note": f"Order {reference}",
                }
                if buyer_email:
                    body["buyer_email_address"] = buyer_email
                response = client.post("/v2/payments", json=body)
        except httpx.HTTPError as exc:
            logger.error(
                "Card processor request failed",
                exc_info=True,
                extra={"extra_fields": {"reference": reference}},
            )
            raise PaymentGatewayUnavailableError(f"Card processor unreachable: {exc}") from exc

        self._raise_for_unavailable(response)
        data = response.json() if response.content else {}
        if response.status_code >= 400:
            raise PaymentDeclinedError(self._decline_message(data))

        payment = data.get("payment") or {}
        status = payment.get("status", "")
        if status == "FAILED" or status == "CANCELED":
            raise PaymentDeclinedError(f"Payment {status.lower()}")
        if status not in ("COMPLETED", "APPROVED"):
            raise PaymentGatewayUnavailableError(f"Unexpected payment status {status or 'missing'}")

        return ChargeResult(
            payment_id=payment.get("id", ""),
            status=status,
            amount_cents=(payment.get("amount_money") or {}).get("amount", amount_cents),
            receipt_url=payment.get("receipt_url"),
            raw=payment,
        )


class FakeCardGateway:
    """In-process stand-in for the card processor.

    Any token succeeds except the sandbox decline nonces; ``unavailable=True``
    simulates an outage. Every charge is recorded in ``charges``.
    """

    DECLINED_NONCES = {
        "cnon:card-nonce-declined",
        "cnon:card-nonce-rejected-cvv",
        "cnon:card-nonce-rejected-postalcode",
    }

    def __init__(self, unavailable: bool = False):
        self.unavailable = unavailable
        self.charges: list[dict] = []

    def charge(
        self,
        source_id: str,
        amount_cents: int,
        idempotency_key: str,
        reference: str,
        buyer_email: Optional[str] = None,
    ) -> ChargeResult:
        self.charges.append({
            "source_id": source_id,
            "amount_cents": amount_cents,
            "idempotency_key": idempotency_key,
            "reference": reference,
        })
        if self.unavailable:
            raise PaymentGatewayUnavailableError("Card processor unreachable")
        if source_id in self.DECLINED_NONCES:
            raise PaymentDeclinedError("Card was declined")
        return ChargeResult(
            payment_id=f"fake_{uuid.uuid4().hex[:20]}",
            status="COMPLETED",
            amount_cents=amount_cents,
        )
