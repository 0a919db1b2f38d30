# appointly/services/payments.py
"""
Stripe Checkout for prepaid bookings.

Only session creation lives here; confirming payment (webhooks) is handled
elsewhere. Talks to the REST API directly with httpx.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

import httpx

from appointly.core.config import settings
from appointly.core.errors import UpstreamError
from appointly.core.logging import get_logger

logger = get_logger(__name__)

# Currencies Stripe charges in whole units.
ZERO_DECIMAL_CURRENCIES = frozenset({"bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga",
                                     "pyg", "rwf", "ugx", "vnd", "vuv", "xaf", "xof", "xpf"})


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    url: str


def to_minor_units(amount: Decimal, currency: str) -> int:
    if currency.lower() in ZERO_DECIMAL_CURRENCIES:
        return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentGateway:
    def __init__(
        self,
        secret_key: Optional[str] = None,
        *,
        api_base: Optional[str] = None,
        success_url: Optional[str] = None,
        cancel_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secret_key = secret_key
        self.api_base = api_base or settings.STRIPE_API_BASE
        self.success_url = success_url or settings.PAYMENT_SUCCESS_URL
        self.cancel_url = cancel_url or settings.PAYMENT_CANCEL_URL
        self.timeout = timeout or settings.PAYMENT_TIMEOUT_SECONDS
        self.transport = transport

    @classmethod
    def from_settings(cls) -> "PaymentGateway":
        return cls(settings.STRIPE_SECRET_KEY)

    @property
    def enabled(self) -> bool:
        return bool(self.secret_key)

    async def create_checkout(
        self,
        *,
        tenant_id: int,
        appointment_id: int,
        amount: Decimal,
        currency: str,
        description: str,
        customer_email: Optional[str] = None,
    ) -> CheckoutSession:
        """Create a Checkout Session. Raises UpstreamError on any failure."""
        if not self.enabled:
            raise UpstreamError("Online payments are not configured")

        form = {
            "mode": "payment",
            "success_url": self.success_url,
            "cancel_url": self.cancel_url,
            "client_reference_id": str(appointment_id),
            "line_items[0][quantity]": "1",
            "line_items[0][price_data][currency]": currency.lower(),
            "line_items[0][price_data][unit_amount]": str(to_minor_units(amount, currency)),
            "line_items[0][price_data][product_data][name]": description,
            "metadata[tenant_id]": str(tenant_id),
            "metadata[appointment_id]": str(appointment_id),
        }
        if customer_email:
            form["customer_email"] = customer_email

        headers = {"Authorization": f"Bearer {self.secret_key}"}
        try:
            async with httpx.AsyncClient(
                base_url=self.api_base, timeout=self.timeout, transport=self.transport
            ) as client:
                resp = await client.post("/v1/checkout/sessions", data=form, headers=headers)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "payment_session_rejected",
                appointment_id=appointment_id,
                status=e.response.status_code,
                body=e.response.text,
            )
            raise UpstreamError("Payment provider rejected the request")
        except (httpx.HTTPError, ValueError) as e:
            logger.error("payment_session_failed", appointment_id=appointment_id, error=str(e))
            raise UpstreamError("Payment provider is unavailable")

        if not data.get("id") or not data.get("url"):
            raise UpstreamError("Payment provider returned an incomplete session")

        logger.info("payment_session_created", appointment_id=appointment_id, session_id=data["id"])
        return CheckoutSession(id=data["id"], url=data["url"])
