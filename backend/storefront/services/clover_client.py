# Overview: HTTP clients for Clover; inventory REST API, ecommerce charges/refunds, and hosted checkout.

"""
Clover API clients

WHY: Clover is the source of truth for product price and stock, and the
card processor for delivery orders. These classes are thin, synchronous
httpx wrappers; they know URLs, auth headers and payload shapes, and
nothing about the local database.

ERRORS:
- CloverAPIError: inventory/hosted-checkout request failed (non-2xx or transport)
- PaymentGatewayError: a charge or refund could not be completed; carries
  the gateway's own message when one is returned. Timeouts are failures.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass
from decimal import Decimal

import httpx
from flask import current_app

from ..money import from_cents


logger = logging.getLogger(__name__)


INVENTORY_PAGE_SIZE = 1000
PLACEHOLDER_IMAGE = "/placeholder-product.png"
DEFAULT_CATEGORY = "Uncategorized"

ECOMM_BASE_SANDBOX = "https://scl-sandbox.dev.clover.com"
ECOMM_BASE_PRODUCTION = "https://scl.clover.com"
CHECKOUT_BASE_SANDBOX = "https://apisandbox.dev.clover.com"
CHECKOUT_BASE_PRODUCTION = "https://api.clover.com"


class CloverAPIError(Exception):
    """Raised when a Clover REST call fails."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PaymentGatewayError(Exception):
    """Raised when a charge or refund fails at the gateway."""

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.code = code


def _build_http_client(timeout: float, transport: httpx.BaseTransport | None = None) -> httpx.Client:
    return httpx.Client(timeout=httpx.Timeout(timeout, connect=min(timeout, 10.0)), transport=transport)


def _is_production(environment: str | None) -> bool:
    return (environment or "").lower() == "production"


# =============================================================================
# INVENTORY
# =============================================================================

@dataclass(frozen=True)
class CloverProduct:
    """A Clover item mapped onto local product fields (POS-owned fields only)."""
    clover_item_id: str
    name: str
    price: Decimal
    image: str
    description: str
    category: str
    stock_quantity: int

    def pos_fields(self) -> dict:
        return {
            "name": self.name,
            "price": self.price,
            "image": self.image,
            "description": self.description,
            "category": self.category,
            "stock_quantity": self.stock_quantity,
        }


def _first_element(container) -> dict | None:
    if not isinstance(container, dict):
        return None
    elements = container.get("elements") or []
    return elements[0] if elements else None


def is_sellable_item(item: dict) -> bool:
    return not item.get("hidden", False) and item.get("available", True) is not False


def transform_item(item: dict) -> CloverProduct:
    """
    Map a Clover item payload to local fields.

    Prices arrive in cents (1999 -> Decimal("19.99")). New products are
    created disabled; the sync engine decides that, not this function.
    """
    category = _first_element(item.get("categories"))
    image = _first_element(item.get("images"))
    stock = item.get("itemStock") or {}
    quantity = stock.get("quantity") or 0

    return CloverProduct(
        clover_item_id=str(item["id"]),
        name=item.get("name") or "",
        price=from_cents(item.get("price") or 0),
        image=(image or {}).get("url") or PLACEHOLDER_IMAGE,
        description=item.get("alternateName") or item.get("name") or "",
        category=(category or {}).get("name") or DEFAULT_CATEGORY,
        stock_quantity=max(int(quantity), 0),
    )


class CloverInventoryClient:
    def __init__(self, api_base: str, api_token: str, merchant_id: str,
                 timeout: float = 30.0, transport: httpx.BaseTransport | None = None):
        self.api_base = api_base.rstrip("/")
        self.api_token = api_token
        self.merchant_id = merchant_id
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_config(cls, transport: httpx.BaseTransport | None = None) -> "CloverInventoryClient":
        config = current_app.config
        return cls(
            api_base=config["CLOVER_API_BASE"],
            api_token=config["CLOVER_API_TOKEN"],
            merchant_id=config["CLOVER_MERCHANT_ID"],
            timeout=config["HTTP_TIMEOUT_SECONDS"],
            transport=transport,
        )

    def is_configured(self) -> bool:
        return bool(self.api_token and self.merchant_id)

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.api_token}", "Accept": "application/json"}

    def _unauthorized_message(self) -> str:
        return (
            "Clover API authentication failed (401 Unauthorized). Please verify:\n"
            "1. Your API token is valid and not expired\n"
            "2. You're using the correct environment (sandbox vs production)\n"
            "3. The token has 'Read Inventory' permissions\n"
            f"API Base: {self.api_base}\n"
            f"Merchant ID: {self.merchant_id}"
        )

    def list_items(self, client: httpx.Client, offset: int, limit: int = INVENTORY_PAGE_SIZE) -> list[dict]:
        url = f"{self.api_base}/v3/merchants/{self.merchant_id}/items"
        params = {"expand": "itemStock,categories,images", "limit": limit, "offset": offset}
        try:
            response = client.get(url, params=params, headers=self._headers())
        except httpx.HTTPError as exc:
            logger.error("[Clover] Inventory request failed at offset %d: %s", offset, exc)
            raise CloverAPIError(f"Clover API request failed: {exc}")

        if response.status_code == 401:
            logger.error("[Clover] 401 from %s (merchant %s)", url, self.merchant_id)
            raise CloverAPIError(self._unauthorized_message(), status_code=401)
        if not response.is_success:
            logger.error("[Clover] API error (%d): %s", response.status_code, response.text)
            raise CloverAPIError(
                f"Clover API request failed: {response.status_code} {response.reason_phrase} - {response.text}",
                status_code=response.status_code,
            )

        return response.json().get("elements") or []

    def fetch_inventory_items(self) -> list[dict]:
        """Every item across all pages; stops at the first short page."""
        if not self.is_configured():
            raise CloverAPIError("Clover API credentials are not configured")

        items: list[dict] = []
        offset = 0
        with _build_http_client(self.timeout, self.transport) as client:
            while True:
                page = self.list_items(client, offset)
                logger.info("[Clover] Fetched %d items at offset %d", len(page), offset)
                items.extend(page)
                if len(page) < INVENTORY_PAGE_SIZE:
                    break
                offset += INVENTORY_PAGE_SIZE

        logger.info("[Clover] Fetched %d total items", len(items))
        return items

    def get_transformed_inventory(self) -> list[CloverProduct]:
        return [transform_item(item) for item in self.fetch_inventory_items() if is_sellable_item(item)]


# =============================================================================
# PAYMENTS (ecommerce charges / refunds)
# =============================================================================

@dataclass(frozen=True)
class ChargeResult:
    id: str
    status: str
    amount_cents: int
    last4: str | None = None
    brand: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"


@dataclass(frozen=True)
class RefundResult:
    id: str
    status: str | None = None


class CloverPaymentClient:
    def __init__(self, private_token: str, environment: str = "sandbox",
                 timeout: float = 30.0, transport: httpx.BaseTransport | None = None):
        self.private_token = private_token
        self.base_url = ECOMM_BASE_PRODUCTION if _is_production(environment) else ECOMM_BASE_SANDBOX
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_config(cls, transport: httpx.BaseTransport | None = None) -> "CloverPaymentClient":
        config = current_app.config
        return cls(
            private_token=config["CLOVER_ECOMM_PRIVATE_TOKEN"],
            environment=config["CLOVER_ENVIRONMENT"],
            timeout=config["HTTP_TIMEOUT_SECONDS"],
            transport=transport,
        )

    def is_configured(self) -> bool:
        return bool(self.private_token)

    def _request(self, method: str, path: str, payload: dict | None = None) -> dict:
        if not self.is_configured():
            raise PaymentGatewayError("Clover payment service is not configured")

        headers = {
            "Authorization": f"Bearer {self.private_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        try:
            with _build_http_client(self.timeout, self.transport) as client:
                response = client.request(method, f"{self.base_url}{path}", json=payload, headers=headers)
        except httpx.TimeoutException:
            logger.error("[Clover Payments] %s %s timed out", method, path)
            raise PaymentGatewayError("Payment gateway timed out", code="timeout")
        except httpx.HTTPError as exc:
            logger.error("[Clover Payments] %s %s failed: %s", method, path, exc)
            raise PaymentGatewayError(f"Payment gateway request failed: {exc}")

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if not response.is_success:
            error = data.get("error") if isinstance(data.get("error"), dict) else {}
            message = error.get("message") or data.get("message")
            code = error.get("code")
            logger.error("[Clover Payments] %s %s -> %d: %s", method, path, response.status_code, data)
            raise PaymentGatewayError(message or f"Payment request failed ({response.status_code})", code=code)
        return data

    def charge(self, source: str, amount_cents: int, currency: str = "usd",
               description: str | None = None, external_ref: str | None = None) -> ChargeResult:
        payload = {"source": source, "amount": int(amount_cents), "currency": currency}
        if description:
            payload["description"] = description
        if external_ref:
            payload["external_reference_id"] = external_ref

        data = self._request("POST", "/v1/charges", payload)
        source_info = data.get("source") or {}
        return ChargeResult(
            id=data.get("id", ""),
            status=data.get("status", ""),
            amount_cents=int(data.get("amount") or 0),
            last4=source_info.get("last4"),
            brand=source_info.get("brand"),
        )

    def refund(self, charge_id: str, amount_cents: int | None = None) -> RefundResult:
        payload = {"charge": charge_id}
        if amount_cents is not None:
            payload["amount"] = int(amount_cents)
        data = self._request("POST", "/v1/refunds", payload)
        return RefundResult(id=data.get("id", ""), status=data.get("status"))

    def get_charge(self, charge_id: str) -> dict:
        return self._request("GET", f"/v1/charges/{charge_id}")


# =============================================================================
# HOSTED CHECKOUT
# =============================================================================

@dataclass(frozen=True)
class CheckoutSession:
    checkout_session_id: str
    href: str


CHECKOUT_PAID_STATUSES = {"PAID", "APPROVED"}
CHECKOUT_FAILED_STATUSES = {"DECLINED", "FAILED", "EXPIRED", "CANCELLED", "CANCELED"}


@dataclass(frozen=True)
class CheckoutStatus:
    status: str
    payment_id: str | None = None

    @property
    def paid(self) -> bool:
        return self.status in CHECKOUT_PAID_STATUSES

    @property
    def failed(self) -> bool:
        return self.status in CHECKOUT_FAILED_STATUSES


class CloverHostedCheckoutClient:
    def __init__(self, private_token: str, merchant_id: str, webhook_secret: str,
                 environment: str = "sandbox", public_base_url: str = "http://localhost:5000",
                 timeout: float = 30.0, transport: httpx.BaseTransport | None = None):
        self.private_token = private_token
        self.merchant_id = merchant_id
        self.webhook_secret = webhook_secret
        self.base_url = CHECKOUT_BASE_PRODUCTION if _is_production(environment) else CHECKOUT_BASE_SANDBOX
        self.public_base_url = public_base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_config(cls, transport: httpx.BaseTransport | None = None) -> "CloverHostedCheckoutClient":
        config = current_app.config
        return cls(
            private_token=config["CLOVER_HOSTED_CHECKOUT_TOKEN"],
            merchant_id=config["CLOVER_MERCHANT_ID"],
            webhook_secret=config["CLOVER_WEBHOOK_SECRET"],
            environment=config["CLOVER_ENVIRONMENT"],
            public_base_url=config["PUBLIC_BASE_URL"],
            timeout=config["HTTP_TIMEOUT_SECONDS"],
            transport=transport,
        )

    def is_configured(self) -> bool:
        return bool(self.private_token and self.merchant_id)

    def create_checkout_session(self, customer: dict, line_items: list[dict],
                                external_ref: str | None = None) -> CheckoutSession:
        """
        line_items: [{"name", "price" (cents), "unitQty"}]; customer: email/firstName/lastName/phoneNumber.
        """
        if not self.is_configured():
            raise CloverAPIError("Clover Hosted Checkout is not configured. Missing token or merchant ID.")

        payload = {
            "customer": customer,
            "shoppingCart": {"lineItems": line_items},
            "redirectUrls": {
                "success": f"{self.public_base_url}/delivery/order-success?session={{checkoutSessionId}}",
                "failure": f"{self.public_base_url}/delivery/checkout?error=payment_failed",
                "cancel": f"{self.public_base_url}/delivery/checkout?error=cancelled",
            },
        }
        if external_ref:
            payload["externalReferenceId"] = external_ref

        try:
            with _build_http_client(self.timeout, self.transport) as client:
                response = client.post(f"{self.base_url}/invoicingcheckoutservice/v1/checkouts",
                                       json=payload, headers=self._headers())
        except httpx.HTTPError as exc:
            logger.error("[Clover Hosted Checkout] Request failed: %s", exc)
            raise CloverAPIError(f"Checkout creation failed: {exc}")

        data = response.json() if response.content else {}
        if not response.is_success:
            message = data.get("message") or (data.get("error") or {}).get("message")
            logger.error("[Clover Hosted Checkout] Error %d: %s", response.status_code, data)
            raise CloverAPIError(message or f"Checkout creation failed: {response.status_code}",
                                 status_code=response.status_code)

        return CheckoutSession(checkout_session_id=data["checkoutSessionId"], href=data["href"])

    def get_checkout_status(self, checkout_session_id: str) -> CheckoutStatus:
        """Ask Clover what happened to a hosted checkout session."""
        if not self.is_configured():
            raise CloverAPIError("Clover Hosted Checkout is not configured. Missing token or merchant ID.")
        try:
            with _build_http_client(self.timeout, self.transport) as client:
                response = client.get(
                    f"{self.base_url}/invoicingcheckoutservice/v1/checkouts/{checkout_session_id}",
                    headers=self._headers(),
                )
        except httpx.HTTPError as exc:
            logger.error("[Clover Hosted Checkout] Status lookup failed: %s", exc)
            raise CloverAPIError(f"Checkout status lookup failed: {exc}")

        data = response.json() if response.content else {}
        if not response.is_success:
            logger.error("[Clover Hosted Checkout] Status error %d: %s", response.status_code, data)
            raise CloverAPIError(f"Checkout status lookup failed: {response.status_code}",
                                 status_code=response.status_code)

        payments = data.get("payments") or []
        payment_id = data.get("paymentId") or (payments[0].get("id") if payments else None)
        return CheckoutStatus(status=str(data.get("status") or "").upper(), payment_id=payment_id)

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.private_token}",
            "X-Clover-Merchant-Id": self.merchant_id,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def verify_webhook_signature(self, signature_header: str | None, raw_body: str) -> bool:
        """
        Verify a "t=<timestamp>,v1=<hex hmac>" header over "<timestamp>.<body>".

        Without a configured secret nothing verifies.
        """
        if not self.webhook_secret or not signature_header:
            return False
        parts = dict(
            part.strip().split("=", 1) for part in signature_header.split(",") if "=" in part
        )
        timestamp = parts.get("t")
        signature = parts.get("v1")
        if not timestamp or not signature:
            return False
        expected = hmac.new(
            self.webhook_secret.encode("utf-8"),
            f"{timestamp}.{raw_body}".encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()
        return hmac.compare_digest(expected, signature)
