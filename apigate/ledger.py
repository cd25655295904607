"""
Entitlement Ledger capability and its Stripe implementation.

The billing resolver only consumes the EntitlementLedger protocol; the
pagination of customers and subscriptions is hidden behind lazy iterators
so the resolver never sees cursors or page sizes.
"""

import logging
from typing import Any, Iterator, Optional, Protocol

import stripe

from .errors import LedgerError
from .models import BillingCustomer, Subscription, SubscriptionItem

logger = logging.getLogger(__name__)


class EntitlementLedger(Protocol):
    """Query/record contract consumed by the billing entitlement resolver."""

    def list_customers_by_email(self, email: str) -> Iterator[BillingCustomer]:
        """Lazily yield every billing customer registered under ``email``."""
        ...

    def list_subscriptions(self, customer_id: str) -> Iterator[Subscription]:
        """Lazily yield every subscription of a customer, items included."""
        ...

    def get_product_name(self, product_id: str) -> str:
        ...

    def record_usage(self, subscription_item_id: str, quantity: int, timestamp: int) -> None:
        ...


def _field(obj: Any, key: str) -> Any:
    # stripe objects are dict subclasses; ``items`` would resolve to dict.items
    if obj is None:
        return None
    try:
        return obj[key]
    except (KeyError, TypeError):
        return getattr(obj, key, None)


def _subscription_item_from_stripe(item: Any) -> SubscriptionItem:
    price = _field(item, "price")
    plan = _field(item, "plan")

    product = _field(price, "product") or _field(plan, "product")
    if isinstance(product, str):
        product_id = product
    else:
        product_id = _field(product, "id") or ""

    usage_type = _field(_field(price, "recurring"), "usage_type") or _field(plan, "usage_type") or ""
    return SubscriptionItem(
        item_id=_field(item, "id"),
        product_id=product_id,
        usage_type=usage_type,
    )


def _subscription_from_stripe(subscription: Any) -> Subscription:
    items = _field(_field(subscription, "items"), "data") or []
    customer = _field(subscription, "customer")
    customer_id = customer if isinstance(customer, str) else _field(customer, "id")
    return Subscription(
        subscription_id=_field(subscription, "id"),
        customer_id=customer_id or "",
        status=str(_field(subscription, "status") or ""),
        items=tuple(_subscription_item_from_stripe(item) for item in items),
    )


class StripeLedger:
    """EntitlementLedger backed by the Stripe API."""

    def __init__(self, secret_key: str, page_size: int = 100):
        if not secret_key:
            raise ValueError("secret_key is required for the Stripe ledger")
        self.secret_key = secret_key
        self.page_size = page_size

    def list_customers_by_email(self, email: str) -> Iterator[BillingCustomer]:
        try:
            customers = stripe.Customer.list(
                email=email,
                limit=self.page_size,
                api_key=self.secret_key,
            )
            for customer in customers.auto_paging_iter():
                yield BillingCustomer(customer_id=customer["id"], email=_field(customer, "email"))
        except stripe.error.StripeError as e:
            logger.error(
                "Stripe customer listing failed",
                extra={"error": str(e), "error_type": type(e).__name__},
            )
            raise LedgerError(f"Stripe customer listing failed: {e}", operation="list_customers") from e

    def list_subscriptions(self, customer_id: str) -> Iterator[Subscription]:
        try:
            subscriptions = stripe.Subscription.list(
                customer=customer_id,
                limit=self.page_size,
                api_key=self.secret_key,
            )
            for subscription in subscriptions.auto_paging_iter():
                yield _subscription_from_stripe(subscription)
        except stripe.error.StripeError as e:
            logger.error(
                "Stripe subscription listing failed",
                extra={"customer_id": customer_id, "error": str(e)},
            )
            raise LedgerError(f"Stripe subscription listing failed: {e}", operation="list_subscriptions") from e

    def get_product_name(self, product_id: str) -> str:
        try:
            product = stripe.Product.retrieve(product_id, api_key=self.secret_key)
        except stripe.error.StripeError as e:
            logger.error(
                "Stripe product lookup failed",
                extra={"product_id": product_id, "error": str(e)},
            )
            raise LedgerError(f"Stripe product lookup failed: {e}", operation="get_product_name") from e
        return str(_field(product, "name") or "")

    def record_usage(self, subscription_item_id: str, quantity: int, timestamp: int) -> None:
        try:
            stripe.SubscriptionItem.create_usage_record(
                subscription_item_id,
                quantity=quantity,
                timestamp=timestamp,
                api_key=self.secret_key,
            )
        except stripe.error.StripeError as e:
            logger.error(
                "Stripe usage record failed",
                extra={"subscription_item_id": subscription_item_id, "error": str(e)},
            )
            raise LedgerError(f"Stripe usage record failed: {e}", operation="record_usage") from e


class InMemoryLedger:
    """
    EntitlementLedger over fixed in-process data.

    Used for local development and tests; records usage into ``usage_records``.
    """

    def __init__(
        self,
        customers: Optional[dict[str, list[BillingCustomer]]] = None,
        subscriptions: Optional[dict[str, list[Subscription]]] = None,
        products: Optional[dict[str, str]] = None,
    ):
        self.customers = customers or {}
        self.subscriptions = subscriptions or {}
        self.products = products or {}
        self.usage_records: list[tuple[str, int, int]] = []

    def list_customers_by_email(self, email: str) -> Iterator[BillingCustomer]:
        yield from self.customers.get(email, [])

    def list_subscriptions(self, customer_id: str) -> Iterator[Subscription]:
        yield from self.subscriptions.get(customer_id, [])

    def get_product_name(self, product_id: str) -> str:
        try:
            return self.products[product_id]
        except KeyError as e:
            raise LedgerError(f"unknown product: {product_id}", operation="get_product_name") from e

    def record_usage(self, subscription_item_id: str, quantity: int, timestamp: int) -> None:
        self.usage_records.append((subscription_item_id, quantity, timestamp))
