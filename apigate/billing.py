"""
Billing entitlement resolution.

Walks customer -> subscription -> subscription item for the requester's
email and decides whether any active subscription grants the requested
method/resource. Matching metered items are billed one usage unit as part
of the decision.

Enumeration is never short-circuited: every customer, subscription and item
is visited so that entitlement and usage recording behave the same no matter
which subscription the ledger returns first. A ledger failure at any point
aborts the whole decision.
"""

import logging
import time
from typing import Callable, List, Optional, Protocol

from .errors import BillingUnavailableError, LedgerError, NoActiveSubscriptionError
from .ledger import EntitlementLedger
from .models import (
    EntitlementResult,
    RequestDescriptor,
    SubscriptionItem,
    UsageEvent,
    UsagePolicy,
    UsageType,
)
from .scopes import parse_scope

logger = logging.getLogger(__name__)


class EntitlementResolver(Protocol):
    """Resolver contract shared by the ledger and remote-charge backends."""

    def resolve(
        self,
        email: str,
        request: RequestDescriptor,
        timestamp: Optional[int] = None,
    ) -> EntitlementResult:
        """Return on entitlement, raise NoActiveSubscriptionError otherwise."""
        ...


def product_matches_request(product_name: str, request: RequestDescriptor) -> bool:
    scope = parse_scope(product_name)
    return scope is not None and request.matches(scope)


class LedgerEntitlementResolver:
    """Billing entitlement resolver over an EntitlementLedger."""

    def __init__(
        self,
        ledger: EntitlementLedger,
        usage_policy: UsagePolicy = UsagePolicy.PER_MATCHING_ITEM,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.ledger = ledger
        self.usage_policy = UsagePolicy(usage_policy)
        self._clock = clock or time.time

    def resolve(
        self,
        email: str,
        request: RequestDescriptor,
        timestamp: Optional[int] = None,
    ) -> EntitlementResult:
        """
        Resolve billing entitlement for ``email`` on ``request``.

        Args:
            email: Identity key used to look up billing customers
            request: Normalized method/resource of the inbound request
            timestamp: Usage timestamp override (Unix seconds); defaults to now

        Returns:
            EntitlementResult listing usage events recorded by this decision

        Raises:
            NoActiveSubscriptionError: no active subscription item matched
            BillingUnavailableError: the ledger failed mid-enumeration
        """
        try:
            return self._enumerate(email, request, timestamp)
        except LedgerError as e:
            logger.error(
                "Billing ledger failed during entitlement resolution",
                extra={
                    "operation": e.operation,
                    "method": request.method,
                    "resource": request.resource,
                    "error": str(e),
                },
            )
            raise BillingUnavailableError(details={"operation": e.operation}) from e

    def _enumerate(
        self,
        email: str,
        request: RequestDescriptor,
        timestamp: Optional[int],
    ) -> EntitlementResult:
        satisfied = False
        usage_events: List[UsageEvent] = []
        matched_item_ids: List[str] = []

        # an email can map to several customer accounts
        for customer in self.ledger.list_customers_by_email(email):
            for subscription in self.ledger.list_subscriptions(customer.customer_id):
                active = subscription.is_active
                for item in subscription.items:
                    product_name = self.ledger.get_product_name(item.product_id)
                    if not (active and product_matches_request(product_name, request)):
                        continue

                    if item.usage_type == UsageType.METERED.value:
                        event = self._record_usage(item, timestamp, already_recorded=len(usage_events))
                        if event is not None:
                            usage_events.append(event)
                        satisfied = True
                        matched_item_ids.append(item.item_id)
                    elif item.usage_type == UsageType.LICENSED.value:
                        satisfied = True
                        matched_item_ids.append(item.item_id)

        if not satisfied:
            logger.warning(
                "No active subscription grants request",
                extra={"method": request.method, "resource": request.resource},
            )
            raise NoActiveSubscriptionError(
                details={"method": request.method, "resource": request.resource},
            )

        return EntitlementResult(
            usage_events=tuple(usage_events),
            matched_item_ids=tuple(matched_item_ids),
        )

    def _record_usage(
        self,
        item: SubscriptionItem,
        timestamp: Optional[int],
        already_recorded: int,
    ) -> Optional[UsageEvent]:
        if self.usage_policy == UsagePolicy.ONCE_PER_REQUEST and already_recorded:
            return None

        event = UsageEvent(
            subscription_item_id=item.item_id,
            quantity=1,
            timestamp=timestamp if timestamp else int(self._clock()),
        )
        self.ledger.record_usage(event.subscription_item_id, event.quantity, event.timestamp)
        logger.info(
            "Usage recorded",
            extra={
                "subscription_item_id": event.subscription_item_id,
                "quantity": event.quantity,
                "timestamp": event.timestamp,
            },
        )
        return event
