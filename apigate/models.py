from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Tuple

ACTIVE_SUBSCRIPTION_STATUSES: FrozenSet[str] = frozenset({"active", "trialing"})


class DenyReason(str, enum.Enum):
    """Why a request was rejected. Values double as machine-readable error codes."""

    INVALID_CREDENTIAL = "INVALID_CREDENTIAL"
    SCOPE_MISMATCH = "SCOPE_MISMATCH"
    EMAIL_RESOLUTION_FAILED = "EMAIL_RESOLUTION_FAILED"
    NO_ACTIVE_SUBSCRIPTION = "NO_ACTIVE_SUBSCRIPTION"
    CONFIG_UNAVAILABLE = "CONFIG_UNAVAILABLE"
    BILLING_UNAVAILABLE = "BILLING_UNAVAILABLE"

    @property
    def message(self) -> str:
        return DENY_MESSAGES[self]


DENY_MESSAGES = {
    DenyReason.INVALID_CREDENTIAL: "Unauthorized - Invalid Token",
    DenyReason.SCOPE_MISMATCH: "Unauthorized - Invalid Scope Permissions",
    DenyReason.EMAIL_RESOLUTION_FAILED: "Unauthorized - Invalid Email Claim",
    DenyReason.NO_ACTIVE_SUBSCRIPTION: "Unauthorized - No Active Subscription to this URL",
    DenyReason.CONFIG_UNAVAILABLE: "Unauthorized - Billing Configuration Unavailable",
    DenyReason.BILLING_UNAVAILABLE: "Unauthorized - Billing Service Unavailable",
}


class UsageType(str, enum.Enum):
    METERED = "metered"
    LICENSED = "licensed"


class UsagePolicy(str, enum.Enum):
    """How many usage events one decision may record."""

    PER_MATCHING_ITEM = "per_item"
    ONCE_PER_REQUEST = "once_per_request"


@dataclass(frozen=True)
class ScopeDescriptor:
    """One ``method:resource`` permission token."""

    method: str
    resource: str

    def __str__(self) -> str:
        return f"{self.method}:{self.resource}"


@dataclass(frozen=True)
class RequestDescriptor:
    """Lowercase HTTP verb and first path segment of an inbound request."""

    method: str
    resource: str

    def matches(self, scope: ScopeDescriptor) -> bool:
        if not self.resource:
            return False
        return scope.method == self.method and scope.resource == self.resource


@dataclass(frozen=True)
class EntitlementRule:
    """A method/resource pair that requires billing entitlement."""

    method: str
    resource: str

    def __post_init__(self) -> None:
        method = self.method.strip().lower()
        resource = self.resource.strip().lower()
        if not method:
            raise ValueError("method is required")
        if not resource:
            raise ValueError("resource is required")
        object.__setattr__(self, "method", method)
        object.__setattr__(self, "resource", resource)


@dataclass(frozen=True)
class EntitlementMap:
    """Parsed entitlement map document."""

    rules: Tuple[EntitlementRule, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "rules", tuple(self.rules))

    def resources_for(self, method: str) -> FrozenSet[str]:
        return frozenset(rule.resource for rule in self.rules if rule.method == method)


@dataclass(frozen=True)
class BillingCustomer:
    customer_id: str
    email: Optional[str] = None


@dataclass(frozen=True)
class SubscriptionItem:
    item_id: str
    product_id: str
    usage_type: str


@dataclass(frozen=True)
class Subscription:
    subscription_id: str
    customer_id: str
    status: str
    items: Tuple[SubscriptionItem, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple(self.items))

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_SUBSCRIPTION_STATUSES


@dataclass(frozen=True)
class UsageEvent:
    subscription_item_id: str
    quantity: int
    timestamp: int


@dataclass(frozen=True)
class EntitlementResult:
    """Outcome of a successful billing entitlement resolution."""

    usage_events: Tuple[UsageEvent, ...] = ()
    matched_item_ids: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "usage_events", tuple(self.usage_events))
        object.__setattr__(self, "matched_item_ids", tuple(self.matched_item_ids))


@dataclass(frozen=True)
class Verdict:
    """Terminal ALLOW/DENY outcome of one authorization decision."""

    allowed: bool
    reason: Optional[DenyReason] = None
    usage_events: Tuple[UsageEvent, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.allowed and self.reason is not None:
            raise ValueError("an allowed verdict cannot carry a deny reason")
        if not self.allowed and self.reason is None:
            raise ValueError("a denied verdict requires a reason")
        object.__setattr__(self, "usage_events", tuple(self.usage_events))

    @classmethod
    def allow(cls, usage_events: Tuple[UsageEvent, ...] = ()) -> "Verdict":
        return cls(allowed=True, usage_events=usage_events)

    @classmethod
    def deny(cls, reason: DenyReason) -> "Verdict":
        return cls(allowed=False, reason=reason)

    @property
    def message(self) -> Optional[str]:
        return self.reason.message if self.reason else None
