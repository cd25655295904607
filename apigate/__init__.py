"""
Request-time authorization gate for HTTP APIs.

This package provides:
- AuthorizationPipeline: ordered identity -> RBAC -> billing decision
- IdentityVerifier: RS256 bearer-token verification with a claims cache
- EntitlementMapLoader: which method/resource pairs require billing
- LedgerEntitlementResolver / RemoteChargeResolver: billing entitlement backends
- AuthorizationMiddleware: FastAPI enforcement of verdicts
"""

from .billing import EntitlementResolver, LedgerEntitlementResolver
from .cache import VerificationCache
from .config import GateConfig
from .errors import (
    BillingUnavailableError,
    ClaimMissingError,
    ConfigUnavailableError,
    EmailResolutionError,
    GateError,
    InvalidCredentialError,
    LedgerError,
    NoActiveSubscriptionError,
    ScopeMismatchError,
)
from .identity import IdentityVerifier, get_email, get_url_scopes
from .ledger import EntitlementLedger, InMemoryLedger, StripeLedger
from .loader import EntitlementMapLoader, requires_billing
from .middleware import AuthorizationMiddleware
from .models import DenyReason, RequestDescriptor, ScopeDescriptor, UsagePolicy, Verdict
from .rbac import match_rbac
from .remote import RemoteChargeResolver
from .scopes import base_resource, capture_scopes, describe_request
from .service import AuthorizationPipeline, build_pipeline

__all__ = [
    # Pipeline
    "AuthorizationPipeline",
    "build_pipeline",
    "AuthorizationMiddleware",
    "GateConfig",
    # Stages
    "capture_scopes",
    "base_resource",
    "describe_request",
    "match_rbac",
    "EntitlementMapLoader",
    "requires_billing",
    "EntitlementResolver",
    "LedgerEntitlementResolver",
    "RemoteChargeResolver",
    # Collaborators
    "IdentityVerifier",
    "VerificationCache",
    "get_email",
    "get_url_scopes",
    "EntitlementLedger",
    "StripeLedger",
    "InMemoryLedger",
    # Types
    "DenyReason",
    "RequestDescriptor",
    "ScopeDescriptor",
    "UsagePolicy",
    "Verdict",
    # Errors
    "GateError",
    "InvalidCredentialError",
    "ScopeMismatchError",
    "EmailResolutionError",
    "NoActiveSubscriptionError",
    "ConfigUnavailableError",
    "BillingUnavailableError",
    "ClaimMissingError",
    "LedgerError",
]
