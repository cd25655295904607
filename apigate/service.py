"""
Authorization decision pipeline.

Evaluates, in order, an already-verified identity against:
1. RBAC scopes declared in the credential (when enabled)
2. The entitlement map, to learn whether billing applies (when enabled)
3. Billing entitlement for the requester's email (when required)

The first failing stage ends the decision with DENY and its reason.
Nothing is retried within a decision.
"""

import logging
from typing import Any, Mapping, Optional

from .billing import EntitlementResolver, LedgerEntitlementResolver
from .cache import VerificationCache
from .config import GateConfig
from .errors import (
    ClaimMissingError,
    EmailResolutionError,
    GateError,
    ScopeMismatchError,
)
from .identity import IdentityVerifier, get_email, get_url_scopes
from .ledger import StripeLedger
from .loader import EntitlementMapLoader
from .models import EntitlementResult, RequestDescriptor, Verdict
from .rbac import match_rbac
from .remote import RemoteChargeResolver
from .scopes import describe_request

logger = logging.getLogger(__name__)


class AuthorizationPipeline:
    """Per-request ALLOW/DENY decision over identity, scopes and billing."""

    def __init__(
        self,
        config: GateConfig,
        *,
        entitlement_map: Optional[EntitlementMapLoader] = None,
        resolver: Optional[EntitlementResolver] = None,
        verifier: Optional[IdentityVerifier] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            config: Resolved gate configuration
            entitlement_map: Loader for the entitlement map document
                (defaults to config.entitlement_map_location)
            resolver: Billing entitlement backend; required when billing is enabled
            verifier: Identity verifier; required only for authorize()
        """
        if config.billing_enabled and resolver is None:
            raise ValueError("a billing entitlement resolver is required when billing is enabled")
        self.config = config
        self.entitlement_map = entitlement_map or EntitlementMapLoader(config.entitlement_map_location)
        self.resolver = resolver
        self.verifier = verifier

    def close(self) -> None:
        """Release the resolver's connections (the remote charge backend holds an HTTP client)."""
        close = getattr(self.resolver, "close", None)
        if close is not None:
            close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def authorize(
        self,
        raw_credential: Optional[str],
        method: str,
        path: str,
        timestamp: Optional[int] = None,
    ) -> Verdict:
        """Verify the bearer credential, then evaluate the request."""
        if self.verifier is None:
            raise RuntimeError("authorize() requires an identity verifier")
        try:
            claims = self.verifier.verify(raw_credential or "")
        except GateError as e:
            request = describe_request(method, path)
            return self._deny(e, request.method, request.resource)
        return self.evaluate(claims, method, path, timestamp=timestamp)

    def evaluate(
        self,
        claims: Mapping[str, Any],
        method: str,
        path: str,
        timestamp: Optional[int] = None,
    ) -> Verdict:
        """
        Decide ALLOW or DENY for verified claims on ``method path``.

        Args:
            claims: Verified claim set from the identity verifier
            method: HTTP method of the request
            path: Request path (only the first segment matters)
            timestamp: Usage timestamp override for metered billing

        Returns:
            Verdict with the deny reason, or the usage events on ALLOW
        """
        request = describe_request(method, path)
        try:
            result = self._run_stages(claims, request, timestamp)
        except GateError as e:
            return self._deny(e, request.method, request.resource)

        logger.debug(
            "Request authorized",
            extra={
                "method": request.method,
                "resource": request.resource,
                "usage_events": len(result.usage_events),
            },
        )
        return Verdict.allow(usage_events=result.usage_events)

    def _run_stages(
        self,
        claims: Mapping[str, Any],
        request: RequestDescriptor,
        timestamp: Optional[int],
    ) -> EntitlementResult:
        if self.config.rbac_enabled:
            try:
                scopes = get_url_scopes(claims)
            except ClaimMissingError as e:
                raise ScopeMismatchError(details={"claim": e.claim}) from e
            match_rbac(request, scopes)

        if not self.config.billing_enabled:
            return EntitlementResult()

        if not self.entitlement_map.requires_billing(request):
            return EntitlementResult()

        try:
            email = get_email(claims, self.config.email_namespace)
        except ClaimMissingError as e:
            raise EmailResolutionError(details={"claim": e.claim}) from e

        return self.resolver.resolve(email, request, timestamp=timestamp)

    @staticmethod
    def _deny(error: GateError, method: str, resource: str) -> Verdict:
        logger.warning(
            "Request denied",
            extra={
                "reason": error.code,
                "method": method,
                "resource": resource,
                "details": error.details,
            },
        )
        return Verdict.deny(error.reason)


def build_resolver(config: GateConfig) -> Optional[EntitlementResolver]:
    """Pick the billing backend: remote charge endpoint when configured, else Stripe."""
    if not config.billing_enabled:
        return None
    if config.billing_charge_url:
        return RemoteChargeResolver(config.billing_charge_url, config.billing_api_key)
    return LedgerEntitlementResolver(
        StripeLedger(config.billing_api_key),
        usage_policy=config.usage_policy,
    )


def build_pipeline(config: Optional[GateConfig] = None) -> AuthorizationPipeline:
    """Wire the default collaborators for a configuration (environment if omitted)."""
    config = config or GateConfig.from_env()
    verifier = IdentityVerifier(
        audience=config.identity_audience,
        issuer=config.identity_issuer,
        jwks_uri=config.identity_jwks_uri,
        cache=VerificationCache(
            redis_url=config.redis_url,
            ttl_seconds=config.verification_cache_ttl_seconds,
        ),
    )
    return AuthorizationPipeline(
        config,
        resolver=build_resolver(config),
        verifier=verifier,
    )
