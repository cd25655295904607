"""
Error hierarchy for the authorization gate.

Every denial raised inside a stage is a GateError carrying the DenyReason
the pipeline reports. Backend failures (ledger SDK, charge endpoint,
key set fetch) are wrapped before they leave the collaborator.
"""

from typing import Any, Optional

from .models import DenyReason


class GateError(Exception):
    """Base for failures that terminate a decision with DENY."""

    reason: DenyReason = DenyReason.INVALID_CREDENTIAL

    def __init__(self, message: Optional[str] = None, details: Optional[dict[str, Any]] = None):
        self.message = message or self.reason.message
        self.details = details or {}
        super().__init__(self.message)

    @property
    def code(self) -> str:
        return self.reason.value


class InvalidCredentialError(GateError):
    """Bearer credential missing, malformed or failed verification."""

    reason = DenyReason.INVALID_CREDENTIAL


class ScopeMismatchError(GateError):
    reason = DenyReason.SCOPE_MISMATCH


class EmailResolutionError(GateError):
    reason = DenyReason.EMAIL_RESOLUTION_FAILED


class NoActiveSubscriptionError(GateError):
    reason = DenyReason.NO_ACTIVE_SUBSCRIPTION


class ConfigUnavailableError(GateError):
    """Entitlement map document missing or unreadable (operator misconfiguration)."""

    reason = DenyReason.CONFIG_UNAVAILABLE


class BillingUnavailableError(GateError):
    """The billing backend failed while resolving entitlement."""

    reason = DenyReason.BILLING_UNAVAILABLE


class ClaimMissingError(Exception):
    """A required claim is absent or empty."""

    def __init__(self, claim: str):
        self.claim = claim
        super().__init__(f"claim '{claim}' is missing or empty")


class LedgerError(Exception):
    """Raised by Entitlement Ledger backends when a query or write fails."""

    def __init__(self, message: str, operation: Optional[str] = None):
        self.operation = operation
        super().__init__(message)
