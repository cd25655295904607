"""Gate configuration value object, resolved once at startup."""

import os
from typing import Optional

from pydantic import BaseModel, model_validator

from .models import UsagePolicy


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class GateConfig(BaseModel):
    """Configuration consumed by the authorization pipeline."""
    rbac_enabled: bool = False
    billing_enabled: bool = False
    billing_api_key: str = ""
    entitlement_map_location: str = "config/entitlement_map.json"
    identity_audience: str = ""
    identity_issuer: str = ""
    identity_jwks_uri: str = ""
    email_claim_namespace: Optional[str] = None
    billing_charge_url: Optional[str] = None
    usage_policy: UsagePolicy = UsagePolicy.PER_MATCHING_ITEM
    verification_cache_ttl_seconds: int = 300
    redis_url: Optional[str] = None

    @model_validator(mode="after")
    def _check_billing(self) -> "GateConfig":
        if self.billing_enabled and not self.billing_api_key:
            raise ValueError("billing_api_key is required when billing checking is enabled")
        return self

    @property
    def email_namespace(self) -> str:
        """Namespace prefixed to the email claim; defaults to the audience."""
        if self.email_claim_namespace is not None:
            return self.email_claim_namespace
        return self.identity_audience

    @classmethod
    def from_env(cls) -> "GateConfig":
        """Load configuration from environment variables."""
        return cls(
            rbac_enabled=_env_bool("RBAC_VALIDATE"),
            billing_enabled=_env_bool("BILLING_VALIDATE"),
            billing_api_key=os.getenv("BILLING_API_KEY", ""),
            entitlement_map_location=os.getenv("ENTITLEMENT_MAP_PATH", "config/entitlement_map.json"),
            identity_audience=os.getenv("IDENTITY_AUDIENCE", ""),
            identity_issuer=os.getenv("IDENTITY_ISSUER", ""),
            identity_jwks_uri=os.getenv("IDENTITY_JWKS_URI", ""),
            email_claim_namespace=os.getenv("EMAIL_CLAIM_NAMESPACE"),
            billing_charge_url=os.getenv("BILLING_CHARGE_URL") or None,
            usage_policy=UsagePolicy(os.getenv("USAGE_POLICY", UsagePolicy.PER_MATCHING_ITEM.value)),
            verification_cache_ttl_seconds=int(os.getenv("VERIFICATION_CACHE_TTL_SECONDS", "300")),
            redis_url=os.getenv("REDIS_URL") or None,
        )
