"""
Identity verification for bearer credentials.

Validates RS256 JWTs against the identity provider's JWKS with PyJWT and
exposes typed accessors over the verified claim set.

SECURITY:
- Only RS256 is accepted; audience and issuer are always enforced
- Raw credentials are never logged; cache keys are SHA-256 digests
"""

import logging
from typing import Any, Mapping, Optional, Tuple

import jwt

from .cache import VerificationCache
from .errors import ClaimMissingError, InvalidCredentialError
from .models import ScopeDescriptor
from .scopes import capture_scopes

logger = logging.getLogger(__name__)

ALGORITHMS = ["RS256"]
SCOPE_CLAIM = "scope"
EMAIL_CLAIM_SUFFIX = "email"


class IdentityVerifier:
    """Verifies bearer credentials and returns their claims."""

    def __init__(
        self,
        audience: str,
        issuer: str,
        jwks_uri: str,
        cache: Optional[VerificationCache] = None,
        jwk_client: Optional[jwt.PyJWKClient] = None,
        leeway: int = 0,
    ):
        if not jwks_uri and jwk_client is None:
            raise ValueError("jwks_uri is required")
        self.audience = audience
        self.issuer = issuer
        self.cache = cache
        self.leeway = leeway
        self._jwk_client = jwk_client or jwt.PyJWKClient(jwks_uri)

    def verify(self, raw_credential: str) -> dict:
        """
        Verify a raw bearer token and return its claims.

        Served from the verification cache when the same token was verified
        before and has not expired.

        Raises:
            InvalidCredentialError: token missing, malformed, expired or not
                signed by the configured key set for this audience/issuer
        """
        if not raw_credential:
            raise InvalidCredentialError(details={"error": "missing credential"})

        if self.cache is not None:
            cached = self.cache.get(raw_credential)
            if cached is not None:
                return cached

        try:
            signing_key = self._jwk_client.get_signing_key_from_jwt(raw_credential)
            claims = jwt.decode(
                raw_credential,
                signing_key.key,
                algorithms=ALGORITHMS,
                audience=self.audience,
                issuer=self.issuer,
                leeway=self.leeway,
            )
        except jwt.ExpiredSignatureError as e:
            logger.warning("Bearer token expired")
            raise InvalidCredentialError(details={"error": "token expired"}) from e
        except jwt.PyJWKClientError as e:
            logger.warning("Signing key lookup failed", extra={"error": str(e)})
            raise InvalidCredentialError(details={"error": "signing key unavailable"}) from e
        except jwt.InvalidTokenError as e:
            logger.warning(
                "Bearer token validation failed",
                extra={"error_type": type(e).__name__, "error": str(e)},
            )
            raise InvalidCredentialError(details={"error": "invalid token"}) from e

        if self.cache is not None:
            self.cache.set(raw_credential, claims)
        return claims


def get_url_scopes(claims: Mapping[str, Any]) -> Tuple[ScopeDescriptor, ...]:
    """Return the ``method:resource`` scopes declared in the claim set."""
    scope_claim = claims.get(SCOPE_CLAIM)
    if not isinstance(scope_claim, str):
        raise ClaimMissingError(SCOPE_CLAIM)
    return capture_scopes(scope_claim)


def get_email(claims: Mapping[str, Any], namespace: str) -> str:
    """Read the provider-namespaced email claim (``<namespace>email``)."""
    key = f"{namespace}{EMAIL_CLAIM_SUFFIX}"
    value = claims.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ClaimMissingError(key)
    return value.strip()


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
