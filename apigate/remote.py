"""
Remote charge backend.

Delegates the billing entitlement decision to a billing service exposing
``POST /charge``. The service performs the ledger walk and usage recording
itself; this client only maps its answer onto the resolver contract.
"""

import logging
from typing import Optional

import httpx

from .errors import BillingUnavailableError, NoActiveSubscriptionError
from .models import EntitlementResult, RequestDescriptor

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"


class RemoteChargeResolver:
    """EntitlementResolver that asks a remote billing service to charge the request."""

    def __init__(
        self,
        charge_url: str,
        api_key: str,
        timeout: float = 10.0,
        http_client: Optional[httpx.Client] = None,
    ):
        """
        Initialize remote charge resolver.

        Args:
            charge_url: Full URL of the charge endpoint
            api_key: Billing API key sent in the X-API-Key header
            timeout: Request timeout in seconds
            http_client: Optional preconfigured httpx client (tests)
        """
        if not charge_url:
            raise ValueError("charge_url is required")
        self.charge_url = charge_url
        self._http_client = http_client or httpx.Client(
            headers={API_KEY_HEADER: api_key},
            timeout=timeout,
        )
        if http_client is not None:
            self._http_client.headers[API_KEY_HEADER] = api_key

    def close(self) -> None:
        """Close the HTTP client."""
        self._http_client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def resolve(
        self,
        email: str,
        request: RequestDescriptor,
        timestamp: Optional[int] = None,
    ) -> EntitlementResult:
        # the remote service owns the usage timestamp
        payload = {
            "serverMethod": request.method,
            "serverBaseURL": request.resource,
            "userEmail": email,
        }

        try:
            response = self._http_client.post(self.charge_url, json=payload)
        except httpx.RequestError as e:
            logger.error(
                "Charge request failed",
                extra={"charge_url": self.charge_url, "error": str(e)},
            )
            raise BillingUnavailableError(details={"charge_url": self.charge_url}) from e

        if response.is_success:
            return EntitlementResult()

        if response.is_client_error:
            logger.warning(
                "Charge rejected",
                extra={
                    "status_code": response.status_code,
                    "method": request.method,
                    "resource": request.resource,
                },
            )
            raise NoActiveSubscriptionError(
                details={"method": request.method, "resource": request.resource},
            )

        logger.error(
            "Charge service error",
            extra={
                "charge_url": self.charge_url,
                "status_code": response.status_code,
                "response": response.text[:500],
            },
        )
        raise BillingUnavailableError(
            details={"charge_url": self.charge_url, "status_code": response.status_code},
        )
