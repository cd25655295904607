"""
Shared pytest fixtures for the authorization gate tests.
"""

import json
import time

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from unittest.mock import Mock

from apigate.ledger import InMemoryLedger
from apigate.models import BillingCustomer, Subscription, SubscriptionItem

AUDIENCE = "https://httpbin.org/"
ISSUER = "https://example.auth0.com/"
EMAIL = "test@example.com"


@pytest.fixture(scope="session")
def rsa_private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def make_token(rsa_private_key):
    """Factory for RS256 tokens signed with the session key."""

    def _make(scope="openid profile email get:users", **overrides):
        now = int(time.time())
        payload = {
            "iss": ISSUER,
            "sub": "github|892404",
            "aud": [AUDIENCE, f"{ISSUER}userinfo"],
            "iat": now,
            "exp": now + 3600,
            "scope": scope,
            f"{AUDIENCE}email": EMAIL,
        }
        payload.update(overrides)
        return jwt.encode(payload, rsa_private_key, algorithm="RS256", headers={"kid": "test-key"})

    return _make


@pytest.fixture
def jwk_client(rsa_private_key):
    """Stand-in for PyJWKClient returning the session public key."""
    client = Mock()
    client.get_signing_key_from_jwt.return_value = Mock(key=rsa_private_key.public_key())
    return client


@pytest.fixture
def entitlement_map_file(tmp_path):
    path = tmp_path / "entitlement_map.json"
    path.write_text(
        json.dumps({"scopes": [{"method": "get", "baseURL": "users"}, {"method": "post", "baseURL": "get"}]}),
        encoding="utf-8",
    )
    return path


def build_ledger(status="active", usage_type="metered", product_name="get:users", subscriptions=1):
    """One customer for EMAIL with ``subscriptions`` identical single-item subscriptions."""
    subs = [
        Subscription(
            subscription_id=f"sub_{i}",
            customer_id="cus_1",
            status=status,
            items=(SubscriptionItem(item_id=f"si_{i}", product_id="prod_1", usage_type=usage_type),),
        )
        for i in range(subscriptions)
    ]
    return InMemoryLedger(
        customers={EMAIL: [BillingCustomer(customer_id="cus_1", email=EMAIL)]},
        subscriptions={"cus_1": subs},
        products={"prod_1": product_name},
    )


@pytest.fixture
def ledger_factory():
    return build_ledger
