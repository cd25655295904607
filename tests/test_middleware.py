"""
Tests for the FastAPI authorization middleware.

CRITICAL: denied requests must never reach the route handler.
"""

from contextlib import asynccontextmanager
from unittest.mock import MagicMock, Mock

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from apigate.config import GateConfig
from apigate.errors import InvalidCredentialError
from apigate.middleware import AuthorizationMiddleware
from apigate.models import DenyReason, Verdict
from apigate.remote import RemoteChargeResolver
from apigate.service import AuthorizationPipeline


def _app(pipeline):
    app = FastAPI()
    app.state.handled = []
    app.add_middleware(AuthorizationMiddleware, pipeline=pipeline)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/users/{user_id}")
    async def get_user(user_id: str, request: Request):
        app.state.handled.append(user_id)
        return {"id": user_id, "allowed": request.state.verdict.allowed}

    return app


def _pipeline(verdict):
    pipeline = Mock(spec=AuthorizationPipeline)
    pipeline.authorize.return_value = verdict
    return pipeline


class TestAuthorizationMiddleware:

    def test_allowed_request_reaches_handler(self):
        pipeline = _pipeline(Verdict.allow())
        app = _app(pipeline)

        response = TestClient(app).get("/users/12", headers={"Authorization": "Bearer abc"})

        assert response.status_code == 200
        assert response.json() == {"id": "12", "allowed": True}
        pipeline.authorize.assert_called_once_with("abc", "GET", "/users/12")

    @pytest.mark.parametrize("reason", list(DenyReason))
    def test_denied_request_rejected(self, reason):
        app = _app(_pipeline(Verdict.deny(reason)))

        response = TestClient(app).get("/users/12", headers={"Authorization": "Bearer abc"})

        assert response.status_code == 401
        assert response.json()["error"] == {
            "code": reason.value,
            "message": reason.message,
            "details": {},
        }
        assert app.state.handled == []

    def test_missing_header_goes_through_verifier(self):
        verifier = Mock()
        verifier.verify.side_effect = InvalidCredentialError()
        pipeline = AuthorizationPipeline(GateConfig(), verifier=verifier)
        app = _app(pipeline)

        response = TestClient(app).get("/users/12")

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Unauthorized - Invalid Token"
        verifier.verify.assert_called_once_with("")

    def test_exempt_path_skips_gate(self):
        pipeline = _pipeline(Verdict.deny(DenyReason.INVALID_CREDENTIAL))

        response = TestClient(_app(pipeline)).get("/health")

        assert response.status_code == 200
        pipeline.authorize.assert_not_called()


    def test_lifespan_closes_pipeline_on_shutdown(self):
        http_client = MagicMock()
        resolver = RemoteChargeResolver("https://billing.example.com/charge", "sk_test", http_client=http_client)
        pipeline = AuthorizationPipeline(GateConfig(billing_enabled=True, billing_api_key="sk_test"), resolver=resolver)

        @asynccontextmanager
        async def lifespan(app):
            with pipeline:
                yield

        app = FastAPI(lifespan=lifespan)
        app.add_middleware(AuthorizationMiddleware, pipeline=pipeline)

        with TestClient(app) as client:
            client.get("/health")
            http_client.close.assert_not_called()

        http_client.close.assert_called_once()
