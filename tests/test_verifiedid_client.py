"""
Tests for the outbound Verified ID calls: token scopes, presentation
request payloads and the mock-mode OpenID request. HTTP is served by
httpx.MockTransport, nothing leaves the process.
"""

import asyncio
import json
from urllib.parse import parse_qs

import httpx
import pytest

from portal import config
from portal.verifiedid.auth import TokenError, get_access_token, token_endpoint
from portal.verifiedid.client import (
    build_openid_request,
    build_presentation_request,
    create_presentation_request,
    format_amount,
    service_error,
)

from tests.sample_data import HIGH_VALUE


class TestAccessToken:

    def test_falls_through_scopes_until_one_works(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            form = parse_qs(request.content.decode())
            seen.append(form["scope"][0])
            assert form["grant_type"] == ["client_credentials"]
            if len(seen) < 3:
                return httpx.Response(400, json={"error_description": "AADSTS500011: resource not found"})
            return httpx.Response(200, json={"access_token": "tok-3"})

        token = asyncio.run(get_access_token(transport=httpx.MockTransport(handler)))
        assert token == "tok-3"
        assert seen == config.TOKEN_SCOPES

    def test_first_scope_wins(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={"access_token": "tok-1"})

        assert asyncio.run(get_access_token(transport=httpx.MockTransport(handler))) == "tok-1"
        assert len(calls) == 1

    def test_all_scopes_fail(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error_description": "invalid_client"})

        with pytest.raises(TokenError) as excinfo:
            asyncio.run(get_access_token(transport=httpx.MockTransport(handler)))
        assert isinstance(excinfo.value.__cause__, httpx.HTTPStatusError)

    def test_tenant_in_endpoint(self, monkeypatch):
        monkeypatch.setattr(config, "TENANT_ID", None)
        assert token_endpoint().endswith("/common/oauth2/v2.0/token")
        monkeypatch.setattr(config, "TENANT_ID", "contoso-tenant")
        assert "/contoso-tenant/" in token_endpoint()


class TestPresentationRequest:

    def test_payload_without_base_url_has_no_callback(self):
        payload = build_presentation_request("req-1", HIGH_VALUE)
        assert "callback" not in payload
        assert payload["registration"]["purpose"] == (
            "Verify CFO credentials to approve transaction: $75,000 from CONTOSO-HQ to FABRIKAM-US"
        )
        face_check = payload["requestedCredentials"][0]["configuration"]["validation"]["faceCheck"]
        assert face_check == {"sourcePhotoClaimName": "photo", "matchConfidenceThreshold": 70}
        assert payload["includeReceipt"] is True

    def test_payload_with_base_url_has_callback(self, monkeypatch):
        monkeypatch.setattr(config, "BASE_URL", "https://abc.ngrok.io")
        payload = build_presentation_request("req-1", HIGH_VALUE)
        assert payload["callback"] == {
            "url": "https://abc.ngrok.io/api/verification-callback",
            "state": "req-1",
            "headers": {"api-key": "test-key"},
        }

    def test_create_sends_bearer_token(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["Authorization"] == "Bearer tok"
            assert json.loads(request.content)["authority"] == config.VERIFIER_AUTHORITY
            return httpx.Response(201, json={"requestId": "vid-9", "url": "openid-vc://?request_uri=x"})

        payload = build_presentation_request("req-1", HIGH_VALUE)
        data = asyncio.run(create_presentation_request(payload, "tok", transport=httpx.MockTransport(handler)))
        assert data["requestId"] == "vid-9"

    def test_create_raises_on_service_error(self):
        body = {"error": {"code": "badRequest", "innererror": {"target": "callback.url", "message": "URL is not https"}}}

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json=body)

        with pytest.raises(httpx.HTTPStatusError) as excinfo:
            asyncio.run(create_presentation_request({}, "tok", transport=httpx.MockTransport(handler)))
        assert service_error(excinfo.value)["innererror"]["target"] == "callback.url"

    def test_service_error_of_transport_failure(self):
        assert service_error(httpx.ConnectError("refused")) == {}


class TestOpenIdRequest:

    def test_shape(self):
        request = build_openid_request("req-7")
        assert request["nonce"] == request["state"] == "req-7"
        assert request["response_uri"] == "http://localhost:8000/api/verification-callback"
        field = request["presentation_definition"]["input_descriptors"][0]["constraints"]["fields"][0]
        assert field["filter"]["const"] == config.CREDENTIAL_TYPE


def test_format_amount():
    assert format_amount(75000) == "75,000"
    assert format_amount(1234.5) == "1,234.5"
    assert format_amount(1234567.25) == "1,234,567.25"
