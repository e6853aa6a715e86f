"""
Tests for the verification request lifecycle: creation, expiry, local
simulation, callbacks and consumption.
"""

import base64
import json
from datetime import timedelta

import pytest

from portal import config, store
from portal.verifiedid import lifecycle

from tests.sample_data import HIGH_VALUE, T0


def _jwt(payload) -> str:
    def seg(data) -> str:
        return base64.urlsafe_b64encode(json.dumps(data).encode()).decode().rstrip("=")
    return f"{seg({'alg': 'ES256K'})}.{seg(payload)}.signature"


class TestCreate:

    def test_initial_state(self):
        request = lifecycle.create_request(dict(HIGH_VALUE), now=T0)
        assert request["status"] == "request_retrieved"
        assert request["expires_at"] == T0 + timedelta(minutes=10)
        assert request["is_local_mode"] is True
        assert store.verification_requests[request["id"]] is request

    def test_callback_mode_when_base_url_is_public(self, monkeypatch):
        monkeypatch.setattr(config, "BASE_URL", "https://portal.example.com")
        request = lifecycle.create_request(dict(HIGH_VALUE), now=T0)
        assert request["is_local_mode"] is False

    def test_localhost_base_url_is_local(self, monkeypatch):
        monkeypatch.setattr(config, "BASE_URL", "http://localhost:8000")
        assert lifecycle.create_request(dict(HIGH_VALUE))["is_local_mode"] is True

    def test_mark_created(self):
        request = lifecycle.create_request(dict(HIGH_VALUE), now=T0)
        lifecycle.mark_created(request, "vid-123", "openid-vc://?request_uri=x")
        assert request["status"] == "request_created"
        assert request["vid_request_id"] == "vid-123"


class TestRefresh:

    def test_waiting_request_untouched_before_delay(self):
        request = lifecycle.create_request(dict(HIGH_VALUE), now=T0)
        lifecycle.refresh(request, now=T0 + timedelta(seconds=30))
        assert request["status"] == "request_retrieved"

    def test_local_mode_auto_verifies_after_delay(self):
        request = lifecycle.create_request(dict(HIGH_VALUE), now=T0)
        lifecycle.refresh(request, now=T0 + timedelta(seconds=31))
        assert request["status"] == "presentation_verified"
        assert request["verified_claims"]["lastName"] == "Wilber"
        assert request["verified_claims"]["jobTitle"] == "CFO"

    def test_callback_mode_never_auto_verifies(self, monkeypatch):
        monkeypatch.setattr(config, "BASE_URL", "https://portal.example.com")
        request = lifecycle.create_request(dict(HIGH_VALUE), now=T0)
        lifecycle.refresh(request, now=T0 + timedelta(minutes=5))
        assert request["status"] == "request_retrieved"

    def test_created_request_is_not_simulated(self):
        request = lifecycle.create_request(dict(HIGH_VALUE), now=T0)
        lifecycle.mark_created(request, "vid", "url")
        lifecycle.refresh(request, now=T0 + timedelta(minutes=1))
        assert request["status"] == "request_created"

    def test_expiry(self):
        request = lifecycle.create_request(dict(HIGH_VALUE), now=T0)
        lifecycle.refresh(request, now=T0 + timedelta(minutes=10, seconds=1))
        assert request["status"] == "expired"

    def test_verified_request_expires_too(self):
        request = lifecycle.create_request(dict(HIGH_VALUE), now=T0)
        lifecycle.simulate(request, now=T0)
        lifecycle.refresh(request, now=T0 + timedelta(minutes=11))
        assert request["status"] == "expired"

    def test_failed_request_keeps_failure(self):
        request = lifecycle.create_request(dict(HIGH_VALUE), now=T0)
        lifecycle.apply_callback(request, {"requestStatus": "presentation_error", "state": request["id"]}, now=T0)
        lifecycle.refresh(request, now=T0 + timedelta(minutes=11))
        assert request["status"] == "failed"


class TestCallback:

    def test_qr_scanned(self):
        request = lifecycle.create_request(dict(HIGH_VALUE), now=T0)
        lifecycle.mark_created(request, "vid", "url")
        lifecycle.apply_callback(request, {"requestStatus": "request_retrieved"}, now=T0 + timedelta(seconds=5))
        assert request["status"] == "request_retrieved"
        assert request["last_activity"] == T0 + timedelta(seconds=5)

    def test_verified_with_credentials_data(self):
        request = lifecycle.create_request(dict(HIGH_VALUE), now=T0)
        payload = {
            "requestStatus": "presentation_verified",
            "receipt": {"faceCheck": {"matchConfidenceScore": 91, "sourcePhotoQuality": "HIGH"}},
            "verifiedCredentialsData": [
                {
                    "issuer": "did:web:verifiedid.contoso.com",
                    "type": ["VerifiableCredential", "VerifiedCredentialExpert"],
                    "claims": {"firstName": "Megan", "lastName": "Bowen"},
                    "credentialState": {"revocationStatus": "VALID"},
                }
            ],
        }
        lifecycle.apply_callback(request, payload, now=T0)
        assert request["status"] == "presentation_verified"
        assert request["verified_at"] == T0
        assert request["verified_claims"]["firstName"] == "Megan"
        assert request["verified_claims"]["issuer"] == "did:web:verifiedid.contoso.com"
        assert request["face_check"] == {"match_confidence_score": 91, "source_photo_quality": "HIGH"}

    def test_code_used_when_request_status_missing(self):
        request = lifecycle.create_request(dict(HIGH_VALUE), now=T0)
        lifecycle.apply_callback(request, {"code": "presentation_verified"}, now=T0)
        assert request["status"] == "presentation_verified"
        assert request["verified_claims"] is None

    def test_claims_from_vp_token(self):
        request = lifecycle.create_request(dict(HIGH_VALUE), now=T0)
        token = _jwt({"vc": {"credentialSubject": {"firstName": "Lee", "lastName": "Gu"}}})
        lifecycle.apply_callback(
            request,
            {"requestStatus": "presentation_verified", "receipt": {"vp_token": token}},
            now=T0,
        )
        assert request["verified_claims"] == {"firstName": "Lee", "lastName": "Gu"}

    def test_malformed_vp_token_is_ignored(self):
        request = lifecycle.create_request(dict(HIGH_VALUE), now=T0)
        lifecycle.apply_callback(
            request,
            {"requestStatus": "presentation_verified", "receipt": {"vp_token": "not-a-jwt"}},
            now=T0,
        )
        assert request["status"] == "presentation_verified"
        assert request["verified_claims"] is None

    def test_vp_token_payload_not_an_object(self):
        request = lifecycle.create_request(dict(HIGH_VALUE), now=T0)
        token = _jwt(["not", "an", "object"])
        lifecycle.apply_callback(
            request,
            {"requestStatus": "presentation_verified", "receipt": {"vp_token": token}},
            now=T0,
        )
        assert request["status"] == "presentation_verified"
        assert request["verified_claims"] is None

    def test_vp_token_vc_not_an_object(self):
        with pytest.raises(ValueError):
            lifecycle.claims_from_vp_token(_jwt({"vc": "credential"}))
        with pytest.raises(ValueError):
            lifecycle.claims_from_vp_token(_jwt({"vc": {"credentialSubject": ["Lee"]}}))

    def test_failed_parse_leaves_request_untouched(self, monkeypatch):
        request = lifecycle.create_request(dict(HIGH_VALUE), now=T0)
        before = dict(request)

        def broken(receipt):
            raise RuntimeError("bad receipt")

        monkeypatch.setattr(lifecycle, "face_check_from_receipt", broken)
        for code in ("presentation_verified", "presentation_error"):
            with pytest.raises(RuntimeError):
                lifecycle.apply_callback(request, {"requestStatus": code, "receipt": {}}, now=T0)
            assert request == before

    def test_decimal_face_check_score(self):
        request = lifecycle.create_request(dict(HIGH_VALUE), now=T0)
        payload = {
            "requestStatus": "presentation_verified",
            "receipt": {"faceCheck": {"matchConfidenceScore": 90.71}},
        }
        lifecycle.apply_callback(request, payload, now=T0)
        assert request["face_check"]["match_confidence_score"] == 90.71

    @pytest.mark.parametrize("code", ["presentation_error", "presentation_failed"])
    def test_failure_extracts_score_from_error(self, code):
        request = lifecycle.create_request(dict(HIGH_VALUE), now=T0)
        lifecycle.apply_callback(
            request,
            {"requestStatus": code, "error": {"code": "faceCheckFailed", "message": "confidence score: 38"}},
            now=T0,
        )
        assert request["status"] == "failed"
        assert request["face_check"]["match_confidence_score"] == 38

    def test_failure_prefers_receipt_face_check(self):
        request = lifecycle.create_request(dict(HIGH_VALUE), now=T0)
        lifecycle.apply_callback(
            request,
            {
                "requestStatus": "presentation_error",
                "error": "score: 10",
                "receipt": {"faceCheck": {"matchConfidenceScore": 55}},
            },
            now=T0,
        )
        assert request["face_check"]["match_confidence_score"] == 55

    def test_failure_default_error(self):
        request = lifecycle.create_request(dict(HIGH_VALUE), now=T0)
        lifecycle.apply_callback(request, {"requestStatus": "presentation_failed"}, now=T0)
        assert request["error"] == "Presentation failed"
        assert request["face_check"] is None

    def test_unknown_status_stored_verbatim(self):
        request = lifecycle.create_request(dict(HIGH_VALUE), now=T0)
        lifecycle.apply_callback(request, {"requestStatus": "issuance_successful"}, now=T0)
        assert request["status"] == "issuance_successful"
        lifecycle.apply_callback(request, {}, now=T0)
        assert request["status"] == "unknown"


class TestSimulateAndConsume:

    def test_simulate_local(self):
        request = lifecycle.create_request(dict(HIGH_VALUE), now=T0)
        lifecycle.simulate(request, now=T0)
        assert request["status"] == "presentation_verified"
        assert request["verified_claims"]["employeeId"] == "CFO-001"

    def test_simulate_rejected_in_callback_mode(self, monkeypatch):
        monkeypatch.setattr(config, "BASE_URL", "https://portal.example.com")
        request = lifecycle.create_request(dict(HIGH_VALUE), now=T0)
        with pytest.raises(lifecycle.SimulationNotAllowed):
            lifecycle.simulate(request)

    def test_consume(self):
        request = lifecycle.create_request(dict(HIGH_VALUE), now=T0)
        assert lifecycle.consume(request["id"]) is request
        assert lifecycle.get_request(request["id"]) is None
        assert lifecycle.consume(request["id"]) is None
        assert lifecycle.consume(None) is None
