"""
Verification request lifecycle.

A request is created when a high-value transfer needs CFO approval and
lives in `store.verification_requests` until a transaction consumes it or
it expires:

    request_retrieved ─┬─> request_created (service accepted it)
                       ├─> presentation_verified ──> consumed
                       ├─> failed
                       └─> expired (10 minutes after creation)

Updates arrive from three places: the Verified ID callback, the polling
endpoint (expiry + local-mode auto simulation), and the manual simulate
endpoint. All functions take `now` so tests can move the clock.
"""

import base64
import json
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from portal import config
from portal.models.schemas import VerificationStatus
from portal.store import verification_requests
from portal.verifiedid.facecheck import face_check_from_receipt, score_from_error

logger = logging.getLogger(__name__)

# Demo identity used when verification is simulated locally.
AUTO_SIMULATED_CLAIMS = {
    "firstName": "Alex",
    "lastName": "Wilber",
    "jobTitle": "CFO",
    "email": "alex@contoso.com",
    "department": "Finance",
}

MANUAL_SIMULATED_CLAIMS = {
    "firstName": "Alex",
    "lastName": "Wilber",
    "jobTitle": "Chief Financial Officer",
    "email": "alex.wilber@contoso.com",
    "department": "Finance",
    "employeeId": "CFO-001",
}

_FAILURE_CODES = {"presentation_error", "presentation_failed"}


class SimulationNotAllowed(Exception):
    """Raised when simulating a request that is not in local mode."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_request(details: dict, now: datetime | None = None) -> dict:
    """Track a new verification request for `details` and return it."""
    now = now or _utcnow()
    request_id = str(uuid.uuid4())
    request = {
        "id": request_id,
        "transaction_details": details,
        "status": VerificationStatus.request_retrieved.value,
        "timestamp": now,
        "expires_at": now + timedelta(seconds=config.REQUEST_TTL_SECONDS),
        "last_activity": None,
        "verified_at": None,
        "is_local_mode": config.is_local_mode(),
        "vid_request_id": None,
        "presentation_url": None,
        "verified_claims": None,
        "face_check": None,
        "error": None,
    }
    verification_requests[request_id] = request
    logger.info(
        "Verification request %s created (local_mode=%s, amount=%s)",
        request_id, request["is_local_mode"], details.get("amount"),
    )
    return request


def get_request(request_id: str | None) -> dict | None:
    if not request_id:
        return None
    return verification_requests.get(request_id)


def mark_created(request: dict, vid_request_id: str | None, url: str | None) -> dict:
    """Record that the Verified ID service accepted the request."""
    request["vid_request_id"] = vid_request_id
    request["presentation_url"] = url
    request["status"] = VerificationStatus.request_created.value
    return request


def _verify(request: dict, claims: dict, now: datetime) -> None:
    request["status"] = VerificationStatus.presentation_verified.value
    request["verified_claims"] = dict(claims)
    request["verified_at"] = now
    request["last_activity"] = now


def refresh(request: dict, now: datetime | None = None) -> dict:
    """Apply time-driven transitions. Called on every poll.

    - past expires_at: anything not already failed becomes expired
    - local mode: a request still waiting after the simulation delay is
      auto-verified with demo claims, so the demo works without a phone
    """
    now = now or _utcnow()
    terminal = {VerificationStatus.failed.value, VerificationStatus.expired.value}

    if now > request["expires_at"] and request["status"] not in terminal:
        logger.info("Verification request %s expired", request["id"])
        request["status"] = VerificationStatus.expired.value
        return request

    if request["is_local_mode"] and request["status"] == VerificationStatus.request_retrieved.value:
        elapsed = (now - request["timestamp"]).total_seconds()
        if elapsed > config.LOCAL_SIMULATION_DELAY_SECONDS:
            _verify(request, AUTO_SIMULATED_CLAIMS, now)
            logger.info("Local simulation: auto-verified request %s", request["id"])

    return request


def claims_from_vp_token(vp_token: str) -> dict[str, Any]:
    """Decode the JWT payload of a VP token and return vc.credentialSubject.

    The signature is not checked: Verified ID already validated the
    presentation before calling us. Raises ValueError on malformed tokens.
    """
    try:
        segment = vp_token.split(".")[1]
    except IndexError as e:
        raise ValueError("VP token is not a JWT") from e
    padded = segment + "=" * (-len(segment) % 4)
    payload = json.loads(base64.urlsafe_b64decode(padded))
    if not isinstance(payload, dict):
        raise ValueError("VP token payload is not a JSON object")
    vc = payload.get("vc") or {}
    if not isinstance(vc, dict):
        raise ValueError("VP token 'vc' claim is not an object")
    subject = vc.get("credentialSubject") or {}
    if not isinstance(subject, dict):
        raise ValueError("VP token credentialSubject is not an object")
    return subject


def _claims_from_callback(payload: dict) -> dict | None:
    credentials = payload.get("verifiedCredentialsData") or []
    if credentials and isinstance(credentials[0], dict):
        credential = credentials[0]
        claims = credential.get("claims") or {}
        return {
            "firstName": claims.get("firstName"),
            "lastName": claims.get("lastName"),
            "issuer": credential.get("issuer"),
            "type": credential.get("type"),
            "credentialState": credential.get("credentialState"),
        }

    receipt = payload.get("receipt") or {}
    vp_token = receipt.get("vp_token")
    if vp_token:
        try:
            return claims_from_vp_token(vp_token)
        except (ValueError, UnicodeDecodeError) as e:
            logger.error("Could not parse VP token: %s", e)
    return None


def apply_callback(request: dict, payload: dict, now: datetime | None = None) -> dict:
    """Apply a Verified ID callback (camelCase wire payload) to `request`.

    The payload is parsed in full before the request is touched."""
    now = now or _utcnow()
    status = payload.get("requestStatus") or payload.get("code")

    if status == VerificationStatus.presentation_verified.value:
        face_check = face_check_from_receipt(payload.get("receipt"))
        claims = _claims_from_callback(payload)

        request["last_activity"] = now
        request["status"] = status
        request["verified_at"] = now
        if face_check:
            request["face_check"] = face_check
        if claims is not None:
            request["verified_claims"] = claims
        logger.info(
            "Presentation verified for request %s (face check: %s)",
            request["id"], request["face_check"],
        )

    elif status in _FAILURE_CODES:
        error = payload.get("error") or "Presentation failed"
        face_check = face_check_from_receipt(payload.get("receipt"))
        if face_check is None:
            score = score_from_error(error)
            if score is not None:
                face_check = {"match_confidence_score": score, "source_photo_quality": None}

        request["last_activity"] = now
        request["status"] = VerificationStatus.failed.value
        request["error"] = error
        if face_check:
            request["face_check"] = face_check
        logger.warning("Presentation failed for request %s: %s", request["id"], error)

    elif status == VerificationStatus.request_retrieved.value:
        request["last_activity"] = now
        request["status"] = status
        logger.info("QR code scanned for request %s", request["id"])

    else:
        logger.warning("Unknown callback status %r for request %s", status, request["id"])
        request["last_activity"] = now
        request["status"] = status or "unknown"

    return request


def simulate(request: dict, now: datetime | None = None) -> dict:
    """Manually approve a local-mode request (demo without a phone)."""
    if not request["is_local_mode"]:
        raise SimulationNotAllowed("Simulation only available in local mode")
    _verify(request, MANUAL_SIMULATED_CLAIMS, now or _utcnow())
    logger.info("Manual simulation: verified request %s", request["id"])
    return request


def consume(request_id: str | None) -> dict | None:
    """Remove a request once a transaction has used it."""
    if not request_id:
        return None
    return verification_requests.pop(request_id, None)
