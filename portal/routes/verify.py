"""
POST /api/verify -- Start CFO verification for a high-value transfer.

Creates a tracked verification request and asks Microsoft Entra Verified
ID for a presentation request. The client shows the returned QR code and
polls GET /api/verification-status/{request_id} until the request is
verified, failed or expired.

If the token endpoint or the Request Service is unreachable we fall back
to a locally generated QR code (mock mode) so the demo keeps working.
The request stays tracked either way; in local mode it can be approved
via the simulation endpoint.
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from urllib.parse import quote

import httpx
from fastapi import APIRouter, HTTPException

from portal import config
from portal.models.schemas import (
    PollResponse,
    SimulationResponse,
    StatusResponse,
    VerificationStatus,
    VerifyRequest,
    VerifyResponse,
)
from portal.verifiedid import lifecycle
from portal.verifiedid.auth import TokenError, get_access_token
from portal.verifiedid.client import (
    build_openid_request,
    build_presentation_request,
    create_presentation_request,
    format_amount,
    service_error,
)
from portal.verifiedid.qr import qr_data_url

logger = logging.getLogger(__name__)

router = APIRouter()


def _default_expiry() -> datetime:
    return datetime.now(timezone.utc) + timedelta(seconds=config.REQUEST_TTL_SECONDS)


def _mock_qr_data(request_id: str, details: dict, reason: str | None = None) -> str:
    data = {
        "requestId": request_id,
        "authority": config.VERIFIER_AUTHORITY,
        "purpose": f"CFO approval required for transaction: ${format_amount(details['amount'])}",
        "mock": True,
    }
    if reason:
        data["reason"] = reason
    return json.dumps(data)


def _get_or_404(request_id: str) -> dict:
    request = lifecycle.get_request(request_id)
    if request is None:
        raise HTTPException(status_code=404, detail=f"Verification request '{request_id}' not found")
    return request


# ---------------------------------------------------------------------------
# Route handlers
# ---------------------------------------------------------------------------

@router.post(
    "/api/verify",
    response_model=VerifyResponse,
    summary="Start CFO verification",
    description=(
        "Create a Verified ID presentation request for a transfer. "
        "Falls back to a mock QR code when Verified ID is unreachable."
    ),
    tags=["Verification"],
)
async def start_verification(body: VerifyRequest) -> VerifyResponse:
    details = body.transaction_details.model_dump()
    try:
        tracked = lifecycle.create_request(details)
        request_id = tracked["id"]
        is_local = tracked["is_local_mode"]
        payload = build_presentation_request(request_id, details)
        if "callback" not in payload:
            logger.info("Local mode: no callback URL, client will poll")

        try:
            token = await get_access_token()
        except TokenError as e:
            logger.warning("Authentication failed, using mock verification: %s", e.__cause__ or e)
            mock_data = _mock_qr_data(request_id, details)
            return VerifyResponse(
                request_id=request_id,
                qr_code=qr_data_url(mock_data),
                url=f"ms-authenticator://presentation?request={quote(mock_data, safe='')}",
                expiry=_default_expiry(),
                mock=True,
                is_local_mode=is_local,
                polling_mode=is_local,
                note="Using mock verification - Verified ID service not available",
            )

        try:
            data = await create_presentation_request(payload, token)
        except httpx.HTTPError as e:
            error = service_error(e)
            inner = error.get("innererror") or {}
            reason = inner.get("message") or "API call failed"
            logger.warning(
                "Verified ID API call failed, falling back to mock mode: %s",
                error.get("message") or e,
            )
            if inner.get("target") == "callback.url":
                logger.warning(
                    "Callback URL must be publicly accessible (current: %s). "
                    "Set BASE_URL to an ngrok or public URL.",
                    config.public_base_url(),
                )
            request_uri = f"{config.public_base_url()}/api/presentation-request/{request_id}"
            return VerifyResponse(
                request_id=request_id,
                qr_code=qr_data_url(_mock_qr_data(request_id, details, reason)),
                url=f"openid://vc/?request_uri={quote(request_uri, safe='')}",
                expiry=_default_expiry(),
                mock=True,
                is_local_mode=is_local,
                polling_mode=is_local,
                note="Using mock verification - API requires public callback URL",
                error=reason,
                suggestion="Use ngrok or set BASE_URL to a public URL for real Verified ID integration",
            )

        url = data.get("url")
        lifecycle.mark_created(tracked, data.get("requestId"), url)
        return VerifyResponse(
            request_id=request_id,
            qr_code=data.get("qrCode") or qr_data_url(url or request_id),
            url=url or "",
            expiry=data.get("expiry") or _default_expiry(),
            mock=False,
            is_local_mode=is_local,
            polling_mode=is_local,
            note="Generated by Microsoft Entra Verified ID Request Service",
        )

    except Exception as e:
        logger.exception("Error creating verification request")
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to create verification request", "details": str(e)},
        ) from e


@router.get(
    "/api/presentation-request/{request_id}",
    summary="OpenID presentation request (mock mode)",
    description="Serves the presentation request referenced by mock QR codes.",
    tags=["Verification"],
)
async def presentation_request(request_id: str) -> dict:
    _get_or_404(request_id)
    return build_openid_request(request_id)


@router.get(
    "/api/verify/{request_id}/status",
    response_model=StatusResponse,
    response_model_exclude_none=True,
    summary="Detailed verification status",
    tags=["Verification"],
)
async def verification_detail(request_id: str) -> StatusResponse:
    request = _get_or_404(request_id)
    response = StatusResponse(
        request_id=request_id,
        status=request["status"],
        timestamp=request["timestamp"],
        last_activity=request["last_activity"],
        transaction_details=request["transaction_details"],
    )
    if request["status"] == VerificationStatus.presentation_verified.value:
        response.verified_at = request["verified_at"]
        response.verified_claims = request["verified_claims"]
    if request["status"] == VerificationStatus.failed.value and request["error"]:
        response.error = request["error"]
    return response


@router.get(
    "/api/verification-status/{request_id}",
    response_model=PollResponse,
    summary="Poll verification status",
    description=(
        "Polling endpoint for clients without callbacks. Applies expiry and, "
        "in local mode, auto-approves requests waiting longer than 30 seconds."
    ),
    tags=["Verification"],
)
async def poll_status(request_id: str) -> PollResponse:
    request = lifecycle.refresh(_get_or_404(request_id))
    return PollResponse(
        request_id=request_id,
        status=request["status"],
        verified_claims=request["verified_claims"],
        last_activity=request["last_activity"],
        timestamp=request["timestamp"],
        expires_at=request["expires_at"],
        is_local_mode=request["is_local_mode"],
        transaction_details=request["transaction_details"],
        face_check=request["face_check"],
        error=request["error"],
    )


@router.post(
    "/api/simulate-verification/{request_id}",
    response_model=SimulationResponse,
    summary="Simulate CFO approval (local mode only)",
    tags=["Verification"],
)
async def simulate_verification(request_id: str) -> SimulationResponse:
    request = _get_or_404(request_id)
    try:
        lifecycle.simulate(request)
    except lifecycle.SimulationNotAllowed as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    return SimulationResponse(
        success=True,
        message="Verification simulated successfully",
        request_id=request_id,
        verified_claims=request["verified_claims"],
    )
