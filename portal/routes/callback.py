"""
POST /api/verification-callback -- Verified ID webhook.

Microsoft Entra Verified ID calls this when the QR code is scanned and
when the presentation succeeds or fails. The `state` field carries our
request id. Replies have an empty body: the service rejects large
responses with 413.
"""

import logging

from fastapi import APIRouter, Header, HTTPException, Response
from pydantic import ValidationError

from portal import config
from portal.models.schemas import CallbackPayload
from portal.verifiedid import lifecycle

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/api/verification-callback",
    status_code=200,
    summary="Verified ID callback",
    tags=["Verification"],
)
async def verification_callback(
    body: dict,
    api_key: str | None = Header(default=None, alias="api-key"),
) -> Response:
    if api_key != config.API_KEY:
        logger.warning("Rejected callback with invalid api-key header")
        raise HTTPException(status_code=401, detail="Invalid api-key")

    try:
        payload = CallbackPayload.model_validate(body)
    except ValidationError as e:
        logger.error("Malformed verification callback: %s", e)
        return Response(status_code=400)

    request = lifecycle.get_request(payload.state)
    if request is None:
        logger.error("Callback for unknown state %r", payload.state)
        raise HTTPException(status_code=404, detail="Request not found")

    logger.debug("Verification callback for %s: %s", payload.state, payload.request_status or payload.code)
    try:
        lifecycle.apply_callback(request, payload.model_dump(by_alias=True, exclude_none=True))
    except Exception:
        logger.exception("Callback processing error for %s", payload.state)
        return Response(status_code=500)

    return Response(status_code=200)
