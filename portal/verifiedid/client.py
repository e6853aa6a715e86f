"""
Verified ID Request Service client.

Builds presentation requests for CFO approval and sends them to
Microsoft Entra Verified ID. Also builds the OpenID4VP-style request we
serve ourselves when the real service is unreachable (mock mode).
"""

import logging
from typing import Any

import httpx

from portal import config

logger = logging.getLogger(__name__)


def format_amount(amount: float) -> str:
    """75000 -> '75,000'; 1234.5 -> '1,234.5'."""
    if float(amount).is_integer():
        return f"{int(amount):,}"
    return f"{amount:,.2f}".rstrip("0").rstrip(".")


def callback_url() -> str:
    return f"{config.public_base_url()}/api/verification-callback"


def build_presentation_request(request_id: str, details: dict) -> dict[str, Any]:
    """Payload for createPresentationRequest.

    Face Check is always requested: the credential must carry a `photo`
    claim and the live selfie must match it with confidence >= 70.
    The callback block is only added when BASE_URL is configured.
    """
    purpose = (
        f"Verify CFO credentials to approve transaction: ${format_amount(details['amount'])} "
        f"from {details['from_entity']} to {details['to_entity']}"
    )
    payload: dict[str, Any] = {
        "includeQRCode": True,
        "authority": config.VERIFIER_AUTHORITY,
        "registration": {
            "clientName": config.CLIENT_NAME,
            "purpose": purpose,
        },
        "requestedCredentials": [
            {
                "type": config.CREDENTIAL_TYPE,
                "acceptedIssuers": [config.ISSUER_AUTHORITY],
                "configuration": {
                    "validation": {
                        "faceCheck": {
                            "sourcePhotoClaimName": "photo",
                            "matchConfidenceThreshold": config.FACE_CHECK_THRESHOLD,
                        }
                    }
                },
            }
        ],
        "includeReceipt": True,
    }

    if config.BASE_URL:
        payload["callback"] = {
            "url": callback_url(),
            "state": request_id,
            "headers": {"api-key": config.API_KEY},
        }

    return payload


async def create_presentation_request(
    payload: dict[str, Any],
    access_token: str,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, Any]:
    """POST the presentation request. Raises httpx.HTTPError on failure."""
    headers = {"Authorization": f"Bearer {access_token}"}
    async with httpx.AsyncClient(timeout=config.VERIFIED_ID_TIMEOUT_SECONDS, transport=transport) as client:
        resp = await client.post(config.VERIFIED_ID_ENDPOINT, json=payload, headers=headers)
        resp.raise_for_status()

    data = resp.json()
    logger.info(
        "Verified ID request created (service id=%s, qr supplied=%s, expiry=%s)",
        data.get("requestId"), bool(data.get("qrCode")), data.get("expiry"),
    )
    return data


def service_error(exc: Exception) -> dict[str, Any]:
    """The `error` object of a failed Request Service call, or {}."""
    if not isinstance(exc, httpx.HTTPStatusError):
        return {}
    try:
        body = exc.response.json()
    except ValueError:
        return {}
    error = body.get("error") if isinstance(body, dict) else None
    return error if isinstance(error, dict) else {}


def build_openid_request(request_id: str) -> dict[str, Any]:
    """OpenID4VP presentation request served at /api/presentation-request/{id}."""
    base = config.public_base_url()
    return {
        "client_id": config.VERIFIER_AUTHORITY,
        "client_id_scheme": "did",
        "response_type": "vp_token",
        "response_mode": "direct_post",
        "response_uri": f"{base}/api/verification-callback",
        "nonce": request_id,
        "presentation_definition": {
            "id": request_id,
            "input_descriptors": [
                {
                    "id": config.CREDENTIAL_TYPE,
                    "purpose": "CFO identity verification required for financial transaction approval",
                    "constraints": {
                        "fields": [
                            {
                                "path": ["$.type"],
                                "filter": {"type": "string", "const": config.CREDENTIAL_TYPE},
                            }
                        ]
                    },
                }
            ],
        },
        "state": request_id,
    }
