"""
Portal configuration.

Everything comes from environment variables so the same code runs in
local demo mode (no public callback URL, polling + simulation) and against
a real Microsoft Entra Verified ID tenant behind ngrok or a public host.
"""

import os

TENANT_ID = os.getenv("TENANT_ID")
CLIENT_ID = os.getenv("CLIENT_ID")
CLIENT_SECRET = os.getenv("CLIENT_SECRET")

VERIFIED_ID_ENDPOINT = os.getenv(
    "VERIFIED_ID_ENDPOINT",
    "https://verifiedid.did.msidentity.com/v1.0/verifiableCredentials/createPresentationRequest",
)

# Public base URL of this portal. Verified ID posts callbacks here, so a
# localhost value means callbacks never arrive and we fall back to polling.
BASE_URL = os.getenv("BASE_URL")

VERIFIER_AUTHORITY = os.getenv("VERIFIER_AUTHORITY", "did:web:verifiedid.contoso.com")
ISSUER_AUTHORITY = os.getenv("ISSUER_AUTHORITY", VERIFIER_AUTHORITY)
CREDENTIAL_TYPE = os.getenv("CREDENTIAL_TYPE", "VerifiedCredentialExpert")

# Sent back to us in the callback headers.
API_KEY = os.getenv("API_KEY", "test-key")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# ---------------------------------------------------------------------------
# Business rules
# ---------------------------------------------------------------------------

HIGH_VALUE_THRESHOLD = 50_000
REQUEST_TTL_SECONDS = 10 * 60
LOCAL_SIMULATION_DELAY_SECONDS = 30
FACE_CHECK_THRESHOLD = 70
VERIFIED_ID_TIMEOUT_SECONDS = 30.0

CLIENT_NAME = "Contoso Finance Portal"

TOKEN_SCOPES = [
    "3db474b9-6a0c-4840-96ac-1fceb342124f/.default",  # Verified ID Request Service
    "bbb94529-53a3-4be5-a069-7eaf2712b826/.default",  # alternative Request Service scope
    "https://verifiedid.microsoft.com/.default",
]


def public_base_url() -> str:
    return BASE_URL or "http://localhost:8000"


def is_local_mode() -> bool:
    """True when Verified ID cannot reach us with callbacks."""
    return not BASE_URL or "localhost" in BASE_URL


def is_high_value(amount: float) -> bool:
    return amount > HIGH_VALUE_THRESHOLD


def describe() -> dict[str, str]:
    """Settings summary that is safe to log (secrets are never included)."""
    return {
        "TENANT_ID": "Set" if TENANT_ID else "Not set",
        "CLIENT_ID": "Set" if CLIENT_ID else "Not set",
        "CLIENT_SECRET": "Set (hidden)" if CLIENT_SECRET else "Not set",
        "VERIFIED_ID_ENDPOINT": VERIFIED_ID_ENDPOINT,
        "BASE_URL": BASE_URL or "Not set (local mode)",
    }
