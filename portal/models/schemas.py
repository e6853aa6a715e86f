"""
Contoso Finance Portal -- Pydantic Data Models

Request and response bodies for the portal API. Our own endpoints use
snake_case. The Verified ID callback body is camelCase (it is defined by
Microsoft), so that model maps the wire names with aliases.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class VerificationStatus(str, Enum):
    """Known states of a verification request.

    request_retrieved is both the initial state and the "QR code scanned"
    callback code. Unknown callback codes are stored as-is."""

    request_created = "request_created"
    request_retrieved = "request_retrieved"
    presentation_verified = "presentation_verified"
    failed = "failed"
    expired = "expired"


class TransactionStatus(str, Enum):
    approved = "approved"      # high value, verified by the CFO
    completed = "completed"    # auto-approved


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------

class Entity(BaseModel):
    """A company entity that money moves between."""

    id: str = Field(examples=["CONTOSO-HQ"])
    name: str = Field(examples=["Contoso Corporation - Headquarters"])
    type: str = Field(examples=["Corporate"])
    budget: float = Field(examples=[5000000])
    used_budget: float = Field(examples=[2350000])
    status: str = Field(examples=["active"])


class EntityRef(BaseModel):
    """Entity as embedded in a transaction. Unknown IDs keep only id/name."""

    model_config = ConfigDict(extra="allow")

    id: str
    name: str


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------

class TransactionDetails(BaseModel):
    """The transfer a verification request is approving."""

    from_entity: str = Field(examples=["CONTOSO-HQ"])
    to_entity: str = Field(examples=["FABRIKAM-US"])
    amount: float = Field(gt=0, examples=[75000])
    description: str = Field(default="", examples=["Q3 vendor settlement"])
    category: str = Field(default="", examples=["Operations"])


class FaceCheck(BaseModel):
    """Biometric match result reported by Verified ID."""

    match_confidence_score: float | None = Field(
        default=None,
        description="0-100 confidence that the presenter matches the credential photo.",
        examples=[86, 90.71],
    )
    source_photo_quality: str | None = Field(default=None, examples=["HIGH"])


class VerifyRequest(BaseModel):
    transaction_details: TransactionDetails


class VerifyResponse(BaseModel):
    """What the client needs to show the QR code and start polling."""

    request_id: str
    qr_code: str = Field(description="PNG QR code as a data: URL.")
    url: str = Field(description="Deep link for Microsoft Authenticator.")
    expiry: datetime
    mock: bool = Field(
        description="True when the Verified ID service was unreachable and a local QR code was generated.",
    )
    is_local_mode: bool
    polling_mode: bool
    note: str
    error: str | None = None
    suggestion: str | None = None


class StatusResponse(BaseModel):
    """Detailed status view: GET /api/verify/{request_id}/status."""

    request_id: str
    status: str
    timestamp: datetime
    last_activity: datetime | None = None
    transaction_details: TransactionDetails
    verified_at: datetime | None = None
    verified_claims: dict[str, Any] | None = None
    error: Any = None


class PollResponse(BaseModel):
    """Polling view: GET /api/verification-status/{request_id}."""

    request_id: str
    status: str
    verified_claims: dict[str, Any] | None = None
    last_activity: datetime | None = None
    timestamp: datetime
    expires_at: datetime
    is_local_mode: bool
    transaction_details: TransactionDetails
    face_check: FaceCheck | None = None
    error: Any = None


class SimulationResponse(BaseModel):
    success: bool
    message: str
    request_id: str
    verified_claims: dict[str, Any]


class CallbackReceipt(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    face_check: dict[str, Any] | None = Field(default=None, alias="faceCheck")
    vp_token: str | None = None


class CallbackPayload(BaseModel):
    """Body Verified ID posts to the callback URL.

    `state` is the portal's request id. `requestStatus` is the primary status
    field; older payloads only carry `code`."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    request_id: str | None = Field(default=None, alias="requestId")
    request_status: str | None = Field(default=None, alias="requestStatus")
    code: str | None = None
    state: str | None = None
    error: Any = None
    receipt: CallbackReceipt | None = None
    verified_credentials_data: list[dict[str, Any]] | None = Field(
        default=None, alias="verifiedCredentialsData",
    )


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------

class TransactionRequest(TransactionDetails):
    """POST /api/transactions. High-value transfers must reference a
    verified request via verification_id."""

    verification_id: str | None = None
    verified_claims: dict[str, Any] | None = None
    face_check: FaceCheck | None = None


class Validator(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    full_name: str


class Transaction(BaseModel):
    """A completed ledger entry. Immutable once recorded."""

    id: str
    from_entity: EntityRef
    to_entity: EntityRef
    amount: float
    description: str
    category: str
    status: TransactionStatus
    timestamp: datetime
    verification_id: str | None = None
    approver: str
    validator: Validator | None = None
    face_check: FaceCheck | None = None


class HealthResponse(BaseModel):
    status: str
    mode: str
    pending_verifications: int
    transactions_recorded: int
