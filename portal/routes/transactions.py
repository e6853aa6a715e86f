"""
/api/transactions -- Transaction ledger.

POST records a transfer. Anything above $50,000 must reference a
verification request that reached presentation_verified; the approving
CFO's name and Face Check score are copied onto the ledger entry and the
verification request is consumed so it cannot approve a second transfer.

GET returns the ledger, oldest first.
"""

import logging
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException

from portal import config
from portal.models.schemas import (
    Transaction,
    TransactionRequest,
    TransactionStatus,
    VerificationStatus,
)
from portal.store import find_entity, transactions
from portal.verifiedid import lifecycle

logger = logging.getLogger(__name__)

router = APIRouter()


def _validator(claims: dict | None) -> dict | None:
    """Build validator info from verified claims; needs a first or last name."""
    if not claims or not (claims.get("firstName") or claims.get("lastName")):
        return None
    first = claims.get("firstName")
    last = claims.get("lastName")
    return {
        "first_name": first,
        "last_name": last,
        "full_name": f"{first or ''} {last or ''}".strip(),
    }


def _entity_ref(entity_id: str) -> dict:
    return find_entity(entity_id) or {"id": entity_id, "name": entity_id}


def _approver(validator: dict | None, verification_id: str | None) -> str:
    if validator:
        return validator["full_name"]
    if verification_id:
        return "Contoso CFO Team"
    return "System Auto-Approved"


@router.post(
    "/api/transactions",
    response_model=Transaction,
    summary="Record a transaction",
    description=(
        "Transfers above $50,000 require a verified CFO presentation "
        "(verification_id from /api/verify). Returns 403 otherwise."
    ),
    tags=["Transactions"],
)
async def create_transaction(body: TransactionRequest) -> Transaction:
    high_value = config.is_high_value(body.amount)
    validator = None
    face_check = None

    if high_value:
        verification = lifecycle.get_request(body.verification_id)
        if verification is not None:
            lifecycle.refresh(verification)

        if verification is None or verification["status"] != VerificationStatus.presentation_verified.value:
            logger.warning(
                "Rejected $%s transfer: verification %s is %s",
                body.amount, body.verification_id,
                verification["status"] if verification else "missing",
            )
            raise HTTPException(
                status_code=403,
                detail={
                    "error": f"CFO approval required for transactions over ${config.HIGH_VALUE_THRESHOLD:,}",
                    "requires_verification": True,
                },
            )

        validator = _validator(verification["verified_claims"] or body.verified_claims)

        face_check = verification["face_check"]
        if face_check is None and body.face_check is not None:
            face_check = body.face_check.model_dump()
        if face_check and face_check.get("match_confidence_score") is None:
            face_check = None

    record = Transaction(
        id=str(uuid.uuid4()),
        from_entity=_entity_ref(body.from_entity),
        to_entity=_entity_ref(body.to_entity),
        amount=body.amount,
        description=body.description,
        category=body.category,
        status=TransactionStatus.approved if high_value else TransactionStatus.completed,
        timestamp=datetime.now(timezone.utc),
        verification_id=body.verification_id,
        approver=_approver(validator, body.verification_id),
        validator=validator,
        face_check=face_check,
    )
    # Only validated entries reach the ledger.
    transactions.append(record.model_dump())
    lifecycle.consume(body.verification_id)

    logger.info(
        "Transaction %s recorded: $%s from %s to %s (approver: %s)",
        record.id, body.amount, body.from_entity, body.to_entity, record.approver,
    )
    return record


@router.get(
    "/api/transactions",
    response_model=list[Transaction],
    summary="List recorded transactions",
    tags=["Transactions"],
)
async def list_transactions() -> list[Transaction]:
    return [Transaction(**t) for t in transactions]
