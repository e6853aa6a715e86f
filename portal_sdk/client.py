"""
Contoso Finance Portal -- Python client

Client for the portal API, including the CFO-approval polling loop the
web frontend runs: start a verification, poll every 3 seconds for up to
10 minutes, and record the transfer once the CFO's Verified ID
presentation succeeds.

Usage:

    from portal_sdk.client import PortalClient, VerificationFailed, transaction_summary

    portal = PortalClient("http://localhost:8000")

    details = {
        "from_entity": "CONTOSO-HQ",
        "to_entity": "FABRIKAM-US",
        "amount": 75000,
        "description": "Q3 vendor settlement",
        "category": "Operations",
    }

    def show(status):
        print(status.message)

    try:
        txn = portal.transfer(details, on_update=show)
        print(transaction_summary(txn))
    except VerificationFailed as e:
        print(e.report)

Requirements: requests
"""

from __future__ import annotations

import json
import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import requests

DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_TIMEOUT = 30

HIGH_VALUE_THRESHOLD = 50_000
FACE_CHECK_THRESHOLD = 70
POLL_INTERVAL = 3.0
POLL_TIMEOUT = 10 * 60.0

VERIFIED = "presentation_verified"
FAILED = "failed"
EXPIRED = "expired"

# Broader than the server's patterns: error texts from the wallet vary.
_SCORE_PATTERNS = [
    re.compile(r"confidence\s+score[:\s]+(\d+)", re.IGNORECASE),
    re.compile(r"score[:\s]+(\d+)", re.IGNORECASE),
    re.compile(r"match.*?(\d+)%", re.IGNORECASE),
    re.compile(r"(\d+)%.*?confidence", re.IGNORECASE),
    re.compile(r"threshold.*?(\d+)", re.IGNORECASE),
    re.compile(r"(\d+)\s*%"),
    re.compile(r"score\s*[=:]\s*(\d+)", re.IGNORECASE),
]


# ── Result types ──────────────────────────────────────────────────────────


@dataclass
class VerificationSession:
    """Result from POST /api/verify."""

    request_id: str
    qr_code: str
    url: str
    expiry: str
    mock: bool
    is_local_mode: bool
    note: str = ""
    error: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class PollUpdate:
    """One step of the polling loop, passed to on_update callbacks."""

    status: Optional[str]
    message: str
    payload: Optional[Dict[str, Any]] = None


# ── Exceptions ────────────────────────────────────────────────────────────


class PortalError(Exception):
    """Base exception for portal client errors."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class VerificationFailed(PortalError):
    """The verification request failed or expired."""

    def __init__(self, status: Dict[str, Any], report: str):
        super().__init__(f"Verification {status.get('status')}", body=status)
        self.status = status
        self.report = report


class VerificationTimeout(PortalError):
    """Polling gave up before the request reached a final state."""


# ── Text helpers ──────────────────────────────────────────────────────────


def format_amount(amount: Any) -> str:
    if not amount:
        return "Unknown amount"
    if float(amount).is_integer():
        return f"${int(amount):,}"
    return f"${float(amount):,.2f}"


def score_from_error(error: Any) -> Optional[int]:
    """Find a Face Check score in an error string or object."""
    if not error:
        return None
    if isinstance(error, str):
        text = error
    elif isinstance(error, dict) and isinstance(error.get("message"), str):
        text = error["message"]
    else:
        text = json.dumps(error, default=str)
    for pattern in _SCORE_PATTERNS:
        match = pattern.search(text)
        if match:
            return int(match.group(1))
    return None


def status_message(status: Optional[str], is_local_mode: bool = False) -> str:
    if status == VERIFIED:
        return "Verification completed successfully!"
    if status in (FAILED, EXPIRED):
        return f"Verification {status}"
    if status == "request_retrieved" and is_local_mode:
        return "Local mode: Waiting for simulation or scan QR code..."
    if status == "request_retrieved":
        return "Scan the QR code with Microsoft Authenticator..."
    return "Waiting for verification..."


def _entity_name(entity_id: Optional[str], entities: List[Dict[str, Any]]) -> str:
    for entity in entities:
        if entity.get("id") == entity_id:
            return entity["name"]
    return entity_id or "Unknown"


def failure_report(status: Dict[str, Any], entities: Optional[List[Dict[str, Any]]] = None) -> str:
    """Explain a failed or expired verification for the operator."""
    entities = entities or []
    details = status.get("transaction_details") or {}
    face_check = status.get("face_check") or {}
    error = status.get("error")

    lines = [
        "CFO Approval Verification Failed",
        "-" * 40,
        "",
        "TRANSACTION DETAILS",
        f"   From: {_entity_name(details.get('from_entity'), entities)}",
        f"   To: {_entity_name(details.get('to_entity'), entities)}",
        f"   Amount: {format_amount(details.get('amount'))}",
    ]
    if details.get("description"):
        lines.append(f"   Description: {details['description']}")
    if details.get("category"):
        lines.append(f"   Category: {details['category']}")
    lines.append("")

    score = face_check.get("match_confidence_score")
    if score is None:
        score = score_from_error(error)

    lines.append("FACE CHECK RESULTS")
    if score is not None:
        mark = "PASS" if score >= FACE_CHECK_THRESHOLD else "FAIL"
        lines.append(f"   [{mark}] Confidence Score: {score}%")
        lines.append(f"   Required Threshold: {FACE_CHECK_THRESHOLD}%")
        if score < FACE_CHECK_THRESHOLD:
            lines.append(f"   Shortfall: {FACE_CHECK_THRESHOLD - score:g}% below threshold")
        if face_check.get("source_photo_quality"):
            lines.append(f"   Photo Quality: {face_check['source_photo_quality']}")
    else:
        lines.append("   Face verification was not completed")
    lines.append("")

    lines.append("FAILURE REASON")
    if status.get("status") == EXPIRED:
        lines.append("   The verification request has expired.")
        lines.append("   Verification requests are valid for 10 minutes")
        lines.append("   The QR code was not scanned in time")
    elif score is not None and score < FACE_CHECK_THRESHOLD:
        lines.append("   Face verification did not meet the confidence threshold.")
        lines.append("   Possible causes:")
        lines.append("   - The presenter may not match the photo on the Verified ID")
        lines.append("   - Poor lighting or camera angle during face capture")
        lines.append("   - Glasses, masks, or other obstructions")
    elif error:
        if isinstance(error, dict):
            error = error.get("message") or error.get("code") or "Unknown error"
        lines.append(f"   {error}")
    else:
        lines.append("   The verification process could not be completed.")
    lines.append("")

    lines.extend([
        "RECOMMENDED ACTIONS",
        "   1. Ensure proper lighting and camera positioning",
        "   2. Remove glasses or face coverings if possible",
        "   3. Verify the correct CFO credential is being used",
        "   4. Try the verification process again",
        "   5. Contact IT support if the issue persists",
    ])
    return "\n".join(lines)


def transaction_summary(transaction: Dict[str, Any]) -> str:
    lines = [
        "Transaction completed successfully!",
        "",
        f"Amount: {format_amount(transaction.get('amount'))}",
        f"From: {transaction['from_entity']['name']}",
        f"To: {transaction['to_entity']['name']}",
        f"Category: {transaction.get('category', '')}",
        f"Description: {transaction.get('description', '')}",
    ]
    validator = transaction.get("validator")
    if validator:
        lines.extend(["", f"Approved by: {validator['full_name']}"])
        face_check = transaction.get("face_check") or {}
        if face_check.get("match_confidence_score") is not None:
            lines.append(f"Face Check Score: {face_check['match_confidence_score']}%")
    return "\n".join(lines)


# ── Client ────────────────────────────────────────────────────────────────


class PortalClient:
    """
    Client for the Contoso Finance Portal API.

    Args:
        base_url: Portal base URL. Defaults to http://localhost:8000.
        timeout: Per-request timeout in seconds.
        session: Optional pre-configured requests.Session.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: int = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        kwargs.setdefault("timeout", self.timeout)
        resp = self._session.request(method, url, **kwargs)
        if resp.status_code >= 400:
            try:
                body = resp.json()
            except ValueError:
                body = resp.text
            raise PortalError(
                f"API error {resp.status_code}: {body}",
                status_code=resp.status_code,
                body=body,
            )
        return resp.json()

    # ── Entities & ledger ─────────────────────────────────────────────

    def entities(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/entities")

    def transactions(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/transactions")

    def submit_transaction(
        self,
        details: Dict[str, Any],
        *,
        verification_id: Optional[str] = None,
        verified_claims: Optional[Dict[str, Any]] = None,
        face_check: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Record a transfer. High-value transfers need verification_id."""
        payload = dict(details)
        payload.update(
            verification_id=verification_id,
            verified_claims=verified_claims,
            face_check=face_check,
        )
        return self._request("POST", "/api/transactions", json=payload)

    # ── Verification ──────────────────────────────────────────────────

    def start_verification(self, details: Dict[str, Any]) -> VerificationSession:
        data = self._request("POST", "/api/verify", json={"transaction_details": details})
        return VerificationSession(
            request_id=data["request_id"],
            qr_code=data["qr_code"],
            url=data["url"],
            expiry=data["expiry"],
            mock=data["mock"],
            is_local_mode=data["is_local_mode"],
            note=data.get("note", ""),
            error=data.get("error"),
            raw=data,
        )

    def verification_status(self, request_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/api/verification-status/{request_id}")

    def simulate_verification(self, request_id: str) -> Dict[str, Any]:
        """Approve a local-mode request without scanning the QR code."""
        return self._request("POST", f"/api/simulate-verification/{request_id}")

    def wait_for_verification(
        self,
        request_id: str,
        *,
        interval: float = POLL_INTERVAL,
        timeout: float = POLL_TIMEOUT,
        on_update: Optional[Callable[[PollUpdate], None]] = None,
        entities: Optional[List[Dict[str, Any]]] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> Dict[str, Any]:
        """
        Poll until the request is verified, failed or expired.

        Returns the final status payload on success. Raises VerificationFailed
        (with a failure report) on failed/expired and VerificationTimeout when
        `timeout` elapses first. A poll that errors is reported via on_update
        and polling continues.
        """
        notify = on_update or (lambda update: None)
        deadline = clock() + timeout

        while True:
            sleep(interval)
            if clock() > deadline:
                notify(PollUpdate(None, "Verification timeout - please try again"))
                raise VerificationTimeout(f"Verification {request_id} did not finish in {timeout:.0f}s")

            try:
                status = self.verification_status(request_id)
            except (PortalError, requests.RequestException) as e:
                notify(PollUpdate(None, f"Error checking verification status: {e}"))
                continue

            state = status.get("status")
            if state == VERIFIED:
                notify(PollUpdate(state, status_message(state), status))
                return status
            if state in (FAILED, EXPIRED):
                report = failure_report(status, entities)
                notify(PollUpdate(state, report, status))
                raise VerificationFailed(status, report)

            notify(PollUpdate(state, status_message(state, status.get("is_local_mode", False)), status))

    def transfer(
        self,
        details: Dict[str, Any],
        *,
        simulate: bool = False,
        on_update: Optional[Callable[[PollUpdate], None]] = None,
        interval: float = POLL_INTERVAL,
        timeout: float = POLL_TIMEOUT,
    ) -> Dict[str, Any]:
        """
        Record a transfer, running CFO verification first when it is high value.

        Args:
            details: from_entity, to_entity, amount, description, category.
            simulate: In local mode, approve via the simulation endpoint
                instead of waiting for a QR scan.
            on_update: Called with a PollUpdate on every poll.

        Returns:
            The recorded transaction.
        """
        if details["amount"] <= HIGH_VALUE_THRESHOLD:
            return self.submit_transaction(details)

        session = self.start_verification(details)
        if simulate and session.is_local_mode:
            self.simulate_verification(session.request_id)

        status = self.wait_for_verification(
            session.request_id,
            interval=interval,
            timeout=timeout,
            on_update=on_update,
            entities=self.entities(),
        )
        return self.submit_transaction(
            details,
            verification_id=session.request_id,
            verified_claims=status.get("verified_claims"),
            face_check=status.get("face_check"),
        )
