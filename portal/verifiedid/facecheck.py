"""
Face Check result extraction.

Verified ID reports the biometric match in `receipt.faceCheck`. When a
presentation fails the receipt is often missing, but the error message
usually still mentions the score ("... confidence score: 42 ..."), so we
fish it out of the text.
"""

import json
import re
from typing import Any

_SCORE_PATTERNS = [
    re.compile(r"confidence\s+score[:\s]+(\d+)", re.IGNORECASE),
    re.compile(r"score[:\s]+(\d+)", re.IGNORECASE),
]


def _error_text(error: Any) -> str:
    if isinstance(error, str):
        return error
    return json.dumps(error, default=str)


def score_from_error(error: Any) -> int | None:
    """Pull a match-confidence score out of a Verified ID error.

    `error` may be a string or the structured error object; structures are
    searched in their JSON form."""
    if not error:
        return None
    text = _error_text(error)
    for pattern in _SCORE_PATTERNS:
        match = pattern.search(text)
        if match:
            return int(match.group(1))
    return None


def _score(value: Any) -> float | None:
    # Verified ID reports the score as a number, sometimes with decimals
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def face_check_from_receipt(receipt: dict[str, Any] | None) -> dict | None:
    """Map the receipt's camelCase faceCheck block to our FaceCheck shape.

    Scores that are not numbers are dropped rather than stored."""
    if not receipt:
        return None
    face_check = receipt.get("faceCheck") or receipt.get("face_check")
    if not isinstance(face_check, dict) or not face_check:
        return None
    return {
        "match_confidence_score": _score(face_check.get("matchConfidenceScore")),
        "source_photo_quality": face_check.get("sourcePhotoQuality"),
    }
