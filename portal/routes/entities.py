"""
GET /api/entities -- Company entities.

Static seed data. Budgets are shown in the UI but never changed by
transactions in demo mode.
"""

from fastapi import APIRouter

from portal.models.schemas import Entity
from portal.store import ENTITIES

router = APIRouter()


@router.get(
    "/api/entities",
    response_model=list[Entity],
    summary="List company entities",
    tags=["Entities"],
)
async def list_entities() -> list[Entity]:
    return [Entity(**entity) for entity in ENTITIES]
