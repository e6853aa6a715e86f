"""
In-memory data store for demo mode.

Nothing here survives a restart. Entities are static seed data; pending
verification requests and the transaction ledger are filled at runtime.
"""

# Static company entities. Read-only: budgets are for display only.
ENTITIES: list[dict] = [
    {
        "id": "CONTOSO-HQ",
        "name": "Contoso Corporation - Headquarters",
        "type": "Corporate",
        "budget": 5_000_000,
        "used_budget": 2_350_000,
        "status": "active",
    },
    {
        "id": "CONTOSO-SALES",
        "name": "Contoso Sales Division - Americas",
        "type": "Sales",
        "budget": 2_500_000,
        "used_budget": 1_850_000,
        "status": "active",
    },
    {
        "id": "CONTOSO-ENG",
        "name": "Contoso Engineering Department",
        "type": "Engineering",
        "budget": 8_000_000,
        "used_budget": 4_200_000,
        "status": "active",
    },
    {
        "id": "CONTOSO-MKT",
        "name": "Contoso Marketing & Communications",
        "type": "Marketing",
        "budget": 1_500_000,
        "used_budget": 890_000,
        "status": "active",
    },
    {
        "id": "FABRIKAM-US",
        "name": "Fabrikam Inc. - US Operations",
        "type": "Subsidiary",
        "budget": 4_500_000,
        "used_budget": 2_100_000,
        "status": "active",
    },
    {
        "id": "WOODGROVE-BANK",
        "name": "Woodgrove Financial Services",
        "type": "Financial",
        "budget": 6_800_000,
        "used_budget": 3_250_000,
        "status": "active",
    },
]

# request_id -> verification request state (as dict)
# Keyed by the id we send to Verified ID as callback `state`.
verification_requests: dict[str, dict] = {}

# Completed transactions, oldest first.
transactions: list[dict] = []


def find_entity(entity_id: str) -> dict | None:
    for entity in ENTITIES:
        if entity["id"] == entity_id:
            return entity
    return None


def reset() -> None:
    """Drop all runtime state. Used by tests."""
    verification_requests.clear()
    transactions.clear()
