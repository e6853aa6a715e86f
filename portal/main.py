"""
Contoso Finance Portal API -- Application entry point.

Run with:
    uvicorn portal.main:app --reload

Then open http://localhost:8000/docs for the interactive Swagger UI.

This file:
  1. Configures logging
  2. Creates the FastAPI application
  3. Adds CORS middleware (permissive for demo)
  4. Mounts all route modules (entities, verify, callback, transactions)
  5. Defines the health check endpoint
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from portal import config
from portal.models.schemas import HealthResponse
from portal.routes import callback, entities, transactions, verify
from portal.store import transactions as ledger
from portal.store import verification_requests

logging.basicConfig(
    level=config.LOG_LEVEL.upper(),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Contoso Finance Portal API",
    version="0.1.0",
    description=(
        "Demo financial-transaction portal. Transfers above $50,000 need CFO "
        "approval through a Microsoft Entra Verified ID presentation request "
        "with Face Check.\n\n"
        "| Endpoint | Purpose |\n"
        "|----------|--------|\n"
        "| `GET /api/entities` | Company entities |\n"
        "| `POST /api/verify` | Start CFO verification |\n"
        "| `GET /api/verification-status/{id}` | Poll verification |\n"
        "| `POST /api/verification-callback` | Verified ID webhook |\n"
        "| `POST /api/transactions` | Record a transfer |\n"
    ),
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],         # demo only
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(entities.router)
app.include_router(verify.router)
app.include_router(callback.router)
app.include_router(transactions.router)


@app.on_event("startup")
async def startup():
    for name, value in config.describe().items():
        logger.info("%s: %s", name, value)

    if config.is_local_mode():
        logger.warning(
            "BASE_URL is not publicly accessible. Verified ID needs a public "
            "callback URL (e.g. `ngrok http 8000`, then BASE_URL=https://<id>.ngrok.io). "
            "Falling back to polling and local simulation."
        )


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get(
    "/api/health",
    response_model=HealthResponse,
    summary="Health check",
    tags=["System"],
)
async def health() -> HealthResponse:
    return HealthResponse(
        status="healthy",
        mode="local" if config.is_local_mode() else "callback",
        pending_verifications=len(verification_requests),
        transactions_recorded=len(ledger),
    )
