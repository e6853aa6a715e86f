"""
Access tokens for the Verified ID Request Service.

Client-credentials flow against Microsoft identity platform. Tenants are
provisioned with different resource IDs for the Request Service, so we try
each known scope in turn and keep the first one that works.
"""

import logging

import httpx

from portal import config

logger = logging.getLogger(__name__)


class TokenError(Exception):
    """Raised when no scope yields an access token."""


def token_endpoint() -> str:
    tenant = config.TENANT_ID or "common"
    return f"https://login.microsoftonline.com/{tenant}/oauth2/v2.0/token"


def _error_description(exc: Exception) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        try:
            return exc.response.json().get("error_description", str(exc))
        except ValueError:
            return exc.response.text or str(exc)
    return str(exc)


async def get_access_token(transport: httpx.AsyncBaseTransport | None = None) -> str:
    """Return a bearer token for the Request Service.

    Raises TokenError (chained to the last failure) when every scope fails.
    """
    form = {
        "client_id": config.CLIENT_ID or "your-client-id",
        "client_secret": config.CLIENT_SECRET or "your-client-secret",
        "grant_type": "client_credentials",
    }
    last_error: Exception | None = None

    async with httpx.AsyncClient(timeout=config.VERIFIED_ID_TIMEOUT_SECONDS, transport=transport) as client:
        for scope in config.TOKEN_SCOPES:
            logger.debug("Requesting token with scope %s", scope)
            try:
                resp = await client.post(token_endpoint(), data={**form, "scope": scope})
                resp.raise_for_status()
                token = resp.json()["access_token"]
            except (httpx.HTTPError, KeyError, ValueError) as e:
                logger.info("Token request failed for scope %s: %s", scope, _error_description(e))
                last_error = e
                continue

            logger.info("Authenticated with scope %s", scope)
            return token

    raise TokenError("All token scopes failed") from last_error
