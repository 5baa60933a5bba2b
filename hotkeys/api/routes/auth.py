from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse

from hotkeys.api.dependencies import get_oauth_client
from hotkeys.core.exceptions import ConfigurationError, OAuthError
from hotkeys.services.oauth_svc import RedditOAuthClient

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


@router.get("/reddit")
async def start_reddit_authorization(
    oauth_client: RedditOAuthClient = Depends(get_oauth_client),
) -> RedirectResponse:
    """Redirect the operator to Reddit's consent page."""
    try:
        authorize_url, _ = oauth_client.build_authorize_url()
    except ConfigurationError as exc:
        logger.error("Reddit OAuth not configured: %s", exc)
        raise HTTPException(status_code=500, detail="Reddit OAuth is not configured on the server.")
    return RedirectResponse(authorize_url, status_code=302)


@router.get("/reddit/callback")
async def reddit_authorization_callback(
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    oauth_client: RedditOAuthClient = Depends(get_oauth_client),
) -> dict[str, Any]:
    """Exchange the authorization code and cache the resulting tokens."""
    if error:
        raise HTTPException(status_code=400, detail=f"Reddit authorization failed: {error}")
    if not code:
        raise HTTPException(status_code=400, detail="Missing authorization code.")

    try:
        token_id, token = await oauth_client.complete_authorization(code, state)
    except ConfigurationError as exc:
        logger.error("Reddit OAuth not configured: %s", exc)
        raise HTTPException(status_code=500, detail="Reddit OAuth is not configured on the server.")
    except OAuthError as exc:
        logger.error("Reddit OAuth callback failed: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc))

    return {
        "status": "authorized",
        "token_id": token_id,
        "user": token.identity.get("name"),
        "scope": token.scope,
        "expires_in": token.expires_in,
    }


@router.get("/tokens/{token_id}")
async def get_token_metadata(
    token_id: str,
    oauth_client: RedditOAuthClient = Depends(get_oauth_client),
) -> dict[str, Any]:
    """Token metadata without the secrets themselves."""
    token = oauth_client.get_token_info(token_id)
    if token is None:
        raise HTTPException(status_code=404, detail="Token not found or expired.")
    return {
        "user": token.identity.get("name"),
        "scope": token.scope,
        "expires_in": token.expires_in,
        "has_refresh_token": bool(token.refresh_token),
    }
