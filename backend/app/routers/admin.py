"""
Admin API Router
================
Token management and upstream health, behind an API key.

ENDPOINTS:
    GET  /api/admin/energo-token   - Is a token set? (masked)
    POST /api/admin/energo-token   - Paste a new Energo bearer token
    GET  /api/admin/health         - Can we reach ChargeNow?
    POST /api/admin/cache/clear    - Drop every cached provider answer

AUTH:
    Every request needs the header:  x-api-key: <ADMIN_API_KEY>

Author: CUUB Battery Team
"""

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Header, Depends

from app.models import TokenStatusResponse, TokenUpdateRequest
from app.routers.stations import get_station_manager
from app.utils import mask_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


# =============================================================================
# API KEY
# =============================================================================

_admin_api_key: Optional[str] = None  # Set when the app starts


def set_admin_api_key(api_key: Optional[str]):
    global _admin_api_key
    _admin_api_key = api_key


def verify_api_key(x_api_key: Optional[str] = Header(None)) -> str:
    """
    Verify the x-api-key header.

    Raises:
        HTTPException: 503 if no admin key is configured, 401 if it doesn't match
    """
    if not _admin_api_key:
        raise HTTPException(status_code=503, detail="Admin API is not configured")

    if not x_api_key or not hmac.compare_digest(x_api_key, _admin_api_key):
        raise HTTPException(status_code=401, detail="Invalid API key")

    return x_api_key


def _token_status(manager) -> TokenStatusResponse:
    token = manager.get_token()
    return TokenStatusResponse(
        has_token=bool(token),
        token_preview=mask_token(token) or None,
        keep_alive_running=bool(manager.keep_alive and manager.keep_alive.is_running),
    )


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("/energo-token", response_model=TokenStatusResponse)
async def get_energo_token(
    _: str = Depends(verify_api_key),
    manager = Depends(get_station_manager),
):
    return _token_status(manager)


@router.post("/energo-token", response_model=TokenStatusResponse)
async def update_energo_token(
    request: TokenUpdateRequest,
    _: str = Depends(verify_api_key),
    manager = Depends(get_station_manager),
):
    """
    Replace the Energo bearer token.

    Takes effect on the very next Energo request (the token is re-read
    from disk every time).
    """
    token = request.token.strip()
    if not token:
        raise HTTPException(status_code=400, detail="Token must not be blank")

    if not manager.update_token(token):
        raise HTTPException(status_code=500, detail="Failed to save token")

    logger.info(f"Energo token replaced ({mask_token(token)})")
    return _token_status(manager)


@router.get("/health")
async def upstream_health(
    _: str = Depends(verify_api_key),
    manager = Depends(get_station_manager),
):
    """Probe the ChargeNow API."""
    return {"chargenow": await manager.check_api_health()}


@router.post("/cache/clear")
async def clear_cache(
    _: str = Depends(verify_api_key),
    manager = Depends(get_station_manager),
):
    cleared = len(manager.cache)
    manager.cache.clear()
    return {"cleared": cleared}
