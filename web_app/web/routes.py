"""Redirect routes."""

from typing import Dict, List

from fastapi import APIRouter, Request, HTTPException, status
from fastapi.responses import RedirectResponse

router = APIRouter()


@router.get("/", include_in_schema=False)
async def index():
    """Service banner; the root path is never a key."""
    return {"service": "link-shortener", "status": "ok"}


@router.get("/health", include_in_schema=False)
async def health_check_web(request: Request):
    """Health check endpoint (simple version for load balancers)."""
    store = request.app.state.store

    health = await store.health_check()

    if health["overall"]:
        return {"status": "healthy"}
    else:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service unhealthy",
        )


@router.get("/{raw_token:path}", include_in_schema=False)
async def redirect_to_destination(request: Request, raw_token: str):
    """Redirect a short link to its destination.

    301 with the stored URL (request query merged in) on a match, otherwise
    302 to the configured default location.
    """
    resolver = request.app.state.resolver

    params: Dict[str, List[str]] = {}
    for key, value in request.query_params.multi_items():
        params.setdefault(key, []).append(value)

    outcome = await resolver.resolve(raw_token, params)

    return RedirectResponse(url=outcome.location, status_code=outcome.status_code)
