"""API routes implementation."""

from typing import Optional

from fastapi import APIRouter, Request, HTTPException, Query, status
from datetime import datetime, timezone

from .schemas import (
    ShortenRequest,
    LinkResponse,
    LinkListResponse,
    HealthResponse,
    ErrorResponse,
    StatisticsResponse,
)
from shortener.common.url_builder import build_short_url
from shortener.common.headers import build_base_url, get_forwarded_path_prefix
from shortener.database.models import OwnerRef, ShortenedLink
from shortener.exceptions import (
    InvalidURLError,
    InvalidCustomKeyError,
    CustomKeyTakenError,
    KeyAllocationExhaustedError,
    DataStoreError,
)

router = APIRouter()


def _short_url(request: Request, link: ShortenedLink) -> str:
    config = request.app.state.config
    headers = dict(request.headers)

    base_url = build_base_url(
        headers=headers,
        fallback_base_url=config.base_url,
        request_scheme=request.url.scheme,
        request_host=request.headers.get("host"),
    )

    return build_short_url(
        token=link.token,
        base_url=base_url,
        path_prefix=get_forwarded_path_prefix(headers) or config.path_prefix,
    )


@router.post(
    "/shorten",
    response_model=LinkResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid URL or key"},
        409: {"model": ErrorResponse, "description": "Key already taken"},
        503: {"model": ErrorResponse, "description": "No key could be allocated or database unavailable"},
    },
    summary="Create short link",
    description="Create (or reuse) a short link for a URL. Optionally provide a custom key, owner and expiration.",
)
async def shorten_url(request: Request, body: ShortenRequest):
    """Create a short link."""
    store = request.app.state.store

    try:
        link = await store.generate(
            body.url,
            owner=body.owner,
            custom_key=body.custom_key,
            expires_at=body.expires_at,
            fresh=body.fresh,
        )
    except (InvalidURLError, InvalidCustomKeyError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except CustomKeyTakenError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except (KeyAllocationExhaustedError, DataStoreError) as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    return LinkResponse.from_link(link, _short_url(request, link))


@router.get(
    "/links/{token}",
    response_model=LinkResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Key not found"},
    },
    summary="Get link",
    description="Get a short link, including expired ones, with its use count.",
)
async def get_link(request: Request, token: str):
    """Get information about a short link."""
    store = request.app.state.store

    link = await store.find_link(token)

    if not link:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Key '{token}' not found",
        )

    return LinkResponse.from_link(link, _short_url(request, link))


@router.get(
    "/links",
    response_model=LinkListResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Incomplete owner"},
    },
    summary="List links",
    description="List the most recent links, optionally only those of one owner.",
)
async def list_links(
    request: Request,
    owner_kind: Optional[str] = None,
    owner_id: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000),
):
    """List short links."""
    store = request.app.state.store

    if (owner_kind is None) != (owner_id is None):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="owner_kind and owner_id must be given together",
        )

    links = await store.list_links(owner=OwnerRef.from_parts(owner_kind, owner_id), limit=limit)

    return LinkListResponse(links=[LinkResponse.from_link(link, _short_url(request, link)) for link in links])


@router.get(
    "/stats",
    response_model=StatisticsResponse,
    summary="Get statistics",
    description="Get service-wide statistics.",
)
async def get_statistics(request: Request):
    """Get service statistics."""
    store = request.app.state.store

    stats = await store.get_statistics()

    return StatisticsResponse(**stats)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check if the service is healthy.",
)
async def health_check(request: Request):
    """Health check endpoint for monitoring."""
    store = request.app.state.store

    health = await store.health_check()

    return HealthResponse(
        status="healthy" if health["overall"] else "unhealthy",
        database="healthy" if health["database"] else "unhealthy",
        cache="healthy" if health["cache"] else "unhealthy",
        timestamp=datetime.now(timezone.utc),
    )
