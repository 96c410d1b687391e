"""
Admin API Endpoints

Every route under /api/admin runs the require_admin dependency first
(rate-limit check, then key comparison). Handlers stay thin and delegate
to LinkService / AnalyticsService; errors are raised as GoLinksException
subclasses and rendered as JSON by the application exception handler.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from golinks.api.dependencies import get_clock, require_admin
from golinks.api.schemas import (
    CreateLinkRequest,
    CreateLinkResponse,
    DeleteLinkResponse,
    ResetLinkResponse,
    UpdateLinkRequest,
    UpdateLinkResponse,
)
from golinks.core.clock import Clock
from golinks.core.exceptions import EndpointNotFoundError
from golinks.db.session import get_session
from golinks.services.analytics_service import AnalyticsService
from golinks.services.link_service import LinkService

router = APIRouter(prefix="/api/admin", tags=["Admin"], dependencies=[Depends(require_admin)])

VALID_ENDPOINTS = (
    "Valid endpoints: GET /api/admin/links, POST /api/admin/links, PUT /api/admin/links/:id, "
    "DELETE /api/admin/links/:id, POST /api/admin/links/:id/reset, GET /api/admin/analytics"
)


def get_link_service(
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
) -> LinkService:
    return LinkService(session, clock=clock)


@router.get("/links", summary="List links")
async def list_links(
    page: int = 1,
    limit: int = 20,
    search: Optional[str] = None,
    service: LinkService = Depends(get_link_service),
):
    return await service.list_links(page=page, limit=limit, search=search)


@router.post("/links", response_model=CreateLinkResponse, summary="Create a link")
async def create_link(
    body: Optional[CreateLinkRequest] = None,
    service: LinkService = Depends(get_link_service),
) -> CreateLinkResponse:
    body = body or CreateLinkRequest()
    link = await service.create_link(body.shortCode, body.destinationUrl, body.notes)
    return CreateLinkResponse(
        id=link.id,
        shortCode=link.short_code,
        destinationUrl=link.destination_url,
        notes=link.notes,
        url=f"/{link.short_code}",
    )


@router.post("/links/{link_id:int}/reset", response_model=ResetLinkResponse, summary="Reset link statistics")
async def reset_link(
    link_id: int,
    service: LinkService = Depends(get_link_service),
) -> ResetLinkResponse:
    deleted = await service.reset_stats(link_id)
    return ResetLinkResponse(id=link_id, analyticsRecordsDeleted=deleted)


@router.put("/links/{link_id:int}", response_model=UpdateLinkResponse, summary="Update a link")
async def update_link(
    link_id: int,
    body: Optional[UpdateLinkRequest] = None,
    service: LinkService = Depends(get_link_service),
) -> UpdateLinkResponse:
    body = body or UpdateLinkRequest()
    link = await service.update_link(link_id, body.shortCode, body.destinationUrl)
    return UpdateLinkResponse(id=link.id, shortCode=link.short_code, destinationUrl=link.destination_url)


@router.delete("/links/{link_id:int}", response_model=DeleteLinkResponse, summary="Delete a link")
async def delete_link(
    link_id: int,
    service: LinkService = Depends(get_link_service),
) -> DeleteLinkResponse:
    await service.delete_link(link_id)
    return DeleteLinkResponse(id=link_id)


@router.get("/analytics", summary="List click events")
async def list_analytics(
    page: int = 1,
    limit: int = 50,
    linkId: Optional[int] = None,
    country: Optional[str] = None,
    dateFrom: Optional[str] = None,
    dateTo: Optional[str] = None,
    session: AsyncSession = Depends(get_session),
):
    return await AnalyticsService(session).list_events(
        page=page,
        limit=limit,
        link_id=linkId,
        country=country,
        date_from=dateFrom,
        date_to=dateTo,
    )


@router.api_route("/{path:path}", methods=["GET", "POST", "PUT", "DELETE"], include_in_schema=False)
async def unknown_admin_endpoint(path: str, request: Request):
    raise EndpointNotFoundError(
        "Endpoint not found",
        hint=VALID_ENDPOINTS,
        path=request.url.path,
        method=request.method,
    )
