"""Facet API endpoints.

Provides the storefront filter panel content.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.schemas import FacetsResponse
from app.catalog.facets import FacetFilter
from app.catalog.service import CatalogService
from app.infrastructure.database import get_session

router = APIRouter(prefix="/facets", tags=["Facets"])


def get_service(session: Annotated[AsyncSession, Depends(get_session)]) -> CatalogService:
    """Get catalog service bound to the request session."""
    return CatalogService(session)


@router.get(
    "",
    response_model=FacetsResponse,
    summary="Get facets",
    description="Groups and values carried by live, in-stock products, with product counts.",
)
async def get_facets(
    service: Annotated[CatalogService, Depends(get_service)],
    category_id: int | None = Query(default=None, description="Restrict to a category"),
    manufacturer_id: int | None = Query(default=None, description="Restrict to a manufacturer"),
) -> FacetsResponse:
    """Compute facets for the filter panel."""
    result = await service.get_facets(
        FacetFilter(category_id=category_id, manufacturer_id=manufacturer_id)
    )
    return FacetsResponse(**result.to_dict())
