"""Taxonomy API endpoints.

Provides endpoints for the section/group/value hierarchy, the delete
impact preview and cascade deletion.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.schemas import (
    DeleteImpactResponse,
    DeleteResultResponse,
    ErrorResponse,
    GroupCreateRequest,
    GroupResponse,
    GroupUpdateRequest,
    SectionsResponse,
    TaxonomyNodeSchema,
    TaxonomyTreeResponse,
    ValueCreateRequest,
    ValueDeleteResponse,
    ValueListResponse,
    ValueResponse,
    ValueUpdateRequest,
)
from app.catalog.service import CatalogService
from app.infrastructure.database import get_session

router = APIRouter(prefix="/taxonomy", tags=["Taxonomy"])


# ============================================================================
# Dependencies
# ============================================================================


def get_service(session: Annotated[AsyncSession, Depends(get_session)]) -> CatalogService:
    """Get catalog service bound to the request session."""
    return CatalogService(session)


# ============================================================================
# Tree and Sections
# ============================================================================


@router.get(
    "/tree",
    response_model=TaxonomyTreeResponse,
    summary="Get taxonomy tree",
    description="Active groups as a nested tree, or as a pre-order list with flat=true.",
)
async def get_tree(
    service: Annotated[CatalogService, Depends(get_service)],
    flat: bool = Query(default=False, description="Return the pre-order list"),
) -> TaxonomyTreeResponse:
    """Get the taxonomy tree."""
    if flat:
        nodes = await service.list_tree_flat()
        items = [TaxonomyNodeSchema(**n.to_dict(include_children=False)) for n in nodes]
    else:
        nodes = await service.list_tree()
        items = [TaxonomyNodeSchema(**n.to_dict()) for n in nodes]
    return TaxonomyTreeResponse(items=items, flat=flat, total=len(items))


@router.get("/sections", response_model=SectionsResponse, summary="Get sections view")
async def get_sections(
    service: Annotated[CatalogService, Depends(get_service)],
) -> SectionsResponse:
    """Sections with their groups, plus the synthetic trailing section."""
    sections = await service.get_sections()
    return SectionsResponse(sections=[s.to_dict() for s in sections])


# ============================================================================
# Groups
# ============================================================================


@router.post(
    "/groups",
    response_model=GroupResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Create group",
)
async def create_group(
    request: GroupCreateRequest,
    service: Annotated[CatalogService, Depends(get_service)],
) -> GroupResponse:
    """Create a section or a group under a section.

    Args:
        request: Group fields.
        service: Catalog service.

    Returns:
        Created group.
    """
    group = await service.create_group(
        name=request.name,
        parent_id=request.parent_id,
        description=request.description,
        sort_order=request.sort_order,
        show_in_main_params=request.show_in_main_params,
        main_params_priority=request.main_params_priority,
    )
    return GroupResponse(**group.to_dict())


@router.patch(
    "/groups/{group_id}",
    response_model=GroupResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Update group",
)
async def update_group(
    group_id: int,
    request: GroupUpdateRequest,
    service: Annotated[CatalogService, Depends(get_service)],
) -> GroupResponse:
    """Update a group; sending ``parent_id`` moves it."""
    group = await service.update_group(group_id, request.model_dump(exclude_unset=True))
    return GroupResponse(**group.to_dict())


@router.get(
    "/groups/{group_id}/delete-impact",
    response_model=DeleteImpactResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Preview group deletion",
    description="Counts of child groups, values, assignments and products a delete would affect.",
)
async def get_delete_impact(
    group_id: int,
    service: Annotated[CatalogService, Depends(get_service)],
) -> DeleteImpactResponse:
    """Compute the delete impact of a group."""
    impact = await service.get_delete_impact(group_id)
    return DeleteImpactResponse(**impact.to_dict())


@router.delete(
    "/groups/{group_id}",
    response_model=DeleteResultResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Delete group",
)
async def delete_group(
    group_id: int,
    service: Annotated[CatalogService, Depends(get_service)],
    force: bool = Query(default=False, description="Cascade through children and values"),
) -> DeleteResultResponse:
    """Delete a group.

    Without ``force`` the request is refused with 409 ``HAS_CHILDREN`` or
    ``HAS_ASSIGNMENTS`` while the group is still in use.
    """
    result = await service.delete_group(group_id, force=force)
    return DeleteResultResponse(**result.to_dict())


# ============================================================================
# Values
# ============================================================================


@router.get(
    "/groups/{group_id}/values",
    response_model=ValueListResponse,
    responses={404: {"model": ErrorResponse}},
    summary="List group values",
)
async def get_group_values(
    group_id: int,
    service: Annotated[CatalogService, Depends(get_service)],
) -> ValueListResponse:
    """Active values of a group."""
    values = await service.get_group_values(group_id)
    return ValueListResponse(
        group_id=group_id,
        items=[ValueResponse(**v.to_dict()) for v in values],
        total=len(values),
    )


@router.post(
    "/groups/{group_id}/values",
    response_model=ValueResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Create value",
)
async def create_value(
    group_id: int,
    request: ValueCreateRequest,
    service: Annotated[CatalogService, Depends(get_service)],
) -> ValueResponse:
    """Create a value in a group."""
    value = await service.create_value(
        group_id,
        value=request.value,
        color_hex=request.color_hex,
        sort_order=request.sort_order,
        description=request.description,
    )
    return ValueResponse(**value.to_dict())


@router.patch(
    "/values/{value_id}",
    response_model=ValueResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Update value",
)
async def update_value(
    value_id: int,
    request: ValueUpdateRequest,
    service: Annotated[CatalogService, Depends(get_service)],
) -> ValueResponse:
    """Update a value."""
    value = await service.update_value(value_id, request.model_dump(exclude_unset=True))
    return ValueResponse(**value.to_dict())


@router.delete(
    "/values/{value_id}",
    response_model=ValueDeleteResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Delete value",
)
async def delete_value(
    value_id: int,
    service: Annotated[CatalogService, Depends(get_service)],
) -> ValueDeleteResponse:
    """Delete a value and its assignments."""
    return ValueDeleteResponse(**await service.delete_value(value_id))
