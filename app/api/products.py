"""Product and variant API endpoints.

Provides endpoints for effective values, default variants, characteristic
assignments and configurable characteristics.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.schemas import (
    AssignmentSchema,
    AssignmentsResponse,
    AssignmentsUpdateRequest,
    ConfigurableResponse,
    ConfigurableUpdateRequest,
    EffectiveValuesResponse,
    EnsureVariantResponse,
    ErrorResponse,
    GroupedCharacteristicsResponse,
    VariantListResponse,
    VariantResponse,
)
from app.catalog.assignments import AssignmentInput
from app.catalog.repository import AssignmentRow, OwnerType
from app.catalog.service import CatalogService
from app.infrastructure.database import get_session

router = APIRouter(tags=["Products"])


# ============================================================================
# Dependencies
# ============================================================================


def get_service(session: Annotated[AsyncSession, Depends(get_session)]) -> CatalogService:
    """Get catalog service bound to the request session."""
    return CatalogService(session)


# ============================================================================
# Converters
# ============================================================================


def assignments_to_response(
    owner_type: OwnerType, owner_id: int, rows: list[AssignmentRow]
) -> AssignmentsResponse:
    """Convert assignment rows to response schema."""
    return AssignmentsResponse(
        owner_type=owner_type,
        owner_id=owner_id,
        assignments=[AssignmentSchema(**row.to_dict()) for row in rows],
    )


def to_inputs(request: AssignmentsUpdateRequest) -> list[AssignmentInput]:
    """Convert request items to service inputs."""
    return [
        AssignmentInput(value_id=item.value_id, additional_value=item.additional_value)
        for item in request.values
    ]


# ============================================================================
# Effective Values and Variants
# ============================================================================


@router.get(
    "/products/{product_id}/effective",
    response_model=EffectiveValuesResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Resolve effective values",
    description="Price, discount, stock and attributes after applying variant overrides.",
)
async def get_effective(
    product_id: int,
    service: Annotated[CatalogService, Depends(get_service)],
    variant_id: int | None = Query(default=None, description="Variant to apply"),
) -> EffectiveValuesResponse:
    """Resolve effective values of a product or one of its variants."""
    effective = await service.resolve_effective(product_id, variant_id)
    return EffectiveValuesResponse(**effective.to_dict())


@router.post(
    "/products/{product_id}/variant",
    response_model=EnsureVariantResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Ensure default variant",
)
async def ensure_variant(
    product_id: int,
    response: Response,
    service: Annotated[CatalogService, Depends(get_service)],
) -> EnsureVariantResponse:
    """Return the product's variant, creating a default one when it has none.

    Responds 201 when a variant was created and 200 when one existed.
    """
    result = await service.ensure_variant(product_id)
    if result.created:
        response.status_code = status.HTTP_201_CREATED
    return EnsureVariantResponse(**result.to_dict())


@router.get(
    "/products/{product_id}/variants",
    response_model=VariantListResponse,
    responses={404: {"model": ErrorResponse}},
    summary="List variants",
)
async def list_variants(
    product_id: int,
    service: Annotated[CatalogService, Depends(get_service)],
) -> VariantListResponse:
    """Live variants of a product, newest first."""
    variants = await service.list_variants(product_id)
    return VariantListResponse(
        product_id=product_id,
        items=[VariantResponse(**v.to_dict()) for v in variants],
        total=len(variants),
    )


@router.delete(
    "/variants/{variant_id}",
    response_model=VariantResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Soft-delete variant",
)
async def delete_variant(
    variant_id: int,
    service: Annotated[CatalogService, Depends(get_service)],
) -> VariantResponse:
    """Move a variant to the deleted state."""
    variant = await service.soft_delete_variant(variant_id)
    return VariantResponse(**variant.to_dict())


# ============================================================================
# Assignments
# ============================================================================


@router.get(
    "/products/{product_id}/assignments",
    response_model=AssignmentsResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get product assignments",
)
async def get_product_assignments(
    product_id: int,
    service: Annotated[CatalogService, Depends(get_service)],
) -> AssignmentsResponse:
    """Characteristic values assigned to a product."""
    rows = await service.get_assignments("product", product_id)
    return assignments_to_response("product", product_id, rows)


@router.put(
    "/products/{product_id}/assignments",
    response_model=AssignmentsResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Replace product assignments",
)
async def set_product_assignments(
    product_id: int,
    request: AssignmentsUpdateRequest,
    service: Annotated[CatalogService, Depends(get_service)],
) -> AssignmentsResponse:
    """Replace the complete assignment set of a product."""
    rows = await service.set_assignments("product", product_id, to_inputs(request))
    return assignments_to_response("product", product_id, rows)


@router.get(
    "/variants/{variant_id}/assignments",
    response_model=AssignmentsResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get variant assignments",
)
async def get_variant_assignments(
    variant_id: int,
    service: Annotated[CatalogService, Depends(get_service)],
) -> AssignmentsResponse:
    """Characteristic values assigned to a variant."""
    rows = await service.get_assignments("variant", variant_id)
    return assignments_to_response("variant", variant_id, rows)


@router.put(
    "/variants/{variant_id}/assignments",
    response_model=AssignmentsResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Replace variant assignments",
)
async def set_variant_assignments(
    variant_id: int,
    request: AssignmentsUpdateRequest,
    service: Annotated[CatalogService, Depends(get_service)],
) -> AssignmentsResponse:
    """Replace the complete assignment set of a variant."""
    rows = await service.set_assignments("variant", variant_id, to_inputs(request))
    return assignments_to_response("variant", variant_id, rows)


@router.get(
    "/products/{product_id}/characteristics",
    response_model=GroupedCharacteristicsResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get grouped characteristics",
)
async def get_grouped_characteristics(
    product_id: int,
    service: Annotated[CatalogService, Depends(get_service)],
) -> GroupedCharacteristicsResponse:
    """Sections view with the product's values flagged as selected."""
    grouped = await service.get_grouped_characteristics(product_id)
    return GroupedCharacteristicsResponse(**grouped.to_dict())


# ============================================================================
# Configurable Characteristics
# ============================================================================


@router.get(
    "/products/{product_id}/configurable-characteristics",
    response_model=ConfigurableResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get configurable characteristics",
)
async def get_configurable(
    product_id: int,
    service: Annotated[CatalogService, Depends(get_service)],
) -> ConfigurableResponse:
    """Configurable characteristics document of a product."""
    document = await service.get_configurable(product_id)
    return ConfigurableResponse(product_id=product_id, characteristics=document)


@router.put(
    "/products/{product_id}/configurable-characteristics",
    response_model=ConfigurableResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Replace configurable characteristics",
)
async def set_configurable(
    product_id: int,
    request: ConfigurableUpdateRequest,
    service: Annotated[CatalogService, Depends(get_service)],
) -> ConfigurableResponse:
    """Replace the document; it must be an array."""
    document = await service.set_configurable(product_id, request.characteristics)
    return ConfigurableResponse(product_id=product_id, characteristics=document)
