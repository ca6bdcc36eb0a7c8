"""API schemas for the catalog API.

Pydantic models for request/response validation and serialization.
Money amounts are integers in minor units (cents).
"""

from typing import Any

from pydantic import BaseModel, Field


# ============================================================================
# Common Schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Standard error response.

    All API errors follow this format for consistency.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] = Field(default_factory=dict, description="Additional error context")
    request_id: str | None = Field(default=None, description="Request ID for correlation")


# ============================================================================
# Taxonomy Schemas
# ============================================================================


class GroupCreateRequest(BaseModel):
    """Request to create a section or a group."""

    name: str = Field(..., description="Group name")
    parent_id: int | None = Field(default=None, description="Parent section, omit for a section")
    description: str | None = Field(default=None, max_length=5000)
    sort_order: int | None = Field(default=None, description="Defaults to last among siblings")
    show_in_main_params: bool = False
    main_params_priority: int | None = None


class GroupUpdateRequest(BaseModel):
    """Partial group update; only fields sent are changed."""

    name: str | None = None
    parent_id: int | None = Field(default=None, description="New parent section, null for root")
    description: str | None = None
    sort_order: int | None = None
    is_active: bool | None = None
    show_in_main_params: bool | None = None
    main_params_priority: int | None = None


class GroupResponse(BaseModel):
    """Characteristic group."""

    id: int
    name: str
    description: str | None = None
    parent_id: int | None = None
    sort_order: int
    is_active: bool
    is_section: bool
    show_in_main_params: bool
    main_params_priority: int | None = None


class ValueCreateRequest(BaseModel):
    """Request to create a characteristic value."""

    value: str = Field(..., description="Display text")
    color_hex: str | None = Field(default=None, description="#RGB or #RRGGBB swatch")
    sort_order: int | None = None
    description: str | None = None


class ValueUpdateRequest(BaseModel):
    """Partial value update."""

    value: str | None = None
    color_hex: str | None = None
    sort_order: int | None = None
    description: str | None = None
    is_active: bool | None = None


class ValueResponse(BaseModel):
    """Characteristic value."""

    id: int
    group_id: int
    value: str
    color_hex: str | None = None
    description: str | None = None
    sort_order: int
    is_active: bool


class ValueListResponse(BaseModel):
    """Values of one group."""

    group_id: int
    items: list[ValueResponse]
    total: int


class ValueDeleteResponse(BaseModel):
    """Result of deleting a value."""

    value_id: int
    assignments_deleted: int


class TreeValueSchema(BaseModel):
    """Value as shown in tree and section views."""

    id: int
    group_id: int
    value: str
    color_hex: str | None = None
    sort_order: int
    is_selected: bool = False


class TaxonomyNodeSchema(BaseModel):
    """Group node of the taxonomy tree."""

    id: int
    name: str
    parent_id: int | None = None
    level: int
    full_path: str
    display_name: str
    is_section: bool
    sort_order: int
    description: str | None = None
    values: list[TreeValueSchema] = Field(default_factory=list)
    children: list["TaxonomyNodeSchema"] | None = None


TaxonomyNodeSchema.model_rebuild()


class TaxonomyTreeResponse(BaseModel):
    """Tree roots, or the pre-order list when ``flat`` was requested."""

    items: list[TaxonomyNodeSchema]
    flat: bool
    total: int


class SectionGroupSchema(BaseModel):
    """Group inside a section."""

    group_id: int
    group_name: str
    sort_order: int
    values: list[TreeValueSchema]


class SectionSchema(BaseModel):
    """Section with its groups; ``section_id`` is null for the synthetic section."""

    section_id: int | None = None
    section_name: str
    sort_order: int
    description: str = ""
    is_real_section: bool
    groups: list[SectionGroupSchema]


class SectionsResponse(BaseModel):
    """Sections view."""

    sections: list[SectionSchema]


# ============================================================================
# Delete Impact Schemas
# ============================================================================


class GroupRefSchema(BaseModel):
    """Minimal group reference."""

    id: int
    name: str
    is_section: bool
    type: str


class AffectedProductSchema(BaseModel):
    """Product in the affected sample."""

    id: int
    name: str


class DeleteImpactResponse(BaseModel):
    """What deleting a group would destroy."""

    group: GroupRefSchema
    child_groups: list[GroupRefSchema]
    values_in_group: int
    values_in_child_groups: int
    total_values: int
    assignments_affected: int
    affected_products: int
    affected_products_sample: list[AffectedProductSchema]
    warnings: list[str]


class DeleteResultResponse(BaseModel):
    """Result of a committed group delete."""

    group_id: int
    group_name: str
    forced: bool
    groups_deleted: int
    values_deleted: int
    assignments_deleted: int


# ============================================================================
# Facet Schemas
# ============================================================================


class FacetValueSchema(BaseModel):
    """Facet value with product count."""

    value_id: int
    value: str
    color_hex: str | None = None
    sort_order: int
    product_count: int


class FacetGroupSchema(BaseModel):
    """Facet group with product count."""

    group_id: int
    name: str
    sort_order: int
    product_count: int
    description: str | None = None
    show_in_main_params: bool = False
    main_params_priority: int | None = None
    values_count: int
    values: list[FacetValueSchema]


class FacetSectionSchema(BaseModel):
    """Facet section."""

    section_id: int | None = None
    section_name: str
    groups: list[FacetGroupSchema]


class FacetsResponse(BaseModel):
    """Filter panel content."""

    sections: list[FacetSectionSchema]
    total_groups: int
    total_values: int


# ============================================================================
# Assignment Schemas
# ============================================================================


class AssignmentItemRequest(BaseModel):
    """One assignment in a full-replace request."""

    value_id: int
    additional_value: str | None = Field(default=None, max_length=1000)


class AssignmentsUpdateRequest(BaseModel):
    """Complete desired assignment set."""

    values: list[AssignmentItemRequest] = Field(default_factory=list)


class AssignmentSchema(BaseModel):
    """Assignment joined with its value and group."""

    value_id: int
    value: str
    color_hex: str | None = None
    group_id: int
    group_name: str
    additional_value: str | None = None


class AssignmentsResponse(BaseModel):
    """Assignments of a product or variant."""

    owner_type: str
    owner_id: int
    assignments: list[AssignmentSchema]


class ConfigurableUpdateRequest(BaseModel):
    """Configurable characteristics document; must be an array."""

    characteristics: Any = Field(..., description="Array of characteristic descriptors")


class ConfigurableResponse(BaseModel):
    """Configurable characteristics of a product."""

    product_id: int
    characteristics: list[Any]


class GroupedCharacteristicsResponse(BaseModel):
    """Product editor view of characteristics."""

    product_id: int
    sections: list[SectionSchema]
    assignments: list[AssignmentSchema]


# ============================================================================
# Variant Schemas
# ============================================================================


class EffectiveValuesResponse(BaseModel):
    """Effective values of a product or variant."""

    product_id: int
    variant_id: int | None = None
    price: int = Field(..., description="Price in cents")
    discount_price: int | None = Field(default=None, description="Discounted price in cents")
    stock: int
    attributes: dict[str, Any]
    has_variant_overrides: bool


class VariantResponse(BaseModel):
    """Product variant."""

    id: int
    master_id: int
    sku: str
    name: str
    price_override: int | None = None
    discount_price: int | None = None
    stock_override: int | None = None
    attributes: dict[str, Any]
    is_default: bool
    status: str
    is_active: bool
    is_deleted: bool


class EnsureVariantResponse(BaseModel):
    """Result of ensuring a default variant."""

    variant: VariantResponse
    created: bool


class VariantListResponse(BaseModel):
    """Live variants of a product."""

    product_id: int
    items: list[VariantResponse]
    total: int
