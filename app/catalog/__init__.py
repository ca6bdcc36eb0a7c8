"""Characteristic Catalog.

Taxonomy of sections, groups and values, EAV assignments, variant
override resolution, cascade-delete impact and storefront facets.
"""

from app.catalog.assignments import AssignmentInput, AssignmentService
from app.catalog.facets import FacetEngine, FacetFilter, FacetResult, build_facets
from app.catalog.impact import DeleteImpact, DeleteImpactCalculator, DeleteResult
from app.catalog.models import (
    CharacteristicAssignment,
    CharacteristicGroup,
    CharacteristicValue,
    ConfigurableCharacteristics,
    Product,
    ProductVariant,
)
from app.catalog.repository import (
    AssignmentRepository,
    FacetRepository,
    ProductRepository,
    TaxonomyRepository,
)
from app.catalog.service import CatalogService
from app.catalog.taxonomy import TaxonomyNode, TaxonomyTreeBuilder, build_sections, flatten_tree
from app.catalog.variants import EffectiveValues, VariantService, resolve_effective

__all__ = [
    # Models
    "Product",
    "ProductVariant",
    "CharacteristicGroup",
    "CharacteristicValue",
    "CharacteristicAssignment",
    "ConfigurableCharacteristics",
    # Repositories
    "TaxonomyRepository",
    "ProductRepository",
    "AssignmentRepository",
    "FacetRepository",
    # Taxonomy
    "TaxonomyNode",
    "TaxonomyTreeBuilder",
    "build_sections",
    "flatten_tree",
    # Impact
    "DeleteImpact",
    "DeleteImpactCalculator",
    "DeleteResult",
    # Variants
    "EffectiveValues",
    "VariantService",
    "resolve_effective",
    # Assignments
    "AssignmentInput",
    "AssignmentService",
    # Facets
    "FacetEngine",
    "FacetFilter",
    "FacetResult",
    "build_facets",
    # Service
    "CatalogService",
]
