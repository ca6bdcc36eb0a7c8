"""API layer module.

Contains FastAPI routers and request/response schemas.
"""

from app.api.facets import router as facets_router
from app.api.health import router as health_router
from app.api.products import router as products_router
from app.api.taxonomy import router as taxonomy_router

__all__ = [
    "facets_router",
    "health_router",
    "products_router",
    "taxonomy_router",
]
