"""API route modules."""
from api.routes.connectors import router as connectors_router
from api.routes.launches import router as launches_router
from api.routes.search import router as search_router
from api.routes.system import router as system_router
from api.routes.versions import router as versions_router

__all__ = [
    "connectors_router",
    "launches_router",
    "search_router",
    "system_router",
    "versions_router",
]
