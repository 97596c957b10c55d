# Category routers (CRUD, listing, search, sync)
from .routes.categories import categories_router

# Health routers
from .routes.health import health_router

api_routers = [
    ("categories", categories_router),
    ("health", health_router),
]

__all__ = ["api_routers"]
