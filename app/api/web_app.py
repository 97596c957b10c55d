# Standard library
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone

# Third party
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse, Response
from sqlalchemy import text
from yaml import dump

# Local imports
from app.core.config import settings
from app.core.logging import get_logger
import app.api as api


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for FastAPI application startup and shutdown events"""
    # Startup
    logger.info("🚀 Categories API starting up...")

    # Test database connection
    try:
        from app.db.base import get_db_session, init_db

        if settings.DB_CREATE_TABLES:
            init_db()

        session_gen = get_db_session()
        session = next(session_gen)
        session.execute(text("SELECT 1")).fetchone()
        session.close()
        logger.info("✅ Database connection successful")
    except Exception as e:
        logger.error(f"❌ Database connection failed: {e}")
        raise

    yield  # This is where FastAPI serves the application

    # Shutdown
    logger.info("🛑 Categories API shutting down...")


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""

    app = FastAPI(
        title="Categories",
        description="Categories is a CRUD service for hierarchical category trees.",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        default_response_class=JSONResponse,
        debug=settings.DEBUG,
    )

    # Mount APIs
    for name, router in api.api_routers:
        app.include_router(router, prefix="/api/v1", tags=[name])

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure properly for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add request/response logging middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = uuid.uuid4().hex[:8]
        logger.info(f"[{request_id}] {request.method} {request.url}")
        logger.debug(f"[{request_id}] Query Params: {dict(request.query_params)}")

        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            logger.error(
                f"[{request_id}] Request failed after {process_time:.4f}s: {str(e)}",
                exc_info=True,
            )
            raise  # Re-raise the exception so it's handled properly

        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)
        response.headers["X-Request-ID"] = request_id

        log = logger.warning if response.status_code >= 400 else logger.info
        log(f"[{request_id}] {response.status_code} in {process_time:.4f}s")

        return response

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint for load balancers and monitoring"""
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    # OpenAPI specification in YAML format
    @app.get("/openapi.yaml", include_in_schema=False)
    async def get_openapi_yaml():
        """Serve full OpenAPI specification in YAML format"""
        openapi_schema = get_openapi(
            title=app.title,
            version=app.version,
            description=app.description,
            routes=app.routes,
        )

        # Convert to YAML
        yaml_content = dump(openapi_schema, default_flow_style=False, sort_keys=False)

        return Response(content=yaml_content, media_type="application/x-yaml")

    return app


# Create the global FastAPI instance
app = create_app()
