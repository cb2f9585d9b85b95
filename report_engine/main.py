"""FastAPI application entry point.

Main application setup with middleware, routing, and lifecycle management.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from report_engine.api.reports import router as reports_router
from report_engine.api.schemas import ErrorResponse
from report_engine.core.config import Settings, get_settings
from report_engine.core.factory import ComponentFactory
from report_engine.core.logging_config import setup_logging
from report_engine.interfaces.errors import ReportEngineError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    Resolves the document store once at startup so a bad storage
    configuration fails fast instead of on the first request.
    """
    settings: Settings = app.state.settings

    # Startup
    logger.info("Starting Report Assembly Engine API...")
    try:
        store = app.state.factory.get_document_store()
        logger.info(f"Document store ready (storage_type={settings.storage_type})")
    except Exception as e:
        logger.error(f"Failed to initialize document store: {e}", exc_info=True)
        raise

    if not store.exists(settings.schema_document):
        logger.warning(f"Schema document {settings.schema_document} not found; reports will fail until it exists")

    yield

    # Shutdown
    logger.info("Shutting down Report Assembly Engine API...")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings. If None, loads from environment.

    Returns:
        Configured FastAPI application instance.
    """
    try:
        settings = settings or get_settings()
        setup_logging(settings)

        app = FastAPI(
            title="Report Assembly Engine",
            description="Schema-driven data merge and DOCX report rendering",
            version="0.1.0",
            lifespan=lifespan,
            docs_url="/docs",
            redoc_url="/redoc",
        )

        # Store settings and the component factory in app state
        app.state.settings = settings
        app.state.factory = ComponentFactory(settings)

        # CORS middleware
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],  # Configure appropriately for production
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        # Include routers
        try:
            app.include_router(reports_router)
            logger.info("Registered reports router")
        except Exception as e:
            logger.error(f"Failed to include router: {e}", exc_info=True)
            raise

        # Health check endpoint
        @app.get("/health", tags=["health"])
        async def health_check():
            """Health check endpoint for load balancers and monitoring."""
            return {
                "status": "healthy",
                "service": "report-assembly-api",
                "version": "0.1.0",
            }

        # Exception handlers
        @app.exception_handler(RequestValidationError)
        async def validation_exception_handler(request, exc):
            """Handle Pydantic validation errors."""
            logger.warning(f"Validation error: {exc.errors()}")
            return JSONResponse(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                content=jsonable_encoder({
                    "detail": "Validation error",
                    "errors": exc.errors(),
                }),
            )

        @app.exception_handler(ReportEngineError)
        async def engine_exception_handler(request, exc):
            """Handle engine errors that no route translated."""
            logger.error(f"Unhandled engine error: {exc}", exc_info=True)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content=ErrorResponse(
                    detail=exc.message,
                    error_code=exc.kind.upper(),
                    extra=exc.to_dict(),
                ).model_dump(),
            )

        @app.exception_handler(Exception)
        async def general_exception_handler(request, exc):
            """Handle uncaught exceptions."""
            logger.error(f"Unhandled exception: {exc}", exc_info=True)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content=ErrorResponse(
                    detail="Internal server error",
                    error_code="INTERNAL_ERROR",
                ).model_dump(),
            )

        logger.info("FastAPI application created successfully")
        return app

    except Exception as e:
        logger.error(f"Failed to create FastAPI app: {e}", exc_info=True)
        raise


# Create the app instance
try:
    app = create_app()
except Exception as e:
    logger.error(f"Fatal error creating app: {e}", exc_info=True)
    raise


if __name__ == "__main__":
    import uvicorn

    try:
        settings = get_settings()
        logger.info("Starting uvicorn server on port 8000...")
        uvicorn.run(
            "report_engine.main:app",
            host="0.0.0.0",
            port=8000,
            reload=True,
            log_level=settings.log_level.lower(),
        )
    except Exception as e:
        logger.error(f"Failed to start uvicorn: {e}", exc_info=True)
        raise
