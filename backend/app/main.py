"""
FastAPI Application Entry Point
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.v1.endpoints import health
from app.api.v1.routes import api_router
from app.core.config import get_settings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan - startup and shutdown events.

    Startup:
    - Validates provider configurations

    Shutdown:
    - Closes the shared outbound HTTP client
    """
    logger.info("Starting Voice Campaign Orchestrator...")

    settings = get_settings()
    strict_validation = settings.environment == "production"

    try:
        from app.core.validation import validate_providers_on_startup
        validate_providers_on_startup(strict=strict_validation)
    except RuntimeError as e:
        if strict_validation:
            logger.error(f"Startup failed: {e}")
            raise
        logger.warning(f"Configuration warnings (non-fatal in {settings.environment}): {e}")

    logger.info("Voice Campaign Orchestrator started successfully")

    yield  # Application is running

    logger.info("Shutting down Voice Campaign Orchestrator...")
    try:
        from app.infrastructure.http import close_http_client
        await close_http_client()
    except Exception as e:
        logger.error(f"Error during shutdown: {e}")

    logger.info("Voice Campaign Orchestrator shutdown complete")


app = FastAPI(
    title="Voice Campaign Orchestrator",
    description="Outbound voice campaigns, call-center webhooks and 1:1 call reassignment",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are client errors (400), not 422."""
    errors = exc.errors()
    fields = ", ".join(
        ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        for error in errors
    )
    return JSONResponse(
        status_code=400,
        content={"detail": f"Missing or invalid fields: {fields}" if fields else "Invalid request"}
    )


app.include_router(health.router)
app.include_router(api_router, prefix=get_settings().api_prefix)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
