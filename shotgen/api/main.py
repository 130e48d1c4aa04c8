"""
FastAPI Main Application
"""

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import structlog

from shotgen.config.settings import settings
from shotgen.core.asset_validator import AssetQuotaError
from shotgen.services.credential_pool import NoCredentialsError
from shotgen.services.group_store import GroupNotFoundError, GroupStateError


# Configure logging
logger = structlog.get_logger(__name__)


# Create FastAPI app
app = FastAPI(
    title="shotgen - Shot Grouping and Multi-Vendor Video Generation",
    description="Group script shots into bounded-duration clips and generate them across video vendors",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Health check endpoint
@app.get("/health")
async def health_check():
    """
    Health check endpoint

    Returns:
        JSON response with service health status
    """
    return {
        "status": "healthy",
        "version": "1.0.0",
        "service": "shotgen",
    }


# Exception handlers
def _serialize_validation_errors(errors):
    cleaned = []
    for err in errors:
        err_copy = err.copy()
        ctx = err_copy.get("ctx")
        if ctx:
            err_copy["ctx"] = {
                key: (str(value) if isinstance(value, Exception) else value)
                for key, value in ctx.items()
            }
        cleaned.append(err_copy)
    return cleaned


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Handle request validation errors (400)
    """
    logger.warning(
        "validation_error",
        path=request.url.path,
        errors=exc.errors(),
    )

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "details": _serialize_validation_errors(exc.errors()),
            }
        },
    )


@app.exception_handler(AssetQuotaError)
async def asset_quota_error_handler(request: Request, exc: AssetQuotaError):
    """
    Handle reference quota violations (400)
    """
    logger.warning(
        "asset_quota_error",
        path=request.url.path,
        code=exc.code,
        error=exc.message,
    )

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": {
                "code": exc.code,
                "message": exc.message,
                "suggested_modifications": exc.suggested_modifications,
            }
        },
    )


@app.exception_handler(NoCredentialsError)
async def no_credentials_error_handler(request: Request, exc: NoCredentialsError):
    """
    Handle missing vendor credentials (503)
    """
    logger.error("no_credentials", path=request.url.path)

    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "error": {
                "code": "NO_CREDENTIALS",
                "message": "No vendor API keys configured. Set VENDOR_API_KEYS",
            }
        },
    )


@app.exception_handler(GroupStateError)
async def group_state_error_handler(request: Request, exc: GroupStateError):
    """
    Handle group status conflicts (409)
    """
    logger.warning(
        "group_state_conflict",
        path=request.url.path,
        error=str(exc),
    )

    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={
            "error": {
                "code": "STATE_CONFLICT",
                "message": str(exc),
            }
        },
    )


@app.exception_handler(GroupNotFoundError)
async def group_not_found_handler(request: Request, exc: GroupNotFoundError):
    """
    Handle unknown group ids (404)
    """
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={
            "error": {
                "code": "GROUP_NOT_FOUND",
                "message": f"Shot group {exc.args[0] if exc.args else ''} not found",
            }
        },
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """
    Handle value errors (400)
    """
    logger.warning(
        "value_error",
        path=request.url.path,
        error=str(exc),
    )

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": {
                "code": "INVALID_VALUE",
                "message": str(exc),
            }
        },
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """
    Handle generic exceptions (500)
    """
    logger.error(
        "unexpected_error",
        path=request.url.path,
        error=str(exc),
        error_type=type(exc).__name__,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
            }
        },
    )


# Startup event
@app.on_event("startup")
async def startup_event():
    """
    Initialize application on startup
    """
    logger.info(
        "application_starting",
        log_level=settings.log_level,
        vendor_base_url=settings.vendor_base_url,
        video_model=settings.video_model,
        api_key_count=len(settings.api_key_list),
    )


# Shutdown event
@app.on_event("shutdown")
async def shutdown_event():
    """
    Cleanup on shutdown
    """
    from shotgen.api.dependencies import close_dispatcher

    await close_dispatcher()
    logger.info("application_shutting_down")


# Import routers
from shotgen.api.routes import generation, groups

# Register routers
app.include_router(groups.router, prefix="/v1", tags=["shot-groups"])
app.include_router(generation.router, prefix="/v1", tags=["generation"])


# Root endpoint
@app.get("/")
async def root():
    """
    Root endpoint

    Returns:
        JSON response with API information
    """
    return {
        "name": "shotgen Shot Grouping and Video Generation API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }
