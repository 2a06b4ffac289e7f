from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from shortlink_app.config import settings
from shortlink_app.database.connection import engine, Base
from shortlink_app.exceptions import LinkVersionError
from shortlink_app.logging_config import configure_logging
from shortlink_app.api.v1 import links, versions, admin

# Import models to ensure they're registered with Base
from shortlink_app.models import User, Link, LinkVersion

logger = configure_logging()

# Create database tables
Base.metadata.create_all(bind=engine)

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Short link service with versioned edit history and rollback",
    debug=settings.debug
)


@app.exception_handler(LinkVersionError)
async def link_version_error_handler(request: Request, exc: LinkVersionError):
    """Map service errors to the same {"detail": ...} body HTTPException uses"""
    if exc.status_code >= 409:
        logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.get("/")
def read_root():
    """Root endpoint with API information"""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc"
    }


@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "environment": settings.environment}


######## Include routers
app.include_router(links.router, prefix="/api/v1")
app.include_router(versions.router, prefix="/api/v1")
app.include_router(admin.router, prefix="/api/v1")

logger.info("%s %s started (%s)", settings.app_name, settings.app_version, settings.environment)
