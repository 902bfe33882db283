from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from pkgserve.api import health, packages
from pkgserve.core.config import settings
from pkgserve.middleware.package_url import PackageURLMiddleware
from pkgserve.services.request_normalizer import RequestNormalizer
import logging

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    logger.info(f"{settings.PROJECT_NAME} starting up...")
    logger.info(f"Package URL normalization exempt for: {settings.EXEMPT_PATH_PREFIXES}")
    yield
    logger.info(f"{settings.PROJECT_NAME} shutting down")

app = FastAPI(
    title=settings.PROJECT_NAME,
    description="URL normalization stage for the package content service",
    version="0.1.0",
    lifespan=lifespan
)

# Add validation error handler to log 422 errors
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.error(f"[VALIDATION ERROR] on {request.url}: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={"detail": exc.errors()},
    )

# Middleware added last runs first: CORS wraps normalization so that
# redirects and rejections carry CORS headers too
app.add_middleware(
    PackageURLMiddleware,
    normalizer=RequestNormalizer(),
    exempt_path_prefixes=settings.EXEMPT_PATH_PREFIXES,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Package files are public
    allow_methods=["GET", "HEAD", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix=f"{settings.API_PREFIX}/health", tags=["health"])

# Catch-all, must be registered last
app.include_router(packages.router, tags=["packages"])
