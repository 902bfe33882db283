from fastapi import APIRouter, Depends, HTTPException, Request

from pkgserve.schemas.package_url import RequestContext
import logging

router = APIRouter()
logger = logging.getLogger(__name__)


# Dependency for the normalized package request
def get_package_context(request: Request) -> RequestContext:
    """
    Return the RequestContext attached by PackageURLMiddleware.

    Requests on exempt paths never get one, so they can't be served as packages.
    """
    context = getattr(request.state, "package", None)
    if context is None:
        raise HTTPException(status_code=404, detail=f"Not a package URL: {request.url.path}")
    return context


@router.api_route("/{package_path:path}", methods=["GET", "HEAD"], response_model=RequestContext)
async def describe_package_request(
    package_path: str,
    context: RequestContext = Depends(get_package_context),
):
    """
    Describe the normalized package request.

    Stands in for the file and metadata handlers: resolving the package
    and rendering its contents happen further down the pipeline.
    """
    logger.debug(f"Serving descriptor for {context.package_spec}{context.pathname}")
    return context
