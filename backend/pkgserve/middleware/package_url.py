"""
Starlette middleware that puts every package request through the
RequestNormalizer before it reaches a route.

Redirects and rejections are answered here. Requests that pass get their
RequestContext attached as ``request.state.package``.
"""
import logging
from typing import Iterable, Optional
from urllib.parse import quote

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import PlainTextResponse, RedirectResponse, Response
from starlette.types import ASGIApp, Scope

from pkgserve.schemas.normalization import Redirect, Rejection
from pkgserve.schemas.package_url import RawRequest
from pkgserve.services.request_normalizer import RequestNormalizer
from pkgserve.utils.query import parse_query

logger = logging.getLogger(__name__)


def build_raw_request(scope: Scope) -> RawRequest:
    """
    Build the normalizer input from an ASGI scope.

    The path is taken from ``raw_path`` so it keeps its percent-encoding,
    the same form the client sent and will see again in a redirect.

    Raises:
        UnicodeDecodeError: If the raw path or query string bytes are not
            valid UTF-8.
    """
    raw_path = scope.get("raw_path")
    if raw_path:
        # Some servers and test transports include the query string here
        path = raw_path.split(b"?", 1)[0].decode("utf-8")
    else:
        path = quote(scope["path"])

    query_string = scope.get("query_string", b"").decode("utf-8")
    raw_url = f"{path}?{query_string}" if query_string else path

    return RawRequest(path=path, query=parse_query(query_string), raw_url=raw_url)


def _undecodable_target(scope: Scope) -> str:
    raw_path = scope.get("raw_path") or scope["path"].encode("utf-8")
    raw_path = raw_path.split(b"?", 1)[0]
    query_string = scope.get("query_string", b"")
    target = raw_path + b"?" + query_string if query_string else raw_path
    return target.decode("utf-8", errors="replace")


class PackageURLMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app: ASGIApp,
        normalizer: Optional[RequestNormalizer] = None,
        exempt_path_prefixes: Iterable[str] = (),
    ):
        super().__init__(app)
        self.normalizer = normalizer or RequestNormalizer()
        self.exempt_path_prefixes = tuple(exempt_path_prefixes)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path.startswith(self.exempt_path_prefixes):
            logger.debug(f"Not a package path, skipping normalization: {request.url.path}")
            return await call_next(request)

        try:
            raw_request = build_raw_request(request.scope)
        except UnicodeDecodeError:
            result = Rejection(
                rule="invalid-url",
                body=f"Invalid URL: {_undecodable_target(request.scope)}",
            )
            logger.info(f"[{result.rule}] {result.status_code} {result.body}")
        else:
            result = self.normalizer.normalize(raw_request)

        if isinstance(result, Redirect):
            return RedirectResponse(result.location, status_code=result.status_code)

        if isinstance(result, Rejection):
            return PlainTextResponse(result.body, status_code=result.status_code, media_type=result.media_type)

        request.state.package = result.context
        return await call_next(request)
