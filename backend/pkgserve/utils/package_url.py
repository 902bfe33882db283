"""
Package URL parsing.

A package URL names a package, optionally a version, and optionally a file
inside the package:

    /lodash                      -> lodash@latest
    /lodash@4.17.21/map.js       -> lodash@4.17.21, file /map.js
    /@scope/name@^1.0.0/dist/    -> @scope/name@^1.0.0, directory /dist/

The version is opaque text here; resolving ranges and tags is the job of the
package resolver further down the pipeline.
"""
import logging
import re
from typing import Optional
from urllib.parse import unquote, urlsplit

from pkgserve.schemas.package_url import ParsedPackageURL
from pkgserve.utils.query import parse_query
from pkgserve.utils.search import create_search

logger = logging.getLogger(__name__)

PACKAGE_URL_FORMAT = re.compile(r"^/((?:@[^/@]+/)?[^/@]+)(?:@([^/]+))?(/.*)?$")

_MALFORMED_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_STRUCTURAL_GARBAGE = re.compile(r"[\s\x00-\x1f\x7f]")
_LEADING_SLASHES = re.compile(r"^/+")


def _decode(value: str) -> str:
    # Raises UnicodeDecodeError for escapes that are not valid UTF-8
    return unquote(value, errors="strict")


def _has_dot_segment(package_name: str) -> bool:
    for segment in package_name.split("/"):
        if segment.startswith("@"):
            segment = segment[1:]
        if segment in (".", ".."):
            return True
    return False


def parse_package_url(raw_url: str) -> Optional[ParsedPackageURL]:
    """
    Parse a request URL (path plus optional query string) into its package parts.

    Args:
        raw_url: The request target as received, e.g. "/react@18/index.js?meta".

    Returns:
        The parsed URL, or None if the URL is not a package URL. None means
        the request should be refused as an invalid URL.
    """
    # Checked before splitting: urlsplit silently drops tabs and newlines
    if _STRUCTURAL_GARBAGE.search(raw_url):
        return None

    try:
        parts = urlsplit(raw_url)
    except ValueError:
        logger.debug(f"Unsplittable URL: {raw_url!r}")
        return None

    # Only origin-form request targets are package URLs
    if parts.scheme or parts.netloc:
        return None

    path = parts.path

    if _MALFORMED_ESCAPE.search(path) or _MALFORMED_ESCAPE.search(parts.query):
        logger.debug(f"Malformed percent-encoding in {raw_url!r}")
        return None

    # The whole path is decoded before matching, so "/%40babel%2Fcore" names
    # the same package as "/@babel/core"
    try:
        path = _decode(path)
        query = parse_query(parts.query, errors="strict")
    except UnicodeDecodeError:
        logger.debug(f"Undecodable escape in {raw_url!r}")
        return None

    match = PACKAGE_URL_FORMAT.match(path)
    if match is None:
        return None

    package_name, package_version, pathname = match.groups()

    if _has_dot_segment(package_name):
        return None

    package_version = package_version or "latest"
    pathname = pathname or ""

    # "//file.js" and "/file.js" name the same file
    pathname = _LEADING_SLASHES.sub("/", pathname)

    segments = [segment for segment in pathname.split("/") if segment]
    filename = segments[-1] if segments else ""

    return ParsedPackageURL(
        package_name=package_name,
        package_version=package_version,
        pathname=pathname,
        filename=filename,
        search=create_search(query),
        query=query,
    )
