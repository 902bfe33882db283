"""
Request Normalizer Service

Decides, for every package request, whether it is served, redirected to its
canonical URL, or refused. The decision is an ordered table of rules: the
first rule whose predicate holds produces the outcome, so each request ends
in exactly one redirect, one rejection, or one pass-through.

Order matters. The legacy redirects run before the query whitelist so that
``?json`` becomes ``?meta`` instead of being stripped, and the whitelist runs
before parsing so that unknown parameters never reach a cache key.
"""

import logging
import re
from dataclasses import dataclass
from functools import cached_property
from typing import Any, Callable, List, Optional, Protocol, Tuple

from pkgserve.schemas.normalization import NormalizationResult, PassThrough, Redirect, Rejection
from pkgserve.schemas.package_url import ParsedPackageURL, RawRequest, RequestContext
from pkgserve.services.package_name_validator import PackageNameValidator
from pkgserve.utils.package_url import parse_package_url
from pkgserve.utils.query import is_canonical, sanitize
from pkgserve.utils.search import create_search

logger = logging.getLogger(__name__)

META_PREFIX = re.compile(r"^/_meta/")

# Browsers read "//host" and "/\host" as another origin
_LEADING_SLASHES = re.compile(r"^[/\\]+")


class NameValidator(Protocol):
    def validate(self, name: str) -> Any: ...


class RequestEvaluation:
    """Per-request view shared by the rule predicates.

    The parsed URL and the name errors are computed at most once, and only
    when a rule actually asks for them.
    """

    def __init__(self, request: RawRequest, name_validator: NameValidator):
        self.request = request
        self.name_validator = name_validator

    @cached_property
    def parsed_url(self) -> Optional[ParsedPackageURL]:
        return parse_package_url(self.request.raw_url)

    @cached_property
    def name_errors(self) -> List[str]:
        if self.parsed_url is None:
            return []
        result = self.name_validator.validate(self.parsed_url.package_name)
        errors = result.get("errors") if isinstance(result, dict) else getattr(result, "errors", None)
        return list(errors or [])


def _redirect_location(path: str, search: str) -> str:
    """Same-origin redirect target for ``path``, never protocol-relative."""
    return _LEADING_SLASHES.sub("/", path) + search


@dataclass(frozen=True)
class NormalizationRule:
    name: str
    applies: Callable[[RequestEvaluation], bool]
    respond: Callable[[RequestEvaluation], NormalizationResult]


# Redirect /_meta/path to /path?meta
def _has_meta_prefix(evaluation: RequestEvaluation) -> bool:
    return META_PREFIX.match(evaluation.request.path) is not None


def _redirect_meta_prefix(evaluation: RequestEvaluation) -> NormalizationResult:
    query = dict(evaluation.request.query)
    query["meta"] = ""
    location = _redirect_location(evaluation.request.path[len("/_meta"):], create_search(query))
    return Redirect(rule="legacy-meta-prefix", location=location)


# Redirect /path?json to /path?meta
def _has_json_flag(evaluation: RequestEvaluation) -> bool:
    return "json" in evaluation.request.query


def _redirect_json_flag(evaluation: RequestEvaluation) -> NormalizationResult:
    query = dict(evaluation.request.query)
    del query["json"]
    query["meta"] = ""
    location = _redirect_location(evaluation.request.path, create_search(query))
    return Redirect(rule="legacy-json-flag", location=location)


# Redirect requests with unknown query params to their equivalents with only
# known params, so random params can't be used to bust the cache
def _has_unknown_params(evaluation: RequestEvaluation) -> bool:
    return not is_canonical(evaluation.request.query)


def _redirect_sanitized(evaluation: RequestEvaluation) -> NormalizationResult:
    location = _redirect_location(evaluation.request.path, create_search(sanitize(evaluation.request.query)))
    return Redirect(rule="non-canonical-query", location=location)


def _is_invalid_url(evaluation: RequestEvaluation) -> bool:
    return evaluation.parsed_url is None


def _reject_invalid_url(evaluation: RequestEvaluation) -> NormalizationResult:
    return Rejection(
        rule="invalid-url",
        body=f"Invalid URL: {evaluation.request.raw_url}",
    )


def _has_invalid_name(evaluation: RequestEvaluation) -> bool:
    return len(evaluation.name_errors) > 0


def _reject_invalid_name(evaluation: RequestEvaluation) -> NormalizationResult:
    reason = ", ".join(evaluation.name_errors)
    return Rejection(
        rule="invalid-package-name",
        body=f'Invalid package name "{evaluation.parsed_url.package_name}" ({reason})',
    )


def _always(evaluation: RequestEvaluation) -> bool:
    return True


def _pass_through(evaluation: RequestEvaluation) -> NormalizationResult:
    return PassThrough(context=RequestContext.from_parsed_url(evaluation.parsed_url))


NORMALIZATION_RULES: Tuple[NormalizationRule, ...] = (
    NormalizationRule("legacy-meta-prefix", _has_meta_prefix, _redirect_meta_prefix),
    NormalizationRule("legacy-json-flag", _has_json_flag, _redirect_json_flag),
    NormalizationRule("non-canonical-query", _has_unknown_params, _redirect_sanitized),
    NormalizationRule("invalid-url", _is_invalid_url, _reject_invalid_url),
    NormalizationRule("invalid-package-name", _has_invalid_name, _reject_invalid_name),
    NormalizationRule("success", _always, _pass_through),
)


class RequestNormalizer:
    """Service that runs package requests through the normalization rules"""

    def __init__(
        self,
        name_validator: Optional[NameValidator] = None,
        rules: Tuple[NormalizationRule, ...] = NORMALIZATION_RULES,
    ):
        self.name_validator = name_validator or PackageNameValidator()
        self.rules = rules

    def _first_match(self, request: RawRequest) -> Tuple[NormalizationRule, RequestEvaluation]:
        evaluation = RequestEvaluation(request, self.name_validator)
        for rule in self.rules:
            if rule.applies(evaluation):
                return rule, evaluation
        # The table ends with a catch-all, so this only happens with custom rules
        raise LookupError(f"No normalization rule matched {request.raw_url!r}")

    def matching_rule(self, request: RawRequest) -> str:
        """Name of the rule that decides ``request``."""
        rule, _ = self._first_match(request)
        return rule.name

    def normalize(self, request: RawRequest) -> NormalizationResult:
        """
        Decide what to do with a package request.

        Args:
            request: Path, query map and raw URL of the inbound request.

        Returns:
            A Redirect to the canonical URL, a Rejection with a plain-text
            reason, or a PassThrough carrying the request context for
            downstream handlers. The input request is never modified.
        """
        rule, evaluation = self._first_match(request)
        result = rule.respond(evaluation)

        if isinstance(result, Redirect):
            logger.info(f"[{rule.name}] {request.raw_url} -> {result.location}")
        elif isinstance(result, Rejection):
            logger.info(f"[{rule.name}] {result.status_code} {result.body}")
        else:
            logger.debug(f"[{rule.name}] {request.raw_url} -> {result.context.package_spec}")

        return result
