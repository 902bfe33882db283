"""
Query parameter whitelisting for cache-safe package URLs.

Package URLs are cached by their full URL, so every distinct query string is a
distinct cache entry. Only a small, fixed set of parameters has any meaning to
the package handlers; anything else is stripped by redirecting to the
sanitized URL.
"""
from typing import Dict, List, Union
from urllib.parse import parse_qsl

QueryValue = Union[str, List[str]]
QueryMap = Dict[str, QueryValue]

# Adding a name here changes which URLs are canonical for every cache in
# front of the service. It is not runtime configuration.
KNOWN_QUERY_PARAMS = frozenset({"main", "meta", "module"})


def parse_query(query_string: str, errors: str = "replace") -> QueryMap:
    """
    Parse a raw query string into an ordered query map.

    Blank values are kept (``?meta`` parses to ``{"meta": ""}``) and a
    parameter given more than once collects its values into a list.

    Args:
        query_string: The query string without the leading ``?``.
        errors: How undecodable percent-escapes are handled, passed through
            to :func:`urllib.parse.parse_qsl`. With ``"strict"`` a
            ``UnicodeDecodeError`` is raised instead.
    """
    query: QueryMap = {}

    for name, value in parse_qsl(query_string, keep_blank_values=True, errors=errors):
        if name not in query:
            query[name] = value
        elif isinstance(query[name], list):
            query[name].append(value)
        else:
            query[name] = [query[name], value]

    return query


def is_known_param(name: str) -> bool:
    return name in KNOWN_QUERY_PARAMS


def is_canonical(query: QueryMap) -> bool:
    """
    Check whether a query map only contains known parameters.

    The value of a parameter is irrelevant: ``?evil`` and ``?evil=1`` are
    both non-canonical. An empty query map is canonical.
    """
    return all(is_known_param(name) for name in query)


def sanitize(query: QueryMap) -> QueryMap:
    """
    Return a copy of ``query`` without unknown parameters.

    Surviving parameters keep their value(s) and their relative order.
    The input map is never modified.

    Examples:
        >>> sanitize({"evil": "1", "meta": "", "main": "browser"})
        {'meta': '', 'main': 'browser'}
    """
    return {
        name: list(value) if isinstance(value, list) else value
        for name, value in query.items()
        if is_known_param(name)
    }
