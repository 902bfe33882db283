"""
Query string rendering for redirect targets and request descriptors.

Redirect locations are compared byte for byte by browser and CDN caches, so
the rendering is deterministic: parameters come out in the order they went
in, and value-less flags stay value-less (``?meta``, never ``?meta=``).
"""
from typing import List, Mapping, Optional, Union
from urllib.parse import quote

# Characters left alone by JavaScript's encodeURIComponent. URLs rendered
# here must match the ones clients already have in their caches.
_URI_COMPONENT_SAFE = "-_.!~*'()"


def encode_uri_component(value: str) -> str:
    return quote(value, safe=_URI_COMPONENT_SAFE)


def _render_pair(name: str, value: Optional[str]) -> str:
    # Empty values are flags: omit the trailing "=" from "key="
    if value is None or value == "":
        return encode_uri_component(name)
    return f"{encode_uri_component(name)}={encode_uri_component(str(value))}"


def create_search(query: Mapping[str, Union[str, List[str], None]]) -> str:
    """
    Render a query map as a ``?``-prefixed query string.

    Args:
        query: Mapping of parameter name to a value or a list of values.
            ``""`` and ``None`` render as a bare key. A list renders one
            pair per element.

    Returns:
        The query string including the leading ``?``, or ``""`` when there
        is nothing to render.

    Examples:
        >>> create_search({"x": "1", "meta": ""})
        '?x=1&meta'

        >>> create_search({})
        ''
    """
    params: List[str] = []

    for name, value in query.items():
        if isinstance(value, list):
            params.extend(_render_pair(name, item) for item in value)
        else:
            params.append(_render_pair(name, value))

    return f"?{'&'.join(params)}" if params else ""
