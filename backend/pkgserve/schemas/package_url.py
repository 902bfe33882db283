from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List, Union

QueryMap = Dict[str, Union[str, List[str]]]


class RawRequest(BaseModel):
    """The parts of an inbound request the normalizer looks at."""
    path: str  # raw, still percent-encoded
    query: QueryMap = {}
    raw_url: str  # path + "?" + query string, as received

    model_config = ConfigDict(frozen=True)


class ParsedPackageURL(BaseModel):
    package_name: str  # e.g. "@scope/name" or "lodash"
    package_version: str = "latest"
    pathname: str = ""  # subpath inside the package, e.g. "/map.js"
    filename: str = ""  # last segment of pathname, e.g. "map.js"
    search: str = ""
    query: QueryMap = {}

    model_config = ConfigDict(frozen=True)


class RequestContext(BaseModel):
    """Package request descriptor handed to downstream handlers."""
    package_name: str = Field(alias="packageName")
    package_version: str = Field(alias="packageVersion")
    package_spec: str = Field(alias="packageSpec")  # "name@version"
    pathname: str
    filename: str
    search: str
    query: QueryMap

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @classmethod
    def from_parsed_url(cls, url: ParsedPackageURL) -> "RequestContext":
        return cls(
            package_name=url.package_name,
            package_version=url.package_version,
            package_spec=f"{url.package_name}@{url.package_version}",
            pathname=url.pathname,
            filename=url.filename,
            search=url.search,
            query=url.query,
        )
