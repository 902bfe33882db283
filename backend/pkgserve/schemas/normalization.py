from pydantic import BaseModel, ConfigDict
from typing import Literal, Union

from pkgserve.schemas.package_url import RequestContext


class Redirect(BaseModel):
    kind: Literal["redirect"] = "redirect"
    rule: str
    location: str
    status_code: int = 302

    model_config = ConfigDict(frozen=True)


class Rejection(BaseModel):
    kind: Literal["rejection"] = "rejection"
    rule: str
    body: str
    status_code: int = 403
    media_type: str = "text/plain"

    model_config = ConfigDict(frozen=True)


class PassThrough(BaseModel):
    kind: Literal["pass_through"] = "pass_through"
    rule: str = "success"
    context: RequestContext

    model_config = ConfigDict(frozen=True)


NormalizationResult = Union[Redirect, Rejection, PassThrough]
