from typing import Literal, Union

from pydantic import BaseModel, ConfigDict


class UrlSource(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["url"] = "url"
    url: str


class MarkupSource(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["markup"] = "markup"
    markup: str


Source = Union[UrlSource, MarkupSource]
