from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator

from taikun_reconciler import validators
from taikun_reconciler.models.base import Entity


class SlackConfiguration(Entity):
    name: str = Field(min_length=3, max_length=30)
    url: str
    channel: str = Field(min_length=1)
    type: Literal["Alert", "General"] = "Alert"

    @field_validator("url")
    @classmethod
    def _url(cls, v: str) -> str:
        return validators.check_http_url(v)
