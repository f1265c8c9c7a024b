"""Shared Pydantic schemas for Label-Engine."""

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys, as the storefront sends them."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    service: str = "label-engine"


class ErrorResponse(BaseModel):
    error: str
    code: str
    detail: Any = None
