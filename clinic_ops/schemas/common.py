"""Shared schema configuration."""

from typing import Any

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

# Public API bodies use camelCase; snake_case names are accepted too
CAMEL_CONFIG = {
    "from_attributes": True,
    "alias_generator": to_camel,
    "populate_by_name": True,
}


class ErrorResponse(BaseModel):
    """Structured error body returned for every expected failure."""

    code: str
    message: str
    details: dict[str, Any] = {}
