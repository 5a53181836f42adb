"""Shared DTOs for the chat API."""
from datetime import datetime, timezone
from typing import Annotated, Dict
from uuid import UUID

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _canonical_uuid(value: str) -> str:
    try:
        return str(UUID(value))
    except ValueError as e:
        raise ValueError("must be a UUID") from e


# Row ids in request bodies; malformed ids fail validation (422) before any work is done
EntityId = Annotated[str, AfterValidator(_canonical_uuid)]


class BaseDTO(BaseModel):
    """Base DTO with common configuration."""

    model_config = ConfigDict(from_attributes=True)


class RequestDTO(BaseModel):
    """Request bodies arrive camelCased from the widget; snake_case is accepted too."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class PaginationInfo(BaseDTO):
    page: int = Field(description="Current page (1-based)")
    limit: int = Field(description="Page size")
    total: int = Field(description="Total number of items")
    total_pages: int = Field(description="Total number of pages")


class HealthCheckResponse(BaseDTO):
    """Health check response DTO."""

    status: str = Field(description="Service status")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    version: str = Field(default="0.1.0")
    dependencies: Dict[str, str] = Field(default_factory=dict)
