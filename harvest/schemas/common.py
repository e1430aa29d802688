from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class Coordinates(BaseModel):
    # Range checks live in services.validation so they surface as 400s with
    # the registry's own messages.
    latitude: float
    longitude: float
    address: str | None = Field(default=None, max_length=500)


class PaginatedResponse(BaseModel, Generic[T]):
    items: list[T]
    total: int
    page: int
    page_size: int
    has_next: bool


class HealthResponse(BaseModel):
    status: str
    service: str
