import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from harvest.models.farmer import FarmerStatus
from harvest.schemas.common import Coordinates
from harvest.schemas.project import ProjectRequest, ProjectView


class FarmerRequest(BaseModel):
    """Body of both create and update.

    On update, ``projects`` is the complete desired project list: entries with
    a known ``id`` are updated, the rest are created, and any existing project
    left out is deleted. ``None`` and ``[]`` both mean "no projects".
    """

    full_name: str = Field(min_length=1, max_length=200)
    phone_number: str = Field(min_length=1, max_length=30)
    location: str = Field(min_length=1, max_length=200)
    language: str | None = Field(default=None, max_length=50)
    area_ha: float = Field(gt=0)
    status: FarmerStatus | None = None
    coordinates: Coordinates | None = None
    projects: list[ProjectRequest] | None = None


class FarmerView(BaseModel):
    id: uuid.UUID
    cooperative_id: uuid.UUID
    full_name: str
    phone_number: str
    location: str
    language: str | None
    area_ha: float
    allocated_area: float
    remaining_area: float
    status: FarmerStatus
    qr_code: str
    coordinates: Coordinates | None
    # Only populated on single-farmer views; list views leave it out.
    projects: list[ProjectView] | None = None
    created_at: datetime | None
    updated_at: datetime | None


class FarmerStatistics(BaseModel):
    total_farmers: int
    active_farmers: int
    inactive_farmers: int
    total_area: float
    total_allocated_area: float
    # Not floored at zero, unlike FarmerView.remaining_area.
    total_remaining_area: float
