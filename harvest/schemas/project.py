import uuid
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from harvest.models.project import ProjectStatus


class ProjectRequest(BaseModel):
    # Present when the client refers to an existing project; absent means "new".
    id: uuid.UUID | None = None
    crop_name: str = Field(min_length=1, max_length=100)
    area_ha: float = Field(gt=0)
    status: ProjectStatus | None = None
    planting_date: date | None = None
    expected_harvest_date: date | None = None
    notes: str | None = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def check_harvest_after_planting(self) -> "ProjectRequest":
        if (
            self.planting_date is not None
            and self.expected_harvest_date is not None
            and self.expected_harvest_date < self.planting_date
        ):
            raise ValueError("expected_harvest_date cannot be before planting_date")
        return self


class ProjectView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    farmer_id: uuid.UUID
    crop_name: str
    area_ha: float
    status: ProjectStatus
    planting_date: date | None
    expected_harvest_date: date | None
    notes: str | None
    created_at: datetime | None
    updated_at: datetime | None


class AllocatedAreaResponse(BaseModel):
    farmer_id: uuid.UUID
    area_ha: float
    allocated_area: float
    remaining_area: float
