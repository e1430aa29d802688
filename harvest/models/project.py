import enum
import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, Enum as SQLEnum, Float, ForeignKey, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from harvest.database import Base


class ProjectStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    PLANNED = "planned"
    PLANNING = "planning"
    HARVESTING = "harvesting"


class Project(Base):
    """A crop allocation carved out of a farmer's declared area.

    Projects hold only the farmer's id; the owning farmer is never loaded as an
    attribute. Deleting the farmer row cascades at the database level.
    """

    __tablename__ = "projects"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    farmer_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("farmers.id", ondelete="CASCADE"), nullable=False, index=True
    )

    crop_name: Mapped[str] = mapped_column(String(100), nullable=False)
    area_ha: Mapped[float] = mapped_column(Float, nullable=False)

    status: Mapped[ProjectStatus] = mapped_column(
        SQLEnum(
            ProjectStatus,
            name="project_status_enum",
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        default=ProjectStatus.ACTIVE,
        nullable=False,
    )

    planting_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    expected_harvest_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )
