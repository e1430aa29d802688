import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    DateTime,
    Enum as SQLEnum,
    Float,
    ForeignKey,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from harvest.database import Base


class FarmerStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Farmer(Base):
    __tablename__ = "farmers"
    __table_args__ = (
        UniqueConstraint("cooperative_id", "phone_number", name="uq_farmer_coop_phone"),
        UniqueConstraint("cooperative_id", "full_name", name="uq_farmer_coop_name"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    cooperative_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("cooperatives.id", ondelete="CASCADE"), nullable=False, index=True
    )

    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    # Always stored as +237XXXXXXXXX
    phone_number: Mapped[str] = mapped_column(String(20), nullable=False)
    # "City, Region"
    location: Mapped[str] = mapped_column(String(200), nullable=False)
    language: Mapped[str | None] = mapped_column(String(50), nullable=True)

    area_ha: Mapped[float] = mapped_column(Float, nullable=False)

    status: Mapped[FarmerStatus] = mapped_column(
        SQLEnum(
            FarmerStatus,
            name="farmer_status_enum",
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        default=FarmerStatus.ACTIVE,
        nullable=False,
        index=True,
    )

    qr_code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)

    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )
