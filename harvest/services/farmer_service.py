"""
Farmer aggregate operations, always scoped to the caller's cooperative.

A farmer and its projects are written together: field validation, uniqueness
checks, the area check and QR generation all happen before the first write,
and the caller commits (or rolls back) the session once per operation.
Services only flush.
"""
import logging
import secrets
import uuid
from dataclasses import dataclass

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from harvest.config import settings
from harvest.models.cooperative import Cooperative
from harvest.models.farmer import Farmer, FarmerStatus
from harvest.models.project import Project
from harvest.schemas.common import Coordinates, PaginatedResponse
from harvest.schemas.farmer import FarmerRequest, FarmerStatistics, FarmerView
from harvest.schemas.project import ProjectView
from harvest.services import project_reconciler, validation
from harvest.services.area_ledger import remaining_area
from harvest.services.errors import BadRequestError, NotFoundError, QrCodeExhaustedError

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

_SORT_COLUMNS = {
    "name": Farmer.full_name,
    "location": Farmer.location,
    "area": Farmer.area_ha,
    "date": Farmer.created_at,
}


@dataclass
class FarmerFields:
    """Validated, normalised identity fields shared by single create, update and bulk import."""

    full_name: str
    phone_number: str
    location: str
    language: str | None
    latitude: float | None = None
    longitude: float | None = None
    address: str | None = None


# --------------------------------------------------------------------------- #
#  Validation and lookups                                                     #
# --------------------------------------------------------------------------- #


def validate_farmer_fields(
    full_name: str | None,
    phone_number: str | None,
    location: str | None,
    language: str | None,
    coordinates: Coordinates | None,
) -> FarmerFields:
    if full_name is None or not full_name.strip():
        raise BadRequestError("Full name is required")

    phone = validation.validate_phone_number(phone_number)
    city, region = validation.validate_location(location)
    lang = validation.validate_language(language)

    fields = FarmerFields(
        full_name=full_name.strip(),
        phone_number=phone,
        location=validation.format_location(city, region),
        language=lang.value if lang else None,
    )
    if coordinates is not None:
        validation.validate_coordinates(coordinates.latitude, coordinates.longitude)
        fields.latitude = coordinates.latitude
        fields.longitude = coordinates.longitude
        fields.address = coordinates.address.strip() if coordinates.address else None
    return fields


async def get_cooperative_or_404(db: AsyncSession, cooperative_id: uuid.UUID) -> Cooperative:
    cooperative = await db.get(Cooperative, cooperative_id)
    if cooperative is None:
        raise NotFoundError(f"Cooperative not found with ID: {cooperative_id}")
    return cooperative


async def load_scoped_farmer(
    db: AsyncSession,
    farmer_id: uuid.UUID,
    cooperative_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> Farmer:
    """Fetch a farmer only if it belongs to ``cooperative_id``.

    Out-of-tenant farmers are reported as missing. ``for_update`` takes the
    per-farmer row lock that serialises area checks against concurrent writers.
    """
    stmt = select(Farmer).where(Farmer.id == farmer_id, Farmer.cooperative_id == cooperative_id)
    if for_update:
        stmt = stmt.with_for_update()
    farmer = (await db.execute(stmt)).scalar_one_or_none()
    if farmer is None:
        raise NotFoundError(f"Farmer not found with ID: {farmer_id} for your cooperative")
    return farmer


async def sum_allocated_area(db: AsyncSession, farmer_id: uuid.UUID) -> float:
    stmt = select(func.coalesce(func.sum(Project.area_ha), 0.0)).where(
        Project.farmer_id == farmer_id
    )
    return float((await db.execute(stmt)).scalar_one())


async def ensure_unique(
    db: AsyncSession,
    cooperative_id: uuid.UUID,
    fields: FarmerFields,
    *,
    exclude_farmer_id: uuid.UUID | None = None,
) -> None:
    def taken(column, value):
        stmt = select(Farmer.id).where(Farmer.cooperative_id == cooperative_id, column == value)
        if exclude_farmer_id is not None:
            stmt = stmt.where(Farmer.id != exclude_farmer_id)
        return select(stmt.exists())

    if (await db.execute(taken(Farmer.phone_number, fields.phone_number))).scalar():
        raise BadRequestError(
            f"Farmer with phone number {fields.phone_number} already exists in your cooperative"
        )
    if (await db.execute(taken(Farmer.full_name, fields.full_name))).scalar():
        raise BadRequestError(
            f'Farmer with name "{fields.full_name}" already exists in your cooperative'
        )


def _new_qr_code() -> str:
    return f"QR-{secrets.token_hex(4).upper()}"


async def generate_qr_code(db: AsyncSession) -> str:
    """Draw QR codes until one is unused across every cooperative."""
    for attempt in range(1, settings.QR_CODE_MAX_ATTEMPTS + 1):
        code = _new_qr_code()
        in_use = (
            await db.execute(select(select(Farmer.id).where(Farmer.qr_code == code).exists()))
        ).scalar()
        if not in_use:
            return code
        logger.warning("QR code collision on attempt %d", attempt)
    raise QrCodeExhaustedError(
        f"Could not generate a unique QR code after {settings.QR_CODE_MAX_ATTEMPTS} attempts"
    )


async def insert_farmer(
    db: AsyncSession,
    cooperative_id: uuid.UUID,
    fields: FarmerFields,
    area_ha: float,
    status: FarmerStatus | None,
) -> Farmer:
    farmer = Farmer(
        cooperative_id=cooperative_id,
        full_name=fields.full_name,
        phone_number=fields.phone_number,
        location=fields.location,
        language=fields.language,
        area_ha=area_ha,
        status=status or FarmerStatus.ACTIVE,
        qr_code=await generate_qr_code(db),
        latitude=fields.latitude,
        longitude=fields.longitude,
        address=fields.address,
    )
    db.add(farmer)
    await db.flush()
    await db.refresh(farmer)
    return farmer


# --------------------------------------------------------------------------- #
#  Views                                                                      #
# --------------------------------------------------------------------------- #


def to_farmer_view(
    farmer: Farmer,
    allocated: float,
    projects: list[Project] | None = None,
) -> FarmerView:
    coordinates = None
    if farmer.latitude is not None and farmer.longitude is not None:
        coordinates = Coordinates(
            latitude=farmer.latitude, longitude=farmer.longitude, address=farmer.address
        )
    return FarmerView(
        id=farmer.id,
        cooperative_id=farmer.cooperative_id,
        full_name=farmer.full_name,
        phone_number=farmer.phone_number,
        location=farmer.location,
        language=farmer.language,
        area_ha=farmer.area_ha,
        allocated_area=allocated,
        remaining_area=remaining_area(farmer.area_ha, allocated),
        status=farmer.status,
        qr_code=farmer.qr_code,
        coordinates=coordinates,
        projects=[ProjectView.model_validate(p) for p in projects] if projects is not None else None,
        created_at=farmer.created_at,
        updated_at=farmer.updated_at,
    )


async def build_farmer_view(db: AsyncSession, farmer: Farmer, *, include_projects: bool) -> FarmerView:
    if include_projects:
        projects = await project_reconciler.load_projects(db, farmer.id)
        allocated = sum((p.area_ha for p in projects), 0.0)
        return to_farmer_view(farmer, allocated, projects)
    return to_farmer_view(farmer, await sum_allocated_area(db, farmer.id))


# --------------------------------------------------------------------------- #
#  Operations                                                                 #
# --------------------------------------------------------------------------- #


async def get_farmer(db: AsyncSession, farmer_id: uuid.UUID, cooperative_id: uuid.UUID) -> FarmerView:
    farmer = await load_scoped_farmer(db, farmer_id, cooperative_id)
    return await build_farmer_view(db, farmer, include_projects=True)


async def list_farmers(
    db: AsyncSession,
    cooperative_id: uuid.UUID,
    *,
    page: int = 0,
    size: int = 10,
    sort_by: str = "name",
    sort_order: str = "asc",
    status: str = "all",
    search: str | None = None,
) -> PaginatedResponse[FarmerView]:
    await get_cooperative_or_404(db, cooperative_id)
    size = max(1, min(size, MAX_PAGE_SIZE))
    page = max(page, 0)

    stmt = select(Farmer).where(Farmer.cooperative_id == cooperative_id)
    if status and status != "all":
        try:
            stmt = stmt.where(Farmer.status == FarmerStatus(status))
        except ValueError:
            raise BadRequestError("Invalid status filter. Must be 'all', 'active' or 'inactive'")
    if search and search.strip():
        term = search.strip()
        stmt = stmt.where(
            or_(
                Farmer.full_name.icontains(term, autoescape=True),
                Farmer.phone_number.icontains(term, autoescape=True),
                Farmer.location.icontains(term, autoescape=True),
            )
        )

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()

    column = _SORT_COLUMNS.get(sort_by.lower(), Farmer.full_name)
    ordering = column.desc() if sort_order.lower() == "desc" else column.asc()
    stmt = stmt.order_by(ordering, Farmer.id).offset(page * size).limit(size)
    farmers = (await db.execute(stmt)).scalars().all()

    allocated_by_farmer: dict[uuid.UUID, float] = {}
    if farmers:
        sums = await db.execute(
            select(Project.farmer_id, func.sum(Project.area_ha))
            .where(Project.farmer_id.in_([f.id for f in farmers]))
            .group_by(Project.farmer_id)
        )
        allocated_by_farmer = {farmer_id: float(total_area) for farmer_id, total_area in sums.all()}

    return PaginatedResponse[FarmerView](
        items=[to_farmer_view(f, allocated_by_farmer.get(f.id, 0.0)) for f in farmers],
        total=total,
        page=page,
        page_size=size,
        has_next=(page + 1) * size < total,
    )


async def create_farmer(db: AsyncSession, request: FarmerRequest, cooperative_id: uuid.UUID) -> FarmerView:
    logger.info("Creating new farmer for cooperative %s", cooperative_id)

    fields = validate_farmer_fields(
        request.full_name, request.phone_number, request.location, request.language, request.coordinates
    )
    await get_cooperative_or_404(db, cooperative_id)
    await ensure_unique(db, cooperative_id, fields)

    # A new farmer has no stored projects, so every requested entry is a create.
    plan = project_reconciler.plan_reconciliation(
        [],
        request.projects,
        request.area_ha,
        reject_unknown_ids=False,
    )

    farmer = await insert_farmer(db, cooperative_id, fields, request.area_ha, request.status)
    await project_reconciler.apply_plan(db, farmer.id, plan)
    logger.info("Farmer %s created with %d projects", farmer.id, len(plan.creates))

    return await build_farmer_view(db, farmer, include_projects=True)


async def update_farmer(
    db: AsyncSession,
    farmer_id: uuid.UUID,
    request: FarmerRequest,
    cooperative_id: uuid.UUID,
) -> FarmerView:
    logger.info("Updating farmer %s for cooperative %s", farmer_id, cooperative_id)

    farmer = await load_scoped_farmer(db, farmer_id, cooperative_id, for_update=True)
    fields = validate_farmer_fields(
        request.full_name, request.phone_number, request.location, request.language, request.coordinates
    )

    if fields.phone_number != farmer.phone_number or fields.full_name != farmer.full_name:
        await ensure_unique(db, cooperative_id, fields, exclude_farmer_id=farmer.id)

    existing = await project_reconciler.load_projects(db, farmer.id)
    plan = project_reconciler.plan_reconciliation(
        existing,
        request.projects,
        request.area_ha,
        reject_unknown_ids=settings.REJECT_UNKNOWN_PROJECT_IDS,
    )

    farmer.full_name = fields.full_name
    farmer.phone_number = fields.phone_number
    farmer.location = fields.location
    farmer.language = fields.language
    farmer.area_ha = request.area_ha
    farmer.latitude = fields.latitude
    farmer.longitude = fields.longitude
    farmer.address = fields.address
    if request.status is not None:
        farmer.status = request.status

    await project_reconciler.apply_plan(db, farmer.id, plan)
    await db.refresh(farmer)
    logger.info("Farmer %s updated", farmer.id)

    return await build_farmer_view(db, farmer, include_projects=True)


async def delete_farmer(db: AsyncSession, farmer_id: uuid.UUID, cooperative_id: uuid.UUID) -> None:
    logger.info("Deleting farmer %s for cooperative %s", farmer_id, cooperative_id)
    farmer = await load_scoped_farmer(db, farmer_id, cooperative_id, for_update=True)

    await db.execute(delete(Project).where(Project.farmer_id == farmer.id))
    await db.delete(farmer)
    await db.flush()
    logger.info("Farmer %s deleted", farmer_id)


async def update_farmer_status(
    db: AsyncSession,
    farmer_id: uuid.UUID,
    status: str,
    cooperative_id: uuid.UUID,
) -> FarmerView:
    if status not in (FarmerStatus.ACTIVE.value, FarmerStatus.INACTIVE.value):
        raise BadRequestError("Invalid status. Must be 'active' or 'inactive'")

    farmer = await load_scoped_farmer(db, farmer_id, cooperative_id, for_update=True)
    farmer.status = FarmerStatus(status)
    await db.flush()
    await db.refresh(farmer)
    logger.info("Farmer %s status set to %s", farmer_id, status)
    return await build_farmer_view(db, farmer, include_projects=False)


async def get_farmer_statistics(db: AsyncSession, cooperative_id: uuid.UUID) -> FarmerStatistics:
    await get_cooperative_or_404(db, cooperative_id)

    def count(*criteria):
        return select(func.count(Farmer.id)).where(Farmer.cooperative_id == cooperative_id, *criteria)

    total_farmers = (await db.execute(count())).scalar_one()
    active_farmers = (await db.execute(count(Farmer.status == FarmerStatus.ACTIVE))).scalar_one()
    inactive_farmers = (await db.execute(count(Farmer.status == FarmerStatus.INACTIVE))).scalar_one()

    total_area = (
        await db.execute(
            select(func.coalesce(func.sum(Farmer.area_ha), 0.0)).where(
                Farmer.cooperative_id == cooperative_id
            )
        )
    ).scalar_one()
    total_allocated = (
        await db.execute(
            select(func.coalesce(func.sum(Project.area_ha), 0.0))
            .join(Farmer, Farmer.id == Project.farmer_id)
            .where(Farmer.cooperative_id == cooperative_id)
        )
    ).scalar_one()

    return FarmerStatistics(
        total_farmers=total_farmers,
        active_farmers=active_farmers,
        inactive_farmers=inactive_farmers,
        total_area=float(total_area),
        total_allocated_area=float(total_allocated),
        total_remaining_area=float(total_area) - float(total_allocated),
    )
