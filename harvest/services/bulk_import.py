"""
Spreadsheet-style bulk farmer import.

Each row runs the same validation and insert path as a single create, inside
its own transaction: a row that fails is rolled back and recorded in the
report, rows before it stay committed and rows after it are still attempted.
Bulk rows never carry projects.
"""
import asyncio
import logging
import math
import uuid
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from harvest.config import settings
from harvest.models.farmer import FarmerStatus
from harvest.schemas.bulk_import import BulkImportResponse, BulkImportRow, ImportRowError
from harvest.schemas.common import Coordinates
from harvest.schemas.farmer import FarmerView
from harvest.services import farmer_service, validation
from harvest.services.errors import BadRequestError

logger = logging.getLogger(__name__)

# Row 1 of the source sheet is the header and rows are 1-based.
ROW_OFFSET = 2


def _require_text(value: str | None, label: str) -> None:
    if value is None or not value.strip():
        raise BadRequestError(f"{label} is required")


def _parse_area(raw: float | str | None) -> float:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        raise BadRequestError("Area must be greater than 0")
    try:
        area = float(raw)
    except ValueError:
        raise BadRequestError(f"Area must be a number, got {raw!r}")
    if not math.isfinite(area) or area <= 0:
        raise BadRequestError("Area must be greater than 0")
    return area


def _parse_status(raw: str | None) -> FarmerStatus | None:
    if raw is None or not raw.strip():
        return None
    try:
        return FarmerStatus(raw.strip().lower())
    except ValueError:
        raise BadRequestError("Invalid status. Must be 'active' or 'inactive'")


def _parse_coordinate(raw: Any, label: str) -> float | None:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise BadRequestError(f"{label} must be a number, got {raw!r}")
    if not math.isfinite(value):
        raise BadRequestError(f"{label} must be a number, got {raw!r}")
    return value


def _parse_coordinates(raw: dict[str, Any] | None) -> Coordinates | None:
    if not raw:
        return None
    latitude = _parse_coordinate(raw.get("latitude"), "Latitude")
    longitude = _parse_coordinate(raw.get("longitude"), "Longitude")
    validation.validate_coordinates(latitude, longitude)
    if latitude is None:
        return None
    address = raw.get("address")
    return Coordinates(
        latitude=latitude,
        longitude=longitude,
        address=str(address)[:500] if address not in (None, "") else None,
    )


def _snapshot(row: BulkImportRow) -> dict[str, Any]:
    """The row as submitted, before any normalisation."""
    return {
        "full_name": row.full_name,
        "phone_number": row.phone_number,
        "location": row.location,
        "language": row.language,
        "area_ha": row.area_ha,
        "coordinates": row.coordinates,
    }


def _describe(exc: BaseException) -> str:
    if isinstance(exc, TimeoutError):
        return f"Row import timed out after {settings.BULK_IMPORT_ROW_TIMEOUT_SECONDS:g}s"
    if isinstance(exc, IntegrityError):
        return "Farmer conflicts with an existing record (duplicate phone number, name or QR code)"
    return str(exc) or exc.__class__.__name__


async def _import_row(db: AsyncSession, row: BulkImportRow, cooperative_id: uuid.UUID) -> FarmerView:
    _require_text(row.full_name, "Full name")
    _require_text(row.phone_number, "Phone number")
    _require_text(row.location, "Location")
    area_ha = _parse_area(row.area_ha)

    fields = farmer_service.validate_farmer_fields(
        row.full_name, row.phone_number, row.location, row.language, _parse_coordinates(row.coordinates)
    )
    status = _parse_status(row.status)

    await farmer_service.ensure_unique(db, cooperative_id, fields)
    farmer = await farmer_service.insert_farmer(db, cooperative_id, fields, area_ha, status)
    return farmer_service.to_farmer_view(farmer, 0.0)


async def bulk_import_farmers(
    db: AsyncSession,
    rows: list[BulkImportRow],
    cooperative_id: uuid.UUID,
) -> BulkImportResponse:
    logger.info("Starting bulk import of %d farmers for cooperative %s", len(rows), cooperative_id)
    await farmer_service.get_cooperative_or_404(db, cooperative_id)

    report = BulkImportResponse(total_processed=len(rows))
    timeout = settings.BULK_IMPORT_ROW_TIMEOUT_SECONDS

    for index, row in enumerate(rows):
        row_number = index + ROW_OFFSET
        try:
            view = await asyncio.wait_for(_import_row(db, row, cooperative_id), timeout=timeout)
            await db.commit()
        except Exception as exc:
            await db.rollback()
            message = _describe(exc)
            logger.warning("Failed to import farmer at row %d: %s", row_number, message)
            report.errors.append(ImportRowError(row=row_number, farmer=_snapshot(row), error=message))
            report.failure_count += 1
            continue

        report.imported_farmers.append(view)
        report.success_count += 1
        logger.debug("Imported farmer %s (row %d)", view.full_name, row_number)

    logger.info(
        "Bulk import completed. Success: %d, Failed: %d",
        report.success_count,
        report.failure_count,
    )
    return report
