"""Farmers router: cooperative-scoped farmer CRUD, bulk import and statistics."""
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from harvest.config import settings
from harvest.database import get_db
from harvest.dependencies import CooperativeId, as_http_exception
from harvest.schemas.bulk_import import BulkImportRequest, BulkImportResponse
from harvest.schemas.common import PaginatedResponse
from harvest.schemas.farmer import FarmerRequest, FarmerStatistics, FarmerView
from harvest.services import bulk_import, farmer_service
from harvest.services.errors import RegistryError

router = APIRouter(prefix="/cooperative/farmers", tags=["farmers"])

_CONFLICT_DETAIL = "Farmer conflicts with an existing record (duplicate phone number, name or QR code)"


@router.get("", response_model=PaginatedResponse[FarmerView])
async def list_farmers(
    cooperative_id: CooperativeId,
    db: Annotated[AsyncSession, Depends(get_db)],
    page: int = Query(default=0, ge=0),
    size: int = Query(default=10, ge=1),
    sort_by: str = Query(default="name"),
    sort_order: str = Query(default="asc"),
    status: str = Query(default="all"),
    search: str | None = Query(default=None),
):
    """List farmers without project detail. ``size`` is capped at 100."""
    try:
        return await farmer_service.list_farmers(
            db,
            cooperative_id,
            page=page,
            size=size,
            sort_by=sort_by,
            sort_order=sort_order,
            status=status,
            search=search,
        )
    except RegistryError as exc:
        raise as_http_exception(exc)


# NOTE: These routes must stay ABOVE /{farmer_id} so FastAPI doesn't try to
# parse "statistics" or "bulk-import" as a UUID.
@router.get("/statistics", response_model=FarmerStatistics)
async def get_statistics(
    cooperative_id: CooperativeId,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    try:
        return await farmer_service.get_farmer_statistics(db, cooperative_id)
    except RegistryError as exc:
        raise as_http_exception(exc)


@router.post("/bulk-import", response_model=BulkImportResponse, status_code=201)
async def bulk_import_farmers(
    body: BulkImportRequest,
    cooperative_id: CooperativeId,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """
    Import a batch of farmers, one transaction per row.

    Always answers 201 with the per-row report, even when every row failed;
    only an unknown cooperative or an oversized batch fails the request.
    """
    if len(body.farmers) > settings.BULK_IMPORT_MAX_ROWS:
        raise HTTPException(
            status_code=422,
            detail=f"Bulk import is limited to {settings.BULK_IMPORT_MAX_ROWS} rows per request",
        )
    try:
        return await bulk_import.bulk_import_farmers(db, body.farmers, cooperative_id)
    except RegistryError as exc:
        await db.rollback()
        raise as_http_exception(exc)


@router.post("", response_model=FarmerView, status_code=201)
async def create_farmer(
    body: FarmerRequest,
    cooperative_id: CooperativeId,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    try:
        farmer = await farmer_service.create_farmer(db, body, cooperative_id)
        await db.commit()
        return farmer
    except RegistryError as exc:
        await db.rollback()
        raise as_http_exception(exc)
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=400, detail=_CONFLICT_DETAIL)


@router.get("/{farmer_id}", response_model=FarmerView)
async def get_farmer(
    farmer_id: uuid.UUID,
    cooperative_id: CooperativeId,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    try:
        return await farmer_service.get_farmer(db, farmer_id, cooperative_id)
    except RegistryError as exc:
        raise as_http_exception(exc)


@router.put("/{farmer_id}", response_model=FarmerView)
async def update_farmer(
    farmer_id: uuid.UUID,
    body: FarmerRequest,
    cooperative_id: CooperativeId,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """
    Replace a farmer's fields and reconcile its projects against ``body.projects``.

    Projects with a known id are updated, the rest are created, and any stored
    project missing from the list is deleted. Over-allocation rejects the whole
    update.
    """
    try:
        farmer = await farmer_service.update_farmer(db, farmer_id, body, cooperative_id)
        await db.commit()
        return farmer
    except RegistryError as exc:
        await db.rollback()
        raise as_http_exception(exc)
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=400, detail=_CONFLICT_DETAIL)


@router.delete("/{farmer_id}", status_code=204)
async def delete_farmer(
    farmer_id: uuid.UUID,
    cooperative_id: CooperativeId,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    try:
        await farmer_service.delete_farmer(db, farmer_id, cooperative_id)
        await db.commit()
    except RegistryError as exc:
        await db.rollback()
        raise as_http_exception(exc)


@router.patch("/{farmer_id}/status", response_model=FarmerView)
async def update_farmer_status(
    farmer_id: uuid.UUID,
    cooperative_id: CooperativeId,
    db: Annotated[AsyncSession, Depends(get_db)],
    status: str = Query(...),
):
    try:
        farmer = await farmer_service.update_farmer_status(db, farmer_id, status, cooperative_id)
        await db.commit()
        return farmer
    except RegistryError as exc:
        await db.rollback()
        raise as_http_exception(exc)
