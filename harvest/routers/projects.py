"""Projects router: single-project CRUD nested under a cooperative's farmer."""
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from harvest.database import get_db
from harvest.dependencies import CooperativeId, as_http_exception
from harvest.schemas.project import AllocatedAreaResponse, ProjectRequest, ProjectView
from harvest.services import project_service
from harvest.services.errors import RegistryError

router = APIRouter(prefix="/cooperative/farmers/{farmer_id}/projects", tags=["projects"])


@router.get("", response_model=list[ProjectView])
async def list_projects(
    farmer_id: uuid.UUID,
    cooperative_id: CooperativeId,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    try:
        return await project_service.list_projects(db, farmer_id, cooperative_id)
    except RegistryError as exc:
        raise as_http_exception(exc)


@router.post("", response_model=ProjectView, status_code=201)
async def create_project(
    farmer_id: uuid.UUID,
    body: ProjectRequest,
    cooperative_id: CooperativeId,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Add one project; rejected when it does not fit in the farmer's remaining area."""
    try:
        project = await project_service.create_project(db, body, farmer_id, cooperative_id)
        await db.commit()
        return project
    except RegistryError as exc:
        await db.rollback()
        raise as_http_exception(exc)


# NOTE: Must stay ABOVE /{project_id}.
@router.get("/allocated-area", response_model=AllocatedAreaResponse)
async def get_allocated_area(
    farmer_id: uuid.UUID,
    cooperative_id: CooperativeId,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    try:
        return await project_service.get_allocated_area(db, farmer_id, cooperative_id)
    except RegistryError as exc:
        raise as_http_exception(exc)


@router.get("/{project_id}", response_model=ProjectView)
async def get_project(
    farmer_id: uuid.UUID,
    project_id: uuid.UUID,
    cooperative_id: CooperativeId,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    try:
        return await project_service.get_project(db, project_id, farmer_id, cooperative_id)
    except RegistryError as exc:
        raise as_http_exception(exc)


@router.put("/{project_id}", response_model=ProjectView)
async def update_project(
    farmer_id: uuid.UUID,
    project_id: uuid.UUID,
    body: ProjectRequest,
    cooperative_id: CooperativeId,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    try:
        project = await project_service.update_project(
            db, project_id, body, farmer_id, cooperative_id
        )
        await db.commit()
        return project
    except RegistryError as exc:
        await db.rollback()
        raise as_http_exception(exc)


@router.delete("/{project_id}", status_code=204)
async def delete_project(
    farmer_id: uuid.UUID,
    project_id: uuid.UUID,
    cooperative_id: CooperativeId,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    try:
        await project_service.delete_project(db, project_id, farmer_id, cooperative_id)
        await db.commit()
    except RegistryError as exc:
        await db.rollback()
        raise as_http_exception(exc)


@router.patch("/{project_id}/status", response_model=ProjectView)
async def update_project_status(
    farmer_id: uuid.UUID,
    project_id: uuid.UUID,
    cooperative_id: CooperativeId,
    db: Annotated[AsyncSession, Depends(get_db)],
    status: str = Query(...),
):
    try:
        project = await project_service.update_project_status(
            db, project_id, status, farmer_id, cooperative_id
        )
        await db.commit()
        return project
    except RegistryError as exc:
        await db.rollback()
        raise as_http_exception(exc)
