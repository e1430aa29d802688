"""Single-project operations nested under a cooperative-scoped farmer."""
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from harvest.models.farmer import Farmer
from harvest.models.project import Project, ProjectStatus
from harvest.schemas.project import AllocatedAreaResponse, ProjectRequest, ProjectView
from harvest.services import project_reconciler
from harvest.services.area_ledger import check_project_fits, remaining_area
from harvest.services.errors import BadRequestError, NotFoundError
from harvest.services.farmer_service import load_scoped_farmer, sum_allocated_area

logger = logging.getLogger(__name__)

_VALID_STATUSES = ", ".join(s.value for s in ProjectStatus)


async def _load_project(db: AsyncSession, project_id: uuid.UUID, farmer: Farmer) -> Project:
    stmt = select(Project).where(Project.id == project_id, Project.farmer_id == farmer.id)
    project = (await db.execute(stmt)).scalar_one_or_none()
    if project is None:
        raise NotFoundError(f"Project not found with ID: {project_id}")
    return project


async def _view(db: AsyncSession, project: Project) -> ProjectView:
    await db.refresh(project)
    return ProjectView.model_validate(project)


async def list_projects(
    db: AsyncSession, farmer_id: uuid.UUID, cooperative_id: uuid.UUID
) -> list[ProjectView]:
    farmer = await load_scoped_farmer(db, farmer_id, cooperative_id)
    projects = await project_reconciler.load_projects(db, farmer.id)
    return [ProjectView.model_validate(p) for p in projects]


async def get_project(
    db: AsyncSession, project_id: uuid.UUID, farmer_id: uuid.UUID, cooperative_id: uuid.UUID
) -> ProjectView:
    farmer = await load_scoped_farmer(db, farmer_id, cooperative_id)
    return ProjectView.model_validate(await _load_project(db, project_id, farmer))


async def create_project(
    db: AsyncSession, request: ProjectRequest, farmer_id: uuid.UUID, cooperative_id: uuid.UUID
) -> ProjectView:
    farmer = await load_scoped_farmer(db, farmer_id, cooperative_id, for_update=True)

    allocated = await sum_allocated_area(db, farmer.id)
    check_project_fits(farmer.area_ha, allocated, request.area_ha)

    project = project_reconciler.new_project(farmer.id, request)
    db.add(project)
    await db.flush()
    logger.info("Project %s created for farmer %s (%.2f ha)", project.id, farmer.id, project.area_ha)
    return await _view(db, project)


async def update_project(
    db: AsyncSession,
    project_id: uuid.UUID,
    request: ProjectRequest,
    farmer_id: uuid.UUID,
    cooperative_id: uuid.UUID,
) -> ProjectView:
    farmer = await load_scoped_farmer(db, farmer_id, cooperative_id, for_update=True)
    project = await _load_project(db, project_id, farmer)

    if request.area_ha != project.area_ha:
        allocated = await sum_allocated_area(db, farmer.id)
        check_project_fits(
            farmer.area_ha,
            allocated - project.area_ha,
            request.area_ha,
            current_area_ha=project.area_ha,
        )

    # Omitting status on this endpoint keeps the current one.
    status = request.status or project.status
    project_reconciler.apply_request_fields(project, request)
    project.status = status
    await db.flush()
    logger.info("Project %s updated for farmer %s", project.id, farmer.id)
    return await _view(db, project)


async def delete_project(
    db: AsyncSession, project_id: uuid.UUID, farmer_id: uuid.UUID, cooperative_id: uuid.UUID
) -> None:
    farmer = await load_scoped_farmer(db, farmer_id, cooperative_id, for_update=True)
    project = await _load_project(db, project_id, farmer)
    await db.delete(project)
    await db.flush()
    logger.info(
        "Project %s deleted; farmer %s now has %.2f ha allocated",
        project_id,
        farmer.id,
        await sum_allocated_area(db, farmer.id),
    )


async def update_project_status(
    db: AsyncSession,
    project_id: uuid.UUID,
    status: str,
    farmer_id: uuid.UUID,
    cooperative_id: uuid.UUID,
) -> ProjectView:
    try:
        new_status = ProjectStatus(status)
    except ValueError:
        raise BadRequestError(f"Invalid status. Must be one of: {_VALID_STATUSES}")

    farmer = await load_scoped_farmer(db, farmer_id, cooperative_id, for_update=True)
    project = await _load_project(db, project_id, farmer)
    project.status = new_status
    await db.flush()
    return await _view(db, project)


async def get_allocated_area(
    db: AsyncSession, farmer_id: uuid.UUID, cooperative_id: uuid.UUID
) -> AllocatedAreaResponse:
    farmer = await load_scoped_farmer(db, farmer_id, cooperative_id)
    allocated = await sum_allocated_area(db, farmer.id)
    return AllocatedAreaResponse(
        farmer_id=farmer.id,
        area_ha=farmer.area_ha,
        allocated_area=allocated,
        remaining_area=remaining_area(farmer.area_ha, allocated),
    )
