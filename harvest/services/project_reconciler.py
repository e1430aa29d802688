"""
Reconciles a farmer's stored projects against the complete project list sent
with a farmer create/update.

Planning is pure and raises before anything is touched:
  1. The requested areas must fit inside the farmer's declared area.
  2. Each requested entry whose id matches a stored project is an update.
  3. Entries without a (known) id are creates.
  4. Stored projects nobody referenced are deletes.

Applying the plan deletes first, then updates, then creates, all inside the
caller's transaction. Callers hold the farmer row lock while planning and
applying.
"""
import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from harvest.models.project import Project, ProjectStatus
from harvest.schemas.project import ProjectRequest
from harvest.services.area_ledger import check_batch_fits
from harvest.services.errors import BadRequestError

logger = logging.getLogger(__name__)


@dataclass
class ProjectUpdate:
    project: Project
    request: ProjectRequest


@dataclass
class ReconcilePlan:
    creates: list[ProjectRequest] = field(default_factory=list)
    updates: list[ProjectUpdate] = field(default_factory=list)
    deletes: list[Project] = field(default_factory=list)
    requested_total: float = 0.0

    @property
    def kept_ids(self) -> set[uuid.UUID]:
        return {u.project.id for u in self.updates}


async def load_projects(db: AsyncSession, farmer_id: uuid.UUID) -> list[Project]:
    stmt = (
        select(Project)
        .where(Project.farmer_id == farmer_id)
        .order_by(Project.created_at, Project.id)
        .execution_options(populate_existing=True)
    )
    return list((await db.execute(stmt)).scalars().all())


def plan_reconciliation(
    existing: Sequence[Project],
    requested: Sequence[ProjectRequest] | None,
    farmer_area_ha: float,
    *,
    reject_unknown_ids: bool = False,
) -> ReconcilePlan:
    """Diff ``requested`` against ``existing`` without mutating either.

    An id that matches none of the farmer's projects is treated as a new
    project (the id is dropped) unless ``reject_unknown_ids`` is set.
    """
    requested = list(requested or [])
    plan = ReconcilePlan(
        requested_total=check_batch_fits(farmer_area_ha, (r.area_ha for r in requested))
    )

    existing_by_id = {p.id: p for p in existing}
    seen: set[uuid.UUID] = set()
    kept: set[uuid.UUID] = set()

    for entry in requested:
        if entry.id is not None:
            if entry.id in seen:
                raise BadRequestError(f"Project {entry.id} is listed more than once")
            seen.add(entry.id)

        if entry.id is not None and entry.id in existing_by_id:
            kept.add(entry.id)
            plan.updates.append(ProjectUpdate(project=existing_by_id[entry.id], request=entry))
            continue

        if entry.id is not None:
            if reject_unknown_ids:
                raise BadRequestError(f"Project not found with ID: {entry.id} for this farmer")
            logger.info("Unknown project id %s in request; creating a new project instead", entry.id)
        plan.creates.append(entry)

    plan.deletes = [p for p in existing if p.id not in kept]
    return plan


def apply_request_fields(project: Project, request: ProjectRequest) -> None:
    project.crop_name = request.crop_name.strip()
    project.area_ha = request.area_ha
    project.status = request.status or ProjectStatus.ACTIVE
    project.planting_date = request.planting_date
    project.expected_harvest_date = request.expected_harvest_date
    project.notes = request.notes.strip() if request.notes is not None else None


def new_project(farmer_id: uuid.UUID, request: ProjectRequest) -> Project:
    project = Project(farmer_id=farmer_id)
    apply_request_fields(project, request)
    return project


async def apply_plan(db: AsyncSession, farmer_id: uuid.UUID, plan: ReconcilePlan) -> list[Project]:
    """Write the plan to the session and flush. Returns the newly created projects."""
    for project in plan.deletes:
        await db.delete(project)
    if plan.deletes:
        await db.flush()

    for update in plan.updates:
        apply_request_fields(update.project, update.request)

    created = [new_project(farmer_id, request) for request in plan.creates]
    db.add_all(created)
    await db.flush()

    logger.info(
        "Project reconcile for farmer %s: kept=%d created=%d deleted=%d (%.2f ha requested)",
        farmer_id,
        len(plan.updates),
        len(created),
        len(plan.deletes),
        plan.requested_total,
    )
    return created
