"""
Farm-area bookkeeping.

A farmer's projects may never claim more hectares than the farmer declared.
These helpers are pure so the same arithmetic backs the single-project
endpoints, the reconciler and the farmer views.
"""
import math
from collections.abc import Iterable
from typing import Protocol

from harvest.services.errors import AreaExceededError

# Absolute tolerance for float sums such as 0.1 + 0.2 == 0.3 ha.
_AREA_TOLERANCE = 1e-9


class HasArea(Protocol):
    area_ha: float


def allocated_area(projects: Iterable[HasArea]) -> float:
    return sum((p.area_ha for p in projects), 0.0)


def remaining_area(total_area_ha: float | None, allocated: float) -> float:
    if total_area_ha is None:
        return 0.0
    return max(total_area_ha - allocated, 0.0)


def would_exceed(total_area_ha: float, allocated_excluding_target: float, candidate_area_ha: float) -> bool:
    """True when adding ``candidate_area_ha`` pushes the allocation past the declared total."""
    claimed = allocated_excluding_target + candidate_area_ha
    if math.isclose(claimed, total_area_ha, rel_tol=0.0, abs_tol=_AREA_TOLERANCE):
        return False
    return claimed > total_area_ha


def check_project_fits(
    total_area_ha: float,
    allocated_excluding_target: float,
    candidate_area_ha: float,
    *,
    current_area_ha: float | None = None,
) -> None:
    """Raise AreaExceededError if a single project create/update would over-commit the farm.

    ``current_area_ha`` is the project's area before an update and only shapes
    the message.
    """
    if not would_exceed(total_area_ha, allocated_excluding_target, candidate_area_ha):
        return

    remaining = remaining_area(total_area_ha, allocated_excluding_target)
    if current_area_ha is None:
        message = (
            f"Project area ({candidate_area_ha:.2f} ha) exceeds remaining available area "
            f"({remaining:.2f} ha). Total farm area: {total_area_ha:.2f} ha, "
            f"Already allocated: {allocated_excluding_target:.2f} ha"
        )
    else:
        message = (
            f"Updated project area ({candidate_area_ha:.2f} ha) exceeds available area "
            f"({remaining:.2f} ha). Current area: {current_area_ha:.2f} ha, "
            f"Total farm area: {total_area_ha:.2f} ha, "
            f"Allocated to other projects: {allocated_excluding_target:.2f} ha"
        )
    raise AreaExceededError(
        message,
        requested=candidate_area_ha,
        total=total_area_ha,
        allocated=allocated_excluding_target,
        remaining=remaining,
    )


def check_batch_fits(total_area_ha: float, requested_areas: Iterable[float]) -> float:
    """Raise AreaExceededError if a full project list claims more than the farm; return the sum."""
    requested_total = sum(requested_areas, 0.0)
    if would_exceed(total_area_ha, 0.0, requested_total):
        raise AreaExceededError(
            f"Total project area ({requested_total:.2f} ha) exceeds farmer's total area "
            f"({total_area_ha:.2f} ha)",
            requested=requested_total,
            total=total_area_ha,
            remaining=total_area_ha,
        )
    return requested_total
