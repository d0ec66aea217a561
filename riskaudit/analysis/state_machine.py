"""Inspection lifecycle: which status changes are allowed and what they do to completed_at."""

from __future__ import annotations

from datetime import datetime

from riskaudit.errors import InvalidTransitionError
from riskaudit.models.base import utcnow
from riskaudit.models.inspection import Inspection, InspectionStatus

S = InspectionStatus

_ALLOWED: dict[InspectionStatus, frozenset[InspectionStatus]] = {
    S.DRAFT: frozenset({S.PHOTOS_CAPTURED, S.ANALYZING, S.FAILED}),
    S.PHOTOS_CAPTURED: frozenset({S.ANALYZING, S.FAILED}),
    # A redelivered job may re-enter Analyzing.
    S.ANALYZING: frozenset({S.ANALYZING, S.COMPLETED, S.FAILED}),
    # A new job with pending photos re-opens a finished inspection.
    S.COMPLETED: frozenset({S.ANALYZING}),
    S.FAILED: frozenset({S.ANALYZING}),
}


def current_status(inspection: Inspection) -> InspectionStatus:
    return InspectionStatus(inspection.status)


def can_transition(current: InspectionStatus | str, target: InspectionStatus | str) -> bool:
    return InspectionStatus(target) in _ALLOWED[InspectionStatus(current)]


def transition(inspection: Inspection, target: InspectionStatus, now: datetime | None = None) -> None:
    """Move ``inspection`` to ``target``, keeping completed_at consistent with the new state.

    Terminal states stamp completed_at; every other state clears it.
    """
    current = current_status(inspection)
    if not can_transition(current, target):
        raise InvalidTransitionError(current.value, InspectionStatus(target).value)
    target = InspectionStatus(target)
    inspection.status = target.value
    inspection.completed_at = (now or utcnow()) if target.is_terminal else None


def begin_analysis(inspection: Inspection) -> None:
    transition(inspection, S.ANALYZING)


def finish_analysis(inspection: Inspection, analyzed: int) -> InspectionStatus:
    """Close an Analyzing inspection from the job's counters.

    Completed when at least one requested photo succeeded in this run,
    Failed otherwise. Photos analyzed by earlier jobs do not count.
    """
    target = S.COMPLETED if analyzed > 0 else S.FAILED
    transition(inspection, target)
    return target


def fail_job(inspection: Inspection) -> bool:
    """Force Failed after an aborted job. Returns False if the inspection is already terminal."""
    current = current_status(inspection)
    if current.is_terminal:
        return False
    transition(inspection, S.FAILED)
    return True
