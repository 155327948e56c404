import logging
from typing import Optional

from django.utils import timezone

from gradebooks import models as gb_models
from gradebooks.exceptions import InvalidArgument
from gradebooks.services.audit import log_audit, record_change

logger = logging.getLogger(__name__)

Status = gb_models.TemplateAssignment.Status

ALLOWED_TRANSITIONS = {
    Status.DRAFT: {Status.DRAFT, Status.IN_PROGRESS, Status.COMPLETED},
    Status.IN_PROGRESS: {Status.DRAFT, Status.IN_PROGRESS, Status.COMPLETED},
    Status.COMPLETED: {Status.DRAFT, Status.IN_PROGRESS, Status.COMPLETED, Status.SIGNED},
    Status.SIGNED: {Status.COMPLETED, Status.SIGNED},
}


def is_allowed(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


def check_transition(current: str, target: str, assignment_id=None) -> bool:
    """Log a non-standard transition; return whether it is a standard one.

    Workflow-driven transitions (sign, unsign, rollover) go ahead regardless.
    """
    if is_allowed(current, target):
        return True
    logger.warning('non-standard status transition on assignment %s: %s -> %s', assignment_id, current, target)
    return False


def normalize_completion_patch(patch: dict, now=None) -> dict:
    """Keep completion flags and their timestamps consistent.

    Clearing a flag clears its timestamp; setting one without a timestamp
    stamps `now`. Completing the second semester completes the assignment.
    """
    now = now or timezone.now()
    out = dict(patch)
    for flag, stamp in (
        ('is_completed_sem1', 'completed_at_sem1'),
        ('is_completed_sem2', 'completed_at_sem2'),
        ('is_completed', 'completed_at'),
    ):
        if flag not in out:
            continue
        if out[flag]:
            if not out.get(stamp):
                out[stamp] = now
        else:
            out[stamp] = None
    if out.get('is_completed_sem2') and 'is_completed' not in out:
        out['is_completed'] = True
        out.setdefault('completed_at', now)
    if out.get('is_completed') is False:
        out['completed_by_id'] = None
    return out


def set_status(assignment_id, actor, target: str, expected_version: Optional[int] = None) -> int:
    """Explicit status edit. Only standard transitions are accepted; the
    signed state is reached through signatures only."""
    from gradebooks.services.versioning import conditional_update, load_assignment

    if target not in Status.values:
        raise InvalidArgument(f'unknown status: {target!r}')
    if target == Status.SIGNED:
        raise InvalidArgument('status "signed" is set by signing')
    assignment = load_assignment(assignment_id)
    if not is_allowed(assignment.status, target):
        check_transition(assignment.status, target, assignment_id=assignment.pk)
        raise InvalidArgument(f'cannot move from {assignment.status} to {target}')

    new_version = conditional_update(assignment.pk, {'status': target}, expected_version=expected_version)
    record_change(assignment.pk, actor, 'status', new_version, before=assignment.status, after=target)
    return new_version


def mark_semester_completed(assignment_id, actor, semester: int, completed: bool = True, expected_version: Optional[int] = None) -> int:
    from gradebooks.services.versioning import conditional_update, load_assignment

    if str(semester) not in ('1', '2'):
        raise InvalidArgument('semester must be 1 or 2')
    assignment = load_assignment(assignment_id)
    if not completed and assignment.status == Status.SIGNED:
        raise InvalidArgument('a signed gradebook cannot be reopened; unsign it first')

    flag = f'is_completed_sem{semester}'
    patch = {flag: bool(completed)}
    if completed:
        patch['completed_by_id'] = actor.pk
        target = Status.SIGNED if assignment.status == Status.SIGNED else Status.COMPLETED
    else:
        if str(semester) == '2':
            patch['is_completed'] = False
        target = Status.IN_PROGRESS
    if target != assignment.status:
        check_transition(assignment.status, target, assignment_id=assignment.pk)
        patch['status'] = target

    patch = normalize_completion_patch(patch)
    new_version = conditional_update(assignment.pk, patch, expected_version=expected_version)
    record_change(
        assignment.pk, actor, 'completion', new_version, key=flag,
        before=getattr(assignment, flag), after=bool(completed),
    )
    log_audit(
        'MARK_ASSIGNMENT_DONE' if completed else 'UNMARK_ASSIGNMENT_DONE',
        actor, assignment, semester=int(semester), data_version=new_version,
    )
    return new_version
