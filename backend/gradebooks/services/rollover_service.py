"""Carry assignments over into a new school year.

Rolling over resets the workflow state (completion flags, teacher
completions, status, assignment metadata) for the target year. The data map
is never touched: the same record keeps accumulating its content across
years. The outgoing year's workflow state is archived under its school year
id before it is reset.

`rollover_patch` and `archive_patch` are pure; they only describe the
write.
"""
import logging
from typing import Iterable, Optional

from django.utils import timezone

from gradebooks import models as gb_models
from gradebooks.exceptions import InvalidArgument, NotFound
from gradebooks.services.assignment_state import check_transition
from gradebooks.services.audit import log_audit
from gradebooks.services.snapshots import create_assignment_snapshot, delete_snapshot
from gradebooks.services.unit_of_work import AtomicUnitOfWork
from gradebooks.services.versioning import conditional_update, restore_fields

logger = logging.getLogger(__name__)

Status = gb_models.TemplateAssignment.Status

ROLLOVER_FIELDS = (
    'completion_school_year_id',
    'status',
    'assigned_by_id',
    'assigned_at',
    'is_completed',
    'completed_at',
    'completed_by_id',
    'is_completed_sem1',
    'completed_at_sem1',
    'is_completed_sem2',
    'completed_at_sem2',
    'teacher_completions',
    'completion_history_by_year',
    'teacher_completions_by_year',
    'assigned_teachers_by_year',
    'data_version',
    'updated_at',
)


def _pk(value):
    return getattr(value, 'pk', value)


def _iso(value):
    return value.isoformat() if value is not None and hasattr(value, 'isoformat') else value


def rollover_patch(target_year_id, actor_by, now=None) -> dict:
    if not target_year_id:
        raise InvalidArgument('target school year is required')
    return {
        'completion_school_year_id': _pk(target_year_id),
        'status': Status.DRAFT,
        'assigned_by_id': _pk(actor_by),
        'assigned_at': now or timezone.now(),
        'is_completed': False,
        'completed_at': None,
        'completed_by_id': None,
        'is_completed_sem1': False,
        'completed_at_sem1': None,
        'is_completed_sem2': False,
        'completed_at_sem2': None,
        'teacher_completions': [],
    }


def archive_patch(assignment, from_year_id, now=None) -> dict:
    """Archive the outgoing year's workflow state. Empty without a year."""
    if not from_year_id:
        return {}
    key = str(_pk(from_year_id))
    now = now or timezone.now()

    history = dict(assignment.completion_history_by_year or {})
    history[key] = {
        'is_completed': bool(assignment.is_completed),
        'completed_at': _iso(assignment.completed_at),
        'completed_by': assignment.completed_by_id,
        'is_completed_sem1': bool(assignment.is_completed_sem1),
        'completed_at_sem1': _iso(assignment.completed_at_sem1),
        'is_completed_sem2': bool(assignment.is_completed_sem2),
        'completed_at_sem2': _iso(assignment.completed_at_sem2),
        'status': assignment.status,
        'archived_at': now.isoformat(),
    }
    teacher_completions = dict(assignment.teacher_completions_by_year or {})
    teacher_completions[key] = list(assignment.teacher_completions or [])
    assigned_teachers = dict(assignment.assigned_teachers_by_year or {})
    assigned_teachers[key] = list(assignment.assigned_teachers or [])
    return {
        'completion_history_by_year': history,
        'teacher_completions_by_year': teacher_completions,
        'assigned_teachers_by_year': assigned_teachers,
    }


def complete_rollover_patch(assignment, from_year_id, target_year_id, actor_by, now=None) -> dict:
    now = now or timezone.now()
    patch = archive_patch(assignment, from_year_id, now=now)
    patch.update(rollover_patch(target_year_id, actor_by, now=now))
    return patch


def completion_flags_for_year(assignment, school_year_id) -> dict:
    """Completion flags as they are (live year) or were (archived year)."""
    if str(assignment.completion_school_year_id) == str(school_year_id):
        return {
            'is_completed': bool(assignment.is_completed),
            'is_completed_sem1': bool(assignment.is_completed_sem1),
            'is_completed_sem2': bool(assignment.is_completed_sem2),
            'status': assignment.status,
        }
    archived = (assignment.completion_history_by_year or {}).get(str(school_year_id))
    if not archived:
        return {'is_completed': False, 'is_completed_sem1': False, 'is_completed_sem2': False, 'status': None}
    return {
        'is_completed': bool(archived.get('is_completed')),
        'is_completed_sem1': bool(archived.get('is_completed_sem1')),
        'is_completed_sem2': bool(archived.get('is_completed_sem2')),
        'status': archived.get('status'),
    }


def teacher_completions_for_year(assignment, school_year_id) -> list:
    if str(assignment.completion_school_year_id) == str(school_year_id):
        return list(assignment.teacher_completions or [])
    return list((assignment.teacher_completions_by_year or {}).get(str(school_year_id)) or [])


def assigned_teachers_for_year(assignment, school_year_id) -> list:
    if str(assignment.completion_school_year_id) == str(school_year_id):
        return list(assignment.assigned_teachers or [])
    return list((assignment.assigned_teachers_by_year or {}).get(str(school_year_id)) or [])


def _add_rollover_steps(uow, assignment, target_year, actor, snapshot, from_year=None):
    from_year = from_year or assignment.completion_school_year
    label = f'assignment:{assignment.pk}'

    if snapshot and from_year is not None:
        uow.add(
            f'{label}:snapshot',
            lambda: create_assignment_snapshot(
                assignment,
                gb_models.SavedGradebook.Reason.YEAR_END,
                from_year,
                level=assignment.student.level,
            ),
            undo=lambda captured, result: delete_snapshot(result),
        )

    def apply():
        current = gb_models.TemplateAssignment.objects.get(pk=assignment.pk)
        check_transition(current.status, Status.DRAFT, assignment_id=current.pk)
        patch = complete_rollover_patch(current, _pk(from_year), target_year.pk, actor)
        return conditional_update(current.pk, patch)

    uow.add(
        label,
        apply,
        undo=lambda captured, result: restore_fields(assignment.pk, captured),
        capture=lambda: gb_models.TemplateAssignment.objects.filter(pk=assignment.pk).values(*ROLLOVER_FIELDS).get(),
    )


def rollover_assignments(assignment_ids: Iterable[int], target_year, actor, snapshot=False, from_year=None) -> dict:
    """Roll every listed assignment into `target_year` as one unit.

    Assignments already live in `target_year` are skipped. Returns
    ``{assignment_id: new_data_version}`` for the rolled records.
    """
    if target_year is None:
        raise InvalidArgument('target school year is required')
    assignments = list(
        gb_models.TemplateAssignment.objects
        .filter(pk__in=list(assignment_ids))
        .select_related('student', 'completion_school_year')
        .order_by('pk')
    )
    todo = [a for a in assignments if a.completion_school_year_id != target_year.pk]
    if not todo:
        return {}

    uow = AtomicUnitOfWork(f'rollover {len(todo)} assignments to {target_year.pk}')
    for assignment in todo:
        _add_rollover_steps(uow, assignment, target_year, actor, snapshot, from_year=from_year)
    results = uow.run()

    versions = {a.pk: results[f'assignment:{a.pk}'] for a in todo}
    log_audit(
        'ROLLOVER_ASSIGNMENTS', actor,
        target_school_year_id=target_year.pk,
        assignment_ids=sorted(versions),
        snapshot=bool(snapshot),
        used_transaction=uow.used_transaction,
    )
    return versions


def rollover_assignment(assignment_id, target_year, actor, snapshot=False, from_year=None) -> Optional[int]:
    if not gb_models.TemplateAssignment.objects.filter(pk=assignment_id).exists():
        raise NotFound('Assignment not found', assignment_id=assignment_id)
    versions = rollover_assignments([assignment_id], target_year, actor, snapshot=snapshot, from_year=from_year)
    return versions.get(assignment_id)
