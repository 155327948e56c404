"""Optimistic concurrency for assignment records.

Every accepted write goes through `conditional_update`, a single
``UPDATE ... WHERE id = %s AND data_version = %s`` that also bumps
``data_version``. A write that matches zero rows lost the race (or the row
is gone) and is reported as `Conflict` together with the current record.
"""
import logging
from typing import Optional

from django.db.models import F
from django.utils import timezone

from gradebooks import models as gb_models
from gradebooks.conf import workflow_setting
from gradebooks.exceptions import Conflict, InvalidArgument, NotFound
from gradebooks.serializers import serialize_assignment
from gradebooks.services import assignment_state, data_fields, policy
from gradebooks.services.audit import log_audit, record_change

logger = logging.getLogger(__name__)


def load_assignment(assignment_id, using=None) -> gb_models.TemplateAssignment:
    qs = gb_models.TemplateAssignment.objects.select_related('template', 'student')
    if using:
        qs = qs.using(using)
    assignment = qs.filter(pk=assignment_id).first()
    if assignment is None:
        raise NotFound('Assignment not found', assignment_id=assignment_id)
    return assignment


def conditional_update(assignment_id, patch: dict, expected_version: Optional[int] = None, using=None) -> int:
    """Apply `patch` and increment the version; return the new version.

    With `expected_version` the write only lands if the stored version still
    equals it. Without it the write is unconditional (server-driven
    mutations) but still increments.
    """
    manager = gb_models.TemplateAssignment.objects
    if using:
        manager = manager.using(using)
    qs = manager.filter(pk=assignment_id)
    if expected_version is not None:
        qs = qs.filter(data_version=expected_version)

    values = {k: v for k, v in (patch or {}).items() if k != 'data_version'}
    values['data_version'] = F('data_version') + 1
    values.setdefault('updated_at', timezone.now())

    if qs.update(**values) == 0:
        current = manager.filter(pk=assignment_id).first()
        if current is None:
            raise NotFound('Assignment not found', assignment_id=assignment_id)
        logger.info(
            'stale write on assignment %s: expected v%s, current v%s',
            assignment_id, expected_version, current.data_version,
        )
        raise Conflict(
            current=serialize_assignment(current),
            current_version=current.data_version,
            expected_version=expected_version,
        )

    if expected_version is not None:
        return expected_version + 1
    return manager.values_list('data_version', flat=True).get(pk=assignment_id)


def restore_fields(assignment_id, snapshot: dict, using=None):
    """Write back fields captured before a step, version included.

    Used by compensating undo steps only.
    """
    manager = gb_models.TemplateAssignment.objects
    if using:
        manager = manager.using(using)
    manager.filter(pk=assignment_id).update(**snapshot)


def capture_fields(assignment_id, fields=('data', 'data_version', 'status', 'updated_at'), using=None) -> dict:
    manager = gb_models.TemplateAssignment.objects
    if using:
        manager = manager.using(using)
    row = manager.filter(pk=assignment_id).values(*fields).first()
    if row is None:
        raise NotFound('Assignment not found', assignment_id=assignment_id)
    return row


def apply_data_changes(assignment_id, actor, changes: dict, expected_version: Optional[int] = None, policy_settings=None) -> int:
    """Merge `changes` into the assignment's data map; return the new version.

    Keys are validated against the template before anything is written. When
    the caller presents no version the merge is conditioned on the version
    read here and retried a bounded number of times on conflict.
    """
    if not isinstance(changes, dict) or not changes:
        raise InvalidArgument('changes must be a non-empty mapping')

    assignment = load_assignment(assignment_id)
    data_fields.validate_data_changes(assignment.template, changes)
    policy.require_data_edit(actor, assignment, changes, settings_snapshot=policy_settings)

    attempts = 1 if expected_version is not None else max(1, int(workflow_setting('DATA_EDIT_MAX_RETRIES')))
    for attempt in range(attempts):
        if attempt:
            assignment = load_assignment(assignment_id)
        version = expected_version if expected_version is not None else assignment.data_version

        data = dict(assignment.data or {})
        before = {key: data.get(key) for key in changes}
        data.update(changes)
        patch = {'data': data}
        if assignment.status == gb_models.TemplateAssignment.Status.DRAFT:
            target = gb_models.TemplateAssignment.Status.IN_PROGRESS
            assignment_state.check_transition(assignment.status, target, assignment_id=assignment.pk)
            patch['status'] = target

        try:
            new_version = conditional_update(assignment.pk, patch, expected_version=version)
        except Conflict:
            if expected_version is not None or attempt == attempts - 1:
                raise
            logger.info('retrying data edit on assignment %s after concurrent write', assignment.pk)
            continue

        for key in sorted(changes):
            record_change(assignment.pk, actor, 'data_edit', new_version, key=key, before=before[key], after=changes[key])
        log_audit('UPDATE_GRADEBOOK_DATA', actor, assignment, keys=sorted(changes), data_version=new_version)
        return new_version
