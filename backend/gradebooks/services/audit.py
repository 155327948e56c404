import logging

from gradebooks import models as gb_models

logger = logging.getLogger('gradebooks.audit')


def log_audit(action: str, actor=None, assignment=None, **details):
    """Emit one structured audit record. Persistence is up to the handlers."""
    payload = {
        'event': action,
        'actor_id': getattr(actor, 'pk', None),
        'assignment_id': getattr(assignment, 'pk', None),
    }
    if assignment is not None:
        payload['student_id'] = getattr(assignment, 'student_id', None)
    payload.update(details)
    logger.info('%s', payload)


def record_change(assignment_id, actor, change_type: str, data_version: int, key: str = '', before=None, after=None):
    return gb_models.TemplateChangeLog.objects.create(
        assignment_id=assignment_id,
        changed_by=actor if getattr(actor, 'pk', None) else None,
        change_type=change_type,
        key=key,
        before=before,
        after=after,
        data_version=data_version,
    )


def delete_change(change):
    if change is not None:
        gb_models.TemplateChangeLog.objects.filter(pk=change.pk).delete()
