from django.utils import timezone

from gradebooks import models as gb_models
from gradebooks.exceptions import InvalidArgument
from gradebooks.serializers import (
    EnrollmentSnapshotSerializer,
    StudentSnapshotSerializer,
    TemplateAssignmentSerializer,
    TemplateSignatureSerializer,
    detached,
)
from gradebooks.services.period_identity import END_OF_YEAR, SEM1, compute_signature_period_id

Reason = gb_models.SavedGradebook.Reason

_REASON_PERIODS = {
    Reason.PROMOTION: END_OF_YEAR,
    Reason.YEAR_END: END_OF_YEAR,
    Reason.EXIT: END_OF_YEAR,
    Reason.SEM1: SEM1,
}


def create_assignment_snapshot(assignment, reason, school_year, level='', school_class=None, enrollment=None):
    """Persist an immutable copy of `assignment` and its context.

    The copy is taken from the database, not from the passed instance, and
    is detached from every live object.
    """
    if reason not in Reason.values:
        raise InvalidArgument(f'unknown snapshot reason: {reason!r}')

    fresh = gb_models.TemplateAssignment.objects.select_related('student').get(pk=assignment.pk)
    signatures = gb_models.TemplateSignature.objects.filter(assignment_id=fresh.pk)
    period_type = _REASON_PERIODS.get(reason)
    period_id = compute_signature_period_id(school_year.pk, period_type) if period_type else None

    data = detached({
        'assignment': TemplateAssignmentSerializer(fresh).data,
        'student': StudentSnapshotSerializer(fresh.student).data,
        'enrollment': EnrollmentSnapshotSerializer(enrollment).data if enrollment is not None else None,
        'signatures': TemplateSignatureSerializer(signatures, many=True).data,
        'class_name': school_class.name if school_class is not None else '',
    })
    meta = {
        'template_version': fresh.template_version,
        'data_version': fresh.data_version,
        'signature_period_id': period_id,
        'school_year_id': school_year.pk,
        'level': level or '',
        'snapshot_reason': reason,
        'archived_at': timezone.now().isoformat(),
    }
    return gb_models.SavedGradebook.objects.create(
        student_id=fresh.student_id,
        school_year=school_year,
        school_class=school_class,
        level=level or '',
        template_id=fresh.template_id,
        assignment=fresh,
        reason=reason,
        data=data,
        meta=meta,
    )


def delete_snapshot(snapshot):
    if snapshot is not None:
        gb_models.SavedGradebook.objects.filter(pk=snapshot.pk).delete()
