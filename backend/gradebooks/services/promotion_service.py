"""Promote a student to the next school year.

All checks run before anything is written. The writes (snapshot, closing the
current enrollment, opening the next one, the student's promotion entry and
the assignment's promotion record) go through one unit of work. Promotion
does not roll the assignment over to the next year; that is a separate,
explicit step (see rollover_service).
"""
import logging
from dataclasses import dataclass

from django.db import IntegrityError, transaction
from django.utils import timezone

from academics.models import Enrollment, Student
from academics.services.school_years import (
    get_active_context,
    resolve_next_school_year,
    suggest_next_level,
)
from gradebooks import models as gb_models
from gradebooks.exceptions import (
    AlreadyPromoted,
    CurrentYearUnknown,
    InvalidArgument,
    NoNextYear,
    NotSignedByYou,
)
from gradebooks.services.audit import delete_change, log_audit, record_change
from gradebooks.services.completion import current_period_id, find_signature
from gradebooks.services.period_identity import END_OF_YEAR
from gradebooks.services.policy import require_supervisor_action
from gradebooks.services.snapshots import create_assignment_snapshot, delete_snapshot
from gradebooks.services.unit_of_work import AtomicUnitOfWork
from gradebooks.services.versioning import (
    capture_fields,
    conditional_update,
    load_assignment,
    restore_fields,
)

logger = logging.getLogger(__name__)

STUDENT_FIELDS = ('promotions', 'level', 'next_level', 'school_year_id')


@dataclass(frozen=True)
class PromotionResult:
    snapshot: gb_models.SavedGradebook
    enrollment_id: int
    next_enrollment: Enrollment
    created_next_enrollment: bool
    promotion: dict
    data_version: int
    used_transaction: bool


def current_enrollment(student, school_year_id=None):
    """The student's enrollment for `school_year_id` (any status), falling
    back to the latest active one."""
    qs = Enrollment.objects.filter(student=student).select_related('school_year', 'school_class')
    if school_year_id:
        enrollment = qs.filter(school_year_id=school_year_id).first()
        if enrollment is not None:
            return enrollment
    return (
        qs.filter(status=Enrollment.Status.ACTIVE)
        .order_by('-school_year__start_date', '-id')
        .first()
    )


def promote(assignment_id, actor, next_level=None, context=None, policy_settings=None) -> PromotionResult:
    assignment = load_assignment(assignment_id)
    context = context or get_active_context()
    if context is None:
        raise CurrentYearUnknown('No active school year')

    period_id = current_period_id(context, END_OF_YEAR)
    if find_signature(assignment.pk, END_OF_YEAR, period_id, signed_by=actor) is None:
        raise NotSignedByYou(signature_period_id=period_id)

    require_supervisor_action(actor, assignment, policy_settings, school_year_id=context.school_year_id)

    student = Student.objects.get(pk=assignment.student_id)
    enrollment = current_enrollment(student, context.school_year_id)
    if enrollment is None:
        raise CurrentYearUnknown('Student has no enrollment for the current year', student_id=student.pk)
    current_year = enrollment.school_year

    if student.promotion_for_year(current_year.pk) is not None or enrollment.status == Enrollment.Status.PROMOTED:
        raise AlreadyPromoted(student_id=student.pk, school_year_id=current_year.pk)
    if enrollment.status != Enrollment.Status.ACTIVE:
        raise CurrentYearUnknown('Student is not actively enrolled', student_id=student.pk)

    school_class = enrollment.school_class
    current_level = (school_class.level if school_class is not None else '') or student.level
    if not current_level:
        raise CurrentYearUnknown('Could not determine the student level', student_id=student.pk)

    next_level = next_level or suggest_next_level(current_level)
    if not next_level:
        raise InvalidArgument('next_level is required for this student', level=current_level)

    next_year = resolve_next_school_year(current_year)
    if next_year is None:
        raise NoNextYear(school_year_id=current_year.pk)

    promotion = {
        'school_year_id': current_year.pk,
        'to_school_year_id': next_year.pk,
        'date': timezone.now().isoformat(),
        'from_level': current_level,
        'to_level': next_level,
        'promoted_by': actor.pk,
    }

    uow = AtomicUnitOfWork(f'promote student {student.pk}')

    def take_snapshot():
        return create_assignment_snapshot(
            assignment,
            gb_models.SavedGradebook.Reason.PROMOTION,
            current_year,
            level=current_level,
            school_class=school_class,
            enrollment=enrollment,
        )

    def close_enrollment():
        updated = Enrollment.objects.filter(pk=enrollment.pk, status=Enrollment.Status.ACTIVE).update(
            status=Enrollment.Status.PROMOTED,
            promotion_status=Enrollment.PromotionStatus.PROMOTED,
        )
        if not updated:
            raise AlreadyPromoted(student_id=student.pk, school_year_id=current_year.pk)
        return enrollment.pk

    def reopen_enrollment(captured, result):
        Enrollment.objects.filter(pk=enrollment.pk).update(**captured)

    def open_next_enrollment():
        existing = Enrollment.objects.filter(student=student, school_year=next_year).first()
        if existing is not None:
            return existing, False
        try:
            with transaction.atomic():
                return Enrollment.objects.create(
                    student=student,
                    school_year=next_year,
                    status=Enrollment.Status.ACTIVE,
                ), True
        except IntegrityError:
            return Enrollment.objects.get(student=student, school_year=next_year), False

    def drop_next_enrollment(captured, result):
        next_enrollment, created = result
        if created:
            Enrollment.objects.filter(pk=next_enrollment.pk).delete()

    def record_student_promotion():
        fresh = Student.objects.get(pk=student.pk)
        if fresh.promotion_for_year(current_year.pk) is not None:
            raise AlreadyPromoted(student_id=student.pk, school_year_id=current_year.pk)
        promotions = list(fresh.promotions or []) + [promotion]
        Student.objects.filter(pk=student.pk).update(
            promotions=promotions,
            level=next_level,
            next_level='',
            school_year=next_year,
        )
        return promotions

    def record_assignment_promotion():
        current = gb_models.TemplateAssignment.objects.get(pk=assignment.pk)
        data = dict(current.data or {})
        data['promotions'] = list(data.get('promotions') or []) + [promotion]
        return conditional_update(assignment.pk, {'data': data})

    def log_change():
        return record_change(assignment.pk, actor, 'promotion', uow.results['assignment'], after=promotion)

    uow.add('snapshot', take_snapshot, undo=lambda captured, snapshot: delete_snapshot(snapshot))
    uow.add(
        'enrollment', close_enrollment,
        undo=reopen_enrollment,
        capture=lambda: Enrollment.objects.filter(pk=enrollment.pk).values('status', 'promotion_status').get(),
    )
    uow.add('next_enrollment', open_next_enrollment, undo=drop_next_enrollment)
    uow.add(
        'student', record_student_promotion,
        undo=lambda captured, result: Student.objects.filter(pk=student.pk).update(**captured),
        capture=lambda: Student.objects.filter(pk=student.pk).values(*STUDENT_FIELDS).get(),
    )
    uow.add(
        'assignment', record_assignment_promotion,
        undo=lambda captured, result: restore_fields(assignment.pk, captured),
        capture=lambda: capture_fields(assignment.pk),
    )
    uow.add('change_log', log_change, undo=lambda captured, change: delete_change(change))
    results = uow.run()

    next_enrollment, created = results['next_enrollment']
    log_audit(
        'PROMOTE_STUDENT', actor, assignment,
        from_level=current_level,
        to_level=next_level,
        school_year_id=current_year.pk,
        to_school_year_id=next_year.pk,
        snapshot_id=results['snapshot'].pk,
        used_transaction=uow.used_transaction,
    )
    return PromotionResult(
        snapshot=results['snapshot'],
        enrollment_id=enrollment.pk,
        next_enrollment=next_enrollment,
        created_next_enrollment=created,
        promotion=promotion,
        data_version=results['assignment'],
        used_transaction=uow.used_transaction,
    )
