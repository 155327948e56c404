"""Authority resolver for gradebook supervision.

Decides whether a supervisor may act (sign, unsign, promote) on a student's
gradebook assignment. Several independent relationship paths can grant the
right; they are evaluated in a fixed order and the first one that holds
wins.

All functions are read-only. `assignment` is anything exposing
`assigned_teachers` (list of teacher user ids) and `student_id`.
"""
from typing import Iterable, List, Optional

from django.db.models import Q

from academics.models import (
    Enrollment,
    RoleScope,
    SchoolClass,
    Student,
    SupervisorAssignment,
    TeacherClassAssignment,
)


def _teacher_ids(assignment) -> List[int]:
    ids = []
    for raw in getattr(assignment, 'assigned_teachers', None) or []:
        try:
            ids.append(int(raw))
        except (TypeError, ValueError):
            continue
    return ids


def _enrollments(assignment, school_year_id=None):
    qs = Enrollment.objects.filter(student_id=assignment.student_id)
    if school_year_id:
        return qs.filter(school_year_id=school_year_id)
    return qs.filter(status=Enrollment.Status.ACTIVE)


def _class_ids(assignment, school_year_id=None) -> List[int]:
    return list(
        _enrollments(assignment, school_year_id)
        .exclude(school_class__isnull=True)
        .values_list('school_class_id', flat=True)
    )


def _supervises_any(actor, teacher_ids: Iterable[int]) -> bool:
    teacher_ids = list(teacher_ids)
    if not teacher_ids:
        return False
    return SupervisorAssignment.objects.filter(supervisor=actor, teacher_id__in=teacher_ids).exists()


def supervises_assigned_teacher(actor, assignment, school_year_id=None) -> bool:
    """Actor directly supervises at least one teacher assigned to the record."""
    return _supervises_any(actor, _teacher_ids(assignment))


def supervises_class_teacher(actor, assignment, school_year_id=None) -> bool:
    """Actor supervises a teacher of a class the student is (or was, in the
    given school year) enrolled in."""
    class_ids = _class_ids(assignment, school_year_id)
    if not class_ids:
        return False
    teacher_ids = TeacherClassAssignment.objects.filter(
        school_class_id__in=class_ids
    ).values_list('teacher_id', flat=True)
    return _supervises_any(actor, teacher_ids)


def level_scope_covers_student(actor, assignment, school_year_id=None) -> bool:
    """Actor's level scope covers the level of the student's class."""
    scopes = RoleScope.objects.filter(user=actor)
    if school_year_id:
        scopes = scopes.filter(Q(school_year_id=school_year_id) | Q(school_year__isnull=True))
    levels = set()
    for scope in scopes:
        levels.update(str(lv).upper() for lv in (scope.levels or []))
    if not levels:
        return False
    class_ids = _class_ids(assignment, school_year_id)
    if not class_ids:
        return False
    class_levels = SchoolClass.objects.filter(id__in=class_ids).values_list('level', flat=True)
    return any(lv and lv.upper() in levels for lv in class_levels)


def promoted_student_into_year(actor, assignment, school_year_id=None) -> bool:
    """Actor recorded the most recent promotion into the current school year.

    The current year is `school_year_id` when given, else the student's
    cached year.
    """
    student = getattr(assignment, 'student', None)
    if student is None:
        student = Student.objects.filter(pk=assignment.student_id).first()
    if student is None:
        return False
    target = school_year_id or student.school_year_id
    if not target:
        return False
    entries = [
        p for p in (student.promotions or [])
        if str(p.get('to_school_year_id')) == str(target)
    ]
    if not entries:
        return False
    latest = max(entries, key=lambda p: p.get('date') or '')
    return str(latest.get('promoted_by')) == str(actor.pk)


AUTHORITY_CHECKS = (
    ('direct_supervision', supervises_assigned_teacher),
    ('class_supervision', supervises_class_teacher),
    ('level_scope', level_scope_covers_student),
    ('promotion_provenance', promoted_student_into_year),
)


def resolve_authority_path(actor, assignment, school_year_id=None) -> Optional[str]:
    """Name of the first relationship path granting `actor`, or None."""
    if actor is None or not getattr(actor, 'pk', None) or assignment is None:
        return None
    for name, check in AUTHORITY_CHECKS:
        if check(actor, assignment, school_year_id):
            return name
    return None


def can_act(actor, assignment, school_year_id=None) -> bool:
    return resolve_authority_path(actor, assignment, school_year_id) is not None
