"""Who may act on a gradebook.

Supervisor actions (sign, unsign, promote) are allowed for admins, for users
holding a bypass scope that covers the student, and otherwise whenever the
authority resolver finds a supervision relationship. Data edits are allowed
for admins, assigned teachers (restricted to their languages on language
toggles) and anyone passing the supervisor policy.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from accounts.models import BypassScope
from accounts.services import bypass_scopes_for, get_effective_roles
from academics.models import Enrollment, TeacherClassAssignment
from academics.services import authority_resolver
from gradebooks.conf import workflow_setting
from gradebooks.exceptions import NotAuthorized
from gradebooks.services import data_fields

logger = logging.getLogger(__name__)

POLYVALENT_LANGUAGES = ('fr',)


@dataclass(frozen=True)
class PolicySettings:
    bypass_scopes_enabled: bool = True
    admin_roles: Tuple[str, ...] = ('ADMIN',)

    @classmethod
    def from_settings(cls) -> 'PolicySettings':
        return cls(
            bypass_scopes_enabled=bool(workflow_setting('BYPASS_SCOPES_ENABLED')),
            admin_roles=tuple(r.upper() for r in workflow_setting('ADMIN_ROLES')),
        )


@dataclass(frozen=True)
class PolicyDecision:
    allowed: bool
    reason: str


def _active_enrollment(assignment, school_year_id=None):
    qs = Enrollment.objects.filter(student_id=assignment.student_id).select_related('school_class')
    if school_year_id:
        return qs.filter(school_year_id=school_year_id).first()
    return qs.filter(status=Enrollment.Status.ACTIVE).order_by('-school_year__start_date', '-id').first()


def _bypass_covers(actor, assignment, school_year_id=None) -> bool:
    scopes = bypass_scopes_for(actor)
    if not scopes:
        return False
    enrollment = None
    for scope_type, value in scopes:
        if scope_type == BypassScope.ScopeType.ALL:
            return True
        if scope_type == BypassScope.ScopeType.STUDENT and str(value) == str(assignment.student_id):
            return True
        if scope_type in (BypassScope.ScopeType.LEVEL, BypassScope.ScopeType.CLASS):
            if enrollment is None:
                enrollment = _active_enrollment(assignment, school_year_id) or False
            if not enrollment:
                continue
            if scope_type == BypassScope.ScopeType.CLASS and str(value) == str(enrollment.school_class_id):
                return True
            if scope_type == BypassScope.ScopeType.LEVEL:
                cls = enrollment.school_class
                level = cls.level if cls is not None else ''
                if level and str(value).upper() == level.upper():
                    return True
    return False


def evaluate_supervisor_policy(actor, assignment, settings_snapshot: Optional[PolicySettings] = None, school_year_id=None) -> PolicyDecision:
    settings_snapshot = settings_snapshot or PolicySettings.from_settings()
    if actor is None or not getattr(actor, 'pk', None):
        return PolicyDecision(False, 'anonymous')
    if get_effective_roles(actor) & set(settings_snapshot.admin_roles):
        return PolicyDecision(True, 'admin')
    if settings_snapshot.bypass_scopes_enabled and _bypass_covers(actor, assignment, school_year_id):
        return PolicyDecision(True, 'bypass_scope')
    path = authority_resolver.resolve_authority_path(actor, assignment, school_year_id)
    if path:
        return PolicyDecision(True, path)
    return PolicyDecision(False, 'no_relationship')


def require_supervisor_action(actor, assignment, settings_snapshot=None, school_year_id=None) -> PolicyDecision:
    decision = evaluate_supervisor_policy(actor, assignment, settings_snapshot, school_year_id)
    if not decision.allowed:
        logger.info(
            'denied supervisor action: actor=%s assignment=%s reason=%s',
            getattr(actor, 'pk', None), getattr(assignment, 'pk', None), decision.reason,
        )
        raise NotAuthorized(actor_id=getattr(actor, 'pk', None), assignment_id=getattr(assignment, 'pk', None))
    return decision


def teacher_languages(actor, assignment) -> Optional[set]:
    """Language codes `actor` may toggle on this student, None = any."""
    enrollment = _active_enrollment(assignment)
    qs = TeacherClassAssignment.objects.filter(teacher=actor)
    if enrollment is not None and enrollment.school_class_id:
        qs = qs.filter(school_class_id=enrollment.school_class_id)
    links = list(qs)
    if not links:
        return None
    allowed = set()
    for link in links:
        if link.is_prof_polyvalent:
            allowed.update(POLYVALENT_LANGUAGES)
        elif not link.languages:
            return None
        else:
            allowed.update(str(code).lower() for code in link.languages)
    return allowed


def _toggled_codes(before, after):
    before_state = {str(i.get('code')).lower(): bool(i.get('active')) for i in (before or []) if isinstance(i, dict)}
    changed = set()
    for item in after or []:
        code = str(item.get('code')).lower()
        if before_state.get(code, False) != bool(item.get('active')):
            changed.add(code)
    return changed


def evaluate_data_edit_policy(actor, assignment, changes: dict, settings_snapshot: Optional[PolicySettings] = None) -> PolicyDecision:
    settings_snapshot = settings_snapshot or PolicySettings.from_settings()
    if actor is None or not getattr(actor, 'pk', None):
        return PolicyDecision(False, 'anonymous')
    if get_effective_roles(actor) & set(settings_snapshot.admin_roles):
        return PolicyDecision(True, 'admin')

    assigned = set(str(t) for t in (assignment.assigned_teachers or []))
    if str(actor.pk) in assigned:
        allowed = teacher_languages(actor, assignment)
        if allowed is None:
            return PolicyDecision(True, 'assigned_teacher')
        current = assignment.data or {}
        for key, value in changes.items():
            parsed = data_fields.classify_key(key)
            if parsed is None or parsed.shape != 'language_toggle':
                continue
            forbidden = _toggled_codes(current.get(key), value) - allowed
            if forbidden:
                return PolicyDecision(False, 'language_not_allowed')
        return PolicyDecision(True, 'assigned_teacher')

    supervisor = evaluate_supervisor_policy(actor, assignment, settings_snapshot)
    if supervisor.allowed:
        return supervisor
    return PolicyDecision(False, 'not_assigned')


def require_data_edit(actor, assignment, changes, settings_snapshot=None) -> PolicyDecision:
    decision = evaluate_data_edit_policy(actor, assignment, changes, settings_snapshot)
    if not decision.allowed:
        raise NotAuthorized(
            'Not allowed to edit this gradebook',
            reason=decision.reason,
            assignment_id=getattr(assignment, 'pk', None),
        )
    return decision
