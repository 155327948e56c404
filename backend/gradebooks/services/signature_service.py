"""Sign and unsign gradebook assignments.

A signature and the assignment's status/version change together or not at
all: both workflows run their writes through `AtomicUnitOfWork`. The
signature table's partial unique index on (assignment, type, period, level)
is what makes double signing impossible; the read before the insert only
exists to produce a friendly error in the common case.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone

from academics.models import SchoolYear
from academics.services.school_years import get_active_context
from gradebooks import models as gb_models
from gradebooks.conf import workflow_setting
from gradebooks.exceptions import (
    AlreadySigned,
    CurrentYearUnknown,
    InvalidArgument,
    NotCompletedSem1,
    NotCompletedSem2,
    NotFound,
)
from gradebooks.services.assignment_state import check_transition
from gradebooks.services.audit import delete_change, log_audit, record_change
from gradebooks.services.completion import find_signature, is_completed_for
from gradebooks.services.period_identity import (
    END_OF_YEAR,
    SEM1,
    SEM2,
    compute_signature_period_id,
    parse_signature_period_id,
    period_type_for,
)
from gradebooks.services.policy import require_supervisor_action
from gradebooks.services.unit_of_work import AtomicUnitOfWork
from gradebooks.services.versioning import (
    capture_fields,
    conditional_update,
    load_assignment,
    restore_fields,
)

logger = logging.getLogger(__name__)

SignatureType = gb_models.TemplateSignature.SignatureType
Status = gb_models.TemplateAssignment.Status


@dataclass(frozen=True)
class UnsignResult:
    deleted: int
    remaining: int
    status: str
    data_version: int


def _school_year(school_year_id) -> SchoolYear:
    try:
        pk = int(school_year_id)
    except (TypeError, ValueError):
        raise InvalidArgument('Invalid school year id', school_year_id=school_year_id)
    year = SchoolYear.objects.filter(pk=pk).first()
    if year is None:
        raise NotFound('School year not found', school_year_id=school_year_id)
    return year


def resolve_signature_period(signature_type, context=None, period_id=None, school_year_id=None):
    """Return ``(period_id, school_year)`` a signature of this type targets.

    An explicit period id wins and must agree with the type and with any
    explicit school year. Otherwise the period follows the given school year
    (or the context's) and the context's active semester.
    """
    if signature_type not in SignatureType.values:
        raise InvalidArgument(f'unknown signature type: {signature_type!r}')
    allowed = (END_OF_YEAR,) if signature_type == SignatureType.END_OF_YEAR else (SEM1, SEM2)

    if period_id:
        parsed = parse_signature_period_id(period_id)
        if parsed is None:
            raise InvalidArgument('Malformed signature period id', signature_period_id=period_id)
        if parsed.period_type not in allowed:
            raise InvalidArgument('Signature period does not match the signature type', signature_period_id=period_id)
        if school_year_id and str(school_year_id) != parsed.school_year_id:
            raise InvalidArgument('Signature period belongs to another school year', signature_period_id=period_id)
        return period_id, _school_year(parsed.school_year_id)

    context = context or get_active_context()
    if school_year_id is None:
        if context is None:
            raise CurrentYearUnknown('No active school year')
        school_year_id = context.school_year_id
    semester = context.active_semester if context is not None else 1
    period = compute_signature_period_id(school_year_id, period_type_for(signature_type, semester))
    return period, _school_year(school_year_id)


def sign(
    assignment_id,
    actor,
    signature_type=SignatureType.STANDARD,
    period_id=None,
    school_year_id=None,
    level='',
    signature_url='',
    context=None,
    policy_settings=None,
):
    """Create `actor`'s signature for the resolved period and mark the
    assignment signed. Returns the signature."""
    signature_type = str(signature_type)
    assignment = load_assignment(assignment_id)
    period_id, school_year = resolve_signature_period(signature_type, context, period_id, school_year_id)
    level = level or ''

    require_supervisor_action(actor, assignment, policy_settings, school_year_id=school_year.pk)

    existing = find_signature(assignment.pk, signature_type, period_id, level=level)
    if existing is not None:
        raise AlreadySigned(existing=existing)

    if not is_completed_for(assignment, signature_type):
        if signature_type == SignatureType.END_OF_YEAR:
            raise NotCompletedSem2()
        raise NotCompletedSem1()

    uow = AtomicUnitOfWork(f'sign assignment {assignment.pk}')

    def create_signature():
        existing = find_signature(assignment.pk, signature_type, period_id, level=level)
        if existing is not None:
            raise AlreadySigned(existing=existing)
        try:
            with transaction.atomic():
                return gb_models.TemplateSignature.objects.create(
                    assignment=assignment,
                    signed_by=actor,
                    signed_at=timezone.now(),
                    type=signature_type,
                    level=level,
                    school_year=school_year,
                    signature_period_id=period_id,
                    signature_url=signature_url or '',
                )
        except IntegrityError:
            # lost the race against a concurrent signer
            winner = gb_models.TemplateSignature.objects.filter(
                assignment=assignment, type=signature_type, signature_period_id=period_id, level=level,
            ).first()
            if winner is None:
                raise
            logger.info('concurrent signature on assignment %s for %s', assignment.pk, period_id)
            raise AlreadySigned(existing=winner)

    def delete_signature(captured, signature):
        gb_models.TemplateSignature.objects.filter(pk=signature.pk).delete()

    def mark_signed():
        check_transition(assignment.status, Status.SIGNED, assignment_id=assignment.pk)
        return conditional_update(assignment.pk, {'status': Status.SIGNED})

    def log_change():
        signature = uow.results['signature']
        return record_change(
            assignment.pk, actor, 'sign', uow.results['assignment'],
            after={
                'signature_id': signature.pk,
                'type': signature_type,
                'signature_period_id': period_id,
                'level': level,
            },
        )

    uow.add('signature', create_signature, undo=delete_signature)
    uow.add(
        'assignment', mark_signed,
        undo=lambda captured, result: restore_fields(assignment.pk, captured),
        capture=lambda: capture_fields(assignment.pk),
    )
    uow.add('change_log', log_change, undo=lambda captured, change: delete_change(change))
    results = uow.run()

    signature = results['signature']
    log_audit(
        'SIGN_TEMPLATE', actor, assignment,
        signature_id=signature.pk,
        signature_type=signature_type,
        signature_period_id=period_id,
        level=level,
        data_version=results['assignment'],
        used_transaction=uow.used_transaction,
    )
    return signature


def _strip_promotions(data, actor):
    data = dict(data or {})
    promotions = data.get('promotions') or []
    kept = [p for p in promotions if str(p.get('promoted_by')) != str(actor.pk)]
    if len(kept) == len(promotions):
        return None
    data['promotions'] = kept
    return data


def unsign(
    assignment_id,
    actor,
    signature_type=None,
    period_id=None,
    level='',
    context=None,
    policy_settings=None,
) -> UnsignResult:
    """Remove matching signatures; revert to completed when none remain.

    End-of-year unsigning also drops the promotion records `actor` wrote
    into the data map.
    """
    assignment = load_assignment(assignment_id)
    if signature_type is not None:
        if signature_type not in SignatureType.values:
            raise InvalidArgument(f'unknown signature type: {signature_type!r}')
        signature_type = str(signature_type)

    school_year_id = None
    if period_id:
        parsed = parse_signature_period_id(period_id)
        if parsed is None:
            raise InvalidArgument('Malformed signature period id', signature_period_id=period_id)
        school_year_id = parsed.school_year_id
    elif signature_type is not None:
        period_id, year = resolve_signature_period(signature_type, context)
        school_year_id = year.pk

    require_supervisor_action(actor, assignment, policy_settings, school_year_id=school_year_id)

    qs = gb_models.TemplateSignature.objects.filter(assignment=assignment)
    if signature_type:
        qs = qs.filter(type=signature_type)
    if period_id:
        match = Q(signature_period_id=period_id)
        if workflow_setting('LEGACY_SIGNATURES_MATCH_ANY_PERIOD'):
            match |= Q(signature_period_id__isnull=True)
        qs = qs.filter(match)
    if level:
        qs = qs.filter(level__in=[level, ''])
    target_ids = list(qs.values_list('pk', flat=True))
    if not target_ids:
        raise NotFound('No matching signature', assignment_id=assignment.pk, signature_period_id=period_id)

    uow = AtomicUnitOfWork(f'unsign assignment {assignment.pk}')

    def capture_signatures():
        return list(gb_models.TemplateSignature.objects.filter(pk__in=target_ids).values())

    def delete_signatures():
        deleted, _ = gb_models.TemplateSignature.objects.filter(pk__in=target_ids).delete()
        return deleted

    def restore_signatures(captured, deleted):
        present = set(
            gb_models.TemplateSignature.objects.filter(pk__in=[row['id'] for row in captured])
            .values_list('pk', flat=True)
        )
        gb_models.TemplateSignature.objects.bulk_create(
            [gb_models.TemplateSignature(**row) for row in captured if row['id'] not in present]
        )

    def update_assignment():
        current = gb_models.TemplateAssignment.objects.get(pk=assignment.pk)
        remaining = gb_models.TemplateSignature.objects.filter(assignment_id=assignment.pk).count()
        patch = {}
        if signature_type == SignatureType.END_OF_YEAR:
            stripped = _strip_promotions(current.data, actor)
            if stripped is not None:
                patch['data'] = stripped
        status = current.status
        if remaining == 0 and current.status != Status.COMPLETED:
            check_transition(current.status, Status.COMPLETED, assignment_id=assignment.pk)
            status = str(Status.COMPLETED)
            patch['status'] = status
        version = conditional_update(assignment.pk, patch)
        return {'remaining': remaining, 'status': status, 'data_version': version}

    def log_change():
        return record_change(
            assignment.pk, actor, 'unsign', uow.results['assignment']['data_version'],
            before={'signature_ids': target_ids},
            after={'signature_type': signature_type, 'signature_period_id': period_id},
        )

    uow.add('signatures', delete_signatures, undo=restore_signatures, capture=capture_signatures)
    uow.add(
        'assignment', update_assignment,
        undo=lambda captured, result: restore_fields(assignment.pk, captured),
        capture=lambda: capture_fields(assignment.pk),
    )
    uow.add('change_log', log_change, undo=lambda captured, change: delete_change(change))
    results = uow.run()

    outcome = results['assignment']
    log_audit(
        'UNSIGN_TEMPLATE', actor, assignment,
        signature_ids=target_ids,
        signature_type=signature_type,
        signature_period_id=period_id,
        data_version=outcome['data_version'],
        used_transaction=uow.used_transaction,
    )
    return UnsignResult(
        deleted=results['signatures'],
        remaining=outcome['remaining'],
        status=outcome['status'],
        data_version=outcome['data_version'],
    )
