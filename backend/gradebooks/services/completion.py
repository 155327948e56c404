"""Readiness of an assignment: completion flags and signatures per period.

Signatures without a period id predate period tracking. Whether they count
for the current period is decided by the LEGACY_SIGNATURES_MATCH_ANY_PERIOD
setting instead of being silently assumed.
"""
from dataclasses import dataclass
from typing import Optional

from gradebooks import models as gb_models
from gradebooks.conf import workflow_setting
from gradebooks.services.period_identity import (
    END_OF_YEAR,
    SEM1,
    SEM2,
    compute_signature_period_id,
    period_type_for,
)

SignatureType = gb_models.TemplateSignature.SignatureType


def find_signature(assignment_id, signature_type, period_id, level=None, signed_by=None, include_legacy=None):
    """Signature of `signature_type` for `period_id`, or None.

    A falsy `level` matches any level; a given level also matches signatures
    that are not level specific.
    """
    qs = gb_models.TemplateSignature.objects.filter(assignment_id=assignment_id, type=signature_type)
    if level:
        qs = qs.filter(level__in=[level, ''])
    if signed_by is not None:
        qs = qs.filter(signed_by=signed_by)
    exact = qs.filter(signature_period_id=period_id).first()
    if exact is not None:
        return exact
    if include_legacy is None:
        include_legacy = workflow_setting('LEGACY_SIGNATURES_MATCH_ANY_PERIOD')
    if include_legacy:
        return qs.filter(signature_period_id__isnull=True).first()
    return None


def is_completed_for(assignment, signature_type) -> bool:
    if signature_type == SignatureType.END_OF_YEAR:
        return bool(assignment.is_completed_sem2)
    return bool(assignment.is_completed_sem1 or assignment.is_completed)


@dataclass(frozen=True)
class CompletionStatus:
    school_year_id: int
    active_semester: int
    is_completed_sem1: bool
    is_completed_sem2: bool
    is_signed_sem1: bool
    is_signed_sem2: bool
    is_signed_end_of_year: bool

    @property
    def is_signed_standard(self) -> bool:
        return self.is_signed_sem2 if self.active_semester == 2 else self.is_signed_sem1

    @property
    def can_sign_standard(self) -> bool:
        return self.is_completed_sem1 and not self.is_signed_standard

    @property
    def can_sign_end_of_year(self) -> bool:
        return self.is_completed_sem2 and not self.is_signed_end_of_year

    @property
    def can_promote(self) -> bool:
        return self.is_signed_end_of_year


def compute_completion_status(assignment, context, level: Optional[str] = None) -> CompletionStatus:
    year_id = context.school_year_id

    def signed(signature_type, period_type):
        period_id = compute_signature_period_id(year_id, period_type)
        return find_signature(assignment.pk, signature_type, period_id, level=level) is not None

    return CompletionStatus(
        school_year_id=year_id,
        active_semester=2 if str(context.active_semester) == '2' else 1,
        is_completed_sem1=is_completed_for(assignment, SignatureType.STANDARD),
        is_completed_sem2=is_completed_for(assignment, SignatureType.END_OF_YEAR),
        is_signed_sem1=signed(SignatureType.STANDARD, SEM1),
        is_signed_sem2=signed(SignatureType.STANDARD, SEM2),
        is_signed_end_of_year=signed(SignatureType.END_OF_YEAR, END_OF_YEAR),
    )


def current_period_id(context, signature_type) -> str:
    return compute_signature_period_id(
        context.school_year_id,
        period_type_for(signature_type, context.active_semester),
    )
