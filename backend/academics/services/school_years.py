"""School-year context and year-to-year resolution.

Workflows receive a `SchoolYearContext` instead of reading the active year
themselves so that callers (and tests) can pin the period they act in.
"""
import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Optional

from academics.models import Level, SchoolYear

logger = logging.getLogger(__name__)

YEAR_RANGE_RE = re.compile(r'(\d{4})([-/.])(\d{4})')

# Fallback chain used when the Level table does not know the level.
LEGACY_LEVEL_CHAIN = {
    'TPS': 'PS',
    'PS': 'MS',
    'MS': 'GS',
    'GS': 'EB1',
    'KG1': 'KG2',
    'KG2': 'KG3',
    'KG3': 'EB1',
}


@dataclass(frozen=True)
class SchoolYearContext:
    school_year_id: int
    name: str = ''
    active_semester: int = 1
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @classmethod
    def from_school_year(cls, year: SchoolYear) -> 'SchoolYearContext':
        return cls(
            school_year_id=year.pk,
            name=year.name,
            active_semester=2 if year.active_semester == 2 else 1,
            start_date=year.start_date,
            end_date=year.end_date,
        )


def get_active_school_year() -> Optional[SchoolYear]:
    return SchoolYear.objects.filter(is_active=True).order_by('-start_date', '-id').first()


def get_active_context() -> Optional[SchoolYearContext]:
    year = get_active_school_year()
    if year is None:
        return None
    return SchoolYearContext.from_school_year(year)


def next_year_name(name: str) -> Optional[str]:
    """'2024-2025' -> '2025-2026'. Returns None when `name` has no year range."""
    if not name:
        return None
    match = YEAR_RANGE_RE.search(name)
    if not match:
        return None
    start, sep, end = match.groups()
    bumped = f"{int(start) + 1}{sep}{int(end) + 1}"
    return name[:match.start()] + bumped + name[match.end():]


def resolve_next_school_year(year: SchoolYear) -> Optional[SchoolYear]:
    """Return the year following `year`, or None.

    Strategies are tried in order and the first hit wins: explicit sequence
    number, then the name's year range, then the earliest year starting on or
    after this one's end date.
    """
    if year is None:
        return None

    if year.sequence is not None:
        nxt = SchoolYear.objects.filter(sequence=year.sequence + 1).exclude(pk=year.pk).first()
        if nxt:
            logger.debug('next school year for %s resolved by sequence: %s', year.pk, nxt.pk)
            return nxt

    name = next_year_name(year.name)
    if name:
        nxt = SchoolYear.objects.filter(name=name).exclude(pk=year.pk).first()
        if nxt:
            logger.debug('next school year for %s resolved by name: %s', year.pk, nxt.pk)
            return nxt

    if year.end_date:
        nxt = (
            SchoolYear.objects
            .filter(start_date__gte=year.end_date)
            .exclude(pk=year.pk)
            .order_by('start_date', 'id')
            .first()
        )
        if nxt:
            logger.debug('next school year for %s resolved by dates: %s', year.pk, nxt.pk)
            return nxt

    return None


def suggest_next_level(level_name: str) -> Optional[str]:
    """Level a student moves to after `level_name`; None for exit levels."""
    if not level_name:
        return None
    level = Level.objects.filter(name__iexact=level_name).first()
    if level is not None:
        if level.is_exit_level:
            return None
        nxt = Level.objects.filter(order__gt=level.order).order_by('order').first()
        if nxt:
            return nxt.name
    return LEGACY_LEVEL_CHAIN.get(level_name.strip().upper())
