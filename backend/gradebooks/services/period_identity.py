"""Signature period identity.

A signature period id is ``"{school_year_id}_{period_type}"``. The separator
is not escaped; parsing matches the known period suffixes longest first, so
a school-year id containing ``_`` still round-trips.
"""
from typing import NamedTuple, Optional

from gradebooks.exceptions import InvalidArgument

SEM1 = 'sem1'
SEM2 = 'sem2'
END_OF_YEAR = 'end_of_year'

PERIOD_TYPES = (SEM1, SEM2, END_OF_YEAR)
SEPARATOR = '_'

_SUFFIXES_LONGEST_FIRST = sorted(PERIOD_TYPES, key=len, reverse=True)


class SignaturePeriod(NamedTuple):
    school_year_id: str
    period_type: str


def compute_signature_period_id(school_year_id, period_type: str) -> str:
    if school_year_id is None or str(school_year_id).strip() == '':
        raise InvalidArgument('school_year_id is required to compute a signature period')
    if period_type not in PERIOD_TYPES:
        raise InvalidArgument(f'unknown period type: {period_type!r}')
    return f"{school_year_id}{SEPARATOR}{period_type}"


def parse_signature_period_id(period_id) -> Optional[SignaturePeriod]:
    if not period_id or not isinstance(period_id, str):
        return None
    for suffix in _SUFFIXES_LONGEST_FIRST:
        tail = SEPARATOR + suffix
        if period_id.endswith(tail):
            school_year_id = period_id[:-len(tail)]
            if not school_year_id:
                return None
            return SignaturePeriod(school_year_id, suffix)
    return None


def period_type_for(signature_type: str, active_semester=1) -> str:
    """Period a signature of `signature_type` belongs to right now."""
    if signature_type == 'end_of_year':
        return END_OF_YEAR
    return SEM2 if str(active_semester) == '2' else SEM1
