from . import authority_resolver
from . import school_years
from .authority_resolver import can_act, resolve_authority_path
from .school_years import SchoolYearContext, get_active_context
