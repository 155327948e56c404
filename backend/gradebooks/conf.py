from django.conf import settings

DEFAULTS = {
    'FORCE_COMPENSATING_UNIT_OF_WORK': False,
    'LEGACY_SIGNATURES_MATCH_ANY_PERIOD': True,
    'BYPASS_SCOPES_ENABLED': True,
    'ADMIN_ROLES': ('ADMIN',),
    'DATA_EDIT_MAX_RETRIES': 3,
}


def workflow_setting(name):
    """Read one key of ``settings.GRADEBOOK_WORKFLOW`` with its default."""
    if name not in DEFAULTS:
        raise KeyError(name)
    configured = getattr(settings, 'GRADEBOOK_WORKFLOW', None) or {}
    return configured.get(name, DEFAULTS[name])
