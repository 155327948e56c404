from typing import Iterable, Set


def get_effective_roles(user) -> Set[str]:
    """Upper-cased role names held by `user` (empty for anonymous/None)."""
    if user is None or not getattr(user, 'pk', None):
        return set()
    return set(r.name.upper() for r in user.roles.all())


def has_any_role(user, names: Iterable[str]) -> bool:
    wanted = set(n.upper() for n in names)
    return bool(get_effective_roles(user) & wanted)


def bypass_scopes_for(user):
    """Return the user's bypass grants as (scope_type, value) pairs."""
    if user is None or not getattr(user, 'pk', None):
        return []
    return list(user.bypass_scopes.values_list('scope_type', 'value'))
