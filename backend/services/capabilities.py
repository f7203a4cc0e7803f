from functools import wraps

from core.errors import NotAssigned, WrongRole
from models.user import Actor, UserRole


def ensure_role(actor: Actor, *roles: UserRole) -> None:
    if actor.role not in roles:
        raise WrongRole(actor.role, roles)


def requires(*roles: UserRole):
    """Reject the call with WrongRole unless the acting user holds one of ``roles``.

    Decorated operations take ``(session, actor, ...)``; the check runs before
    the store is touched.
    """

    def decorator(func):
        @wraps(func)
        def wrapper(session, actor: Actor, *args, **kwargs):
            ensure_role(actor, *roles)
            return func(session, actor, *args, **kwargs)

        wrapper.allowed_roles = roles
        return wrapper

    return decorator


def ensure_assignee(actor: Actor, assigned_fixer_id) -> None:
    if assigned_fixer_id is None or assigned_fixer_id != actor.id:
        raise NotAssigned()
