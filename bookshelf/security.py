"""
Caller role resolution and the admin guard for mutating routes.

Roles come from a static bearer-token map in the settings. ``ensure_role``
is a plain function; ``require_admin`` wraps it as a FastAPI dependency so
the check runs before the route reads its body or path parameters.
"""

import logging
from typing import Dict, Iterable, Mapping, Optional, Set

from fastapi import Request

from .errors import Forbidden


logger = logging.getLogger(__name__)

ROLE_HIERARCHY: Dict[str, Iterable[str]] = {
    "ROLE_ADMIN": ("ROLE_USER",),
}


def reachable_roles(role: Optional[str]) -> Set[str]:
    """Return ``role`` together with every role it implies."""
    if not role:
        return set()
    seen: Set[str] = set()
    pending = [role]
    while pending:
        current = pending.pop()
        if current in seen:
            continue
        seen.add(current)
        pending.extend(ROLE_HIERARCHY.get(current, ()))
    return seen


def resolve_role(authorization: Optional[str], tokens: Mapping[str, str]) -> Optional[str]:
    """Map an ``Authorization`` header value to a role, or None for anonymous."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return tokens.get(token.strip())


def ensure_role(caller_role: Optional[str], required_role: str, message: str) -> None:
    if required_role not in reachable_roles(caller_role):
        logger.info("Denied caller with role %s (needs %s)", caller_role, required_role)
        raise Forbidden(message)


def require_admin(request: Request) -> Optional[str]:
    settings = request.app.state.settings
    role = resolve_role(request.headers.get("Authorization"), settings.api_tokens)
    ensure_role(role, settings.admin_role, settings.forbidden_message)
    return role
