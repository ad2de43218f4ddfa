"""
Role-based access control: a static table of allowed roles per route prefix
plus the role predicates used by the handlers.
"""

from __future__ import annotations

from typing import Dict, List

from okrflow.types import Role

ROUTE_POLICIES: Dict[str, List[Role]] = {
    "/admin": [Role.ADMIN],
    "/admin/users": [Role.ADMIN],
    "/admin/*": [Role.ADMIN],
}


def is_role_allowed_for_route(role: Role, route: str) -> bool:
    """
    Exact matches win; otherwise the first ``/x/*`` pattern whose base is a
    prefix of ``route`` decides. Routes without a policy are open.
    """
    if route in ROUTE_POLICIES:
        return role in ROUTE_POLICIES[route]

    for pattern, allowed in ROUTE_POLICIES.items():
        if pattern.endswith("/*") and route.startswith(pattern[:-2]):
            return role in allowed

    return True


def is_admin(role: Role) -> bool:
    return role == Role.ADMIN


def is_manager_or_higher(role: Role) -> bool:
    return role in (Role.ADMIN, Role.MANAGER)


def is_employee_or_higher(role: Role) -> bool:
    return role in (Role.ADMIN, Role.MANAGER, Role.EMPLOYEE)


def can_modify(user, owner_id: str) -> bool:
    """Owners can modify their own records; managers and admins anything in scope."""
    return user.id == owner_id or is_manager_or_higher(user.role)
