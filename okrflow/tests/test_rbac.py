import unittest
from types import SimpleNamespace

from okrflow.rbac import (
    can_modify,
    is_admin,
    is_employee_or_higher,
    is_manager_or_higher,
    is_role_allowed_for_route,
)
from okrflow.types import Role


class RoutePolicyTests(unittest.TestCase):
    def test_admin_routes(self):
        self.assertTrue(is_role_allowed_for_route(Role.ADMIN, "/admin/users"))
        self.assertFalse(is_role_allowed_for_route(Role.MANAGER, "/admin/users"))
        self.assertFalse(is_role_allowed_for_route(Role.EMPLOYEE, "/admin"))

    def test_wildcard_prefix(self):
        self.assertTrue(is_role_allowed_for_route(Role.ADMIN, "/admin/users/abc"))
        self.assertFalse(is_role_allowed_for_route(Role.MANAGER, "/admin/users/abc"))

    def test_unlisted_routes_are_open(self):
        self.assertTrue(is_role_allowed_for_route(Role.EMPLOYEE, "/objectives"))


class RolePredicateTests(unittest.TestCase):
    def test_predicates(self):
        self.assertTrue(is_admin(Role.ADMIN))
        self.assertFalse(is_admin(Role.MANAGER))
        self.assertTrue(is_manager_or_higher(Role.MANAGER))
        self.assertFalse(is_manager_or_higher(Role.EMPLOYEE))
        self.assertTrue(is_employee_or_higher(Role.EMPLOYEE))

    def test_can_modify(self):
        employee = SimpleNamespace(id="u1", role=Role.EMPLOYEE)
        manager = SimpleNamespace(id="u2", role=Role.MANAGER)
        self.assertTrue(can_modify(employee, "u1"))
        self.assertFalse(can_modify(employee, "u3"))
        self.assertTrue(can_modify(manager, "u3"))


if __name__ == "__main__":
    unittest.main()
