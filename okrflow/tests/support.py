"""
Fixtures shared by the test modules: row factories and an API test case
wired to fresh in-memory backends.
"""

from __future__ import annotations

import unittest
from datetime import date
from typing import Optional

from fastapi.testclient import TestClient

from okrflow.app import create_app
from okrflow.auth import create_session_token, hash_password
from okrflow.db import DbClient, KeyResultRow, ObjectiveRow, OrganizationRow, UserRow
from okrflow.dependencies import (
    IN_MEMORY_DATABASE_URL,
    get_db_client,
    get_queue_client,
    get_rate_limiter,
    get_storage_client,
)
from okrflow.queue import InMemoryExportQueue
from okrflow.ratelimit import InMemoryRateLimiter
from okrflow.storage import InMemoryStorageClient
from okrflow.types import ObjectiveStatus, ProgressType, Role

PASSWORD = "password123"

# (weight, target, current): 50% at weight 60 and 100% at weight 40 -> 70.
DEFAULT_KEY_RESULTS = ((60, 100, 50), (40, 10, 10))


def make_db() -> DbClient:
    return DbClient(IN_MEMORY_DATABASE_URL)


def add_org(session, name: str = "Acme", slug: Optional[str] = None, settings=None) -> OrganizationRow:
    org = OrganizationRow(name=name, slug=slug or name.lower(), settings=settings)
    session.add(org)
    session.flush()
    return org


def add_user(
    session,
    email: str,
    role: Role = Role.EMPLOYEE,
    org: Optional[OrganizationRow] = None,
    name: Optional[str] = None,
    notification_settings=None,
) -> UserRow:
    user = UserRow(
        email=email,
        name=name or email.split("@")[0].title(),
        password_hash=hash_password(PASSWORD),
        role=role.value,
        org_id=org.id if org else None,
        notification_settings=notification_settings,
    )
    session.add(user)
    session.flush()
    return user


def add_objective(
    session,
    owner: UserRow,
    title: str = "Grow revenue",
    *,
    cycle: str = "FY2026",
    key_results=DEFAULT_KEY_RESULTS,
    progress_type: ProgressType = ProgressType.AUTOMATIC,
    progress: Optional[float] = None,
    status: ObjectiveStatus = ObjectiveStatus.NOT_STARTED,
    team=None,
    parent: Optional[ObjectiveRow] = None,
) -> ObjectiveRow:
    objective = ObjectiveRow(
        org_id=owner.org_id,
        title=title,
        cycle=cycle,
        start_at=date(2026, 4, 1),
        end_at=date(2026, 6, 30),
        status=status.value,
        progress_type=progress_type.value,
        progress=progress,
        fiscal_quarter=1,
        owner_id=owner.id,
        team_id=team.id if team else None,
        parent_id=parent.id if parent else None,
        key_results=[
            KeyResultRow(title=f"KR {index}", weight=weight, target=target, current=current)
            for index, (weight, target, current) in enumerate(key_results, start=1)
        ],
    )
    session.add(objective)
    session.flush()
    return objective


def objective_payload(**overrides) -> dict:
    payload = {
        "title": "Grow revenue",
        "cycle": "FY2026",
        "start_at": "2026-04-01",
        "end_at": "2026-06-30",
        "key_results": [
            {"title": "Close deals", "weight": 60, "target": 100, "current": 50},
            {"title": "Launch pilots", "weight": 40, "target": 10, "current": 10},
        ],
    }
    payload.update(overrides)
    return payload


class ApiTestCase(unittest.TestCase):
    """Test client over fresh in-memory database, queue, storage and rate limiter."""

    def setUp(self):
        self.db = make_db()
        self.queue = InMemoryExportQueue()
        self.storage = InMemoryStorageClient()
        self.limiter = InMemoryRateLimiter()
        app = create_app()
        app.dependency_overrides[get_db_client] = lambda: self.db
        app.dependency_overrides[get_queue_client] = lambda: self.queue
        app.dependency_overrides[get_storage_client] = lambda: self.storage
        app.dependency_overrides[get_rate_limiter] = lambda: self.limiter
        self.client = TestClient(app)

    def create_user(self, email: str, role: Role = Role.EMPLOYEE, org_id: Optional[str] = None):
        """Insert a user and return (user_id, auth headers)."""
        with self.db.Session() as session:
            org = session.get(OrganizationRow, org_id) if org_id else None
            user = add_user(session, email, role=role, org=org)
            token = create_session_token(session, user.id)
            session.commit()
            return user.id, self.auth(token)

    def register(self, email: str, org_name: Optional[str] = None, name: str = "Test User"):
        body = {"email": email, "name": name, "password": PASSWORD}
        if org_name:
            body["org_name"] = org_name
        response = self.client.post("/api/auth/register", json=body)
        self.assertEqual(response.status_code, 201, response.text)
        data = response.json()["data"]
        return data["user"], self.auth(data["token"])

    @staticmethod
    def auth(token: str) -> dict:
        return {"Authorization": f"Bearer {token}"}

    def assertError(self, response, status_code: int, code: str):
        self.assertEqual(response.status_code, status_code, response.text)
        body = response.json()
        self.assertFalse(body["ok"])
        self.assertEqual(body["error"]["code"], code)
