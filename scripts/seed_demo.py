"""
Seed a demo organization with accounts, teams and an aligned objective tree.
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date, timedelta
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sqlalchemy import select

from okrflow.auth import hash_password
from okrflow.config import get_settings
from okrflow.dates import fiscal_quarter, utc_today, week_start
from okrflow.db import (
    CheckInRow,
    DbClient,
    KeyResultRow,
    ObjectiveRow,
    OrganizationRow,
    TeamMemberRow,
    TeamRow,
    UserRow,
)
from okrflow.org_settings import default_locale_settings, generate_unique_slug
from okrflow.progress import kr_progress
from okrflow.types import CheckInStatus, GoalType, ObjectiveStatus, Role

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "Pass@123"

DEMO_USERS = [
    ("admin", "Asha Admin", Role.ADMIN),
    ("manager", "Ravi Manager", Role.MANAGER),
    ("me", "Meera Employee", Role.EMPLOYEE),
]

DEMO_TEAMS = ["Engineering", "Product", "Sales"]


def _check_in_status(progress: float) -> str:
    if progress >= 70:
        return CheckInStatus.GREEN.value
    if progress >= 30:
        return CheckInStatus.YELLOW.value
    return CheckInStatus.RED.value


def seed(db: DbClient, org_name: str, domain: str, cycle: str) -> OrganizationRow:
    today = utc_today()
    start_at = today - timedelta(days=30)
    end_at = today + timedelta(days=60)
    with db.Session() as session:
        if session.execute(
            select(UserRow.id).where(UserRow.email == f"admin@{domain}")
        ).first():
            raise SystemExit(f"Demo data for {domain} already exists")

        org = OrganizationRow(
            name=org_name,
            slug=generate_unique_slug(session, org_name),
            settings=default_locale_settings(),
        )
        session.add(org)
        session.flush()

        users = {}
        for handle, name, role in DEMO_USERS:
            user = UserRow(
                email=f"{handle}@{domain}",
                name=name,
                password_hash=hash_password(DEMO_PASSWORD),
                role=role.value,
                org_id=org.id,
            )
            session.add(user)
            users[handle] = user
        session.flush()

        teams = {}
        for team_name in DEMO_TEAMS:
            team = TeamRow(org_id=org.id, name=team_name)
            team.members = [
                TeamMemberRow(user_id=users["manager"].id),
                TeamMemberRow(user_id=users["me"].id),
            ]
            session.add(team)
            teams[team_name] = team
        session.flush()

        quarter = fiscal_quarter(today, org.settings["fiscal_year_start_month"])

        def objective(title, owner, goal_type, parent=None, team=None, krs=()):
            row = ObjectiveRow(
                org_id=org.id,
                title=title,
                cycle=cycle,
                start_at=start_at,
                end_at=end_at,
                status=ObjectiveStatus.IN_PROGRESS.value,
                goal_type=goal_type.value,
                fiscal_quarter=quarter,
                owner_id=owner.id,
                team_id=team.id if team else None,
                parent_id=parent.id if parent else None,
            )
            row.key_results = [
                KeyResultRow(title=kr_title, weight=weight, target=target, current=current, unit=unit)
                for kr_title, weight, target, current, unit in krs
            ]
            session.add(row)
            session.flush()
            return row

        company = objective(
            "Grow annual recurring revenue",
            users["admin"],
            GoalType.COMPANY,
            krs=[
                ("Reach 12 Cr ARR", 60, 12, 7, "Cr"),
                ("Net revenue retention above 110%", 40, 110, 96, "%"),
            ],
        )
        team_goal = objective(
            "Ship the self-serve onboarding flow",
            users["manager"],
            GoalType.TEAM,
            parent=company,
            team=teams["Engineering"],
            krs=[
                ("Launch guided setup", 50, 1, 1, None),
                ("Cut time-to-first-OKR to 10 minutes", 50, 100, 40, "%"),
            ],
        )
        individual = objective(
            "Improve onboarding activation",
            users["me"],
            GoalType.INDIVIDUAL,
            parent=team_goal,
            team=teams["Engineering"],
            krs=[
                ("Run 8 customer interviews", 30, 8, 5, "interviews"),
                ("Activation rate to 45%", 70, 45, 20, "%"),
            ],
        )

        last_week = week_start(today) - timedelta(days=7)
        for kr in individual.key_results:
            session.add(
                CheckInRow(
                    key_result_id=kr.id,
                    user_id=users["me"].id,
                    week_start=last_week,
                    value=kr.current,
                    status=_check_in_status(kr_progress(kr.current, kr.target)),
                    comment="Seeded check-in",
                )
            )
        session.commit()
        logger.info("Seeded org %s (%s) with %d users", org.name, org.id, len(users))
        return org


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed OKRFlow demo data")
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="SQLAlchemy URL (defaults to DATABASE_URL)",
    )
    parser.add_argument("--org-name", type=str, default="GlobalTech International")
    parser.add_argument("--domain", type=str, default="globaltech.dev")
    parser.add_argument("--cycle", type=str, default=f"FY{date.today().year}")
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Drop and recreate all tables before seeding",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
    )

    database_url = args.database_url or get_settings().database_url
    if not database_url:
        logger.error("No database configured; set DATABASE_URL or pass --database-url")
        return 1

    db = DbClient(database_url)
    if args.reset:
        db.reset()
    seed(db, args.org_name, args.domain, args.cycle)
    print(f"Seed complete. Users: admin@, manager@, me@{args.domain} / {DEMO_PASSWORD}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
