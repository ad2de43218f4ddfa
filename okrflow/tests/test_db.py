import unittest
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from okrflow.db import CheckInRow, KeyResultRow, NotificationRow, ObjectiveRow
from okrflow.notifications import create_notification
from okrflow.tests.support import add_objective, add_org, add_user, make_db
from okrflow.types import ExportStatus, NotificationType, Role


class ExportJobTests(unittest.TestCase):
    """Runs the export-job bookkeeping against SQLite."""

    def setUp(self):
        self.db = make_db()

    def test_create_and_get(self):
        job = self.db.create_export_job("org1", None, "csv", "company")
        fetched = self.db.get_export_job(job.job_id)
        self.assertEqual(fetched.job_id, job.job_id)
        self.assertEqual(fetched.status, ExportStatus.WAITING)
        self.assertEqual(fetched.as_dict()["status"], "WAITING")
        self.assertIsNone(self.db.get_export_job("missing"))

    def test_claim_is_exclusive(self):
        job = self.db.create_export_job("org1", None, "csv", "company")
        claimed = self.db.claim_export_job(job.job_id)
        self.assertEqual(claimed.status, ExportStatus.RUNNING)
        self.assertIsNotNone(claimed.locked_at)
        self.assertIsNone(self.db.claim_export_job(job.job_id))
        self.assertIsNone(self.db.claim_next_waiting_job())

    def test_claim_next_waiting_job(self):
        job = self.db.create_export_job("org1", None, "csv", "company")
        claimed = self.db.claim_next_waiting_job()
        self.assertEqual(claimed.job_id, job.job_id)
        self.assertEqual(claimed.stage, "CLAIMED")

    def test_update_export_job(self):
        job = self.db.create_export_job("org1", None, "csv", "company")
        self.db.update_export_job(
            job.job_id, status=ExportStatus.SUCCESS, stage="SUCCESS", storage_path="exports/a.csv"
        )
        updated = self.db.get_export_job(job.job_id)
        self.assertEqual(updated.status, ExportStatus.SUCCESS)
        self.assertEqual(updated.storage_path, "exports/a.csv")

    def test_requeue_stale_locks(self):
        job = self.db.create_export_job("org1", None, "csv", "company")
        self.db.claim_export_job(job.job_id)
        self.db.update_export_job(job.job_id, stage="RENDERING")
        self.assertEqual(self.db.requeue_stale_locks(lock_timeout_seconds=3600), 0)
        self.assertEqual(self.db.requeue_stale_locks(lock_timeout_seconds=-1), 1)
        requeued = self.db.get_export_job(job.job_id)
        self.assertEqual(requeued.status, ExportStatus.WAITING)
        self.assertIsNone(requeued.locked_at)


class ModelTests(unittest.TestCase):
    def setUp(self):
        self.db = make_db()

    @staticmethod
    def _count(session, model) -> int:
        return session.execute(select(func.count()).select_from(model)).scalar_one()

    def test_one_check_in_per_user_and_week(self):
        with self.db.Session() as session:
            org = add_org(session)
            owner = add_user(session, "owner@acme.io", Role.EMPLOYEE, org)
            kr = add_objective(session, owner).key_results[0]
            week = date(2026, 10, 12)
            session.add(
                CheckInRow(
                    key_result_id=kr.id, user_id=owner.id, week_start=week, value=1, status="GREEN"
                )
            )
            session.flush()
            session.add(
                CheckInRow(
                    key_result_id=kr.id, user_id=owner.id, week_start=week, value=2, status="RED"
                )
            )
            with self.assertRaises(IntegrityError):
                session.flush()

    def test_deleting_objective_cascades_to_key_results(self):
        with self.db.Session() as session:
            org = add_org(session)
            owner = add_user(session, "owner@acme.io", Role.EMPLOYEE, org)
            objective = add_objective(session, owner)
            session.commit()
            session.delete(objective)
            session.commit()
            self.assertEqual(self._count(session, ObjectiveRow), 0)
            self.assertEqual(self._count(session, KeyResultRow), 0)

    def test_notification_failure_keeps_transaction_usable(self):
        with self.db.Session() as session:
            org = add_org(session)
            owner = add_user(session, "owner@acme.io", Role.EMPLOYEE, org)
            created = create_notification(
                session, user_id=owner.id, type=NotificationType.SYSTEM, message="hello"
            )
            self.assertIsNotNone(created)
            failed = create_notification(
                session, user_id=owner.id, type=NotificationType.SYSTEM, message=None
            )
            self.assertIsNone(failed)
            session.commit()
            self.assertEqual(self._count(session, NotificationRow), 1)


if __name__ == "__main__":
    unittest.main()
