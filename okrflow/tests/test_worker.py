import unittest
from unittest.mock import patch

from okrflow.queue import ExportMessage, InMemoryExportQueue
from okrflow.storage import InMemoryStorageClient
from okrflow.tests.support import add_objective, add_org, add_user, make_db
from okrflow.types import ExportStatus, Role
from okrflow.worker import export_storage_path, process_next


class WorkerTests(unittest.TestCase):
    def setUp(self):
        self.db = make_db()
        self.queue = InMemoryExportQueue()
        self.storage = InMemoryStorageClient()
        with self.db.Session() as session:
            org = add_org(session, "Acme")
            manager = add_user(session, "manager@acme.io", Role.MANAGER, org)
            add_objective(session, manager, "Grow revenue")
            session.commit()
            self.org_id = org.id
            self.manager_id = manager.id

    def _process(self):
        return process_next(db=self.db, queue=self.queue, storage=self.storage, block=False)

    def test_process_queued_job_uploads_artifact(self):
        job = self.db.create_export_job(self.org_id, self.manager_id, "csv", "company")
        self.assertEqual(job.status, ExportStatus.WAITING)
        self.queue.publish(job)

        self.assertTrue(self._process())

        updated = self.db.get_export_job(job.job_id)
        self.assertEqual(updated.status, ExportStatus.SUCCESS)
        self.assertEqual(updated.stage, "SUCCESS")
        self.assertEqual(updated.storage_path, f"exports/{self.org_id}/{job.job_id}.csv")
        self.assertEqual(export_storage_path(updated), updated.storage_path)
        stored = self.storage.stored_objects[updated.storage_path]
        self.assertEqual(stored["content_type"], "text/csv")
        self.assertIn(b"Grow revenue", stored["body"])

    def test_falls_back_to_waiting_jobs_in_db(self):
        job = self.db.create_export_job(self.org_id, self.manager_id, "pdf", "company")
        self.assertTrue(self._process())
        updated = self.db.get_export_job(job.job_id)
        self.assertEqual(updated.status, ExportStatus.SUCCESS)
        self.assertTrue(self.storage.get_bytes(updated.storage_path).startswith(b"%PDF"))

    def test_no_jobs(self):
        self.assertFalse(self._process())

    def test_unknown_job_id(self):
        self.queue.push_raw("missing")
        self.assertFalse(self._process())

    def test_already_claimed_job_is_skipped(self):
        job = self.db.create_export_job(self.org_id, self.manager_id, "csv", "company")
        self.assertIsNotNone(self.db.claim_export_job(job.job_id))
        self.queue.publish(job)
        self.assertFalse(self._process())

    def test_message_for_other_org_is_skipped(self):
        job = self.db.create_export_job(self.org_id, self.manager_id, "csv", "company")
        self.queue.messages.append(ExportMessage(job_id=job.job_id, org_id="other-org", format="csv"))
        self.assertFalse(self._process())
        self.assertEqual(self.db.get_export_job(job.job_id).status, ExportStatus.WAITING)

    def test_bare_job_id_is_accepted(self):
        job = self.db.create_export_job(self.org_id, self.manager_id, "csv", "company")
        self.queue.push_raw(job.job_id)
        self.assertTrue(self._process())
        self.assertEqual(self.db.get_export_job(job.job_id).status, ExportStatus.SUCCESS)

    def test_render_failure_marks_error(self):
        job = self.db.create_export_job(self.org_id, self.manager_id, "xlsx", "company")
        self.queue.publish(job)
        with patch("okrflow.worker.render_export", side_effect=RuntimeError("boom")):
            self.assertTrue(self._process())
        updated = self.db.get_export_job(job.job_id)
        self.assertEqual(updated.status, ExportStatus.ERROR)
        self.assertEqual(updated.error, "boom")
        self.assertEqual(self.storage.stored_objects, {})


if __name__ == "__main__":
    unittest.main()
