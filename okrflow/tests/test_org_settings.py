import unittest

from okrflow.config import Settings
from okrflow.org_settings import (
    DEFAULT_NOTIFICATION_SETTINGS,
    generate_unique_slug,
    merge_notification_settings,
    merge_org_settings,
    slugify_org_name,
    store_locale_settings,
)
from okrflow.tests.support import add_org, make_db


class LocaleSettingsTests(unittest.TestCase):
    def setUp(self):
        self.settings = Settings(fiscal_year_start_month=4, number_locale="en-IN")

    def test_defaults_when_nothing_stored(self):
        merged = merge_org_settings(None, self.settings)
        self.assertEqual(merged["fiscal_year_start_month"], 4)
        self.assertEqual(merged["week_start"], "monday")
        self.assertEqual(merged["scoring_scale"], "percent")
        self.assertEqual(merged["number_locale"], "en-IN")
        self.assertEqual(merged["hierarchy_labels"]["team"], self.settings.label_team)

    def test_invalid_values_fall_back(self):
        merged = merge_org_settings(
            {
                "fiscal_year_start_month": 13,
                "week_start": "friday",
                "scoring_scale": "stars",
                "high_contrast_status": "yes",
            },
            self.settings,
        )
        self.assertEqual(merged["fiscal_year_start_month"], 4)
        self.assertEqual(merged["week_start"], "monday")
        self.assertEqual(merged["scoring_scale"], "percent")
        self.assertFalse(merged["high_contrast_status"])

    def test_stored_values_win(self):
        merged = merge_org_settings(
            {
                "fiscal_year_start_month": "1",
                "week_start": "sunday",
                "scoring_scale": "fraction",
                "high_contrast_status": True,
                "hierarchy_labels": {"team": "Squad"},
            },
            self.settings,
        )
        self.assertEqual(merged["fiscal_year_start_month"], 1)
        self.assertEqual(merged["week_start"], "sunday")
        self.assertEqual(merged["scoring_scale"], "fraction")
        self.assertTrue(merged["high_contrast_status"])
        self.assertEqual(merged["hierarchy_labels"]["team"], "Squad")
        self.assertEqual(merged["hierarchy_labels"]["company"], self.settings.label_company)

    def test_store_keeps_job_bookkeeping(self):
        stored = {"week_start": "monday", "jobs": {"last_scoring_run": "2026-10-01T00:00:00+00:00"}}
        blob = store_locale_settings(stored, {"week_start": "sunday"})
        self.assertEqual(blob["week_start"], "sunday")
        self.assertEqual(blob["jobs"], stored["jobs"])
        self.assertNotIn("jobs", store_locale_settings(None, {"week_start": "sunday"}))


class NotificationSettingsTests(unittest.TestCase):
    def test_merge_order(self):
        merged = merge_notification_settings(
            {"email_weekly_digest": False, "unknown": 1},
            {"quiet_hours_enabled": True, "email_weekly_digest": True},
        )
        self.assertTrue(merged["email_weekly_digest"])
        self.assertTrue(merged["quiet_hours_enabled"])
        self.assertNotIn("unknown", merged)
        self.assertEqual(set(merged), set(DEFAULT_NOTIFICATION_SETTINGS))

    def test_defaults(self):
        merged = merge_notification_settings(None)
        self.assertEqual(merged, DEFAULT_NOTIFICATION_SETTINGS)
        self.assertEqual(merged["quiet_hours_start"], "21:00")


class SlugTests(unittest.TestCase):
    def test_slugify(self):
        self.assertEqual(slugify_org_name("Acme Corp!!"), "acme-corp")
        self.assertEqual(slugify_org_name("  --  "), "workspace")
        self.assertEqual(len(slugify_org_name("x" * 100)), 48)

    def test_unique_slug_appends_counter(self):
        db = make_db()
        with db.Session() as session:
            add_org(session, "Acme", slug="acme")
            add_org(session, "Acme", slug="acme-2")
            self.assertEqual(generate_unique_slug(session, "ACME"), "acme-3")
            self.assertEqual(generate_unique_slug(session, "Globex"), "globex")


if __name__ == "__main__":
    unittest.main()
