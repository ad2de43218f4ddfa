"""
Organization slugs, locale settings and per-user notification preferences.

Locale settings live in ``organizations.settings`` next to the scheduler's
``jobs`` bookkeeping; both are plain JSON.
"""

from __future__ import annotations

import re
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from okrflow.config import Settings, get_settings
from okrflow.db import OrganizationRow

SLUG_MAX_LENGTH = 48

DEFAULT_NOTIFICATION_SETTINGS = {
    "email_check_in_reminders": True,
    "email_weekly_digest": True,
    "email_objective_updates": False,
    "push_check_in_reminders": True,
    "push_objective_comments": True,
    "push_deadline_alerts": True,
    "sms_check_in_reminders": False,
    "whatsapp_check_in_reminders": False,
    "quiet_hours_enabled": False,
    "quiet_hours_start": "21:00",
    "quiet_hours_end": "08:00",
}


def default_locale_settings(settings: Optional[Settings] = None) -> dict:
    settings = settings or get_settings()
    return {
        "fiscal_year_start_month": settings.fiscal_year_start_month,
        "week_start": settings.week_start,
        "scoring_scale": settings.scoring_scale,
        "number_locale": settings.number_locale,
        "date_format": settings.date_format,
        "high_contrast_status": settings.high_contrast_status,
        "hierarchy_labels": {
            "company": settings.label_company,
            "department": settings.label_department,
            "team": settings.label_team,
            "individual": settings.label_individual,
        },
    }


def _month_or_default(value: Any, default: int) -> int:
    try:
        month = int(value)
    except (TypeError, ValueError):
        return default
    return month if 1 <= month <= 12 else default


def merge_org_settings(stored: Any, settings: Optional[Settings] = None) -> dict:
    """Locale settings from a stored blob; missing or invalid values use defaults."""
    defaults = default_locale_settings(settings)
    if not isinstance(stored, dict):
        return defaults

    labels = stored.get("hierarchy_labels")
    if not isinstance(labels, dict):
        labels = {}
    high_contrast = stored.get("high_contrast_status")

    return {
        "fiscal_year_start_month": _month_or_default(
            stored.get("fiscal_year_start_month"), defaults["fiscal_year_start_month"]
        ),
        "week_start": "sunday" if stored.get("week_start") == "sunday" else "monday",
        "scoring_scale": "fraction" if stored.get("scoring_scale") == "fraction" else "percent",
        "number_locale": stored.get("number_locale") or defaults["number_locale"],
        "date_format": stored.get("date_format") or defaults["date_format"],
        "high_contrast_status": (
            high_contrast
            if isinstance(high_contrast, bool)
            else defaults["high_contrast_status"]
        ),
        "hierarchy_labels": {
            key: labels.get(key) or default
            for key, default in defaults["hierarchy_labels"].items()
        },
    }


def store_locale_settings(stored: Any, locale: dict) -> dict:
    """New settings blob holding ``locale`` plus the existing ``jobs`` entry."""
    blob = dict(locale)
    if isinstance(stored, dict) and "jobs" in stored:
        blob["jobs"] = stored["jobs"]
    return blob


def merge_notification_settings(stored: Any, patch: Optional[dict] = None) -> dict:
    merged = dict(DEFAULT_NOTIFICATION_SETTINGS)
    if isinstance(stored, dict):
        merged.update({k: v for k, v in stored.items() if k in DEFAULT_NOTIFICATION_SETTINGS})
    if patch:
        merged.update({k: v for k, v in patch.items() if k in DEFAULT_NOTIFICATION_SETTINGS})
    return merged


def slugify_org_name(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (name or "").lower()).strip("-")
    slug = slug[:SLUG_MAX_LENGTH]
    return slug or "workspace"


def generate_unique_slug(session: Session, name: str) -> str:
    base = slugify_org_name(name)
    slug = base
    counter = 2
    while session.execute(
        select(OrganizationRow.id).where(OrganizationRow.slug == slug)
    ).first():
        slug = f"{base}-{counter}"
        counter += 1
    return slug
