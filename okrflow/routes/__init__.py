"""
HTTP routes, aggregated into a single router mounted under the API prefix.
"""

from fastapi import APIRouter

from okrflow.routes import (
    auth,
    checkins,
    comments,
    cron,
    invitations,
    key_results,
    notifications,
    objectives,
    reports,
    settings,
    teams,
    users,
)

router = APIRouter()
router.include_router(auth.router)
router.include_router(objectives.router)
router.include_router(key_results.router)
router.include_router(checkins.router)
router.include_router(comments.router)
router.include_router(notifications.router)
router.include_router(invitations.router)
router.include_router(teams.router)
router.include_router(users.router)
router.include_router(users.admin_router)
router.include_router(settings.router)
router.include_router(reports.router)
router.include_router(reports.export_router)
router.include_router(cron.router)
