"""
OKRFlow backend package.

This package provides a FastAPI application for tracking objectives and key
results across organizations, with a SQLAlchemy data layer, an in-process
scheduler for reminders and scoring, and a worker for report exports.
"""
