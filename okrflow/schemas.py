"""
Pydantic request schemas for the OKRFlow API.
"""

from __future__ import annotations

from datetime import date
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

from okrflow.types import (
    CheckInStatus,
    GoalType,
    InitiativeStatus,
    ObjectiveStatus,
    ProgressType,
    Role,
)

MAX_KEY_RESULTS = 5


def _check_weights(key_results: List["KeyResultInput"]) -> None:
    if sum(kr.weight for kr in key_results) != 100:
        raise ValueError("Key Result weights must sum to 100")


class RegisterRequest(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=120)
    password: str = Field(..., min_length=8, max_length=256)
    org_name: Optional[str] = Field(default=None, max_length=120)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class KeyResultInput(BaseModel):
    title: str = Field(..., min_length=1)
    weight: int = Field(..., ge=0, le=100)
    target: float = Field(..., gt=0)
    current: float = Field(default=0, ge=0)
    unit: Optional[str] = None


class ObjectiveCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    cycle: str = Field(..., min_length=1)
    start_at: date
    end_at: date
    goal_type: Optional[GoalType] = None
    progress_type: ProgressType = ProgressType.AUTOMATIC
    progress: Optional[float] = Field(default=None, ge=0, le=100)
    team_id: Optional[str] = None
    parent_id: Optional[str] = None
    key_results: List[KeyResultInput] = Field(..., min_length=1, max_length=MAX_KEY_RESULTS)

    @model_validator(mode="after")
    def _validate(self):
        if self.start_at >= self.end_at:
            raise ValueError("Start date must be before end date")
        _check_weights(self.key_results)
        return self


class ObjectiveUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    cycle: Optional[str] = Field(default=None, min_length=1)
    start_at: Optional[date] = None
    end_at: Optional[date] = None
    goal_type: Optional[GoalType] = None
    progress_type: Optional[ProgressType] = None
    progress: Optional[float] = Field(default=None, ge=0, le=100)
    team_id: Optional[str] = None
    parent_id: Optional[str] = None
    key_results: Optional[List[KeyResultInput]] = Field(
        default=None, min_length=1, max_length=MAX_KEY_RESULTS
    )

    @model_validator(mode="after")
    def _validate(self):
        for name in ("title", "cycle", "start_at", "end_at"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        if self.start_at and self.end_at and self.start_at >= self.end_at:
            raise ValueError("Start date must be before end date")
        if self.key_results is not None:
            _check_weights(self.key_results)
        return self


class ObjectiveStatusUpdate(BaseModel):
    status: ObjectiveStatus


class KeyResultsReplace(BaseModel):
    key_results: List[KeyResultInput] = Field(..., min_length=1, max_length=MAX_KEY_RESULTS)

    @model_validator(mode="after")
    def _validate(self):
        _check_weights(self.key_results)
        return self


class KeyResultUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    weight: Optional[int] = Field(default=None, ge=0, le=100)
    target: Optional[float] = Field(default=None, gt=0)
    current: Optional[float] = Field(default=None, ge=0)
    unit: Optional[str] = None


class InitiativeCreate(BaseModel):
    title: str = Field(..., min_length=1)
    status: InitiativeStatus = InitiativeStatus.TODO


class InitiativeUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    status: Optional[InitiativeStatus] = None

    @model_validator(mode="after")
    def _validate(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self


class CheckInCreate(BaseModel):
    key_result_id: str
    value: float = Field(..., ge=0)
    status: CheckInStatus
    comment: Optional[str] = Field(default=None, max_length=2000)
    week_start: Optional[date] = None


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)
    objective_id: Optional[str] = None
    key_result_id: Optional[str] = None

    @model_validator(mode="after")
    def _validate(self):
        if not self.objective_id and not self.key_result_id:
            raise ValueError("objective_id or key_result_id is required")
        return self


class NotificationsRead(BaseModel):
    ids: Optional[List[str]] = None
    all: bool = False


class InvitationCreate(BaseModel):
    email: EmailStr
    role: Optional[Role] = None
    expires_in_days: Optional[int] = Field(default=None, ge=1, le=90)


class InvitationAccept(BaseModel):
    token: str = Field(..., min_length=1)
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=120)
    password: str = Field(..., min_length=8, max_length=256)


class TeamCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)


class TeamUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    member_ids: Optional[List[str]] = None


class RoleUpdate(BaseModel):
    role: Role


class HierarchyLabels(BaseModel):
    company: Optional[str] = None
    department: Optional[str] = None
    team: Optional[str] = None
    individual: Optional[str] = None


class LocaleSettingsUpdate(BaseModel):
    fiscal_year_start_month: Optional[int] = Field(default=None, ge=1, le=12)
    week_start: Optional[Literal["monday", "sunday"]] = None
    scoring_scale: Optional[Literal["percent", "fraction"]] = None
    number_locale: Optional[str] = Field(default=None, min_length=2, max_length=20)
    date_format: Optional[str] = Field(default=None, min_length=2, max_length=20)
    high_contrast_status: Optional[bool] = None
    hierarchy_labels: Optional[HierarchyLabels] = None


class NotificationSettingsUpdate(BaseModel):
    email_check_in_reminders: Optional[bool] = None
    email_weekly_digest: Optional[bool] = None
    email_objective_updates: Optional[bool] = None
    push_check_in_reminders: Optional[bool] = None
    push_objective_comments: Optional[bool] = None
    push_deadline_alerts: Optional[bool] = None
    sms_check_in_reminders: Optional[bool] = None
    whatsapp_check_in_reminders: Optional[bool] = None
    quiet_hours_enabled: Optional[bool] = None
    quiet_hours_start: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    quiet_hours_end: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}$")


class ProfileUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)


class PasswordUpdate(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=256)


class ExportRequest(BaseModel):
    format: Literal["csv", "pdf", "xlsx", "excel"] = "pdf"
    scope: Literal["company", "personal"] = "company"
