"""
Database layer: SQLAlchemy rows for the OKR domain and the client that owns
the engine, sessions and the export-job queue table.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    select,
    update,
)
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

from okrflow.types import (
    ExportStatus,
    InitiativeStatus,
    ObjectiveStatus,
    ProgressType,
    Role,
)


def new_id() -> str:
    return uuid.uuid4().hex


def now_ts() -> float:
    return time.time()


@dataclass
class ExportJobRecord:
    job_id: str
    org_id: str
    requested_by_id: Optional[str]
    format: str
    scope: str
    status: ExportStatus
    stage: str = "WAITING"
    storage_path: Optional[str] = None
    error: Optional[str] = None
    locked_at: Optional[float] = None
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return {
            "id": self.job_id,
            "org_id": self.org_id,
            "requested_by_id": self.requested_by_id,
            "format": self.format,
            "scope": self.scope,
            "status": self.status.value,
            "stage": self.stage,
            "error": self.error,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


def _enable_sqlite_savepoints(engine) -> None:
    # pysqlite defers BEGIN on its own, which breaks SAVEPOINT; emit it ourselves.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


class DbClient:
    """
    SQLAlchemy-backed client. Accepts any SQLAlchemy URL (e.g., Postgres, or
    SQLite for development and tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("database_url is required for DbClient")
        if database_url.startswith("sqlite") and ":memory:" in database_url:
            # One shared connection so every thread sees the same in-memory DB.
            self.engine = create_engine(
                database_url,
                future=True,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(
                database_url,
                future=True,
                pool_pre_ping=True,
                pool_recycle=1800,
            )
        if self.engine.dialect.name == "sqlite":
            _enable_sqlite_savepoints(self.engine)
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def reset(self) -> None:
        """Drop and recreate every table (useful in tests)."""
        Base.metadata.drop_all(self.engine)
        Base.metadata.create_all(self.engine)

    def _to_export_record(self, row: "ExportJobRow") -> ExportJobRecord:
        return ExportJobRecord(
            job_id=row.job_id,
            org_id=row.org_id,
            requested_by_id=row.requested_by_id,
            format=row.format,
            scope=row.scope,
            status=ExportStatus(row.status),
            stage=row.stage,
            storage_path=row.storage_path,
            error=row.error,
            locked_at=row.locked_at,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def create_export_job(
        self, org_id: str, requested_by_id: Optional[str], fmt: str, scope: str
    ) -> ExportJobRecord:
        now = time.time()
        with self.Session() as session:
            row = ExportJobRow(
                job_id=new_id(),
                org_id=org_id,
                requested_by_id=requested_by_id,
                format=fmt,
                scope=scope,
                status=ExportStatus.WAITING.value,
                stage="WAITING",
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_export_record(row)

    def get_export_job(self, job_id: str) -> Optional[ExportJobRecord]:
        with self.Session() as session:
            row = session.get(ExportJobRow, job_id)
            if not row:
                return None
            return self._to_export_record(row)

    def claim_export_job(self, job_id: str) -> Optional[ExportJobRecord]:
        """Flip a WAITING job to RUNNING; None if another worker got it first."""
        now = time.time()
        with self.Session() as session:
            result = session.execute(
                update(ExportJobRow)
                .where(
                    ExportJobRow.job_id == job_id,
                    ExportJobRow.status == ExportStatus.WAITING.value,
                )
                .values(
                    status=ExportStatus.RUNNING.value,
                    stage="CLAIMED",
                    locked_at=now,
                    updated_at=now,
                )
            )
            session.commit()
            if result.rowcount != 1:
                return None
            row = session.get(ExportJobRow, job_id)
            return self._to_export_record(row)

    def claim_next_waiting_job(self) -> Optional[ExportJobRecord]:
        now = time.time()
        with self.Session() as session:
            stmt = (
                select(ExportJobRow)
                .where(ExportJobRow.status == ExportStatus.WAITING.value)
                .order_by(ExportJobRow.created_at.asc())
                .limit(1)
                .with_for_update(skip_locked=True)
            )
            row = session.execute(stmt).scalar_one_or_none()
            if not row:
                return None
            row.status = ExportStatus.RUNNING.value
            row.stage = "CLAIMED"
            row.locked_at = now
            row.updated_at = now
            session.commit()
            session.refresh(row)
            return self._to_export_record(row)

    def update_export_job(
        self,
        job_id: str,
        *,
        status: Optional[ExportStatus] = None,
        stage: Optional[str] = None,
        storage_path: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        with self.Session() as session:
            row = session.get(ExportJobRow, job_id)
            if not row:
                return
            if status:
                row.status = status.value
            if stage:
                row.stage = stage
            if storage_path is not None:
                row.storage_path = storage_path
            if error is not None:
                row.error = error
            row.updated_at = time.time()
            session.commit()

    def requeue_stale_locks(self, lock_timeout_seconds: float = 600) -> int:
        cutoff = time.time() - lock_timeout_seconds
        with self.Session() as session:
            result = session.execute(
                update(ExportJobRow)
                .where(
                    ExportJobRow.status == ExportStatus.RUNNING.value,
                    ExportJobRow.locked_at.is_not(None),
                    ExportJobRow.locked_at < cutoff,
                )
                .values(
                    status=ExportStatus.WAITING.value,
                    stage="WAITING",
                    locked_at=None,
                    updated_at=time.time(),
                )
            )
            session.commit()
            return result.rowcount or 0


Base = declarative_base()


class OrganizationRow(Base):
    __tablename__ = "organizations"

    id = Column(String, primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True)
    settings = Column(JSON, nullable=True)
    created_at = Column(Float, nullable=False, default=now_ts)

    users = relationship("UserRow", back_populates="org")
    teams = relationship(
        "TeamRow", back_populates="org", cascade="all, delete-orphan"
    )


class UserRow(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=new_id)
    email = Column(String, nullable=False, unique=True, index=True)
    name = Column(String, nullable=True)
    password_hash = Column(String, nullable=True)
    role = Column(String, nullable=False, default=Role.EMPLOYEE.value)
    org_id = Column(
        String, ForeignKey("organizations.id"), nullable=True, index=True
    )
    notification_settings = Column(JSON, nullable=True)
    created_at = Column(Float, nullable=False, default=now_ts)
    updated_at = Column(Float, nullable=False, default=now_ts, onupdate=now_ts)

    org = relationship("OrganizationRow", back_populates="users")
    objectives = relationship(
        "ObjectiveRow",
        back_populates="owner",
        cascade="all, delete-orphan",
        foreign_keys="ObjectiveRow.owner_id",
    )
    sessions = relationship("AuthSessionRow", cascade="all, delete-orphan")
    notifications = relationship("NotificationRow", cascade="all, delete-orphan")
    check_ins = relationship("CheckInRow", back_populates="user", cascade="all, delete")
    comments = relationship("CommentRow", back_populates="user", cascade="all, delete")
    memberships = relationship(
        "TeamMemberRow", back_populates="user", cascade="all, delete"
    )


class AuthSessionRow(Base):
    __tablename__ = "auth_sessions"

    token_hash = Column(String, primary_key=True)
    user_id = Column(
        String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at = Column(Float, nullable=False, default=now_ts)
    expires_at = Column(Float, nullable=False)

    user = relationship("UserRow", overlaps="sessions")


class TeamRow(Base):
    __tablename__ = "teams"

    id = Column(String, primary_key=True, default=new_id)
    org_id = Column(String, ForeignKey("organizations.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    created_at = Column(Float, nullable=False, default=now_ts)

    org = relationship("OrganizationRow", back_populates="teams")
    members = relationship(
        "TeamMemberRow", back_populates="team", cascade="all, delete-orphan"
    )
    objectives = relationship("ObjectiveRow", back_populates="team")


class TeamMemberRow(Base):
    __tablename__ = "team_members"

    team_id = Column(
        String, ForeignKey("teams.id", ondelete="CASCADE"), primary_key=True
    )
    user_id = Column(
        String, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )

    team = relationship("TeamRow", back_populates="members")
    user = relationship("UserRow", back_populates="memberships")


class ObjectiveRow(Base):
    __tablename__ = "objectives"

    id = Column(String, primary_key=True, default=new_id)
    org_id = Column(String, ForeignKey("organizations.id"), nullable=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    cycle = Column(String, nullable=False, index=True)
    start_at = Column(Date, nullable=False)
    end_at = Column(Date, nullable=False)
    status = Column(String, nullable=False, default=ObjectiveStatus.NOT_STARTED.value)
    goal_type = Column(String, nullable=True)
    progress_type = Column(
        String, nullable=False, default=ProgressType.AUTOMATIC.value
    )
    progress = Column(Float, nullable=True)
    score = Column(Float, nullable=True)
    fiscal_quarter = Column(Integer, nullable=True)
    owner_id = Column(
        String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    team_id = Column(
        String, ForeignKey("teams.id", ondelete="SET NULL"), nullable=True, index=True
    )
    parent_id = Column(
        String, ForeignKey("objectives.id", ondelete="SET NULL"), nullable=True, index=True
    )
    created_at = Column(Float, nullable=False, default=now_ts)
    updated_at = Column(Float, nullable=False, default=now_ts, onupdate=now_ts)

    owner = relationship("UserRow", back_populates="objectives", foreign_keys=[owner_id])
    team = relationship("TeamRow", back_populates="objectives")
    parent = relationship("ObjectiveRow", remote_side=[id], back_populates="children")
    children = relationship("ObjectiveRow", back_populates="parent")
    key_results = relationship(
        "KeyResultRow",
        back_populates="objective",
        cascade="all, delete-orphan",
        order_by="KeyResultRow.created_at",
    )
    comments = relationship("CommentRow", back_populates="objective", cascade="all, delete")


class KeyResultRow(Base):
    __tablename__ = "key_results"

    id = Column(String, primary_key=True, default=new_id)
    objective_id = Column(
        String, ForeignKey("objectives.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title = Column(String, nullable=False)
    weight = Column(Integer, nullable=False)
    target = Column(Float, nullable=False)
    current = Column(Float, nullable=False, default=0.0)
    unit = Column(String, nullable=True)
    created_at = Column(Float, nullable=False, default=now_ts)
    updated_at = Column(Float, nullable=False, default=now_ts, onupdate=now_ts)

    objective = relationship("ObjectiveRow", back_populates="key_results")
    initiatives = relationship(
        "InitiativeRow",
        back_populates="key_result",
        cascade="all, delete-orphan",
        order_by="InitiativeRow.created_at.desc()",
    )
    check_ins = relationship(
        "CheckInRow",
        back_populates="key_result",
        cascade="all, delete-orphan",
        order_by="CheckInRow.week_start.desc()",
    )
    comments = relationship("CommentRow", back_populates="key_result", cascade="all, delete")


class InitiativeRow(Base):
    __tablename__ = "initiatives"

    id = Column(String, primary_key=True, default=new_id)
    key_result_id = Column(
        String, ForeignKey("key_results.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title = Column(String, nullable=False)
    status = Column(String, nullable=False, default=InitiativeStatus.TODO.value)
    created_at = Column(Float, nullable=False, default=now_ts)
    updated_at = Column(Float, nullable=False, default=now_ts, onupdate=now_ts)

    key_result = relationship("KeyResultRow", back_populates="initiatives")


class CheckInRow(Base):
    __tablename__ = "check_ins"
    __table_args__ = (
        UniqueConstraint("key_result_id", "user_id", "week_start", name="uq_check_in_week"),
    )

    id = Column(String, primary_key=True, default=new_id)
    key_result_id = Column(
        String, ForeignKey("key_results.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(
        String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    week_start = Column(Date, nullable=False, index=True)
    value = Column(Float, nullable=False)
    status = Column(String, nullable=False)
    comment = Column(Text, nullable=True)
    created_at = Column(Float, nullable=False, default=now_ts)
    updated_at = Column(Float, nullable=False, default=now_ts, onupdate=now_ts)

    key_result = relationship("KeyResultRow", back_populates="check_ins")
    user = relationship("UserRow", back_populates="check_ins")


class CommentRow(Base):
    __tablename__ = "comments"

    id = Column(String, primary_key=True, default=new_id)
    content = Column(Text, nullable=False)
    objective_id = Column(
        String, ForeignKey("objectives.id", ondelete="CASCADE"), nullable=True, index=True
    )
    key_result_id = Column(
        String, ForeignKey("key_results.id", ondelete="CASCADE"), nullable=True, index=True
    )
    user_id = Column(
        String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at = Column(Float, nullable=False, default=now_ts)

    objective = relationship("ObjectiveRow", back_populates="comments")
    key_result = relationship("KeyResultRow", back_populates="comments")
    user = relationship("UserRow", back_populates="comments")


class NotificationRow(Base):
    __tablename__ = "notifications"

    id = Column(String, primary_key=True, default=new_id)
    user_id = Column(
        String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type = Column(String, nullable=False)
    message = Column(String, nullable=False)
    payload = Column("metadata", JSON, nullable=True)
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(Float, nullable=False, default=now_ts, index=True)


class InvitationRow(Base):
    __tablename__ = "invitations"

    id = Column(String, primary_key=True, default=new_id)
    org_id = Column(String, ForeignKey("organizations.id"), nullable=False, index=True)
    email = Column(String, nullable=False, index=True)
    role = Column(String, nullable=False, default=Role.EMPLOYEE.value)
    invited_by_id = Column(
        String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    token_hash = Column(String, nullable=False, unique=True)
    expires_at = Column(Float, nullable=True)
    accepted_at = Column(Float, nullable=True)
    created_at = Column(Float, nullable=False, default=now_ts)


class ExportJobRow(Base):
    __tablename__ = "export_jobs"

    job_id = Column(String, primary_key=True)
    org_id = Column(String, nullable=False, index=True)
    requested_by_id = Column(
        String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    format = Column(String, nullable=False)
    scope = Column(String, nullable=False)
    status = Column(String, nullable=False, index=True)
    stage = Column(String, nullable=False, default="WAITING")
    storage_path = Column(String, nullable=True)
    error = Column(Text, nullable=True)
    locked_at = Column(Float, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)
