"""System panel models — settings flag, audit trail and academic-year snapshots."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, JSON, Text

from practicum.database import Base


class SystemSettings(Base):
    __tablename__ = "system_settings"

    id = Column(String(20), primary_key=True, default="main")
    status = Column(String(20), nullable=False, default="online")  # online | maintenance | offline
    last_update = Column(DateTime, nullable=True)
    updated_by = Column(String(36), nullable=True)
    last_reset = Column(DateTime, nullable=True)
    reset_by = Column(String(36), nullable=True)
    reset_from_ip = Column(String(64), nullable=True)


class SystemLog(Base):
    __tablename__ = "system_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    level = Column(String(20), nullable=False, default="info", index=True)  # info | warning | error
    category = Column(String(50), nullable=False, default="system", index=True)
    message = Column(Text, nullable=False)
    user_id = Column(String(36), nullable=True)
    details = Column(JSON, nullable=True)
    timestamp = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc), index=True)


class SystemActivity(Base):
    __tablename__ = "system_activities"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    user_id = Column(String(36), nullable=True)
    user_name = Column(String(255), nullable=True)
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSON, nullable=True)
    timestamp = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc), index=True)


class AcademicYearSnapshot(Base):
    __tablename__ = "academic_year_snapshots"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    academic_year = Column(String(10), nullable=False, index=True)  # Buddhist calendar
    payload = Column(JSON, nullable=False)
    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
