"""Website feedback — one write-once row per user."""

from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, JSON, Text

from practicum.database import Base


class WebsiteFeedback(Base):
    __tablename__ = "website_evaluations"

    user_id = Column(String(36), primary_key=True)
    user_role = Column(String(20), nullable=True)
    answers = Column(JSON, nullable=False)
    suggestions = Column(Text, nullable=True)
    ip = Column(String(64), nullable=True)
    submitted_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
