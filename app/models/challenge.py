from sqlalchemy import (
    Column,
    Integer,
    Float,
    DateTime,
    String,
    Text,
    JSON,
    UniqueConstraint,
    ForeignKey,
)

from app.core.clock import utcnow
from app.core.db import Base


class Challenge(Base):
    __tablename__ = "challenges"
    __table_args__ = (UniqueConstraint("slug", name="uq_challenge_slug"),)

    id = Column(Integer, primary_key=True, index=True)
    slug = Column(String(64), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    prize_amount = Column(Float, nullable=False, default=0)
    currency = Column(String(8), nullable=False, default="USD")
    rules = Column(JSON, default=list)

    starts_at = Column(DateTime, nullable=False)
    ends_at = Column(DateTime, nullable=False)

    created_at = Column(DateTime, default=utcnow)


class ChallengeEnrollment(Base):
    __tablename__ = "challenge_enrollments"
    __table_args__ = (UniqueConstraint("challenge_id", "user_id", name="uq_enrollment_challenge_user"),)

    id = Column(Integer, primary_key=True, index=True)
    challenge_id = Column(Integer, ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(128), nullable=False, index=True)
    score = Column(Float, nullable=False, default=0)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
