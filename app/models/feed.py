from sqlalchemy import (
    Column,
    Integer,
    DateTime,
    String,
    Text,
    JSON,
    UniqueConstraint,
    ForeignKey,
)

from app.core.clock import utcnow
from app.core.db import Base


class FeedPost(Base):
    __tablename__ = "feed_posts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(128), nullable=False, index=True)

    content = Column(Text, nullable=False)
    tags = Column(JSON, default=list)
    mood = Column(String(64))
    visibility = Column(String(16), nullable=False, default="public")  # public / friends
    stats = Column(JSON)  # {"steps": ..., "calories_burned": ..., "water_intake": ...}

    likes_count = Column(Integer, nullable=False, default=0)
    comments_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=utcnow, index=True)


class FeedPostLike(Base):
    __tablename__ = "feed_post_likes"
    __table_args__ = (UniqueConstraint("post_id", "user_id", name="uq_like_post_user"),)

    id = Column(Integer, primary_key=True)
    post_id = Column(Integer, ForeignKey("feed_posts.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(128), nullable=False)

    created_at = Column(DateTime, default=utcnow)


class FeedComment(Base):
    __tablename__ = "feed_comments"

    id = Column(Integer, primary_key=True, index=True)
    post_id = Column(Integer, ForeignKey("feed_posts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(128), nullable=False)
    text = Column(Text, nullable=False)

    created_at = Column(DateTime, default=utcnow)
