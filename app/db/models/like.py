from sqlalchemy import Column, Integer, ForeignKey, DateTime, Index
from app.db.base import Base
from datetime import datetime


class Like(Base):
    __tablename__ = "likes"

    id = Column(Integer, primary_key=True)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_likes_by_post", "post_id", "created_at"),
        Index("ix_likes_by_user", "user_id", "created_at"),
        # at most one like per user per post
        Index("ix_likes_by_post_and_user", "post_id", "user_id", unique=True),
    )
