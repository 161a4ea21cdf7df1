from sqlalchemy import Column, Integer, Text, ForeignKey, DateTime, Index
from app.db.base import Base
from datetime import datetime


class Comment(Base):
    __tablename__ = "comments"

    id = Column(Integer, primary_key=True)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_comments_by_post", "post_id", "created_at"),
        Index("ix_comments_by_user", "user_id", "created_at"),
        Index("ix_comments_by_created_at", "created_at"),
    )
