from sqlalchemy import Column, Integer, String, Text, DateTime, Index
from datetime import datetime
from app.db.base import Base
from app.storage.refs import ObjectRef


class Post(Base):
    __tablename__ = "posts"

    id = Column(Integer, primary_key=True)
    # no FK: a post outlives its author and is then served with author=None
    user_id = Column(Integer, nullable=False)
    content = Column(Text, nullable=False, default="")
    image_kind = Column(String(10), nullable=True)
    image_value = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    likes_count = Column(Integer, default=0, nullable=False)
    comments_count = Column(Integer, default=0, nullable=False)
    shares_count = Column(Integer, default=0, nullable=False)
    version = Column(Integer, nullable=False)

    __table_args__ = (
        Index("ix_posts_by_user", "user_id", "created_at"),
        Index("ix_posts_by_created_at", "created_at"),
    )
    # every UPDATE bumps version and checks the previous one (lost-update guard)
    __mapper_args__ = {"version_id_col": version}

    @property
    def image_ref(self):
        return ObjectRef.from_columns(self.image_kind, self.image_value)

    @image_ref.setter
    def image_ref(self, ref):
        self.image_kind = ref.kind if ref else None
        self.image_value = ref.value if ref else None
