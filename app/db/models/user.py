from sqlalchemy import Column, Integer, String, DateTime, Index
from datetime import datetime
from app.db.base import Base
from app.storage.refs import ObjectRef


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    external_id = Column(String, nullable=False)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    avatar_kind = Column(String(10), nullable=True)
    avatar_value = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_users_by_external_id", "external_id", unique=True),
    )

    @property
    def avatar_ref(self):
        return ObjectRef.from_columns(self.avatar_kind, self.avatar_value)

    @avatar_ref.setter
    def avatar_ref(self, ref):
        self.avatar_kind = ref.kind if ref else None
        self.avatar_value = ref.value if ref else None
