from sqlalchemy import Column, Integer, String, DateTime, Index
from datetime import datetime
from app.db.base import Base

PENDING = "pending"
READY = "ready"
DELETED = "deleted"


class StoredObject(Base):
    __tablename__ = "stored_objects"

    id = Column(String(32), primary_key=True)
    ticket = Column(String(64), nullable=False)
    status = Column(String(10), nullable=False, default=PENDING)
    backend_key = Column(String, nullable=True)
    url = Column(String, nullable=True)
    content_type = Column(String, nullable=True)
    size = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_stored_objects_by_ticket", "ticket", unique=True),
    )
