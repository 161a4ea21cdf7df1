"""Blob storage behind opaque object ids.

Uploads are two-step: a caller asks for a ticket, then POSTs the raw bytes to
the ticket's URL and gets back the object id.  Only completed uploads resolve
to a URL.  Deletes are best-effort and never raise.
"""
import logging
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from app.core import config
from app.core.errors import NotFoundError, ValidationError
from app.db.indexes import query_index
from app.db.models.stored_object import StoredObject, PENDING, READY, DELETED
from app.db.session import atomic
from app.schemas.storage import UploadTicket
from app.storage.backends import get_backend
from app.storage.refs import ObjectRef

logger = logging.getLogger(__name__)


def create_upload_ticket(db: Session) -> UploadTicket:
    stored = StoredObject(
        id=uuid.uuid4().hex,
        ticket=secrets.token_urlsafe(32),
        status=PENDING,
        expires_at=datetime.utcnow() + timedelta(seconds=config.UPLOAD_TICKET_TTL_SECONDS),
    )
    with atomic(db):
        db.add(stored)
    return UploadTicket(
        uploadUrl=f"{config.PUBLIC_BASE_URL}/api/storage/upload/{stored.ticket}",
        storageId=stored.id,
    )


def complete_upload(db: Session, ticket: str, data: bytes, content_type: Optional[str]) -> str:
    stored = query_index(db, StoredObject, "by_ticket", ticket=ticket).one_or_none()
    if stored is None or stored.status != PENDING or stored.expires_at < datetime.utcnow():
        raise NotFoundError("Upload ticket not found or expired")

    content_type = (content_type or "").split(";")[0].strip().lower()
    if content_type not in config.ALLOWED_CONTENT_TYPES:
        raise ValidationError("Invalid image format")
    if not data:
        raise ValidationError("Empty upload")
    if len(data) > config.MAX_UPLOAD_BYTES:
        raise ValidationError(f"File too large (max {config.MAX_UPLOAD_BYTES} bytes)")

    key, url = get_backend().put(stored.id, data, content_type)
    with atomic(db):
        stored.status = READY
        stored.backend_key = key
        stored.url = url
        stored.content_type = content_type
        stored.size = len(data)
    return stored.id


def get_ready_object(db: Session, storage_id: str) -> StoredObject:
    stored = db.get(StoredObject, storage_id)
    if stored is None or stored.status != READY:
        raise NotFoundError("File not found")
    return stored


def resolve(db: Session, storage_id: str) -> Optional[str]:
    """URL for a completed upload, None for anything deleted, pending or unknown."""
    try:
        stored = db.get(StoredObject, storage_id)
        if stored is None or stored.status != READY:
            return None
        return get_backend().url(stored)
    except Exception as e:
        logger.error(f"Error getting URL for storageId {storage_id}: {e}")
        return None


def resolve_ref(db: Session, ref: Optional[ObjectRef]) -> Optional[str]:
    if ref is None:
        return None
    if ref.is_url:
        return ref.value
    return resolve(db, ref.value)


def delete(db: Session, storage_id: str) -> None:
    """Best-effort delete; failures are logged, never raised."""
    try:
        stored = db.get(StoredObject, storage_id)
        if stored is None or stored.status == DELETED:
            return
        if stored.backend_key:
            try:
                get_backend().delete(stored.backend_key)
            except Exception as e:
                logger.error(f"Error deleting object {storage_id} from backend: {e}")
        with atomic(db):
            stored.status = DELETED
    except Exception as e:
        logger.error(f"Error deleting stored object {storage_id}: {e}")


def delete_ref(db: Session, ref: Optional[ObjectRef]) -> None:
    # literal URLs are not ours to delete
    if ref is not None and ref.is_stored:
        delete(db, ref.value)
