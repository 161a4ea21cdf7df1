import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.db.indexes import query_index
from app.db.models.user import User
from app.db.session import atomic, run_with_retry
from app.schemas.user import AuthorOut, UserOut
from app.storage import object_store
from app.storage.refs import ObjectRef

logger = logging.getLogger(__name__)


def get_by_external_id(db: Session, external_id: str) -> Optional[User]:
    return query_index(db, User, "by_external_id", external_id=external_id).one_or_none()


def _upsert_once(db: Session, external_id: str, name: str, email: str, avatar: Optional[ObjectRef]) -> int:
    existing = get_by_external_id(db, external_id)
    with atomic(db):
        if existing:
            existing.name = name
            existing.email = email
            # never overwrite an avatar with nothing
            if avatar:
                existing.avatar_ref = avatar
            return existing.id

        user = User(external_id=external_id, name=name, email=email)
        user.avatar_ref = avatar
        db.add(user)
        db.flush()
        return user.id


def upsert_user(db: Session, external_id: str, name: str, email: str, avatar: Optional[ObjectRef] = None) -> int:
    """Create or resync the user linked to an external identity; safe on every sign-in.

    Two first sign-ins racing on the unique external id index: the loser gets a
    conflict and its retry takes the update path.
    """
    return run_with_retry(_upsert_once, db, external_id, name, email, avatar)


def update_avatar(db: Session, user: User, avatar: ObjectRef) -> User:
    old_avatar = user.avatar_ref
    with atomic(db):
        user.avatar_ref = avatar

    # Delete old image after successful update
    if old_avatar and old_avatar != avatar:
        object_store.delete_ref(db, old_avatar)
    return user


def user_out(db: Session, user: User) -> UserOut:
    return UserOut(
        id=user.id,
        external_id=user.external_id,
        name=user.name,
        email=user.email,
        avatar=object_store.resolve_ref(db, user.avatar_ref),
        created_at=user.created_at,
    )


def get_current_user(db: Session, external_id: str) -> Optional[UserOut]:
    """The provisioned user for an external id, or None if sign-in sync has not run yet."""
    user = get_by_external_id(db, external_id)
    if user is None:
        return None
    return user_out(db, user)


def author_out(db: Session, user: Optional[User]) -> Optional[AuthorOut]:
    if user is None:
        return None
    return AuthorOut(id=user.id, name=user.name, avatar=object_store.resolve_ref(db, user.avatar_ref))


class AuthorCache:
    """Resolves each author once per query; lists repeat the same few authors."""

    def __init__(self, db: Session):
        self.db = db
        self._authors = {}

    def get(self, user_id: int) -> Optional[AuthorOut]:
        if user_id not in self._authors:
            self._authors[user_id] = author_out(self.db, self.db.get(User, user_id))
        return self._authors[user_id]
