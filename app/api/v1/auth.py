import logging
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.schemas.token import Identity
from app.schemas.user import UserSync, UserSyncOut
from app.core.security import get_identity
from app.crud import users as crud_users
from app.db.session import get_db
from app.storage.refs import ObjectRef

router = APIRouter()
logger = logging.getLogger(__name__)


# Called by the client after every provider sign-in; creates the user on first call.
@router.post("/sync", response_model=UserSyncOut)
def sync_user(
    user_in: UserSync,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db)
):
    user_id = crud_users.upsert_user(
        db,
        external_id=identity.external_id,
        name=user_in.name,
        email=user_in.email,
        avatar=ObjectRef.parse(user_in.avatar),
    )
    logger.info(f"Synced external identity {identity.external_id} to user {user_id}")
    return {"user_id": user_id}
