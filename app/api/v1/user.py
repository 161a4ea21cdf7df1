from fastapi import APIRouter, Depends
from typing import Optional
from sqlalchemy.orm import Session
from app.db.models.user import User
from app.schemas.token import Identity
from app.schemas.user import AvatarUpdate, UserOut
from app.db.session import get_db
from app.core.security import get_current_user, get_identity
from app.crud import users as crud_users
from app.storage.refs import ObjectRef

router = APIRouter()


# null until the user has been synced, which is not an error
@router.get("/me", response_model=Optional[UserOut])
def get_user_me(
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db)
):
    return crud_users.get_current_user(db, identity.external_id)


@router.get("/by-external/{external_id}", response_model=Optional[UserOut])
def get_user_by_external_id(external_id: str, db: Session = Depends(get_db)):
    return crud_users.get_current_user(db, external_id)


@router.put("/me/avatar", response_model=UserOut)
def update_avatar(
    avatar_in: AvatarUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    user = crud_users.update_avatar(db, current_user, ObjectRef.parse(avatar_in.avatar))
    return crud_users.user_out(db, user)
