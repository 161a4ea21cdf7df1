from fastapi import APIRouter, Depends, Path
from typing import List
from sqlalchemy.orm import Session
from app.db.session import get_db, run_with_retry
from app.db.models.user import User
from app.schemas.like import LikeOut, LikeToggleOut
from app.crud import engagement as crud
from app.core.security import get_current_user

router = APIRouter()


@router.post("/{post_id}/toggle", response_model=LikeToggleOut)
def toggle_like(
    post_id: int = Path(..., gt=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    # a toggle that lost a race on the unique index gets one more try
    return run_with_retry(crud.toggle_like, db, post_id, current_user.id)


@router.get("/{post_id}", response_model=List[LikeOut])
def get_post_likes(post_id: int = Path(..., gt=0), db: Session = Depends(get_db)):
    return crud.get_post_likes(db, post_id)


@router.get("/{post_id}/me", response_model=LikeToggleOut)
def has_user_liked(
    post_id: int = Path(..., gt=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return {"liked": crud.has_user_liked(db, post_id, current_user.id)}
