from fastapi import APIRouter, Depends, Path, status
from typing import List
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.db.models.user import User
from app.schemas.comment import CommentCreate, CommentCreated, CommentDeleted, CommentOut
from app.crud import engagement as crud
from app.core.security import get_current_user

router = APIRouter()


@router.post("/", response_model=CommentCreated, status_code=status.HTTP_201_CREATED)
def create_comment(
    comment_in: CommentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    comment_id, post_version = crud.create_comment(db, comment_in.post_id, current_user.id, comment_in.content)
    return {"id": comment_id, "post_version": post_version}


@router.get("/post/{post_id}", response_model=List[CommentOut])
def get_post_comments(post_id: int = Path(..., gt=0), db: Session = Depends(get_db)):
    return crud.get_post_comments(db, post_id)


@router.delete("/{comment_id}", response_model=CommentDeleted)
def delete_comment(
    comment_id: int = Path(..., gt=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return {"post_version": crud.delete_comment(db, comment_id, current_user.id)}
