import logging
from fastapi import APIRouter, Depends, Path, status
from typing import List
from sqlalchemy.orm import Session
from app.db.models.user import User
from app.db.session import get_db
from app.schemas.post import PostCreate, PostCreated, PostOut, PostUpdate, PostWithAuthor
from app.crud import post as crud
from app.core.security import get_current_user
from app.storage.refs import ObjectRef

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/", response_model=PostCreated, status_code=status.HTTP_201_CREATED)
def create_post(
    post_in: PostCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    post_id = crud.create(db, current_user.id, post_in.content, ObjectRef.parse(post_in.image))
    logger.info(f"User {current_user.id} created post {post_id}")
    return {"id": post_id}


# feed, newest first
@router.get("/", response_model=List[PostWithAuthor])
def get_all_posts(db: Session = Depends(get_db)):
    return crud.get_all_posts(db)


@router.get("/user/{user_id}", response_model=List[PostOut])
def get_user_posts(user_id: int = Path(..., gt=0), db: Session = Depends(get_db)):
    return crud.get_user_posts(db, user_id)


@router.patch("/{post_id}")
def update_post(
    post_in: PostUpdate,
    post_id: int = Path(..., gt=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    version = crud.update(db, post_id, post_in.content, current_user.id)
    return {"msg": "Post updated successfully", "version": version}


@router.delete("/{post_id}")
def delete_post(
    post_id: int = Path(..., gt=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    crud.delete(db, post_id, current_user.id)
    return {"msg": "Post deleted successfully"}


@router.post("/{post_id}/share")
def share_post(
    post_id: int = Path(..., gt=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    crud.increment_share_count(db, post_id)
    return {"msg": "Share recorded"}
