"""Likes and comments, each kept in step with the parent post's counters.

Every mutation re-reads the post inside the same unit as the row change so
concurrent likers/commenters never lose an update; decrements clamp at zero.
"""
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.errors import ForbiddenError, NotFoundError
from app.crud.post import get_post_for_update
from app.crud.users import AuthorCache
from app.db.indexes import query_index
from app.db.models.comment import Comment
from app.db.models.like import Like
from app.db.models.user import User
from app.db.session import atomic, run_with_retry
from app.schemas.comment import CommentOut
from app.schemas.like import LikeOut, LikeUser


def toggle_like(db: Session, post_id: int, user_id: int) -> dict:
    with atomic(db):
        post = get_post_for_update(db, post_id)
        if post is None:
            raise NotFoundError("Post not found")

        existing_like = query_index(db, Like, "by_post_and_user", post_id=post_id, user_id=user_id).one_or_none()
        if existing_like:
            db.delete(existing_like)
            post.likes_count = max(0, (post.likes_count or 0) - 1)
            liked = False
        else:
            # a concurrent toggle inserting the same pair trips the unique index -> ConflictError
            db.add(Like(post_id=post_id, user_id=user_id))
            post.likes_count = (post.likes_count or 0) + 1
            liked = True

    return {"liked": liked}


def has_user_liked(db: Session, post_id: int, user_id: int) -> bool:
    like = query_index(db, Like, "by_post_and_user", post_id=post_id, user_id=user_id).one_or_none()
    return like is not None


def get_post_likes(db: Session, post_id: int) -> List[LikeOut]:
    likes = query_index(db, Like, "by_post", post_id=post_id).all()
    result = []
    for like in likes:
        user = db.get(User, like.user_id)
        result.append(LikeOut(
            id=like.id,
            post_id=like.post_id,
            user_id=like.user_id,
            created_at=like.created_at,
            user=LikeUser(id=user.id, name=user.name) if user else None,
        ))
    return result


def _create_comment_once(db: Session, post_id: int, user_id: int, content: str) -> Tuple[int, int]:
    with atomic(db):
        post = get_post_for_update(db, post_id)
        if post is None:
            raise NotFoundError("Post not found")

        comment = Comment(post_id=post_id, user_id=user_id, content=content)
        db.add(comment)
        post.comments_count = (post.comments_count or 0) + 1
        db.flush()
        return comment.id, post.version


def create_comment(db: Session, post_id: int, user_id: int, content: str) -> Tuple[int, int]:
    """Insert a comment and bump the post's counter; returns (comment id, new post version).

    A commenter that loses the post version race re-reads the post and tries once more.
    """
    return run_with_retry(_create_comment_once, db, post_id, user_id, content)


def _delete_comment_once(db: Session, comment_id: int, caller_id: int) -> Optional[int]:
    with atomic(db):
        comment = db.get(Comment, comment_id)
        if comment is None:
            raise NotFoundError("Comment not found")
        if comment.user_id != caller_id:
            raise ForbiddenError("Not authorized to delete this comment")

        post = get_post_for_update(db, comment.post_id)
        db.delete(comment)
        if post is None:
            return None
        post.comments_count = max(0, (post.comments_count or 0) - 1)
        db.flush()
        return post.version


def delete_comment(db: Session, comment_id: int, caller_id: int) -> Optional[int]:
    """Delete a comment and decrement the post's counter; returns the new post version."""
    return run_with_retry(_delete_comment_once, db, comment_id, caller_id)


def get_post_comments(db: Session, post_id: int) -> List[CommentOut]:
    comments = query_index(db, Comment, "by_post", order="desc", post_id=post_id).all()
    authors = AuthorCache(db)
    return [
        CommentOut(
            id=comment.id,
            post_id=comment.post_id,
            user_id=comment.user_id,
            content=comment.content,
            created_at=comment.created_at,
            author=authors.get(comment.user_id),
        )
        for comment in comments
    ]
