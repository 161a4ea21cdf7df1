import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.errors import ForbiddenError, NotFoundError
from app.crud.users import AuthorCache
from app.db.indexes import query_index
from app.db.models.comment import Comment
from app.db.models.like import Like
from app.db.models.post import Post
from app.db.session import atomic, record_change, run_with_retry
from app.schemas.post import PostOut, PostWithAuthor
from app.storage import object_store
from app.storage.refs import ObjectRef

logger = logging.getLogger(__name__)


def get_post_for_update(db: Session, post_id: int) -> Optional[Post]:
    """Re-read a post inside the current unit, row-locked where the database supports it."""
    return db.query(Post).filter(Post.id == post_id).with_for_update().populate_existing().first()


def _owned_post(db: Session, post_id: int, caller_id: int) -> Post:
    post = get_post_for_update(db, post_id)
    if post is None:
        raise NotFoundError("Post not found")
    if post.user_id != caller_id:
        raise ForbiddenError("Not authorized to modify this post")
    return post


def create(db: Session, user_id: int, content: str, image: Optional[ObjectRef] = None) -> int:
    # Callers make sure content is non-empty when there is no image.
    with atomic(db):
        post = Post(
            user_id=user_id,
            content=content,
            likes_count=0,
            comments_count=0,
            shares_count=0,
        )
        post.image_ref = image
        db.add(post)
        db.flush()
        return post.id


def _update_once(db: Session, post_id: int, content: str, caller_id: int) -> int:
    with atomic(db):
        post = _owned_post(db, post_id, caller_id)
        post.content = content
        db.flush()
        return post.version


def update(db: Session, post_id: int, content: str, caller_id: int) -> int:
    # counters on the same row may move concurrently; the version check catches it
    return run_with_retry(_update_once, db, post_id, content, caller_id)


def _delete_rows(db: Session, post_id: int, caller_id: int):
    with atomic(db):
        post = _owned_post(db, post_id, caller_id)
        image = post.image_ref

        likes = db.query(Like).filter(Like.post_id == post_id).delete(synchronize_session=False)
        record_change(db, Like.__tablename__, post_id=post_id)
        comments = db.query(Comment).filter(Comment.post_id == post_id).delete(synchronize_session=False)
        record_change(db, Comment.__tablename__, post_id=post_id)
        db.delete(post)
    return image, likes, comments


def delete(db: Session, post_id: int, caller_id: int) -> None:
    """Delete a post with its likes and comments in one unit, then drop its image.

    The image goes after commit: a failed blob delete must never keep the post
    alive, and a crash between the two only leaves an unreachable blob.
    """
    image, likes, comments = run_with_retry(_delete_rows, db, post_id, caller_id)
    logger.info(f"Deleted post {post_id} with {likes} likes and {comments} comments")
    object_store.delete_ref(db, image)


def _increment_share_once(db: Session, post_id: int) -> None:
    with atomic(db):
        post = get_post_for_update(db, post_id)
        if post is None:
            # sharing is not safety-critical, a vanished post is fine
            return
        post.shares_count = (post.shares_count or 0) + 1


def increment_share_count(db: Session, post_id: int) -> None:
    run_with_retry(_increment_share_once, db, post_id)


def _post_out(db: Session, post: Post, model=PostOut, **extra):
    return model(
        id=post.id,
        user_id=post.user_id,
        content=post.content,
        image_url=object_store.resolve_ref(db, post.image_ref),
        created_at=post.created_at,
        likes_count=post.likes_count or 0,
        comments_count=post.comments_count or 0,
        shares_count=post.shares_count or 0,
        version=post.version,
        **extra,
    )


def get_all_posts(db: Session) -> List[PostWithAuthor]:
    posts = query_index(db, Post, "by_created_at", order="desc").all()
    authors = AuthorCache(db)
    return [
        _post_out(db, post, PostWithAuthor, author=authors.get(post.user_id))
        for post in posts
    ]


def get_user_posts(db: Session, user_id: int) -> List[PostOut]:
    posts = query_index(db, Post, "by_user", order="desc", user_id=user_id).all()
    return [_post_out(db, post) for post in posts]
