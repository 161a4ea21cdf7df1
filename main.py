import logging
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from app.api.v1 import auth, user
from app.core import config
from app.core.errors import FeedError, feed_error_handler, request_validation_handler
from app.db.base import Base
from app.db.session import engine
# tables are created from whatever models are imported
from app.db.models import comment as comment_model, like as like_model, post as post_model, stored_object, user as user_model  # noqa: F401
from app.routers import post
from app.routers import like
from app.routers import comment
from app.routers import storage
from app.routers import live

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

Base.metadata.create_all(bind=engine)

app = FastAPI(title="feedhub")

app.add_exception_handler(FeedError, feed_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)

app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
app.include_router(user.router, prefix="/api/users", tags=["Users"])
app.include_router(storage.router, prefix="/api/storage", tags=["Storage"])
app.include_router(post.router, prefix="/api/posts", tags=["Posts"])
app.include_router(like.router, prefix="/api/likes", tags=["Likes"])
app.include_router(comment.router, prefix="/api/comments", tags=["Comments"])
app.include_router(live.router, prefix="/api/live", tags=["Live"])
