from pydantic import BaseModel, Field, PositiveInt
from datetime import datetime
from typing import Optional
from app.schemas.user import AuthorOut


class CommentCreate(BaseModel):
    post_id: PositiveInt
    content: str = Field(..., min_length=1)


class CommentCreated(BaseModel):
    id: int
    post_version: int


class CommentDeleted(BaseModel):
    post_version: Optional[int] = None


class CommentOut(BaseModel):
    id: int
    post_id: int
    user_id: int
    content: str
    created_at: datetime
    author: Optional[AuthorOut] = None

    class Config:
        from_attributes = True
