from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import datetime
from typing import Optional
from app.schemas.user import AuthorOut
from app.schemas.storage import check_object_ref

MAX_CONTENT_LENGTH = 500


class PostCreate(BaseModel):
    content: str = Field("", max_length=MAX_CONTENT_LENGTH)
    # stored object id or literal URL
    image: Optional[str] = None

    check_image = field_validator("image")(check_object_ref)

    @model_validator(mode="after")
    def require_content_or_image(self):
        if not self.content.strip() and not (self.image and self.image.strip()):
            raise ValueError("A post needs text or an image")
        return self


class PostUpdate(BaseModel):
    content: str = Field(..., max_length=MAX_CONTENT_LENGTH)


class PostCreated(BaseModel):
    id: int


class PostOut(BaseModel):
    id: int
    user_id: int
    content: str
    image_url: Optional[str] = None
    created_at: datetime
    likes_count: int = 0
    comments_count: int = 0
    shares_count: int = 0
    version: int

    class Config:
        from_attributes = True


class PostWithAuthor(PostOut):
    author: Optional[AuthorOut] = None
