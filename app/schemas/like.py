from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class LikeToggleOut(BaseModel):
    liked: bool


class LikeUser(BaseModel):
    id: int
    name: str


class LikeOut(BaseModel):
    id: int
    post_id: int
    user_id: int
    created_at: datetime
    user: Optional[LikeUser] = None

    class Config:
        from_attributes = True
