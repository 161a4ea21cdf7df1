from pydantic import BaseModel, EmailStr, Field, field_validator
from datetime import datetime
from typing import Optional
from app.schemas.storage import check_object_ref


class UserSync(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    # stored object id or literal URL
    avatar: Optional[str] = None

    check_avatar = field_validator("avatar")(check_object_ref)


class AvatarUpdate(BaseModel):
    avatar: str = Field(..., min_length=1)

    @field_validator("avatar")
    @classmethod
    def check_avatar(cls, value):
        # a blank reference would wipe the avatar and drop its blob
        value = check_object_ref(value)
        if value is None:
            raise ValueError("avatar must not be blank")
        return value


class UserSyncOut(BaseModel):
    user_id: int


class AuthorOut(BaseModel):
    id: int
    name: str
    avatar: Optional[str] = None


class UserOut(BaseModel):
    id: int
    external_id: str
    name: str
    email: str
    avatar: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
