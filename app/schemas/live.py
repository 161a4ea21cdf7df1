from pydantic import BaseModel, Field, PositiveInt
from typing import Any, Dict, Optional
from app.schemas.storage import StorageId


class NoArgs(BaseModel):
    model_config = {"extra": "forbid"}


class UserPostsArgs(BaseModel):
    user_id: PositiveInt


class PostArgs(BaseModel):
    post_id: PositiveInt


class PostUserArgs(BaseModel):
    post_id: PositiveInt
    user_id: PositiveInt


class ExternalIdArgs(BaseModel):
    external_id: str = Field(..., min_length=1)


class StorageIdArgs(BaseModel):
    storage_id: StorageId


class ClientMessage(BaseModel):
    """Frame sent by a client over the live-query socket."""
    type: str
    id: str = Field(..., min_length=1)
    query: Optional[str] = None
    args: Dict[str, Any] = {}
