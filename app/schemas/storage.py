import re
from pydantic import BaseModel, StringConstraints
from typing import Annotated, Optional

# opaque object ids are uuid4 hex strings
StorageId = Annotated[str, StringConstraints(pattern=r"^[0-9a-f]{32}$")]


class UploadTicket(BaseModel):
    uploadUrl: str
    storageId: str


class UploadResult(BaseModel):
    storageId: str


class StorageUrl(BaseModel):
    url: Optional[str] = None


def check_object_ref(value: Optional[str]) -> Optional[str]:
    """Accept a literal http(s) URL or a well-formed stored object id."""
    if value is None or not value.strip():
        return None
    value = value.strip()
    if value.lower().startswith(("http://", "https://")):
        return value
    if not re.fullmatch(r"[0-9a-f]{32}", value):
        raise ValueError("must be a storage id or an http(s) URL")
    return value
