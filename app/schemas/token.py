from pydantic import BaseModel


class Identity(BaseModel):
    """Claims taken from an identity-provider session token."""
    external_id: str
