from jose import jwt, JWTError
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
from sqlalchemy.orm import Session

from app.core import config
from app.core.errors import NotFoundError, UnauthenticatedError
from app.crud import users as crud_users
from app.db.models.user import User
from app.db.session import get_db
from app.schemas.token import Identity

bearer_scheme = HTTPBearer(auto_error=False)


def verify_token(token: str) -> Identity:
    """Decode an identity-provider session token.

    Signature and expiry are checked with the provider's public key; the
    claims themselves are trusted as-is.
    """
    if not config.AUTH_PUBLIC_KEY:
        raise UnauthenticatedError("Authentication is not configured")
    try:
        payload = jwt.decode(
            token,
            config.AUTH_PUBLIC_KEY,
            algorithms=config.AUTH_ALGORITHMS,
            audience=config.AUTH_AUDIENCE,
            issuer=config.AUTH_ISSUER,
            options={"verify_aud": bool(config.AUTH_AUDIENCE)},
        )
    except JWTError:
        raise UnauthenticatedError("Could not validate credentials")

    external_id: str = payload.get("sub")
    if not external_id:
        raise UnauthenticatedError("Could not validate credentials")
    return Identity(external_id=external_id)


def get_identity(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> Identity:
    if credentials is None or not credentials.credentials:
        raise UnauthenticatedError("Not authenticated")
    return verify_token(credentials.credentials)


def get_current_user(identity: Identity = Depends(get_identity), db: Session = Depends(get_db)) -> User:
    user = crud_users.get_by_external_id(db, identity.external_id)
    if user is None:
        # signed in with the provider but /api/auth/sync has not run yet
        raise NotFoundError("User not found")
    return user
