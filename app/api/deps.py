from typing import Any

from fastapi import Depends, Request, status
from fastapi.security import OAuth2PasswordBearer

from app.core.security import decode_access_token
from app.db.base import SessionLocal
from app.errors import AuthenticationError

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(request: Request, token: str = Depends(oauth2_scheme)) -> dict[str, Any]:
    """
    Return the verified claims of the caller's access token.

    Token errors raised by PyJWT are not caught here: the exception handlers
    turn them into the matching 401 response.
    """
    # Anything unexpected while authenticating is still reported as a 401
    request.state.response_status = status.HTTP_401_UNAUTHORIZED

    payload = decode_access_token(token)

    # Validate token type - must be "access" token, not password reset or other types
    if payload.get("type") != "access":
        raise AuthenticationError("Invalid token. Please log in again.")

    if payload.get("sub") is None:
        raise AuthenticationError("Invalid token. Please log in again.")

    del request.state.response_status
    return payload
