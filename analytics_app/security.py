"""
Bearer/cookie token validation for the protected report endpoints.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from analytics_app.config import settings


class AuthenticatedUser(BaseModel):
    """Identity carried by a valid access token"""
    id: str
    email: Optional[str] = None


# auto_error=False: the token may come from the cookie instead
bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(subject: str, expires_delta: timedelta = timedelta(hours=1), **claims) -> str:
    """Issue a signed access token for subject"""
    payload = {
        **claims,
        "sub": subject,
        "exp": datetime.now(timezone.utc) + expires_delta,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> AuthenticatedUser:
    """
    Validate the access token and return the authenticated user.
    
    The cookie is checked first, then the Authorization header.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    
    token = request.cookies.get(settings.access_token_cookie)
    if not token and credentials:
        token = credentials.credentials
    if not token:
        raise credentials_exception
    
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise credentials_exception
    
    user_id = payload.get("sub")
    if not user_id:
        raise credentials_exception
    
    return AuthenticatedUser(id=str(user_id), email=payload.get("email"))
