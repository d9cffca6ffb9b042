"""
Bearer token extraction.

Tokens are opaque to the gateway; they are only forwarded to the YouTube Data API.
"""
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.exceptions import AuthError

bearer_scheme = HTTPBearer(auto_error=False)


async def optional_access_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[str]:
    if credentials is None or not credentials.credentials.strip():
        return None
    return credentials.credentials.strip()


async def current_access_token(
    token: Optional[str] = Depends(optional_access_token),
) -> str:
    if token is None:
        raise AuthError("Authorization header with a Bearer access token is required.")
    return token
