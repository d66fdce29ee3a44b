from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .settings import get_settings

_security = HTTPBearer(auto_error=False)


# PUBLIC_INTERFACE
def resolve_owner(creds: Optional[HTTPAuthorizationCredentials] = Depends(_security)) -> str:
    """
    FastAPI dependency returning the owner id every task operation is scoped to.

    Behavior depends on settings.owner_strategy:
    - 'fixed' (default): every caller is settings.default_owner; any Authorization header is ignored.
    - 'bearer': the bearer credential issued by the identity provider is the owner id.
      A missing or blank credential raises 401 with WWW-Authenticate: Bearer.

    Usage:
        @router.get("", ...)
        def list_tasks(owner: str = Depends(resolve_owner)) ...
    """
    settings = get_settings()
    if settings.owner_strategy != "bearer":
        return settings.default_owner

    if creds is None or not creds.credentials.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return creds.credentials.strip()
