from __future__ import annotations

import logging
from typing import AsyncGenerator, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from siteproof.core.logging import inspector_id_var
from siteproof.core.security import decode_token
from siteproof.core.settings import get_app_settings
from siteproof.db.session import get_async_session

logger = logging.getLogger(__name__)

# Bearer tokens come from the external identity service; missing tokens are allowed
# unless REQUIRE_AUTH is set.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)


# PUBLIC_INTERFACE
async def get_db_session(
    session: AsyncSession = Depends(get_async_session),
) -> AsyncGenerator[AsyncSession, None]:
    """Yield an AsyncSession scoped to the current request."""
    yield session


# PUBLIC_INTERFACE
async def get_current_inspector_id(token: Optional[str] = Depends(oauth2_scheme)) -> Optional[UUID]:
    """
    Resolve the inspector id from the Authorization bearer token.

    Returns:
        UUID of the inspector, or None when no token was sent and auth is optional.
    Raises:
        HTTPException: 401 when the token is invalid, lacks a UUID subject, or is
        missing while REQUIRE_AUTH is enabled.
    """
    if not token:
        if get_app_settings().REQUIRE_AUTH:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
        return None

    try:
        payload = decode_token(token)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    subject = payload.get("sub")
    try:
        inspector_id = UUID(str(subject))
    except (TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    inspector_id_var.set(str(inspector_id))
    return inspector_id
