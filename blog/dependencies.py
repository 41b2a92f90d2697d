import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from blog.config import settings
from blog.database import get_db
from blog.models import User
from blog.security import CallerIdentity, decode_access_token

logger = logging.getLogger(__name__)

# Token issuance belongs to the identity provider; this app only reads tokens.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/Account/Login", auto_error=False)


async def get_access_token(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
) -> Optional[str]:
    """Return the bearer token, falling back to the access-token cookie."""
    if token:
        return token
    return request.cookies.get(settings.ACCESS_TOKEN_COOKIE_NAME)


async def get_current_identity(
    token: Optional[str] = Depends(get_access_token),
    db: AsyncSession = Depends(get_db),
) -> Optional[CallerIdentity]:
    """
    Resolve the caller from the request token.

    Returns None for anonymous requests, invalid tokens, and tokens naming
    a user that no longer exists.  No query is issued without a token.
    """
    if not token:
        return None

    username = decode_access_token(token)
    if username is None:
        logger.info("Rejected invalid or expired access token")
        return None

    result = await db.execute(
        select(User).where(User.username == username).options(selectinload(User.roles))
    )
    user = result.scalar_one_or_none()
    if user is None:
        logger.warning("Access token names unknown user %r", username)
        return None

    return CallerIdentity(
        user_id=user.id,
        username=user.username,
        roles=frozenset(role.name for role in user.roles),
    )


async def require_identity(
    identity: Optional[CallerIdentity] = Depends(get_current_identity),
) -> CallerIdentity:
    """Reject the request with 401 unless the caller is authenticated."""
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity


async def require_admin(
    identity: CallerIdentity = Depends(require_identity),
) -> CallerIdentity:
    """Reject the request with 403 unless the caller holds the admin role."""
    if not identity.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator role required",
        )
    return identity
