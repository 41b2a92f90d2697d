"""
Caller identity and the owner-or-admin authorization rule.

Tokens are signed JWTs whose ``sub`` claim carries the username.  Role
membership is not trusted from the token; it is read from the database
when the identity is resolved (see ``blog.dependencies``).
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from blog.config import settings
from blog.models import Article


@dataclass(frozen=True)
class CallerIdentity:
    """The authenticated caller, passed explicitly into every service call."""

    user_id: int
    username: str
    roles: frozenset[str] = field(default_factory=frozenset)

    def has_role(self, role: str) -> bool:
        return role in self.roles

    @property
    def is_admin(self) -> bool:
        return self.has_role(settings.ADMIN_ROLE)


def create_access_token(username: str, expires_delta: Optional[timedelta] = None) -> str:
    """Return a signed token identifying *username*."""
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode: Dict[str, Any] = {"sub": username, "iat": now, "exp": expire}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[str]:
    """Return the username carried by *token*, or None if it is invalid or expired."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    username = payload.get("sub")
    if not isinstance(username, str) or not username:
        return None
    return username


def is_authorized_to_edit(identity: CallerIdentity | None, article: Article) -> bool:
    """
    True when *identity* holds the admin role or authored *article*.

    Anonymous callers are never authorized.  *article* must have its
    ``author`` relationship loaded.
    """
    if identity is None:
        return False
    return identity.is_admin or article.is_author(identity.username)
