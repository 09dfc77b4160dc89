"""
Access token held for a platform connection.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional

from pydantic import BaseModel, Field

_READONLY_SUFFIX = ".readonly"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccessToken(BaseModel):
    """Bearer token with the scopes it was granted and its expiry."""

    token: Optional[str] = Field(None, description="Bearer token string.")
    scopes: List[str] = Field(default_factory=list)
    expires_at: Optional[datetime] = Field(
        None, description="UTC instant after which the token must not be used."
    )
    created_at: datetime = Field(default_factory=_utcnow)

    def is_expired(self) -> bool:
        return self.expires_at is not None and self.expires_at <= _utcnow()

    def has_scope(self, scope: str = "") -> bool:
        """True if the token is live and covers ``scope`` (or any scope if none given)."""
        if not self.token or self.is_expired():
            return False
        if not scope or not self.scopes:
            return True
        parent = scope[: -len(_READONLY_SUFFIX)] if scope.endswith(_READONLY_SUFFIX) else scope
        return scope in self.scopes or parent in self.scopes

    def expire(self) -> None:
        """Force reacquisition on next use."""
        self.expires_at = _utcnow()

    def assign(self, token: str, scopes: List[str], expires_in: int) -> None:
        self.token = token
        self.scopes = list(scopes)
        self.expires_at = _utcnow() + timedelta(seconds=expires_in)

    def reset(self) -> None:
        self.token = None
        self.scopes = []
        self.expires_at = None


__all__ = ["AccessToken"]
