"""
Session and authorization context models.

A `Session` is what login hands back. An `AuthContext` is what the
session resolver produces once per request and what every protected
operation receives.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from budgetpal.errors import Unauthenticated
from budgetpal.models.expense import UserIdentity


class RequestContext(BaseModel):
    """What the session resolver needs from an incoming request."""
    model_config = ConfigDict(frozen=True)

    session_token: Optional[str] = Field(
        default=None,
        repr=False,
        description="Session token from the cookie or Authorization header"
    )


class Session(BaseModel):
    """An issued session bound to one user."""
    model_config = ConfigDict(frozen=True)

    session_id: str = Field(..., description="Token id (jti)")
    token: str = Field(..., repr=False, description="Signed session token")
    user: UserIdentity
    issued_at: datetime
    expires_at: datetime

    def request_context(self) -> RequestContext:
        """A request context carrying this session's token."""
        return RequestContext(session_token=self.token)


class AuthContext(BaseModel):
    """
    Resolved identity for one request.

    Anonymous when `user` is None.
    """
    model_config = ConfigDict(frozen=True)

    user: Optional[UserIdentity] = None
    session_id: Optional[str] = None
    expires_at: Optional[datetime] = None

    @classmethod
    def anonymous(cls) -> "AuthContext":
        return cls()

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def user_id(self) -> Optional[UUID]:
        return self.user.id if self.user else None

    def require_user(self) -> UserIdentity:
        """Return the user or raise `Unauthenticated`."""
        if self.user is None:
            raise Unauthenticated()
        return self.user
