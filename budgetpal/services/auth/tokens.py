"""
Session tokens.

Sessions are signed JWTs (python-jose) carrying the user's id, name
and email. A token is valid until it expires or its id (`jti`) is
put on the revocation list by logout.
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID, uuid4

import structlog
from jose import ExpiredSignatureError, JWTError, jwt

from budgetpal.config.settings import AuthSettings
from budgetpal.models.expense import UserIdentity
from budgetpal.models.session import AuthContext, Session

logger = structlog.get_logger(__name__)


class SessionRevocationList:
    """
    Ids of logged-out sessions.

    Entries are dropped once the token they name has expired anyway.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._revoked: dict[str, datetime] = {}

    def _prune(self, now: datetime) -> None:
        expired = [jti for jti, expires_at in self._revoked.items() if expires_at <= now]
        for jti in expired:
            del self._revoked[jti]

    def revoke(self, session_id: str, expires_at: datetime) -> None:
        now = datetime.now(timezone.utc)
        with self._lock:
            self._prune(now)
            if expires_at > now:
                self._revoked[session_id] = expires_at

    def is_revoked(self, session_id: str) -> bool:
        with self._lock:
            self._prune(datetime.now(timezone.utc))
            return session_id in self._revoked

    def __len__(self) -> int:
        with self._lock:
            return len(self._revoked)


class SessionTokenService:
    """Issues, decodes and revokes session tokens."""

    def __init__(
        self,
        settings: AuthSettings,
        revocations: Optional[SessionRevocationList] = None,
    ):
        self.settings = settings
        self.revocations = revocations or SessionRevocationList()

    def issue(self, user: UserIdentity) -> Session:
        """Sign a new session token for `user`."""
        issued_at = datetime.now(timezone.utc).replace(microsecond=0)
        expires_at = issued_at + timedelta(minutes=self.settings.session_ttl_minutes)
        session_id = uuid4().hex

        claims = {
            "sub": str(user.id),
            "name": user.name,
            "email": user.email,
            "jti": session_id,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        token = jwt.encode(claims, self.settings.secret_key, algorithm=self.settings.algorithm)

        return Session(
            session_id=session_id,
            token=token,
            user=user,
            issued_at=issued_at,
            expires_at=expires_at,
        )

    def decode(self, token: Optional[str]) -> AuthContext:
        """
        Turn a token into an auth context.

        Missing, malformed, tampered, expired and revoked tokens all
        resolve to the anonymous context.
        """
        if not token:
            return AuthContext.anonymous()

        try:
            claims = jwt.decode(
                token,
                self.settings.secret_key,
                algorithms=[self.settings.algorithm],
            )
        except ExpiredSignatureError:
            logger.info("session_expired")
            return AuthContext.anonymous()
        except JWTError as e:
            logger.warning("session_token_rejected", error=str(e))
            return AuthContext.anonymous()

        session_id = claims.get("jti")
        if not session_id or self.revocations.is_revoked(session_id):
            return AuthContext.anonymous()

        try:
            user = UserIdentity(
                id=UUID(str(claims.get("sub"))),
                name=claims.get("name"),
                email=claims.get("email"),
            )
            expires_at = datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("session_claims_invalid", error=str(e))
            return AuthContext.anonymous()

        return AuthContext(user=user, session_id=session_id, expires_at=expires_at)

    def revoke(self, session_id: str, expires_at: datetime) -> None:
        """Invalidate a session before it expires."""
        self.revocations.revoke(session_id, expires_at)
