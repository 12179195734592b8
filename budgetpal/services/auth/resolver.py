"""Per-request session resolution."""

from budgetpal.models.session import AuthContext, RequestContext
from budgetpal.services.auth.tokens import SessionTokenService


class SessionResolver:
    """
    Derives the AuthContext for a request from its session token.

    Identity comes from the signed token alone; the user table is not
    consulted.
    """

    def __init__(self, tokens: SessionTokenService):
        self._tokens = tokens

    def resolve(self, request: RequestContext) -> AuthContext:
        return self._tokens.decode(request.session_token)
