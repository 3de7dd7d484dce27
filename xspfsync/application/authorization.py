import logging
from enum import Enum
from typing import Any, Optional, Protocol

from xspfsync.domain.errors import AuthorizationError
from xspfsync.infrastructure.oauth import OAuthClient


logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    """Narrow view of a per-user session (Flask's session satisfies it)."""

    def get(self, key: str, default: Any = None) -> Any: ...

    def __setitem__(self, key: str, value: Any) -> None: ...

    def pop(self, key: str, default: Any = None) -> Any: ...


class AuthState(str, Enum):
    """Authorization states of one platform within a user session."""

    ANONYMOUS = "anonymous"
    AWAITING_CALLBACK = "awaiting_callback"
    AUTHORIZED = "authorized"


class AuthorizationFlow:
    """Redirect based OAuth handshake for one platform and one user session.

    The pending target is a saved continuation: it is written before the user
    agent leaves for the consent screen and consumed exactly once when the
    callback comes back.
    """

    def __init__(self, platform: str, oauth_client: OAuthClient, session: SessionStore):
        """Initialize the flow.

        Args:
            platform: Platform slug, used to namespace session keys
            oauth_client: Client for the platform's authorization server
            session: Session of the current user
        """
        self.platform = platform
        self.oauth_client = oauth_client
        self.session = session

        self.token_key = f"{platform}_access_token"
        self.pending_key = f"{platform}_pending_target"
        self.awaiting_key = f"{platform}_awaiting_callback"

    @property
    def state(self) -> AuthState:
        if self.session.get(self.token_key):
            return AuthState.AUTHORIZED
        if self.session.get(self.awaiting_key):
            return AuthState.AWAITING_CALLBACK
        return AuthState.ANONYMOUS

    @property
    def access_token(self) -> Optional[str]:
        return self.session.get(self.token_key)

    @property
    def pending_target(self) -> Optional[str]:
        return self.session.get(self.pending_key)

    def login_url(self, target: Optional[str] = None) -> str:
        """Remember the target (if any) and return the consent screen URL.

        A login without a target drops whatever an earlier, abandoned login
        left pending.
        """
        if target:
            self.session[self.pending_key] = target
        else:
            self.session.pop(self.pending_key, None)
        self.session[self.awaiting_key] = True
        logger.info(f"Redirecting to {self.platform} authorization"
                    f"{' with pending target' if target else ''}")
        return self.oauth_client.authorization_url()

    def complete(self, code: str) -> Optional[str]:
        """Handle the callback's one-time code.

        Args:
            code: Authorization code from the callback query string

        Returns:
            The pending target to resume, or None when the user has to be
            prompted for one. The target is cleared once returned.

        Raises:
            AuthorizationError: If the code is missing or the exchange fails
        """
        # The callback consumes the handshake whether or not the exchange succeeds
        self.session.pop(self.awaiting_key, None)
        target = self.session.pop(self.pending_key, None)

        if not code:
            raise AuthorizationError("Missing authorization code")

        grant = self.oauth_client.exchange_code(code)
        self.session[self.token_key] = grant.access_token
        logger.info(f"Stored {self.platform} access token")

        if target:
            logger.info(f"Resuming pending {self.platform} synchronization")
        return target

    def require_token(self) -> str:
        """Return the stored access token.

        Raises:
            AuthorizationError: If the session holds no token
        """
        token = self.access_token
        if not token:
            raise AuthorizationError(f"Not logged in to {self.platform}")
        return token

    def abort(self) -> None:
        """Abandon the handshake after the authorization server reported an error."""
        self.session.pop(self.awaiting_key, None)
        self.session.pop(self.pending_key, None)
        logger.info(f"{self.platform} authorization aborted")

    def forget(self) -> None:
        """Drop the token and any pending target (explicit logout)."""
        self.session.pop(self.token_key, None)
        self.session.pop(self.pending_key, None)
        self.session.pop(self.awaiting_key, None)
