import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional
from urllib.parse import urlencode

import requests

from xspfsync.domain.errors import AuthorizationError


logger = logging.getLogger(__name__)

SPOTIFY_AUTHORIZE_URL = 'https://accounts.spotify.com/authorize'
SPOTIFY_TOKEN_URL = 'https://accounts.spotify.com/api/token'
GOOGLE_AUTHORIZE_URL = 'https://accounts.google.com/o/oauth2/auth'
GOOGLE_TOKEN_URL = 'https://oauth2.googleapis.com/token'


@dataclass(frozen=True)
class TokenGrant:
    """Tokens returned by an authorization code exchange."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    token_type: str = 'Bearer'
    scope: Optional[str] = None
    expires_at: Optional[float] = None


@dataclass(frozen=True)
class OAuthClient:
    """Authorization code flow client for one platform."""

    authorize_endpoint: str
    token_endpoint: str
    client_id: str
    client_secret: str
    redirect_uri: str
    scopes: List[str] = field(default_factory=list)
    extra_params: Dict[str, str] = field(default_factory=dict)
    timeout: int = 15

    def authorization_url(self) -> str:
        """Build the consent screen URL the user agent is redirected to."""
        params = {
            'client_id': self.client_id,
            'response_type': 'code',
            'redirect_uri': self.redirect_uri,
            'scope': ' '.join(self.scopes),
        }
        params.update(self.extra_params)
        return f"{self.authorize_endpoint}?{urlencode(params)}"

    def exchange_code(self, code: str) -> TokenGrant:
        """Exchange a one-time authorization code for tokens.

        Raises:
            AuthorizationError: If the exchange fails for any reason
        """
        data = {
            'grant_type': 'authorization_code',
            'code': code,
            'redirect_uri': self.redirect_uri,
            'client_id': self.client_id,
            'client_secret': self.client_secret,
        }

        try:
            response = requests.post(self.token_endpoint, data=data, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Token exchange error: {e}")
            raise AuthorizationError(f"Token exchange failed: {e}") from e

        if response.status_code != 200:
            logger.error(f"Token exchange failed: {response.status_code} - {response.text}")
            raise AuthorizationError(f"Token exchange failed with status {response.status_code}")

        try:
            tokens = response.json()
        except ValueError as e:
            raise AuthorizationError(f"Token endpoint returned invalid JSON: {e}") from e

        access_token = tokens.get('access_token')
        if not access_token:
            raise AuthorizationError("Token endpoint response has no access_token")

        expires_in = tokens.get('expires_in')
        return TokenGrant(
            access_token=access_token,
            refresh_token=tokens.get('refresh_token'),
            expires_in=expires_in,
            token_type=tokens.get('token_type', 'Bearer'),
            scope=tokens.get('scope'),
            expires_at=datetime.now().timestamp() + expires_in if expires_in else None,
        )
