"""OAuth2 helpers for the Google Drive API.

This module provides:
- create_flow / build_authorize_url: Consent step of the installed-app flow
- exchange_code: Trade an authorization code for tokens
- to_google_credentials / from_google_credentials: Convert stored tokens
- refresh_credentials: Obtain a fresh access token from a refresh token

Token handling is delegated to google-auth; the stored form stays the plain
token dictionary of the config file.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import requests
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from oauthlib.oauth2.rfc6749.errors import OAuth2Error

from driveuploader.core.config import OAuthCredentials

if TYPE_CHECKING:
    from google.auth.transport import Request as AuthRequest

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
DRIVE_SCOPE = "https://www.googleapis.com/auth/drive.file"
SCOPES = [DRIVE_SCOPE]
DEFAULT_REDIRECT_URI = "http://localhost"


class TokenError(Exception):
    """The token endpoint rejected the request."""


def create_flow(
    client_id: str,
    client_secret: str,
    redirect_uri: str = DEFAULT_REDIRECT_URI,
) -> Flow:
    """Create the authorization flow for a desktop OAuth client.

    The same flow must be used for the authorize URL and the code exchange.

    Args:
        client_id: OAuth client id.
        client_secret: OAuth client secret.
        redirect_uri: Redirect URI registered for the client.

    Returns:
        Configured google-auth-oauthlib Flow.
    """
    client_config = {
        "installed": {
            "client_id": client_id,
            "client_secret": client_secret,
            "auth_uri": AUTHORIZE_URL,
            "token_uri": TOKEN_URL,
            "redirect_uris": [redirect_uri],
        }
    }
    return Flow.from_client_config(client_config, scopes=SCOPES, redirect_uri=redirect_uri)


def build_authorize_url(flow: Flow) -> str:
    """Get the consent URL for offline Drive access."""
    url, _state = flow.authorization_url(access_type="offline", prompt="consent")
    return str(url)


def exchange_code(flow: Flow, code: str) -> OAuthCredentials:
    """Exchange an authorization code for tokens.

    Raises:
        TokenError: If the code is rejected or the endpoint is unreachable.
    """
    try:
        flow.fetch_token(code=code)
    except (OAuth2Error, requests.RequestException) as e:
        raise TokenError(f"Token request rejected: {e}") from e
    return from_google_credentials(flow.credentials)


def to_google_credentials(
    credentials: OAuthCredentials,
    client_id: str,
    client_secret: str,
) -> Credentials:
    """Build google-auth credentials from the stored tokens."""
    expiry = None
    if credentials.expiry_date is not None:
        # google-auth compares naive UTC datetimes
        expiry = datetime.fromtimestamp(credentials.expiry_date / 1000, UTC).replace(
            tzinfo=None
        )
    return Credentials(
        token=credentials.access_token,
        refresh_token=credentials.refresh_token,
        token_uri=TOKEN_URL,
        client_id=client_id,
        client_secret=client_secret,
        scopes=credentials.scope.split() if credentials.scope else None,
        expiry=expiry,
    )


def from_google_credentials(credentials: Credentials) -> OAuthCredentials:
    """Convert google-auth credentials to the stored token form."""
    expiry_date = None
    if credentials.expiry is not None:
        expiry_date = int(credentials.expiry.replace(tzinfo=UTC).timestamp() * 1000)
    return OAuthCredentials(
        access_token=credentials.token,
        refresh_token=credentials.refresh_token,
        expiry_date=expiry_date,
        scope=" ".join(credentials.scopes) if credentials.scopes else None,
    )


def refresh_google_credentials(
    credentials: Credentials,
    request: AuthRequest | None = None,
) -> None:
    """Refresh google-auth credentials in place.

    Args:
        credentials: Credentials carrying a refresh token.
        request: google-auth transport (default: a requests-based one).

    Raises:
        TokenError: If there is no refresh token or the refresh is rejected.
    """
    if not credentials.refresh_token:
        raise TokenError("Refresh token is missing")

    logger.debug("Refreshing the access token")
    try:
        credentials.refresh(request or Request())
    except GoogleAuthError as e:
        raise TokenError(str(e)) from e


def refresh_credentials(
    client_id: str,
    client_secret: str,
    credentials: OAuthCredentials,
    request: AuthRequest | None = None,
) -> OAuthCredentials:
    """Get a new access token using the stored refresh token.

    The refresh token is kept when Google does not return a new one.

    Raises:
        TokenError: If there is no refresh token or the refresh is rejected.
    """
    google_credentials = to_google_credentials(credentials, client_id, client_secret)
    refresh_google_credentials(google_credentials, request)
    return from_google_credentials(google_credentials)
