"""OAuth redirect building and callback parsing."""

from __future__ import annotations

import logging
from typing import Dict, Optional
from urllib.parse import parse_qs, urlencode, urlsplit

from ..errors import AdapterError, ConfigurationError
from ..models import OAuthCallback

logger = logging.getLogger(__name__)

DEFAULT_SCOPE = "openid"

OAUTH_AUTH_URLS: Dict[str, str] = {
    "google": "https://accounts.google.com/o/oauth2/v2/auth",
    "facebook": "https://www.facebook.com/v18.0/dialog/oauth",
    "twitch": "https://id.twitch.tv/oauth2/authorize",
    "apple": "https://appleid.apple.com/auth/authorize",
    "custom": "",
}


class OAuthProvider:
    """Builds authorization URLs for an OpenID Connect provider."""

    def __init__(
        self,
        name: str,
        client_id: str,
        redirect_uri: str,
        auth_url: Optional[str] = None,
        scope: Optional[str] = None,
    ) -> None:
        if name not in OAUTH_AUTH_URLS:
            raise ConfigurationError(f"Invalid provider: {name}")
        self.name = name
        self.client_id = client_id
        self.redirect_uri = redirect_uri
        self.auth_url = auth_url or OAUTH_AUTH_URLS[name]
        self.scope = scope or DEFAULT_SCOPE
        if not self.auth_url:
            raise ConfigurationError(f"Provider {name!r} requires an explicit auth URL")

    def build_auth_url(self, nonce: str, state: Optional[str] = None) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "id_token",
            "scope": self.scope,
            "nonce": nonce,
        }
        if state:
            params["state"] = state

        if self.name == "apple":
            params["response_mode"] = "form_post"
        elif self.name == "facebook":
            params["response_type"] = "code id_token"

        return f"{self.auth_url}?{urlencode(params)}"


def _first(params: Dict[str, list], name: str) -> Optional[str]:
    values = params.get(name)
    return values[0] if values else None


def parse_callback(url: str) -> OAuthCallback:
    """Read callback parameters, preferring the fragment over the query."""
    parts = urlsplit(url)
    fragment = parse_qs(parts.fragment)
    query = parse_qs(parts.query)

    def pick(name: str) -> Optional[str]:
        return _first(fragment, name) or _first(query, name)

    return OAuthCallback(
        id_token=pick("id_token"),
        access_token=pick("access_token"),
        state=pick("state"),
        error=pick("error"),
    )


def validate_callback(callback: OAuthCallback) -> str:
    """Return the id token, raising if the provider reported an error."""
    if callback.error:
        raise AdapterError(f"OAuth error: {callback.error}")
    if not callback.id_token:
        raise AdapterError("No id_token received from OAuth provider")
    return callback.id_token
