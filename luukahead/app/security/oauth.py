# luukahead/app/security/oauth.py
"""
OAuth 2.0 authorization-code + PKCE providers.

Each provider implements the same four capabilities:

- authorization_url(state, code_verifier)  -> where to send the browser
- exchange_code(code, code_verifier)       -> access token
- fetch_profile(access_token)              -> raw profile JSON
- extract_identity(profile)                -> ProviderIdentity

so the login routes and the account linker are written once for all
providers.
"""
import base64
import hashlib
import logging
import secrets
from typing import Any, Dict, Optional, Sequence
from urllib.parse import urlencode

import httpx

from luukahead.app.core.config import Settings
from luukahead.app.schemas.auth import ProviderIdentity

logger = logging.getLogger(__name__)


class OAuthError(Exception):
    """Token exchange or profile fetch failed."""
    pass


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def generate_state() -> str:
    return _b64url(secrets.token_bytes(32))


def generate_code_verifier() -> str:
    # 43 characters, the RFC 7636 minimum length
    return _b64url(secrets.token_bytes(32))


def code_challenge(code_verifier: str) -> str:
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return _b64url(digest)


class OAuthProvider:
    """Base class; subclasses set the endpoints and profile mapping."""

    name: str = ""
    # User column holding this provider's account id
    id_field: str = ""
    authorize_endpoint: str = ""
    token_endpoint: str = ""
    profile_endpoint: str = ""
    scopes: Sequence[str] = ()

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.redirect_uri)

    @property
    def state_cookie(self) -> str:
        return f"{self.name}_oauth_state"

    @property
    def verifier_cookie(self) -> str:
        return f"{self.name}_code_verifier"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def authorization_url(self, state: str, code_verifier: str) -> str:
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(self.scopes),
            "state": state,
            "code_challenge": code_challenge(code_verifier),
            "code_challenge_method": "S256",
        }
        return f"{self.authorize_endpoint}?{urlencode(params)}"

    async def exchange_code(self, code: str, code_verifier: str) -> str:
        """
        Exchange an authorization code for an access token.

        Raises:
            OAuthError: on transport errors, non-2xx responses, or a
                response without an access_token
        """
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "code_verifier": code_verifier,
        }
        try:
            async with self._client() as client:
                response = await client.post(
                    self.token_endpoint,
                    data=data,
                    headers={"Accept": "application/json"},
                )
                response.raise_for_status()
                token_data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("%s token exchange error: %s", self.name, e)
            raise OAuthError(f"Failed to exchange code for token: {e}") from e

        access_token = token_data.get("access_token") if isinstance(token_data, dict) else None
        if not access_token:
            raise OAuthError("No access token in response")
        return access_token

    async def fetch_profile(self, access_token: str) -> Dict[str, Any]:
        try:
            async with self._client() as client:
                response = await client.get(
                    self.profile_endpoint,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                response.raise_for_status()
                profile = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("%s profile fetch error: %s", self.name, e)
            raise OAuthError(f"Failed to fetch profile: {e}") from e

        if not isinstance(profile, dict):
            raise OAuthError("Profile response is not an object")
        return profile

    def extract_identity(self, profile: Dict[str, Any]) -> ProviderIdentity:
        raise NotImplementedError


class GoogleProvider(OAuthProvider):
    name = "google"
    id_field = "google_id"
    authorize_endpoint = "https://accounts.google.com/o/oauth2/v2/auth"
    token_endpoint = "https://oauth2.googleapis.com/token"
    profile_endpoint = "https://openidconnect.googleapis.com/v1/userinfo"
    scopes = ("openid", "profile", "email")

    def extract_identity(self, profile: Dict[str, Any]) -> ProviderIdentity:
        sub = profile.get("sub")
        if not sub:
            raise OAuthError("Google profile has no subject id")
        return ProviderIdentity(
            provider_id=str(sub),
            email=profile.get("email") or None,
            display_name=profile.get("name") or None,
        )


class MicrosoftProvider(OAuthProvider):
    name = "microsoft"
    id_field = "microsoft_id"
    profile_endpoint = "https://graph.microsoft.com/v1.0/me"
    # Graph API scope, not an OpenID scope
    scopes = ("User.Read",)

    def __init__(self, client_id: str, client_secret: str, redirect_uri: str,
                 tenant: str = "common", **kwargs):
        super().__init__(client_id, client_secret, redirect_uri, **kwargs)
        self.tenant = tenant
        base = f"https://login.microsoftonline.com/{tenant}/oauth2/v2.0"
        self.authorize_endpoint = f"{base}/authorize"
        self.token_endpoint = f"{base}/token"

    def extract_identity(self, profile: Dict[str, Any]) -> ProviderIdentity:
        # Graph returns 'id', not 'sub'
        microsoft_id = profile.get("id")
        if not microsoft_id:
            raise OAuthError("Microsoft profile has no id")
        return ProviderIdentity(
            provider_id=str(microsoft_id),
            email=profile.get("mail") or profile.get("userPrincipalName") or None,
            display_name=profile.get("displayName") or profile.get("givenName") or None,
        )


PROVIDER_NAMES = ("google", "microsoft")


def build_provider(name: str, settings: Settings,
                   transport: Optional[httpx.AsyncBaseTransport] = None) -> Optional[OAuthProvider]:
    """Provider for ``name`` from settings, or None if the name is unknown."""
    if name == "google":
        return GoogleProvider(
            settings.GOOGLE_CLIENT_ID,
            settings.GOOGLE_CLIENT_SECRET,
            settings.GOOGLE_REDIRECT_URI,
            timeout=settings.OAUTH_HTTP_TIMEOUT,
            transport=transport,
        )
    if name == "microsoft":
        return MicrosoftProvider(
            settings.MICROSOFT_CLIENT_ID,
            settings.MICROSOFT_CLIENT_SECRET,
            settings.MICROSOFT_REDIRECT_URI,
            tenant=settings.MICROSOFT_TENANT,
            timeout=settings.OAUTH_HTTP_TIMEOUT,
            transport=transport,
        )
    return None
