"""Google sign-in via OpenID Connect.

The host redirects the browser to the URL of a ``FederatedSignInRequest``;
Google posts the result back (``response_mode=form_post``) and the raw form
body is handed to ``parse_result``.  The ID token is then exchanged for a
Firebase credential by the identity provider.
"""

from __future__ import annotations

import secrets
from collections.abc import Mapping
from urllib.parse import parse_qsl, urlencode

import httpx
from loguru import logger

from gemini_chat.application.exceptions import AuthFailure, AuthFailureKind, NotInitializedError
from gemini_chat.domain.models import FederatedSignInRequest, FederatedToken

AUTHORIZATION_ENDPOINT = "https://accounts.google.com/o/oauth2/v2/auth"
REVOCATION_ENDPOINT = "https://oauth2.googleapis.com/revoke"


class GoogleSignIn:
    """``IFederatedSignIn`` for Google accounts."""

    def __init__(self, client: httpx.AsyncClient, redirect_uri: str) -> None:
        self.client = client
        self.redirect_uri = redirect_uri
        self.client_id: str | None = None
        self._pending: dict[str, str] = {}  # state -> nonce
        self._access_token: str | None = None

    def configure(self, client_id: str) -> None:
        self.client_id = client_id

    def build_sign_in_request(self) -> FederatedSignInRequest:
        if not self.client_id:
            raise NotInitializedError()
        state = secrets.token_urlsafe(16)
        nonce = secrets.token_urlsafe(16)
        self._pending[state] = nonce
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "id_token token",
            "response_mode": "form_post",
            "scope": "openid email profile",
            "state": state,
            "nonce": nonce,
            "prompt": "select_account",
        }
        return FederatedSignInRequest(
            url=f"{AUTHORIZATION_ENDPOINT}?{urlencode(params)}", state=state, nonce=nonce
        )

    def parse_result(self, raw: str | Mapping[str, str]) -> FederatedToken:
        """Extract the tokens from a callback payload.

        Accepts the raw form/query string or an already-parsed mapping.

        Raises:
            AuthFailure: On a provider error, an unknown ``state`` or a missing token.
        """
        fields = dict(parse_qsl(raw.lstrip("?#"))) if isinstance(raw, str) else dict(raw)

        if "error" in fields:
            detail = fields.get("error_description") or fields["error"]
            raise AuthFailure(detail, AuthFailureKind.GENERIC)

        state = fields.get("state")
        if not state or self._pending.pop(state, None) is None:
            raise AuthFailure("state mismatch", AuthFailureKind.INVALID_CREDENTIALS)

        id_token = fields.get("id_token")
        if not id_token:
            raise AuthFailure("missing id_token", AuthFailureKind.INVALID_CREDENTIALS)

        self._access_token = fields.get("access_token")
        return FederatedToken(id_token=id_token, access_token=self._access_token)

    async def sign_out(self) -> None:
        """Forget the Google session and revoke its access token, if any."""
        token, self._access_token = self._access_token, None
        if token is None:
            return
        try:
            response = await self.client.post(REVOCATION_ENDPOINT, data={"token": token})
        except httpx.TransportError as exc:
            raise AuthFailure(f"network-error: {exc}", AuthFailureKind.NETWORK) from exc
        except httpx.HTTPError as exc:
            raise AuthFailure(f"revoke failed: {exc}") from exc
        if response.is_error:
            raise AuthFailure(f"revoke failed with HTTP {response.status_code}")
        logger.debug("Revoked Google access token")
