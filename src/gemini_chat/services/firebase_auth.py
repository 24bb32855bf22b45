"""Firebase Authentication adapter over the Identity Toolkit v1 REST API.

Keeps the current identity in memory and notifies subscribers whenever it
changes, which is what drives the session controller into ``Authenticated``
or back to ``Unauthenticated``.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable
from typing import Any
from urllib.parse import urlencode

import httpx
from loguru import logger

from gemini_chat.application.exceptions import AuthFailure, AuthFailureKind, NotAuthenticatedError
from gemini_chat.domain.models import FederatedToken, Identity
from gemini_chat.domain.observable import Observable, Subscription

DEFAULT_BASE_URL = "https://identitytoolkit.googleapis.com/v1"

_KIND_BY_CODE = {
    "INVALID_PASSWORD": AuthFailureKind.INVALID_CREDENTIALS,
    "INVALID_LOGIN_CREDENTIALS": AuthFailureKind.INVALID_CREDENTIALS,
    "INVALID_EMAIL": AuthFailureKind.INVALID_CREDENTIALS,
    "INVALID_IDP_RESPONSE": AuthFailureKind.INVALID_CREDENTIALS,
    "INVALID_ID_TOKEN": AuthFailureKind.INVALID_CREDENTIALS,
    "WEAK_PASSWORD": AuthFailureKind.INVALID_CREDENTIALS,
    "EMAIL_NOT_FOUND": AuthFailureKind.UNKNOWN_USER,
    "USER_NOT_FOUND": AuthFailureKind.UNKNOWN_USER,
    "USER_DISABLED": AuthFailureKind.UNKNOWN_USER,
    "EMAIL_EXISTS": AuthFailureKind.COLLISION,
    "FEDERATED_USER_ID_ALREADY_LINKED": AuthFailureKind.COLLISION,
    "CREDENTIAL_TOO_OLD_LOGIN_AGAIN": AuthFailureKind.INVALID_CREDENTIALS,
}


def _failure_from_response(response: httpx.Response) -> AuthFailure:
    """Translate an Identity Toolkit error body into an ``AuthFailure``.

    The REST API reports e.g. ``"WEAK_PASSWORD : Password should be ..."``;
    the code becomes ``weak-password`` and the detail is appended.
    """
    try:
        raw = response.json().get("error", {}).get("message", "")
    except ValueError:
        raw = ""
    code, _, detail = str(raw).partition(" : ")
    code = code.strip()
    if not code:
        return AuthFailure(f"http-{response.status_code}")
    kind = _KIND_BY_CODE.get(code, AuthFailureKind.GENERIC)
    message = code.lower().replace("_", "-")
    if detail:
        message = f"{message}: {detail.strip()}"
    return AuthFailure(message, kind)


def _identity_from_payload(payload: dict[str, Any]) -> Identity:
    if not payload.get("localId"):
        raise AuthFailure("invalid-response")
    return Identity(
        uid=payload["localId"],
        email=payload.get("email"),
        display_name=payload.get("displayName") or None,
        id_token=payload.get("idToken"),
        refresh_token=payload.get("refreshToken"),
    )


class FirebaseIdentityProvider:
    """``IIdentityProvider`` backed by Firebase Authentication."""

    def __init__(
        self,
        api_key: str,
        client: httpx.AsyncClient,
        base_url: str = DEFAULT_BASE_URL,
        request_uri: str = "http://localhost",
    ) -> None:
        self.api_key = api_key
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.request_uri = request_uri
        self._current: Observable[Identity | None] = Observable(None)

    # ------------------------------------------------------------------
    # Current identity
    # ------------------------------------------------------------------

    def current_identity(self) -> Identity | None:
        return self._current.value

    def subscribe_identity_changes(
        self, callback: Callable[[Identity | None], None]
    ) -> Subscription:
        return self._current.subscribe(callback)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def verify_password(self, email: str, password: str) -> Identity:
        payload = await self._call(
            "signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        identity = _identity_from_payload(payload)
        self._current.value = identity
        return identity

    async def create_account(self, email: str, password: str) -> Identity:
        payload = await self._call(
            "signUp", {"email": email, "password": password, "returnSecureToken": True}
        )
        identity = _identity_from_payload(payload)
        self._current.value = identity
        return identity

    async def send_password_reset(self, email: str) -> None:
        await self._call("sendOobCode", {"requestType": "PASSWORD_RESET", "email": email})

    async def sign_out(self) -> None:
        if self._current.value is not None:
            self._current.value = None

    async def exchange_federated_token(self, token: FederatedToken) -> Identity:
        post_body = {"id_token": token.id_token, "providerId": "google.com"}
        if token.access_token:
            post_body["access_token"] = token.access_token
        payload = await self._call(
            "signInWithIdp",
            {
                "postBody": urlencode(post_body),
                "requestUri": self.request_uri,
                "returnIdpCredential": True,
                "returnSecureToken": True,
            },
        )
        identity = _identity_from_payload(payload)
        self._current.value = identity
        return identity

    async def update_profile_name(self, identity: Identity, name: str) -> None:
        await self._call(
            "update",
            {"idToken": self._token_of(identity), "displayName": name, "returnSecureToken": False},
        )
        current = self._current.value
        if current is not None and current.uid == identity.uid:
            self._current.value = dataclasses.replace(current, display_name=name)

    async def delete_identity(self, identity: Identity) -> None:
        await self._call("delete", {"idToken": self._token_of(identity)})
        current = self._current.value
        if current is not None and current.uid == identity.uid:
            self._current.value = None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _token_of(identity: Identity) -> str:
        if not identity.id_token:
            raise NotAuthenticatedError("Identity has no ID token; sign in again")
        return identity.id_token

    async def _call(self, endpoint: str, body: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}/accounts:{endpoint}"
        try:
            response = await self.client.post(url, params={"key": self.api_key}, json=body)
        except httpx.TransportError as exc:
            logger.warning("Identity Toolkit {} unreachable: {}", endpoint, exc)
            raise AuthFailure(f"network-error: {exc}", AuthFailureKind.NETWORK) from exc
        except httpx.HTTPError as exc:
            logger.warning("Identity Toolkit {} request failed: {}", endpoint, exc)
            raise AuthFailure(f"request-failed: {exc}") from exc

        if response.is_error:
            failure = _failure_from_response(response)
            logger.debug(
                "Identity Toolkit {} failed | status={} error={}",
                endpoint,
                response.status_code,
                failure,
            )
            raise failure

        try:
            payload = response.json()
        except ValueError as exc:
            logger.warning(
                "Identity Toolkit {} returned a non-JSON body | status={}",
                endpoint,
                response.status_code,
            )
            raise AuthFailure("invalid-response") from exc
        if not isinstance(payload, dict):
            raise AuthFailure("invalid-response")
        return payload
