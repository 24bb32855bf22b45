"""Tests for the Google OpenID Connect client."""

from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from gemini_chat.application.exceptions import AuthFailure, AuthFailureKind, NotInitializedError
from gemini_chat.services.google_sign_in import (
    AUTHORIZATION_ENDPOINT,
    REVOCATION_ENDPOINT,
    GoogleSignIn,
)

REDIRECT = "http://localhost:8000/auth/google/callback"


def _client(handler=None, requests: list | None = None) -> GoogleSignIn:
    def _record(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        return handler(request) if handler else httpx.Response(200)

    client = httpx.AsyncClient(transport=httpx.MockTransport(_record))
    return GoogleSignIn(client, REDIRECT)


def _configured(**kwargs) -> tuple[GoogleSignIn, str]:
    google = _client(**kwargs)
    google.configure("client-123")
    return google, google.build_sign_in_request().state


class TestBuildRequest:
    """Authorization URL construction."""

    def test_requires_configuration(self):
        with pytest.raises(NotInitializedError):
            _client().build_sign_in_request()

    def test_url_parameters(self):
        google = _client()
        google.configure("client-123")

        request = google.build_sign_in_request()

        parts = urlsplit(request.url)
        assert f"{parts.scheme}://{parts.netloc}{parts.path}" == AUTHORIZATION_ENDPOINT
        params = {k: v[0] for k, v in parse_qs(parts.query).items()}
        assert params["client_id"] == "client-123"
        assert params["redirect_uri"] == REDIRECT
        assert params["response_type"] == "id_token token"
        assert params["response_mode"] == "form_post"
        assert params["state"] == request.state
        assert params["nonce"] == request.nonce

    def test_each_request_has_fresh_state(self):
        google = _client()
        google.configure("client-123")
        assert google.build_sign_in_request().state != google.build_sign_in_request().state


class TestParseResult:
    """Callback payload handling."""

    def test_form_body(self):
        google, state = _configured()

        token = google.parse_result(f"id_token=abc&access_token=xyz&state={state}")

        assert token.id_token == "abc"
        assert token.access_token == "xyz"

    def test_mapping(self):
        google, state = _configured()
        token = google.parse_result({"id_token": "abc", "state": state})
        assert token.id_token == "abc"
        assert token.access_token is None

    def test_fragment_prefix_is_ignored(self):
        google, state = _configured()
        assert google.parse_result(f"#id_token=abc&state={state}").id_token == "abc"

    def test_provider_error(self):
        google, _ = _configured()
        with pytest.raises(AuthFailure, match="User cancelled"):
            google.parse_result("error=access_denied&error_description=User+cancelled")

    def test_unknown_state(self):
        google, _ = _configured()
        with pytest.raises(AuthFailure, match="state mismatch") as info:
            google.parse_result("id_token=abc&state=forged")
        assert info.value.kind is AuthFailureKind.INVALID_CREDENTIALS

    def test_state_is_single_use(self):
        google, state = _configured()
        google.parse_result(f"id_token=abc&state={state}")
        with pytest.raises(AuthFailure, match="state mismatch"):
            google.parse_result(f"id_token=abc&state={state}")

    def test_missing_id_token(self):
        google, state = _configured()
        with pytest.raises(AuthFailure, match="missing id_token"):
            google.parse_result(f"access_token=xyz&state={state}")


class TestSignOut:
    """Access token revocation."""

    async def test_without_token_makes_no_request(self):
        requests: list[httpx.Request] = []
        google = _client(requests=requests)
        await google.sign_out()
        assert requests == []

    async def test_revokes_access_token_once(self):
        requests: list[httpx.Request] = []
        google, state = _configured(requests=requests)
        google.parse_result(f"id_token=abc&access_token=xyz&state={state}")

        await google.sign_out()
        await google.sign_out()

        assert len(requests) == 1
        assert str(requests[0].url) == REVOCATION_ENDPOINT
        assert parse_qs(requests[0].content.decode()) == {"token": ["xyz"]}

    async def test_revoke_error(self):
        google, state = _configured(handler=lambda r: httpx.Response(400))
        google.parse_result(f"id_token=abc&access_token=xyz&state={state}")

        with pytest.raises(AuthFailure, match="HTTP 400"):
            await google.sign_out()

    async def test_non_transport_error_is_auth_failure(self):
        def _raise(request):
            raise httpx.TooManyRedirects("redirect loop", request=request)

        google, state = _configured(handler=_raise)
        google.parse_result(f"id_token=abc&access_token=xyz&state={state}")

        with pytest.raises(AuthFailure, match="redirect loop"):
            await google.sign_out()
