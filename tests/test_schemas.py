"""Tests for state rendering and HTTP error mapping."""

from gemini_chat.application.exceptions import (
    GenerationError,
    NotAuthenticatedError,
    NotInitializedError,
)
from gemini_chat.domain.models import (
    Authenticated,
    AuthError,
    AuthLoading,
    ChatError,
    ChatLoading,
    ChatMessage,
    ChatSuccess,
    Idle,
    Identity,
    MessageStatus,
    Unauthenticated,
)
from gemini_chat.presentation.errors import to_http_exception
from gemini_chat.presentation.schemas import (
    MessageResponse,
    render_auth_state,
    render_request_state,
)


class TestRenderAuthState:
    def test_each_variant(self):
        user = Identity(uid="u1", email="a@b.com", id_token="secret")

        assert render_auth_state(Unauthenticated(), None).state == "unauthenticated"
        assert render_auth_state(AuthLoading(), None).state == "loading"
        rendered = render_auth_state(Authenticated(), user)
        assert rendered.state == "authenticated"
        assert rendered.user.uid == "u1"
        error = render_auth_state(AuthError("Sign in failed: x"), None)
        assert (error.state, error.message) == ("error", "Sign in failed: x")

    def test_tokens_never_rendered(self):
        user = Identity(uid="u1", id_token="secret", refresh_token="refresh")
        assert "secret" not in render_auth_state(Authenticated(), user).model_dump_json()


class TestRenderRequestState:
    def test_each_variant(self):
        assert render_request_state(Idle()).state == "idle"
        assert render_request_state(ChatLoading()).state == "loading"
        assert render_request_state(ChatSuccess("hi")).response == "hi"
        assert render_request_state(ChatError("Error: x")).message == "Error: x"


class TestMessageResponse:
    def test_from_message(self):
        message = ChatMessage(text="hi", is_user=True, timestamp=5, status=MessageStatus.SENDING)
        response = MessageResponse.from_message(message)
        assert response.status == "sending"
        assert response.timestamp == 5
        assert response.id == message.id


class TestHttpErrors:
    def test_mapping(self):
        assert to_http_exception(NotAuthenticatedError()).status_code == 401
        assert to_http_exception(NotInitializedError()).status_code == 409
        assert to_http_exception(GenerationError("quota")).status_code == 502
        assert to_http_exception(RuntimeError("bug")).status_code == 500
