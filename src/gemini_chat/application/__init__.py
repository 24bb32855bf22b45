"""Application layer: the session and conversation controllers."""

from gemini_chat.application.conversation import ConversationController
from gemini_chat.application.session import SessionController

__all__ = ["ConversationController", "SessionController"]
