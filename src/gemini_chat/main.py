"""FastAPI host for the chat client.

This module is a thin **presentation layer**.  All behaviour lives in the
session and conversation controllers so it can be tested and reused
independently of any HTTP framework.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from gemini_chat import __version__
from gemini_chat.application.conversation import ConversationController
from gemini_chat.application.session import SessionController
from gemini_chat.config import Settings, get_settings
from gemini_chat.domain.models import Authenticated, AuthState, Unauthenticated
from gemini_chat.domain.observable import Subscription
from gemini_chat.domain.protocols import IDocumentStore
from gemini_chat.logging_config import setup_logging
from gemini_chat.presentation.routes import auth, chat
from gemini_chat.services.firebase_auth import FirebaseIdentityProvider
from gemini_chat.services.gemini_model import GeminiLanguageModel, create_gemini_agent
from gemini_chat.services.google_sign_in import GoogleSignIn
from gemini_chat.services.memory_store import InMemoryDocumentStore
from gemini_chat.telemetry import setup_telemetry

# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


@dataclass
class Services:
    """Everything the routes need, plus resources to release on shutdown."""

    session: SessionController
    conversation: ConversationController
    http_client: httpx.AsyncClient | None = None


def build_services(settings: Settings) -> Services:
    """Create the adapters and controllers described by *settings*."""
    http_client = httpx.AsyncClient(timeout=settings.http_timeout_seconds)

    store: IDocumentStore
    if settings.document_store == "memory":
        store = InMemoryDocumentStore()
        logger.warning("Using in-memory document store; nothing will be persisted")
    else:
        from gemini_chat.services.firestore_store import (
            FirestoreDocumentStore,
            create_firestore_client,
        )

        store = FirestoreDocumentStore(create_firestore_client(settings))

    identity = FirebaseIdentityProvider(
        api_key=settings.firebase_api_key,
        client=http_client,
        base_url=settings.identity_toolkit_url,
        request_uri=settings.google_redirect_uri,
    )
    federated = GoogleSignIn(client=http_client, redirect_uri=settings.google_redirect_uri)
    session = SessionController(identity, store, federated)
    if settings.federated_sign_in_enabled:
        session.initialize_federated_sign_in(settings.google_client_id)

    agent = create_gemini_agent(settings)
    conversation = ConversationController(
        GeminiLanguageModel(agent), store=store, identity_source=session
    )
    return Services(session=session, conversation=conversation, http_client=http_client)


def follow_session(
    session: SessionController, conversation: ConversationController
) -> Subscription:
    """Start the live transcript on sign-in and drop it on sign-out."""
    tasks: set[asyncio.Task] = set()
    previous: AuthState = session.state.value

    def _log_failure(task: asyncio.Task) -> None:
        tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Loading messages failed: {}", task.exception())

    def _on_state(state: AuthState) -> None:
        nonlocal previous
        was, previous = previous, state
        if isinstance(state, Authenticated) and not isinstance(was, Authenticated):
            task = asyncio.get_running_loop().create_task(conversation.load_messages())
            tasks.add(task)
            task.add_done_callback(_log_failure)
        elif isinstance(state, Unauthenticated):
            conversation.reset()

    return session.state.subscribe(_on_state)


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


def create_app(
    settings: Settings | None = None,
    services_factory: Callable[[Settings], Services] = build_services,
) -> FastAPI:
    """Application factory (``uvicorn gemini_chat.main:create_app --factory``)."""
    settings = settings or get_settings()
    setup_logging(level=settings.log_level, json=settings.log_json)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Set up and tear down services around the application lifetime."""
        settings.validate_runtime()
        services = services_factory(settings)

        app.state.settings = settings
        app.state.session = services.session
        app.state.conversation = services.conversation
        link = follow_session(services.session, services.conversation)

        logger.info("Application startup complete")
        yield

        link.cancel()
        services.conversation.close()
        services.session.close()
        if services.http_client is not None:
            await services.http_client.aclose()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Gemini Chat",
        description="Firebase-authenticated chat with Gemini, transcript mirrored to Firestore.",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(auth.router)
    app.include_router(chat.router)

    # Instrument FastAPI with observability (no-op when OBSERVABILITY=off)
    setup_telemetry(app, settings)
    return app


def run() -> None:
    """Console entry point."""
    import uvicorn

    uvicorn.run("gemini_chat.main:create_app", factory=True, host="127.0.0.1", port=8000)
