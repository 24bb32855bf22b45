"""Tracing for the HTTP host and its outbound calls.

``OBSERVABILITY`` selects the backend:

- ``logfire``: Pydantic Logfire; traces FastAPI, httpx (Identity Toolkit,
  Google OAuth) and Gemini agent runs.
- ``otel``: plain OpenTelemetry SDK exporting over OTLP/HTTP; agent runs are
  traced through ``Agent.instrument_all()``.
- ``off``: nothing is installed.

Both backends come from the ``observability`` extra and are imported only
when selected.
"""

from __future__ import annotations

from typing import Literal

from fastapi import FastAPI
from loguru import logger

from gemini_chat import __version__
from gemini_chat.config import Settings

Mode = Literal["off", "logfire", "otel"]
_MODES: tuple[Mode, ...] = ("off", "logfire", "otel")


def observability_mode(settings: Settings) -> Mode:
    """Normalised backend name; unknown values fall back to ``off``."""
    mode = settings.observability.strip().lower()
    for known in _MODES:
        if mode == known:
            return known
    logger.warning("Unknown OBSERVABILITY value '{}', tracing disabled", settings.observability)
    return "off"


def setup_telemetry(app: FastAPI, settings: Settings) -> Mode:
    """Install the selected tracing backend on *app* and return its name."""
    mode = observability_mode(settings)
    if mode == "logfire":
        _install_logfire(app, settings)
    elif mode == "otel":
        _install_otel(app, settings)
    else:
        logger.debug("Tracing disabled")
    return mode


def _install_logfire(app: FastAPI, settings: Settings) -> None:
    import logfire

    logfire.configure(
        service_name=settings.otel_service_name,
        service_version=__version__,
        send_to_logfire="if-token-present",
    )
    logfire.instrument_fastapi(app)
    logfire.instrument_httpx()
    logfire.instrument_pydantic_ai()
    logger.info("Logfire tracing on | service={}", settings.otel_service_name)


def _install_otel(app: FastAPI, settings: Settings) -> None:
    from opentelemetry import trace
    from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

    trace.set_tracer_provider(_otel_tracer_provider(settings))
    FastAPIInstrumentor.instrument_app(app, excluded_urls="health")
    instrument_agents()
    logger.info(
        "OpenTelemetry tracing on | service={} endpoint={}",
        settings.otel_service_name,
        settings.otel_exporter_otlp_endpoint,
    )


def _otel_tracer_provider(settings: Settings):
    from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import (
        BatchSpanProcessor,
        ConsoleSpanExporter,
        SimpleSpanProcessor,
    )

    provider = TracerProvider(
        resource=Resource.create(
            {"service.name": settings.otel_service_name, "service.version": __version__}
        )
    )
    endpoint = settings.otel_exporter_otlp_endpoint.rstrip("/") + "/v1/traces"
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
    if settings.otel_console_exporter:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    return provider


def instrument_agents() -> None:
    """Trace every pydantic-ai agent run through the global tracer provider."""
    from pydantic_ai import Agent

    Agent.instrument_all()
