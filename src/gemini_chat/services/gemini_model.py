"""Gemini language model behind a PydanticAI agent."""

from __future__ import annotations

import time

import httpx
from loguru import logger
from pydantic_ai import Agent
from pydantic_ai.exceptions import AgentRunError
from pydantic_ai.models.google import GoogleModel
from pydantic_ai.providers.google import GoogleProvider

from gemini_chat.application.exceptions import GenerationError
from gemini_chat.config import Settings


def create_gemini_agent(settings: Settings) -> Agent[None, str]:
    """Build a plain-text agent on the configured Gemini model.

    No system prompt and no tools: the chat sends the raw user text only.
    Tracing is installed globally by ``telemetry.setup_telemetry``.
    """
    provider = GoogleProvider(api_key=settings.gemini_api_key)
    model = GoogleModel(settings.gemini_model, provider=provider)
    return Agent(model, output_type=str)


class GeminiLanguageModel:
    """``ILanguageModel`` that runs one stateless agent turn per prompt."""

    def __init__(self, agent: Agent[None, str]) -> None:
        self.agent = agent

    async def generate(self, prompt: str) -> str | None:
        t0 = time.perf_counter()
        try:
            result = await self.agent.run(prompt)
        except (AgentRunError, httpx.HTTPError) as exc:
            logger.warning("Gemini call failed: {}", exc)
            raise GenerationError(str(exc)) from exc

        latency = int((time.perf_counter() - t0) * 1000)
        logger.info("Gemini completed | latency={}ms | chars={}", latency, len(result.output or ""))
        return result.output or None
