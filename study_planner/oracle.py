# -*- coding: utf-8 -*-
"""Text-generation oracle used by the plan generator.

The oracle is an explicit object handed to the planner, so tests and services
can swap the OpenAI-backed implementation for any object with a ``complete``
coroutine.
"""
from __future__ import annotations

import logging
import typing as t

from openai import AsyncOpenAI

from prompts import load_prompt
from study_planner.config import PlannerSettings
from study_planner.exceptions import OracleConfigurationError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = load_prompt("study_plan_system_prompt")


@t.runtime_checkable
class TextOracle(t.Protocol):
    """Anything that turns a prompt into free-form text."""

    async def complete(self, prompt: str) -> str:
        ...


class OpenAIOracle:
    """Oracle backed by the OpenAI chat completions API."""

    def __init__(self, client: AsyncOpenAI, model: str = "gpt-4o") -> None:
        self.client = client
        self.model = model

    @classmethod
    def from_settings(cls, settings: PlannerSettings) -> "OpenAIOracle":
        """Build an oracle with its own client.

        Raises:
            OracleConfigurationError: If OPENAI_API_KEY is not set.
        """
        if not settings.openai_api_key:
            raise OracleConfigurationError("OPENAI_API_KEY environment variable is not set.")
        client = AsyncOpenAI(api_key=settings.openai_api_key, timeout=settings.oracle_timeout)
        return cls(client, model=settings.model)

    async def complete(self, prompt: str) -> str:
        completion = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
        )
        content = completion.choices[0].message.content or ""
        logger.debug("oracle reply (%d chars) from %s", len(content), self.model)
        return content
