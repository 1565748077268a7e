"""Model calls behind the analyze-defect and generate-ddid endpoints."""

from __future__ import annotations

import logging

from app.config.settings import settings
from app.services.llm_client import BedrockLlmClient, LlmInvocationError, get_llm_client
from app.services.prompt_builder import (
    PromptBundle,
    PromptContext,
    build_analysis_prompt,
    build_statement_prompt,
    mentions_new_build,
)
from app.telemetry import record_ai_call

logger = logging.getLogger("app.services.statement_generator")

_MAX_EMPTY_RETRIES = 1


class StatementContractError(RuntimeError):
    """Raised when the model returns no usable text."""


def _truncate(value: str, max_length: int = 300) -> str:
    if len(value) <= max_length:
        return value
    return value[: max_length - 3] + "..."


async def _complete(
    stage: str,
    bundle: PromptBundle,
    image_bytes: bytes,
    *,
    max_tokens: int,
    client: BedrockLlmClient | None,
) -> str:
    llm = client or get_llm_client()
    for attempt in range(_MAX_EMPTY_RETRIES + 1):
        try:
            raw = await llm.invoke(
                system_prompt=bundle.system_prompt,
                user_prompt=bundle.user_prompt,
                image_bytes=image_bytes,
                max_tokens=max_tokens,
            )
        except LlmInvocationError:
            record_ai_call(stage, "error")
            raise

        text = (raw or "").strip()
        if text:
            record_ai_call(stage, "success")
            logger.info("Model %s response attempt=%s: %s", stage, attempt + 1, _truncate(text))
            return text

        logger.warning("Model returned an empty %s response attempt=%s", stage, attempt + 1)

    record_ai_call(stage, "empty")
    raise StatementContractError(f"The model returned an empty {stage} response.")


async def generate_analysis(
    image_bytes: bytes,
    description: str,
    jurisdiction: str,
    *,
    client: BedrockLlmClient | None = None,
) -> str:
    """Return the short preliminary description of the defect."""

    context = PromptContext(jurisdiction=jurisdiction, notes=description)
    return await _complete(
        "analysis",
        build_analysis_prompt(context),
        image_bytes,
        max_tokens=settings.bedrock.analysis_max_tokens,
        client=client,
    )


async def generate_statement(
    image_bytes: bytes,
    final_description: str,
    jurisdiction: str,
    *,
    client: BedrockLlmClient | None = None,
) -> str:
    """Return the complete DDID statement."""

    context = PromptContext(
        jurisdiction=jurisdiction,
        notes=final_description,
        new_build=mentions_new_build(final_description),
    )
    return await _complete(
        "statement",
        build_statement_prompt(context),
        image_bytes,
        max_tokens=settings.bedrock.statement_max_tokens,
        client=client,
    )


__all__ = ["StatementContractError", "generate_analysis", "generate_statement"]
