"""Chat-completion client for the LLM question generator.

    text = await ai_chat(
        [{"role": "system", "content": "..."}, {"role": "user", "content": "..."}],
        json_mode=True,
    )

The model is QUIZ_MODEL when set, else MODEL_NAME. "claude-*" models go to
Anthropic; any other model goes to AI_PROVIDER (OpenAI unless configured
otherwise). Provider calls are retried with exponential backoff.
"""

import logging
from enum import Enum

from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from adaptive_quiz.config import settings

logger = logging.getLogger(__name__)

JSON_ONLY_INSTRUCTION = "You MUST respond with valid JSON only. No other text."


class AIProvider(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


def resolve_model() -> str:
    return settings.quiz_model or settings.model_name


def detect_provider(model: str) -> AIProvider:
    if model.lower().startswith("claude-"):
        return AIProvider.ANTHROPIC
    try:
        return AIProvider(settings.ai_provider.lower())
    except ValueError:
        logger.warning("Unknown AI_PROVIDER %r, using OpenAI", settings.ai_provider)
        return AIProvider.OPENAI


def split_system_messages(messages: list[dict]) -> tuple[str, list[dict]]:
    """Separate system content from the conversation (Anthropic takes it apart)."""
    system = "\n".join(m["content"] for m in messages if m["role"] == "system")
    rest = [{"role": m["role"], "content": m["content"]} for m in messages if m["role"] != "system"]
    return system, rest


def _with_retries(provider: str):
    def _before_sleep(retry_state):
        logger.warning(
            "%s call failed (attempt %d), retrying: %s",
            provider,
            retry_state.attempt_number,
            retry_state.outcome.exception(),
        )

    return retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        retry=retry_if_exception_type(Exception),
        before_sleep=_before_sleep,
        reraise=True,
    )


async def ai_chat(
    messages: list[dict],
    *,
    temperature: float = 0.7,
    json_mode: bool = False,
    max_tokens: int = 2048,
) -> str:
    """Send a chat completion and return the assistant text."""
    model = resolve_model()
    if detect_provider(model) == AIProvider.ANTHROPIC:
        return await _anthropic_chat(messages, model, temperature, json_mode, max_tokens)
    return await _openai_chat(messages, model, temperature, json_mode, max_tokens)


@_with_retries("OpenAI")
async def _openai_chat(messages, model, temperature, json_mode, max_tokens) -> str:
    from openai import AsyncOpenAI

    extra = {"response_format": {"type": "json_object"}} if json_mode else {}
    response = await AsyncOpenAI(api_key=settings.api_key).chat.completions.create(
        model=model,
        messages=messages,
        temperature=temperature,
        max_tokens=max_tokens,
        **extra,
    )
    return response.choices[0].message.content


@_with_retries("Anthropic")
async def _anthropic_chat(messages, model, temperature, json_mode, max_tokens) -> str:
    import anthropic

    system, conversation = split_system_messages(messages)
    if json_mode:
        system = f"{system}\n{JSON_ONLY_INSTRUCTION}".strip()

    extra = {"system": system} if system else {}
    response = await anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key).messages.create(
        model=model,
        messages=conversation,
        temperature=temperature,
        max_tokens=max_tokens,
        **extra,
    )
    return response.content[0].text
