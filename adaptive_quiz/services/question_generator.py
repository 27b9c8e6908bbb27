"""Client for the external adaptive question generator.

The generator receives the pedagogical context plus the transcript so far and
answers with either one question or a stop signal. Two transports speak the
same contract:

- HttpQuestionGenerator POSTs to {GENERATOR_BASE_URL}/generate-quiz
- LLMQuestionGenerator asks a chat model through ai_client

Both impose GENERATOR_TIMEOUT_SECONDS on the whole call. A timeout raises
GenerationTimeout; any other transport or payload problem raises
GenerationFailed. Neither ends the quiz on its own.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import httpx
from pydantic import BaseModel, ValidationError, field_validator

from adaptive_quiz.config import settings
from adaptive_quiz.errors import GenerationFailed, GenerationTimeout
from adaptive_quiz.services.ai_client import ai_chat
from adaptive_quiz.services.prompts import load_prompt

logger = logging.getLogger(__name__)

VERDICT_CORRECT = "Correct"
VERDICT_WRONG = "Wrong"
VERDICT_NOT_ANSWERED = "Not answered"


@dataclass
class GenerationRequest:
    main_topic: str
    topic_hierarchy: str
    future_topic: str
    student_level: str
    question_number: int
    target_length: int
    conversation_history: list[str] = field(default_factory=list)
    previous_verdict: Optional[str] = None

    def to_payload(self) -> dict:
        """Request body in the generator's wire format."""
        return {
            "main_topic": self.main_topic,
            "topic_hierarchy": self.topic_hierarchy,
            "future_topic": self.future_topic,
            "Student_level_in_topic": self.student_level,
            "question_number": self.question_number,
            "target_len": self.target_length,
            "conversation_history": list(self.conversation_history),
            "previous_verdict": self.previous_verdict,
        }


class GeneratedQuestion(BaseModel):
    question: str
    difficulty: str = "Medium"
    options: list[dict] = []
    correct_option: Any = None
    explanation: str = ""

    @field_validator("options", mode="before")
    @classmethod
    def _label_plain_options(cls, value):
        # Plain string options get A, B, C... labels
        if not isinstance(value, list):
            return []
        options = []
        for i, option in enumerate(value):
            if isinstance(option, str):
                options.append({"label": chr(ord("A") + i), "text": option})
            elif isinstance(option, dict):
                options.append(option)
        return options

    @field_validator("explanation", "difficulty", mode="before")
    @classmethod
    def _none_to_default(cls, value, info):
        if value is None:
            return "Medium" if info.field_name == "difficulty" else ""
        return value


class GenerationResult(BaseModel):
    stop: bool = False
    question: Optional[GeneratedQuestion] = None
    summary: Optional[Any] = None


def parse_generation_payload(data: Any) -> GenerationResult:
    """Validate a generator response body."""
    if not isinstance(data, dict):
        raise GenerationFailed("Question generator returned an invalid payload")
    try:
        result = GenerationResult.model_validate(data)
    except ValidationError as exc:
        logger.error("Question generator payload failed validation: %s", exc)
        raise GenerationFailed("Question generator returned an invalid payload") from exc
    if not result.stop and result.question is None:
        raise GenerationFailed("Question generator returned neither a question nor a stop signal")
    return result


class QuestionGenerator(Protocol):
    async def generate(self, request: GenerationRequest) -> GenerationResult: ...


class HttpQuestionGenerator:
    """Calls the generation service over HTTP."""

    def __init__(
        self,
        base_url: str,
        timeout: float,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = base_url.rstrip("/") + "/generate-quiz"
        self.timeout = timeout
        self._transport = transport

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        logger.info("Requesting adaptive question %d", request.question_number)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=request.to_payload())
        except httpx.TimeoutException as exc:
            logger.error("Question generator timed out after %ss", self.timeout)
            raise GenerationTimeout() from exc
        except httpx.HTTPError as exc:
            logger.error("Error calling question generator: %s", exc)
            raise GenerationFailed() from exc

        if not response.is_success:
            logger.error(
                "Question generator failed: %s %s", response.status_code, response.text[:500]
            )
            raise GenerationFailed("Question generator failed")

        try:
            data = response.json()
        except ValueError as exc:
            logger.error("Question generator returned non-JSON body")
            raise GenerationFailed("Question generator returned an invalid payload") from exc
        return parse_generation_payload(data)


class LLMQuestionGenerator:
    """Asks a chat model for the next question using the same contract."""

    def __init__(self, timeout: float):
        self.timeout = timeout

    def build_messages(self, request: GenerationRequest) -> list[dict]:
        prompt = load_prompt("adaptive_question.yaml")
        history = "\n".join(request.conversation_history) or "None (first question)."
        user_message = prompt["user_template"].format(
            main_topic=request.main_topic or "(unspecified)",
            topic_hierarchy=request.topic_hierarchy or "None.",
            future_topic=request.future_topic or "None.",
            student_level=request.student_level,
            question_number=request.question_number,
            target_length=request.target_length,
            previous_verdict=request.previous_verdict or "None",
            conversation_history=history,
        )
        return [
            {"role": "system", "content": prompt["system_prompt"]},
            {"role": "user", "content": user_message},
        ]

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        messages = self.build_messages(request)
        try:
            text = await asyncio.wait_for(
                ai_chat(messages, temperature=0.5, json_mode=True), timeout=self.timeout
            )
        except asyncio.TimeoutError as exc:
            logger.error("LLM question generation timed out after %ss", self.timeout)
            raise GenerationTimeout() from exc
        except Exception as exc:
            logger.error("LLM question generation failed: %s", exc)
            raise GenerationFailed() from exc

        try:
            data = json.loads(text)
        except (json.JSONDecodeError, TypeError) as exc:
            logger.error("LLM returned invalid JSON for question %d", request.question_number)
            raise GenerationFailed("Question generator returned an invalid payload") from exc
        return parse_generation_payload(data)


def get_question_generator() -> QuestionGenerator:
    """FastAPI dependency returning the configured generator transport."""
    if settings.generator_backend == "llm":
        return LLMQuestionGenerator(timeout=settings.generator_timeout_seconds)
    return HttpQuestionGenerator(
        base_url=settings.generator_base_url,
        timeout=settings.generator_timeout_seconds,
    )
