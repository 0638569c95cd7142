"""
AI question generation and answer grading using OpenAI through LangChain

Both operations return validated pydantic models. Every failure is raised as
one of the Upstream* errors so callers can tell a bad key from throttling,
a timeout, or an unusable reply. Nothing is retried here; the caller decides.
"""

import asyncio
import json
import logging
import re
from typing import Any, Dict, Optional, Type, TypeVar

import openai
from langchain_core.prompts import ChatPromptTemplate
from langchain_openai import ChatOpenAI
from pydantic import BaseModel, ValidationError as PydanticValidationError

from app.config.settings import settings
from app.schemas.interview import AnswerEvaluation, GeneratedQuestion
from app.utils.exceptions import (
    UpstreamAuthError,
    UpstreamError,
    UpstreamMalformedError,
    UpstreamRateLimitedError,
    UpstreamTimeoutError,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

QUESTION_SYSTEM_PROMPT = """You are an expert technical interviewer.
Only produce questions related to technical interviews: programming, algorithms,
data structures, databases or system design. Do not answer any other type of request.

Return your response as a JSON object with this exact structure:
{{
    "question": "<the interview question>",
    "ideal_answer": "<brief ideal answer or key points>"
}}

Return only valid JSON, no additional text."""

QUESTION_HUMAN_PROMPT = """Generate a {difficulty} level technical interview question about {topic}."""

EVALUATION_SYSTEM_PROMPT = """You are a technical interview evaluator.
Only evaluate technical interview responses related to programming, algorithms,
data structures, databases or system design.

Score the candidate's answer from 0 to 100 against the ideal answer, decide whether
it is essentially correct, and give brief constructive feedback (2-3 sentences).

Return your evaluation as a JSON object with this exact structure:
{{
    "score": <number 0-100>,
    "feedback": "<brief constructive feedback>",
    "is_correct": <true or false>
}}

Return only valid JSON, no additional text."""

EVALUATION_HUMAN_PROMPT = """**Question:** {question}
**Candidate's Answer:** {user_answer}
**Ideal Answer:** {ideal_answer}"""


def extract_json_object(content: str) -> Dict[str, Any]:
    """
    Parse the JSON object out of an LLM reply
    Sometimes the LLM wraps JSON in markdown code blocks or adds prose around it
    """
    content = (content or "").strip()
    if "```json" in content:
        content = content.split("```json")[1].split("```")[0].strip()
    elif "```" in content:
        content = content.split("```")[1].split("```")[0].strip()

    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        json_match = re.search(r'\{.*\}', content, re.DOTALL)
        if not json_match:
            raise UpstreamMalformedError()
        try:
            data = json.loads(json_match.group())
        except json.JSONDecodeError:
            raise UpstreamMalformedError()

    if not isinstance(data, dict):
        raise UpstreamMalformedError()
    return data


def classify_oracle_error(error: Exception) -> UpstreamError:
    """Map an exception from the AI client onto the upstream error taxonomy"""
    if isinstance(error, UpstreamError):
        return error
    if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return UpstreamAuthError()
    if isinstance(error, openai.RateLimitError):
        return UpstreamRateLimitedError()
    if isinstance(error, openai.APITimeoutError):
        return UpstreamTimeoutError("AI service timed out. Please try again.")
    if isinstance(error, openai.APIStatusError):
        if error.status_code in (401, 403):
            return UpstreamAuthError()
        if error.status_code == 429:
            return UpstreamRateLimitedError()
        return UpstreamError(f"AI service error (HTTP {error.status_code}). Please try again.")

    message = str(error).lower()
    if "api key" in message or "401" in message or "unauthorized" in message:
        return UpstreamAuthError()
    if "429" in message or "rate limit" in message or "quota" in message:
        return UpstreamRateLimitedError()
    if "timed out" in message or "timeout" in message:
        return UpstreamTimeoutError("AI service timed out. Please try again.")
    return UpstreamError("An external service error occurred. Please try again.")


class GradingOracle:
    """Generate questions and grade answers using OpenAI"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        timeout_seconds: Optional[float] = None,
        llm: Any = None,
    ):
        self.api_key = settings.openai_api_key if api_key is None else api_key
        self.model = model or settings.openai_model
        self.temperature = settings.oracle_temperature if temperature is None else temperature
        self.timeout_seconds = timeout_seconds or settings.oracle_timeout_seconds

        if llm is not None:
            self.llm = llm
        elif self.api_key:
            self.llm = ChatOpenAI(
                model=self.model,
                temperature=self.temperature,
                api_key=self.api_key,
                timeout=self.timeout_seconds,
                max_retries=0
            )
        else:
            logger.warning("[ORACLE] OPENAI_API_KEY is not set; AI requests will fail with upstream_auth")
            self.llm = None

        self.question_prompt = ChatPromptTemplate.from_messages([
            ("system", QUESTION_SYSTEM_PROMPT),
            ("human", QUESTION_HUMAN_PROMPT)
        ])
        self.evaluation_prompt = ChatPromptTemplate.from_messages([
            ("system", EVALUATION_SYSTEM_PROMPT),
            ("human", EVALUATION_HUMAN_PROMPT)
        ])

    async def generate_question(self, topic: str, difficulty: str) -> GeneratedQuestion:
        messages = self.question_prompt.format_messages(topic=topic, difficulty=difficulty)
        content = await self._invoke(messages, "question generation")
        return self._parse(content, GeneratedQuestion, "question generation")

    async def evaluate_answer(self, question: str, user_answer: str, ideal_answer: str) -> AnswerEvaluation:
        messages = self.evaluation_prompt.format_messages(
            question=question,
            user_answer=user_answer,
            ideal_answer=ideal_answer or "Not provided"
        )
        content = await self._invoke(messages, "answer evaluation")
        return self._parse(content, AnswerEvaluation, "answer evaluation")

    async def _invoke(self, messages, operation: str) -> str:
        if self.llm is None:
            raise UpstreamAuthError("AI service API key is not configured.")

        try:
            response = await asyncio.wait_for(self.llm.ainvoke(messages), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.error(f"[ORACLE] {operation} timed out after {self.timeout_seconds}s")
            raise UpstreamTimeoutError("AI service timed out. Please try again.")
        except Exception as e:
            classified = classify_oracle_error(e)
            logger.error(f"[ORACLE] {operation} failed ({classified.code}): {str(e)}")
            raise classified from e

        content = getattr(response, "content", None)
        if not isinstance(content, str):
            logger.error(f"[ORACLE] {operation} returned non-text content")
            raise UpstreamMalformedError()

        logger.debug(f"[ORACLE] Raw {operation} response: {content[:200]}")
        return content

    @staticmethod
    def _parse(content: str, model: Type[ModelT], operation: str) -> ModelT:
        try:
            return model.model_validate(extract_json_object(content))
        except UpstreamMalformedError:
            logger.error(f"[ORACLE] {operation} response is not valid JSON")
            raise
        except PydanticValidationError as e:
            logger.error(f"[ORACLE] {operation} response does not match the expected structure: {str(e)}")
            raise UpstreamMalformedError() from e
