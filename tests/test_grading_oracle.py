import asyncio

import httpx
import openai
import pytest

from app.services.grading_oracle import GradingOracle, classify_oracle_error, extract_json_object
from app.utils.exceptions import (
    UpstreamAuthError,
    UpstreamError,
    UpstreamMalformedError,
    UpstreamRateLimitedError,
    UpstreamTimeoutError,
)

OPENAI_URL = "https://api.openai.com/v1/chat/completions"


class FakeMessage:
    def __init__(self, content):
        self.content = content


class FakeLLM:
    """Records prompts and replies with canned content or raises"""

    def __init__(self, reply=None, error=None, delay=0.0):
        self.reply = reply
        self.error = error
        self.delay = delay
        self.prompts = []

    async def ainvoke(self, messages):
        self.prompts.append(messages)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return FakeMessage(self.reply)


def _status_error(cls, status_code):
    request = httpx.Request("POST", OPENAI_URL)
    response = httpx.Response(status_code, request=request)
    return cls(f"Error code: {status_code}", response=response, body=None)


@pytest.mark.asyncio
async def test_generate_question_from_fenced_json():
    llm = FakeLLM(reply='```json\n{"question": "Explain normalization.", "ideal_answer": "1NF, 2NF, 3NF"}\n```')
    oracle = GradingOracle(llm=llm, timeout_seconds=5)

    generated = await oracle.generate_question("DBMS", "Hard")

    assert generated.question == "Explain normalization."
    assert generated.ideal_answer == "1NF, 2NF, 3NF"
    human_prompt = llm.prompts[0][-1].content
    assert "DBMS" in human_prompt
    assert "Hard" in human_prompt


@pytest.mark.asyncio
async def test_evaluate_answer_with_prose_around_json():
    llm = FakeLLM(reply='Here is my evaluation: {"score": 150, "feedback": "Excellent.", "is_correct": true} Hope it helps')
    oracle = GradingOracle(llm=llm, timeout_seconds=5)

    evaluation = await oracle.evaluate_answer("What is a closure?", "A function with its scope", "")

    assert evaluation.score == 100
    assert evaluation.is_correct is True
    assert "Not provided" in llm.prompts[0][-1].content


@pytest.mark.asyncio
@pytest.mark.parametrize("reply", [
    "I cannot evaluate this answer.",
    '{"score": 80, "feedback": "Good."}',
    '[{"score": 80, "feedback": "Good.", "is_correct": true}]',
    '{"score": "high", "feedback": "Good.", "is_correct": true}',
    '{"score": 80, "feedback": "   ", "is_correct": false}',
])
async def test_unusable_evaluation_is_malformed(reply):
    oracle = GradingOracle(llm=FakeLLM(reply=reply), timeout_seconds=5)

    with pytest.raises(UpstreamMalformedError):
        await oracle.evaluate_answer("Q", "A", "I")


@pytest.mark.asyncio
async def test_blank_generated_question_is_malformed():
    oracle = GradingOracle(llm=FakeLLM(reply='{"question": "", "ideal_answer": "x"}'), timeout_seconds=5)

    with pytest.raises(UpstreamMalformedError):
        await oracle.generate_question("Java", "Easy")


@pytest.mark.asyncio
async def test_non_text_reply_is_malformed():
    oracle = GradingOracle(llm=FakeLLM(reply=[{"type": "text"}]), timeout_seconds=5)

    with pytest.raises(UpstreamMalformedError):
        await oracle.generate_question("Java", "Easy")


@pytest.mark.asyncio
async def test_missing_api_key_is_auth_error():
    oracle = GradingOracle(api_key="")

    assert oracle.llm is None
    with pytest.raises(UpstreamAuthError):
        await oracle.generate_question("Python", "Easy")


@pytest.mark.asyncio
async def test_slow_reply_times_out():
    oracle = GradingOracle(llm=FakeLLM(reply="{}", delay=1.0), timeout_seconds=0.05)

    with pytest.raises(UpstreamTimeoutError):
        await oracle.generate_question("Python", "Easy")


@pytest.mark.asyncio
async def test_client_errors_are_classified():
    error = _status_error(openai.RateLimitError, 429)
    oracle = GradingOracle(llm=FakeLLM(error=error), timeout_seconds=5)

    with pytest.raises(UpstreamRateLimitedError) as exc_info:
        await oracle.evaluate_answer("Q", "A", "I")
    assert exc_info.value.status_code == 429


def test_classify_openai_errors():
    assert isinstance(classify_oracle_error(_status_error(openai.AuthenticationError, 401)), UpstreamAuthError)
    assert isinstance(classify_oracle_error(_status_error(openai.PermissionDeniedError, 403)), UpstreamAuthError)
    assert isinstance(classify_oracle_error(_status_error(openai.RateLimitError, 429)), UpstreamRateLimitedError)
    assert isinstance(
        classify_oracle_error(openai.APITimeoutError(request=httpx.Request("POST", OPENAI_URL))),
        UpstreamTimeoutError
    )

    server_error = classify_oracle_error(_status_error(openai.InternalServerError, 500))
    assert type(server_error) is UpstreamError
    assert server_error.status_code == 502


def test_classify_by_message():
    assert isinstance(classify_oracle_error(RuntimeError("Invalid API key provided")), UpstreamAuthError)
    assert isinstance(classify_oracle_error(RuntimeError("HTTP 429 Too Many Requests")), UpstreamRateLimitedError)
    assert type(classify_oracle_error(RuntimeError("boom"))) is UpstreamError


def test_extract_json_object_plain_block():
    assert extract_json_object('```\n{"a": 1}\n```') == {"a": 1}
    with pytest.raises(UpstreamMalformedError):
        extract_json_object("")
