import os
import sys
from pathlib import Path

# Must be set before anything imports app.config.settings
os.environ["STORAGE_TYPE"] = "memory"
os.environ["JWT_SECRET"] = "pytest-secret"
os.environ["OPENAI_API_KEY"] = ""
os.environ["ENVIRONMENT"] = "test"

import httpx
import pytest
import pytest_asyncio

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.db.record_store import InMemoryRecordStore
from app.schemas.interview import AnswerEvaluation, GeneratedQuestion
from app.services.analytics_dispatcher import AnalyticsDispatcher
from app.services.analytics_engine import AnalyticsEngine
from app.services.interview_manager import InterviewManager
from app.utils.security import create_access_token


class ScriptedOracle:
    """
    Stand-in for the AI service
    Queued results (or exceptions) are used first; otherwise questions are
    numbered and an answer is correct iff it starts with "right"
    """

    def __init__(self):
        self.questions = []
        self.evaluations = []
        self.generate_calls = []
        self.evaluate_calls = []

    async def generate_question(self, topic, difficulty):
        self.generate_calls.append((topic, difficulty))
        if self.questions:
            result = self.questions.pop(0)
            if isinstance(result, Exception):
                raise result
            return result
        n = len(self.generate_calls)
        return GeneratedQuestion(
            question=f"{difficulty} {topic} question #{n}",
            ideal_answer=f"ideal answer #{n}"
        )

    async def evaluate_answer(self, question, user_answer, ideal_answer):
        self.evaluate_calls.append((question, user_answer, ideal_answer))
        if self.evaluations:
            result = self.evaluations.pop(0)
            if isinstance(result, Exception):
                raise result
            return result
        if user_answer.startswith("right"):
            return AnswerEvaluation(score=90, feedback="Solid answer.", is_correct=True)
        return AnswerEvaluation(score=20, feedback="Missing the key points.", is_correct=False)


@pytest.fixture
def store():
    return InMemoryRecordStore(timeout_seconds=5)


@pytest.fixture
def oracle():
    return ScriptedOracle()


@pytest.fixture
def engine(store):
    return AnalyticsEngine(store, trend_window_days=30)


@pytest.fixture
def dispatcher(engine):
    return AnalyticsDispatcher(engine, max_attempts=3, retry_delay_seconds=0)


@pytest.fixture
def manager(store, oracle, dispatcher):
    return InterviewManager(store, oracle, dispatcher, history_limit=10)


@pytest.fixture
def auth_headers():
    def _headers(user_id: str = "user-1") -> dict:
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}
    return _headers


@pytest_asyncio.fixture
async def client(store, engine, manager):
    from app.db.client import get_record_store
    from app.dependencies import get_analytics_engine, get_interview_manager
    from app.main import app

    app.dependency_overrides[get_record_store] = lambda: store
    app.dependency_overrides[get_analytics_engine] = lambda: engine
    app.dependency_overrides[get_interview_manager] = lambda: manager

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client

    app.dependency_overrides.clear()
