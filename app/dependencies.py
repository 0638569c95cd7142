"""
Service singletons exposed as FastAPI dependencies
Tests replace them through app.dependency_overrides
"""

from typing import Optional

from app.config.settings import settings
from app.db.client import get_record_store
from app.services.analytics_dispatcher import AnalyticsDispatcher
from app.services.analytics_engine import AnalyticsEngine
from app.services.grading_oracle import GradingOracle
from app.services.interview_manager import InterviewManager

_grading_oracle: Optional[GradingOracle] = None
_analytics_engine: Optional[AnalyticsEngine] = None
_analytics_dispatcher: Optional[AnalyticsDispatcher] = None
_interview_manager: Optional[InterviewManager] = None


def get_grading_oracle() -> GradingOracle:
    global _grading_oracle
    if _grading_oracle is None:
        _grading_oracle = GradingOracle()
    return _grading_oracle


def get_analytics_engine() -> AnalyticsEngine:
    global _analytics_engine
    if _analytics_engine is None:
        _analytics_engine = AnalyticsEngine(
            get_record_store(),
            trend_window_days=settings.trend_window_days
        )
    return _analytics_engine


def get_analytics_dispatcher() -> AnalyticsDispatcher:
    global _analytics_dispatcher
    if _analytics_dispatcher is None:
        _analytics_dispatcher = AnalyticsDispatcher(
            get_analytics_engine(),
            max_attempts=settings.analytics_retry_attempts,
            retry_delay_seconds=settings.analytics_retry_delay_seconds
        )
    return _analytics_dispatcher


def get_interview_manager() -> InterviewManager:
    global _interview_manager
    if _interview_manager is None:
        _interview_manager = InterviewManager(
            get_record_store(),
            get_grading_oracle(),
            get_analytics_dispatcher(),
            history_limit=settings.history_limit
        )
    return _interview_manager


def active_dispatcher() -> Optional[AnalyticsDispatcher]:
    """The dispatcher if one was created, without creating it"""
    return _analytics_dispatcher
