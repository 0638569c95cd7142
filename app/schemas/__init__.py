"""
Pydantic schemas for request/response validation
"""

from .user import (
    UserPreferences,
    SignupRequest,
    LoginRequest,
    UserResponse,
    AuthResponse,
    PreferencesUpdate
)

from .interview import (
    Topic,
    Difficulty,
    InterviewStatus,
    StartInterviewRequest,
    StartInterviewResponse,
    QuestionOut,
    NextQuestionResponse,
    SubmitAnswerRequest,
    SubmitAnswerResponse,
    InterviewRecord,
    EndInterviewResponse,
    InterviewDetailItem,
    InterviewDetailResponse,
    GeneratedQuestion,
    AnswerEvaluation
)

from .analytics import (
    BucketStats,
    DifficultyStats,
    AnalyticsRollup,
    TopicPerformance,
    DifficultyPerformance,
    DifficultyWisePerformance,
    UserSummary,
    TrendPoint,
    WeeklyTrendPoint
)

__all__ = [
    # User schemas
    "UserPreferences",
    "SignupRequest",
    "LoginRequest",
    "UserResponse",
    "AuthResponse",
    "PreferencesUpdate",
    # Interview schemas
    "Topic",
    "Difficulty",
    "InterviewStatus",
    "StartInterviewRequest",
    "StartInterviewResponse",
    "QuestionOut",
    "NextQuestionResponse",
    "SubmitAnswerRequest",
    "SubmitAnswerResponse",
    "InterviewRecord",
    "EndInterviewResponse",
    "InterviewDetailItem",
    "InterviewDetailResponse",
    "GeneratedQuestion",
    "AnswerEvaluation",
    # Analytics schemas
    "BucketStats",
    "DifficultyStats",
    "AnalyticsRollup",
    "TopicPerformance",
    "DifficultyPerformance",
    "DifficultyWisePerformance",
    "UserSummary",
    "TrendPoint",
    "WeeklyTrendPoint"
]
