"""
Analytics schemas
Pydantic models for per-topic rollups, summaries and progress trends
"""

from pydantic import BaseModel, Field
from typing import List, Optional


class BucketStats(BaseModel):
    total: int = 0
    correct: int = 0


class DifficultyStats(BaseModel):
    """
    Fixed three-bucket accumulator inside a rollup
    """
    easy: BucketStats = Field(default_factory=BucketStats)
    medium: BucketStats = Field(default_factory=BucketStats)
    hard: BucketStats = Field(default_factory=BucketStats)


class AnalyticsRollup(BaseModel):
    """
    Per (user, topic) running counters
    """
    id: Optional[str] = None
    user_id: str
    topic: str
    total_questions: int = 0
    correct_answers: int = 0
    accuracy: float = 0.0
    difficulty_stats: DifficultyStats = Field(default_factory=DifficultyStats)
    last_updated: Optional[str] = None
    # Most recent answers counted, so a retried update is applied once
    recent_answer_ids: List[str] = Field(default_factory=list)


class TopicPerformance(BaseModel):
    topic: str
    accuracy: float
    totalQuestions: int
    correctAnswers: int


class DifficultyPerformance(BaseModel):
    total: int = 0
    correct: int = 0
    accuracy: float = 0.0


class DifficultyWisePerformance(BaseModel):
    easy: DifficultyPerformance = Field(default_factory=DifficultyPerformance)
    medium: DifficultyPerformance = Field(default_factory=DifficultyPerformance)
    hard: DifficultyPerformance = Field(default_factory=DifficultyPerformance)


class UserSummary(BaseModel):
    """
    Schema for the analytics summary of one user
    topicWisePerformance follows the order the store returns rollups in
    """
    totalInterviews: int
    overallAccuracy: float
    topicWisePerformance: List[TopicPerformance]
    difficultyWisePerformance: DifficultyWisePerformance


class TrendPoint(BaseModel):
    """
    One point per interview (canonical trend mode)
    """
    date: str  # Interview creation timestamp, ISO 8601
    accuracy: float
    topic: str
    interview_id: str


class WeeklyTrendPoint(BaseModel):
    """
    One point per ISO-8601 week (alternative trend mode)
    """
    week: str  # e.g. 2026-W07
    accuracy: float
    total_questions: int
    correct_answers: int
