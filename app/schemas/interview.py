"""
Interview-related schemas
Pydantic models for interview requests and responses, plus the fixed
topic/difficulty/status enumerations shared with the analytics engine
"""

from enum import Enum
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional

from app.utils.exceptions import InvalidTopicError, ValidationError


class Topic(str, Enum):
    JAVASCRIPT = "JavaScript"
    PYTHON = "Python"
    JAVA = "Java"
    DATA_STRUCTURES = "Data Structures"
    ALGORITHMS = "Algorithms"
    DBMS = "DBMS"
    SYSTEM_DESIGN = "System Design"
    REACT = "React"
    NODEJS = "Node.js"

    @classmethod
    def parse(cls, value: str) -> "Topic":
        """Exact match against the fixed topic set"""
        try:
            return cls(value)
        except ValueError:
            raise InvalidTopicError(str(value), allowed=[t.value for t in cls])


class Difficulty(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"

    @classmethod
    def parse(cls, value: str) -> "Difficulty":
        """Case-insensitive match: "easy", "EASY" and "Easy" are the same level"""
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower()
        if normalized == "easy":
            return cls.EASY
        if normalized == "medium":
            return cls.MEDIUM
        if normalized == "hard":
            return cls.HARD
        raise ValidationError(
            f"Invalid difficulty: {value}. Expected one of Easy, Medium, Hard.",
            details={"difficulty": value}
        )


class InterviewStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


class StartInterviewRequest(BaseModel):
    """
    Schema for starting an interview
    Topic and difficulty are validated by the interview manager so that
    an unknown topic is reported as invalid_topic rather than a schema error
    """
    topic: str
    difficulty: str


class QuestionOut(BaseModel):
    """
    Question as shown to the candidate; the ideal answer is never included
    """
    id: str
    text: str


class StartInterviewResponse(BaseModel):
    interview_id: str
    question: QuestionOut


class NextQuestionResponse(BaseModel):
    question: QuestionOut


class SubmitAnswerRequest(BaseModel):
    question_id: str
    user_response: str = Field(..., description="Candidate's free-text answer")

    @field_validator("question_id")
    @classmethod
    def _question_id_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("question_id is required")
        return value


class SubmitAnswerResponse(BaseModel):
    score: float
    feedback: str
    is_correct: bool


class InterviewRecord(BaseModel):
    """
    Interview header as stored
    """
    id: str
    user_id: str
    topic: str
    difficulty: str
    status: InterviewStatus
    totalQuestions: int
    correctAnswers: int
    created_at: str
    updated_at: Optional[str] = None


class EndInterviewResponse(BaseModel):
    message: str
    interview: InterviewRecord


class InterviewDetailItem(BaseModel):
    """
    One question of an interview joined with its answer
    Answer fields are null when the question was never answered
    """
    question_id: str
    question_text: str
    topic: str
    difficulty: str
    ideal_answer: Optional[str] = None
    user_response: Optional[str] = None
    score: Optional[float] = None
    feedback: Optional[str] = None
    is_correct: Optional[bool] = None


class InterviewDetailResponse(BaseModel):
    interview: InterviewRecord
    details: List[InterviewDetailItem]


class GeneratedQuestion(BaseModel):
    """
    Question payload expected back from the AI service
    """
    question: str
    ideal_answer: str = ""

    @field_validator("question")
    @classmethod
    def _question_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("question text is empty")
        return value


class AnswerEvaluation(BaseModel):
    """
    Evaluation payload expected back from the AI service
    """
    score: float
    feedback: str
    is_correct: bool

    @field_validator("score")
    @classmethod
    def _clamp_score(cls, value: float) -> float:
        # Ensure score is in valid range
        return max(0.0, min(100.0, float(value)))

    @field_validator("feedback")
    @classmethod
    def _feedback_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("feedback is empty")
        return value
