"""
Interview session lifecycle: start, ask, grade, finish, review

Operations that change an interview (answering, asking the next question,
ending) are serialized per interview, which keeps its counters exact and
guarantees at most one answer per question.
"""

import logging
from typing import List, Optional

from app.db.record_store import RecordStore, AnyOf, ANSWERS, INTERVIEWS, QUESTIONS
from app.schemas.interview import (
    Difficulty,
    GeneratedQuestion,
    InterviewDetailItem,
    InterviewDetailResponse,
    InterviewRecord,
    InterviewStatus,
    NextQuestionResponse,
    QuestionOut,
    StartInterviewResponse,
    SubmitAnswerResponse,
    Topic,
)
from app.services.analytics_dispatcher import AnalyticsDispatcher
from app.services.grading_oracle import GradingOracle
from app.utils.datetime_utils import utc_now_iso
from app.utils.exceptions import (
    AppException,
    ConcurrencyConflictError,
    DuplicateAnswerError,
    InterviewClosedError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from app.utils.keyed_lock import KeyedLock

logger = logging.getLogger(__name__)


class InterviewManager:
    def __init__(
        self,
        store: RecordStore,
        oracle: GradingOracle,
        analytics: AnalyticsDispatcher,
        history_limit: int = 10,
    ):
        self.store = store
        self.oracle = oracle
        self.analytics = analytics
        self.history_limit = history_limit
        self._interview_locks = KeyedLock()

    async def start_interview(self, user_id: str, topic: str, difficulty: str) -> StartInterviewResponse:
        """
        Create an interview and its first question
        The question is generated before anything is written, so an AI
        failure leaves no half-created interview behind
        """
        topic = Topic.parse(topic)
        level = Difficulty.parse(difficulty)

        generated = await self.oracle.generate_question(topic.value, level.value)

        now = utc_now_iso()
        interview = await self.store.insert(INTERVIEWS, {
            "user_id": user_id,
            "topic": topic.value,
            "difficulty": level.value,
            "status": InterviewStatus.ACTIVE.value,
            "totalQuestions": 1,
            "correctAnswers": 0,
            "created_at": now,
            "updated_at": now
        })
        try:
            question = await self._save_question(interview, generated)
        except Exception:
            await self._discard_interview(interview["id"])
            raise

        logger.info(
            f"[INTERVIEW][START] user={user_id} interview={interview['id']} "
            f"topic={topic.value} difficulty={level.value}"
        )
        return StartInterviewResponse(
            interview_id=interview["id"],
            question=QuestionOut(id=question["id"], text=question["question_text"])
        )

    async def submit_answer(self, user_id: str, question_id: str, response_text: str) -> SubmitAnswerResponse:
        if not response_text or not response_text.strip():
            raise ValidationError("user_response is required")

        question = await self.store.find_by_id(QUESTIONS, question_id)
        if not question:
            raise NotFoundError("Question", question_id)

        async with self._interview_locks.hold(question["interview_id"]):
            interview = await self._get_interview(question["interview_id"], user_id)
            self._ensure_active(interview)

            if await self.store.count(ANSWERS, {"question_id": question_id}) > 0:
                raise DuplicateAnswerError(question_id)

            # Oracle failures propagate before anything is persisted
            evaluation = await self.oracle.evaluate_answer(
                question["question_text"],
                response_text,
                question.get("ideal_answer") or ""
            )

            try:
                answer = await self.store.insert(ANSWERS, {
                    "user_id": user_id,
                    "question_id": question_id,
                    "user_response": response_text,
                    "score": evaluation.score,
                    "feedback": evaluation.feedback,
                    "is_correct": evaluation.is_correct,
                    "created_at": utc_now_iso()
                })
            except ConcurrencyConflictError:
                # Answered through another process since the check above
                raise DuplicateAnswerError(question_id)

            # A stored answer is always counted, whatever happens to the interview update
            self.analytics.submit(
                user_id,
                question["topic"],
                question["difficulty"],
                evaluation.is_correct,
                answer_id=answer["id"]
            )

            await self.store.update(INTERVIEWS, interview["id"], {
                "totalQuestions": interview["totalQuestions"] + 1,
                "correctAnswers": interview["correctAnswers"] + (1 if evaluation.is_correct else 0),
                "updated_at": utc_now_iso()
            })

        logger.info(
            f"[INTERVIEW][ANSWER] user={user_id} question={question_id} "
            f"score={evaluation.score} correct={evaluation.is_correct}"
        )
        return SubmitAnswerResponse(
            score=evaluation.score,
            feedback=evaluation.feedback,
            is_correct=evaluation.is_correct
        )

    async def get_next_question(self, interview_id: str, user_id: Optional[str] = None) -> NextQuestionResponse:
        async with self._interview_locks.hold(interview_id):
            interview = await self._get_interview(interview_id, user_id)
            self._ensure_active(interview)

            generated = await self.oracle.generate_question(interview["topic"], interview["difficulty"])
            question = await self._save_question(interview, generated)

            await self.store.update(INTERVIEWS, interview_id, {
                "totalQuestions": interview["totalQuestions"] + 1,
                "updated_at": utc_now_iso()
            })

        logger.info(f"[INTERVIEW][NEXT] interview={interview_id} question={question['id']}")
        return NextQuestionResponse(
            question=QuestionOut(id=question["id"], text=question["question_text"])
        )

    async def end_interview(self, interview_id: str, user_id: Optional[str] = None) -> InterviewRecord:
        """Mark the interview completed; ending it again changes nothing"""
        async with self._interview_locks.hold(interview_id):
            interview = await self._get_interview(interview_id, user_id)
            if interview["status"] != InterviewStatus.COMPLETED.value:
                interview = await self.store.update(INTERVIEWS, interview_id, {
                    "status": InterviewStatus.COMPLETED.value,
                    "updated_at": utc_now_iso()
                })
                logger.info(f"[INTERVIEW][END] interview={interview_id}")
        return InterviewRecord.model_validate(interview)

    async def get_history(self, user_id: str) -> List[InterviewRecord]:
        rows = await self.store.find(
            INTERVIEWS,
            {"user_id": user_id},
            order_by="created_at",
            desc=True,
            limit=self.history_limit
        )
        return [InterviewRecord.model_validate(row) for row in rows]

    async def get_interview_detail(self, user_id: str, interview_id: str) -> InterviewDetailResponse:
        interview = await self._get_interview(interview_id, user_id)

        questions = await self.store.find(QUESTIONS, {"interview_id": interview_id}, order_by="created_at")
        answers = await self.store.find(ANSWERS, {
            "question_id": AnyOf(q["id"] for q in questions),
            "user_id": user_id
        })
        answers_by_question = {answer["question_id"]: answer for answer in answers}

        details = []
        for question in questions:
            answer = answers_by_question.get(question["id"])
            details.append(InterviewDetailItem(
                question_id=question["id"],
                question_text=question["question_text"],
                topic=question["topic"],
                difficulty=question["difficulty"],
                ideal_answer=question.get("ideal_answer"),
                user_response=answer["user_response"] if answer else None,
                score=answer["score"] if answer else None,
                feedback=answer["feedback"] if answer else None,
                is_correct=answer["is_correct"] if answer else None
            ))

        return InterviewDetailResponse(
            interview=InterviewRecord.model_validate(interview),
            details=details
        )

    async def _get_interview(self, interview_id: str, user_id: Optional[str]) -> dict:
        interview = await self.store.find_by_id(INTERVIEWS, interview_id)
        if not interview:
            raise NotFoundError("Interview", interview_id)
        if user_id is not None and interview["user_id"] != user_id:
            logger.warning(f"[INTERVIEW] user={user_id} denied access to interview={interview_id}")
            raise UnauthorizedError("Interview")
        return interview

    async def _discard_interview(self, interview_id: str) -> None:
        """Remove an interview whose first question could not be stored"""
        try:
            await self.store.delete(INTERVIEWS, interview_id)
            logger.warning(f"[INTERVIEW][START] Removed interview={interview_id}; first question was not saved")
        except AppException as e:
            logger.error(f"[INTERVIEW][START] Could not remove interview={interview_id}: {e.message}")

    @staticmethod
    def _ensure_active(interview: dict) -> None:
        if interview["status"] == InterviewStatus.COMPLETED.value:
            raise InterviewClosedError(interview["id"])

    async def _save_question(self, interview: dict, generated: GeneratedQuestion) -> dict:
        return await self.store.insert(QUESTIONS, {
            "interview_id": interview["id"],
            "question_text": generated.question,
            "topic": interview["topic"],
            "difficulty": interview["difficulty"],
            "ideal_answer": generated.ideal_answer,
            "generated_by": "AI",
            "created_at": utc_now_iso()
        })
