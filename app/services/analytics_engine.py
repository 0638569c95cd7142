"""
Analytics aggregation engine

Maintains one running rollup per (user, topic) and derives the summary and
progress-trend views served by the analytics routes.

The rollup is an incremental cache: it is updated once per graded answer
and never recomputed from answers at read time. Trends are the exception,
since rollups carry no time dimension; they read interview history directly.
"""

import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple, Union

from app.db.record_store import RecordStore, Range, ANALYTICS, INTERVIEWS
from app.schemas.analytics import (
    AnalyticsRollup,
    BucketStats,
    DifficultyPerformance,
    DifficultyStats,
    DifficultyWisePerformance,
    TopicPerformance,
    TrendPoint,
    UserSummary,
    WeeklyTrendPoint,
)
from app.schemas.interview import Difficulty, Topic
from app.utils.datetime_utils import iso_week_label, to_iso, utc_now
from app.utils.exceptions import ConcurrencyConflictError, NotFoundError, ValidationError
from app.utils.keyed_lock import KeyedLock

logger = logging.getLogger(__name__)

# Answer ids remembered per rollup for retry detection
RECENT_ANSWER_WINDOW = 50


class TrendMode(str, Enum):
    INTERVIEW = "interview"
    WEEK = "week"


def percentage(part: int, whole: int) -> float:
    """part / whole as a percentage; 0 when whole is 0"""
    if whole <= 0:
        return 0.0
    return (part / whole) * 100


def difficulty_bucket(stats: DifficultyStats, level: Difficulty) -> BucketStats:
    """The bucket of a rollup's difficulty_stats that counts answers at this level"""
    if level is Difficulty.EASY:
        return stats.easy
    if level is Difficulty.MEDIUM:
        return stats.medium
    if level is Difficulty.HARD:
        return stats.hard
    raise ValidationError(f"Invalid difficulty: {level}")


def apply_graded_answer(
    rollup: AnalyticsRollup,
    difficulty: Difficulty,
    is_correct: bool,
    at: datetime,
    answer_id: Optional[str] = None,
) -> AnalyticsRollup:
    """
    Return a copy of the rollup with one more graded answer counted
    The topic counters and the difficulty bucket move together
    """
    updated = rollup.model_copy(deep=True)
    updated.total_questions += 1
    if is_correct:
        updated.correct_answers += 1
    updated.accuracy = percentage(updated.correct_answers, updated.total_questions)

    bucket = difficulty_bucket(updated.difficulty_stats, difficulty)
    bucket.total += 1
    if is_correct:
        bucket.correct += 1

    if answer_id:
        updated.recent_answer_ids = (updated.recent_answer_ids + [answer_id])[-RECENT_ANSWER_WINDOW:]
    updated.last_updated = to_iso(at)
    return updated


def summarize_rollups(rollups: List[AnalyticsRollup], total_interviews: int) -> UserSummary:
    total_questions = 0
    total_correct = 0
    topic_performance = []
    by_difficulty = DifficultyWisePerformance()

    for rollup in rollups:
        total_questions += rollup.total_questions
        total_correct += rollup.correct_answers
        topic_performance.append(TopicPerformance(
            topic=rollup.topic,
            accuracy=rollup.accuracy,
            totalQuestions=rollup.total_questions,
            correctAnswers=rollup.correct_answers
        ))
        for level, performance in _performance_by_level(by_difficulty):
            stats = difficulty_bucket(rollup.difficulty_stats, level)
            performance.total += stats.total
            performance.correct += stats.correct

    for _, performance in _performance_by_level(by_difficulty):
        performance.accuracy = percentage(performance.correct, performance.total)

    # Weighted by question count, not an average of per-topic accuracies
    return UserSummary(
        totalInterviews=total_interviews,
        overallAccuracy=percentage(total_correct, total_questions),
        topicWisePerformance=topic_performance,
        difficultyWisePerformance=by_difficulty
    )


def _performance_by_level(performance: DifficultyWisePerformance) -> List[Tuple[Difficulty, DifficultyPerformance]]:
    return [
        (Difficulty.EASY, performance.easy),
        (Difficulty.MEDIUM, performance.medium),
        (Difficulty.HARD, performance.hard),
    ]


def interview_trend_points(interviews: List[dict]) -> List[TrendPoint]:
    ordered = sorted(interviews, key=lambda i: i["created_at"])
    return [
        TrendPoint(
            date=interview["created_at"],
            accuracy=percentage(interview.get("correctAnswers", 0), interview.get("totalQuestions", 0)),
            topic=interview["topic"],
            interview_id=interview["id"]
        )
        for interview in ordered
    ]


def weekly_trend_points(interviews: List[dict]) -> List[WeeklyTrendPoint]:
    weeks: Dict[str, Dict[str, int]] = {}
    for interview in interviews:
        label = iso_week_label(interview["created_at"])
        totals = weeks.setdefault(label, {"correct": 0, "total": 0})
        totals["correct"] += interview.get("correctAnswers", 0)
        totals["total"] += interview.get("totalQuestions", 0)

    # "YYYY-Www" labels sort chronologically as strings
    return [
        WeeklyTrendPoint(
            week=label,
            accuracy=percentage(weeks[label]["correct"], weeks[label]["total"]),
            total_questions=weeks[label]["total"],
            correct_answers=weeks[label]["correct"]
        )
        for label in sorted(weeks)
    ]


class AnalyticsEngine:
    """Per-user accuracy rollups, summaries and trends"""

    def __init__(
        self,
        store: RecordStore,
        trend_window_days: int = 30,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.trend_window_days = trend_window_days
        self.clock = clock
        self._locks = KeyedLock()

    async def record_graded_answer(
        self,
        user_id: str,
        topic: str,
        difficulty: Union[str, Difficulty],
        is_correct: bool,
        answer_id: Optional[str] = None,
    ) -> AnalyticsRollup:
        """
        Count one graded answer in the (user, topic) rollup, creating it on
        first use. Updates for the same pair are serialized; the new state is
        written in a single store call.
        With answer_id, an answer already counted in the rollup is not
        counted again, so a retried update is safe.
        """
        level = Difficulty.parse(difficulty)

        async with self._locks.hold((user_id, topic)):
            for attempt in range(2):
                existing = await self.store.find_one(ANALYTICS, {"user_id": user_id, "topic": topic})
                if existing:
                    current = AnalyticsRollup.model_validate(existing)
                else:
                    current = AnalyticsRollup(user_id=user_id, topic=topic)

                if answer_id and answer_id in current.recent_answer_ids:
                    logger.info(f"[ANALYTICS] Answer {answer_id} already counted for user={user_id} topic={topic}")
                    return current

                updated = apply_graded_answer(current, level, bool(is_correct), self.clock(), answer_id)
                payload = updated.model_dump(mode="json", exclude={"id"})

                if existing:
                    saved = await self.store.update(ANALYTICS, existing["id"], payload)
                    break
                try:
                    saved = await self.store.insert(ANALYTICS, payload)
                    break
                except ConcurrencyConflictError:
                    # Another process created the rollup after our read
                    if attempt:
                        raise
                    logger.warning(f"[ANALYTICS] Rollup user={user_id} topic={topic} created concurrently; re-reading")

        logger.debug(
            f"[ANALYTICS] user={user_id} topic={topic} total={updated.total_questions} "
            f"correct={updated.correct_answers}"
        )
        return AnalyticsRollup.model_validate(saved)

    async def get_user_summary(self, user_id: str) -> UserSummary:
        rows = await self.store.find(ANALYTICS, {"user_id": user_id})
        total_interviews = await self.store.count(INTERVIEWS, {"user_id": user_id})
        rollups = [AnalyticsRollup.model_validate(row) for row in rows]
        return summarize_rollups(rollups, total_interviews)

    async def get_progress_trends(
        self,
        user_id: str,
        mode: Union[str, TrendMode] = TrendMode.INTERVIEW,
    ) -> Union[List[TrendPoint], List[WeeklyTrendPoint]]:
        """
        Accuracy over the interviews created in the trailing window
        mode "interview" gives one point per interview (default),
        mode "week" aggregates interviews per ISO week
        """
        try:
            mode = TrendMode(mode)
        except ValueError:
            raise ValidationError(
                f"Invalid trend mode: {mode}. Expected 'interview' or 'week'.",
                details={"mode": str(mode)}
            )

        since = to_iso(self.clock() - timedelta(days=self.trend_window_days))
        interviews = await self.store.find(
            INTERVIEWS,
            {"user_id": user_id, "created_at": Range(gte=since)},
            order_by="created_at"
        )

        if mode is TrendMode.WEEK:
            return weekly_trend_points(interviews)
        return interview_trend_points(interviews)

    async def get_topic_rollup(self, user_id: str, topic: str) -> AnalyticsRollup:
        topic = Topic.parse(topic).value
        row = await self.store.find_one(ANALYTICS, {"user_id": user_id, "topic": topic})
        if not row:
            raise NotFoundError("Analytics", topic)
        return AnalyticsRollup.model_validate(row)
