"""
Analytics routes for performance summaries and progress trends
"""

from typing import List, Union

from fastapi import APIRouter, Depends, Query, Response

from app.dependencies import get_analytics_engine
from app.schemas.analytics import AnalyticsRollup, TrendPoint, UserSummary, WeeklyTrendPoint
from app.services.analytics_engine import AnalyticsEngine, TrendMode
from app.utils.security import get_current_user_id

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


def _no_store(response: Response) -> None:
    # Analytics change after every graded answer; prevent CDN/browser caching
    response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
    response.headers["Pragma"] = "no-cache"


@router.get("/user", response_model=UserSummary)
async def get_user_analytics(
    response: Response,
    user_id: str = Depends(get_current_user_id),
    engine: AnalyticsEngine = Depends(get_analytics_engine)
):
    """Overall, per-topic and per-difficulty accuracy for the current user"""
    _no_store(response)
    return await engine.get_user_summary(user_id)


@router.get("/trends", response_model=Union[List[TrendPoint], List[WeeklyTrendPoint]])
async def get_progress_trends(
    response: Response,
    mode: TrendMode = Query(TrendMode.INTERVIEW, description="'interview' (one point per interview) or 'week' (ISO weeks)"),
    user_id: str = Depends(get_current_user_id),
    engine: AnalyticsEngine = Depends(get_analytics_engine)
):
    """Accuracy over the interviews of the trailing window"""
    _no_store(response)
    return await engine.get_progress_trends(user_id, mode=mode)


@router.get("/topics/{topic}", response_model=AnalyticsRollup)
async def get_topic_analytics(
    topic: str,
    response: Response,
    user_id: str = Depends(get_current_user_id),
    engine: AnalyticsEngine = Depends(get_analytics_engine)
):
    """Raw rollup for one topic"""
    _no_store(response)
    return await engine.get_topic_rollup(user_id, topic)
