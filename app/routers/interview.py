"""
Interview routes
"""

from typing import List

from fastapi import APIRouter, Depends

from app.dependencies import get_interview_manager
from app.schemas.interview import (
    EndInterviewResponse,
    InterviewDetailResponse,
    InterviewRecord,
    NextQuestionResponse,
    StartInterviewRequest,
    StartInterviewResponse,
    SubmitAnswerRequest,
    SubmitAnswerResponse,
)
from app.services.interview_manager import InterviewManager
from app.utils.security import get_current_user_id

router = APIRouter(prefix="/api/interview", tags=["interview"])


@router.post("/start", response_model=StartInterviewResponse)
async def start_interview(
    request: StartInterviewRequest,
    user_id: str = Depends(get_current_user_id),
    manager: InterviewManager = Depends(get_interview_manager)
):
    """Start an interview on a topic/difficulty and return its first question"""
    return await manager.start_interview(user_id, request.topic, request.difficulty)


@router.post("/answer", response_model=SubmitAnswerResponse)
async def submit_answer(
    request: SubmitAnswerRequest,
    user_id: str = Depends(get_current_user_id),
    manager: InterviewManager = Depends(get_interview_manager)
):
    """Grade an answer; the analytics rollup is updated in the background"""
    return await manager.submit_answer(user_id, request.question_id, request.user_response)


@router.get("/next/{interview_id}", response_model=NextQuestionResponse)
async def get_next_question(
    interview_id: str,
    user_id: str = Depends(get_current_user_id),
    manager: InterviewManager = Depends(get_interview_manager)
):
    return await manager.get_next_question(interview_id, user_id=user_id)


@router.put("/end/{interview_id}", response_model=EndInterviewResponse)
async def end_interview(
    interview_id: str,
    user_id: str = Depends(get_current_user_id),
    manager: InterviewManager = Depends(get_interview_manager)
):
    interview = await manager.end_interview(interview_id, user_id=user_id)
    return EndInterviewResponse(message="Interview completed", interview=interview)


@router.get("/history", response_model=List[InterviewRecord])
async def get_interview_history(
    user_id: str = Depends(get_current_user_id),
    manager: InterviewManager = Depends(get_interview_manager)
):
    """Most recent interviews, newest first"""
    return await manager.get_history(user_id)


@router.get("/details/{interview_id}", response_model=InterviewDetailResponse)
async def get_interview_details(
    interview_id: str,
    user_id: str = Depends(get_current_user_id),
    manager: InterviewManager = Depends(get_interview_manager)
):
    """Every question of the interview with the user's answer, score and feedback"""
    return await manager.get_interview_detail(user_id, interview_id)
