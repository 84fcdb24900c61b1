"""
Practice router for quiz attempts.

Endpoints for:
- Start/resume a session on a paper
- Answer recording (versioned) and navigation
- Completion with an idempotency key
- Global leaderboard
- Result history and per-user reset

The user id is taken as given; identity is verified upstream.
"""
from __future__ import annotations

from datetime import datetime
from functools import lru_cache
from typing import Dict, List, Optional, Union

from fastapi import APIRouter, Depends, Header, Query
from loguru import logger
from pydantic import BaseModel, Field

from src.quiz.errors import InvalidInputError
from src.quiz.leaderboard import LeaderboardEntry
from src.quiz.result_store import ResultRecord
from src.quiz.service import PracticeService
from src.quiz.session_manager import SessionSnapshot

router = APIRouter()


@lru_cache(maxsize=1)
def get_practice_service() -> PracticeService:
    """FastAPI dependency for the practice service."""
    return PracticeService()


# ========================================
# Request/Response Models
# ========================================


class StartSessionRequest(BaseModel):
    """Request model for starting or resuming a session."""

    user_id: str = Field(..., description="Trusted user id from the identity provider")
    paper_name: str = Field(..., description="Paper identifier, e.g. Paper7")
    display_name: Optional[str] = Field(None, description="Name shown on the leaderboard")


class AnswerRequest(BaseModel):
    """Request model for recording an answer."""

    option: str = Field(..., description="Selected option: A, B, C or D")
    expected_version: int = Field(..., description="Session version the client last read")


class NavigateRequest(BaseModel):
    """Request model for moving between questions."""

    direction: Union[int, str] = Field(..., description="+1/-1, 'next' or 'previous'")


class CompleteRequest(BaseModel):
    """Request model for completing a session."""

    idempotency_key: Optional[str] = Field(
        None, description="Caller-chosen key; may also be sent as the Idempotency-Key header"
    )


class SessionResponse(BaseModel):
    """Response model for a session."""

    id: str
    user_id: str
    paper_name: str
    display_name: Optional[str]
    current_question_index: int
    selected_answers: Dict[int, str]
    answered_count: int
    started_at: datetime
    last_updated: datetime
    version: int
    status: str


class ResultResponse(BaseModel):
    """Response model for a completed attempt."""

    id: str
    user_id: str
    display_name: Optional[str]
    paper_name: str
    score: int
    correct_answers: int
    wrong_answers: int
    started_at: datetime
    completed_at: datetime
    time_taken_minutes: int


class CompletionResponse(BaseModel):
    """Response model for a completion request."""

    result: ResultResponse
    replayed: bool = Field(..., description="True when the idempotency key was already used")


class LeaderboardEntryResponse(BaseModel):
    """Response model for one leaderboard position."""

    rank: int
    user_id: str
    display_name: str
    score: int
    paper_name: str
    completed_at: datetime


class ResetResponse(BaseModel):
    """Response model for a user reset."""

    user_id: str
    sessions_cleared: int
    papers: List[str]


class BestScoreResponse(BaseModel):
    """Response model for the best score on a paper."""

    user_id: str
    paper_name: str
    best_score: Optional[int]


def _session_response(snapshot: SessionSnapshot) -> SessionResponse:
    return SessionResponse(answered_count=snapshot.answered_count, **snapshot.to_dict())


def _result_response(record: ResultRecord) -> ResultResponse:
    return ResultResponse(
        id=record.id,
        user_id=record.user_id,
        display_name=record.display_name,
        paper_name=record.paper_name,
        score=record.score,
        correct_answers=record.correct_answers,
        wrong_answers=record.wrong_answers,
        started_at=record.started_at,
        completed_at=record.completed_at,
        time_taken_minutes=record.time_taken_minutes,
    )


def _entry_response(entry: LeaderboardEntry) -> LeaderboardEntryResponse:
    return LeaderboardEntryResponse(
        rank=entry.rank,
        user_id=entry.user_id,
        display_name=entry.display_name,
        score=entry.score,
        paper_name=entry.paper_name,
        completed_at=entry.completed_at,
    )


# ========================================
# Session Endpoints
# ========================================


@router.post("/sessions", response_model=SessionResponse, summary="Start or resume a session")
def start_session(
    request: StartSessionRequest,
    service: PracticeService = Depends(get_practice_service),
) -> SessionResponse:
    """Return the user's session on the paper, creating it at question 1 if none exists."""
    snapshot = service.start_or_resume(request.user_id, request.paper_name, request.display_name)
    return _session_response(snapshot)


@router.get("/sessions/{session_id}", response_model=SessionResponse, summary="Get session")
def get_session(
    session_id: str,
    service: PracticeService = Depends(get_practice_service),
) -> SessionResponse:
    return _session_response(service.get_session(session_id))


@router.put(
    "/sessions/{session_id}/answers/{question_no}",
    response_model=SessionResponse,
    summary="Record an answer",
)
def submit_answer(
    session_id: str,
    question_no: int,
    request: AnswerRequest,
    service: PracticeService = Depends(get_practice_service),
) -> SessionResponse:
    """
    Record the selected option for a question.

    Returns 409 when ``expected_version`` is stale; refetch the session and retry.
    """
    snapshot = service.submit_answer(
        session_id, question_no, request.option, request.expected_version
    )
    return _session_response(snapshot)


@router.post(
    "/sessions/{session_id}/navigate",
    response_model=SessionResponse,
    summary="Move to the next or previous question",
)
def navigate(
    session_id: str,
    request: NavigateRequest,
    service: PracticeService = Depends(get_practice_service),
) -> SessionResponse:
    return _session_response(service.navigate(session_id, request.direction))


@router.post(
    "/sessions/{session_id}/complete",
    response_model=CompletionResponse,
    summary="Complete and score a session",
)
def complete_session(
    session_id: str,
    request: CompleteRequest,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    service: PracticeService = Depends(get_practice_service),
) -> CompletionResponse:
    """
    Score the session and store the result.

    Retrying with the same key returns the same result without rescoring.
    """
    key = request.idempotency_key or idempotency_key
    if not key:
        raise InvalidInputError("An idempotency key is required")

    outcome = service.complete_session(session_id, key)
    if outcome.replayed:
        logger.info("Completion replay for session {} (key {})", session_id, key)
    return CompletionResponse(result=_result_response(outcome.result), replayed=outcome.replayed)


# ========================================
# Leaderboard Endpoints
# ========================================


@router.get(
    "/leaderboard",
    response_model=List[LeaderboardEntryResponse],
    summary="Global leaderboard",
)
def get_leaderboard(
    service: PracticeService = Depends(get_practice_service),
) -> List[LeaderboardEntryResponse]:
    """Top results across all papers, best first."""
    return [_entry_response(entry) for entry in service.get_leaderboard()]


@router.post(
    "/leaderboard/rebuild",
    response_model=List[LeaderboardEntryResponse],
    summary="Recompute the leaderboard from stored results",
)
def rebuild_leaderboard(
    service: PracticeService = Depends(get_practice_service),
) -> List[LeaderboardEntryResponse]:
    return [_entry_response(entry) for entry in service.rebuild_leaderboard()]


# ========================================
# User Endpoints
# ========================================


@router.get(
    "/users/{user_id}/sessions",
    response_model=List[SessionResponse],
    summary="List a user's in-progress sessions",
)
def list_user_sessions(
    user_id: str,
    service: PracticeService = Depends(get_practice_service),
) -> List[SessionResponse]:
    return [_session_response(snapshot) for snapshot in service.list_sessions(user_id)]


@router.delete(
    "/users/{user_id}/sessions",
    response_model=ResetResponse,
    summary="Reset all of a user's sessions",
)
def reset_user(
    user_id: str,
    service: PracticeService = Depends(get_practice_service),
) -> ResetResponse:
    """Clear every in-progress session of the user. Results are kept."""
    report = service.reset_user(user_id)
    return ResetResponse(
        user_id=report.user_id,
        sessions_cleared=report.sessions_cleared,
        papers=report.papers,
    )


@router.get(
    "/users/{user_id}/results",
    response_model=List[ResultResponse],
    summary="List a user's completed attempts",
)
def list_user_results(
    user_id: str,
    paper_name: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    service: PracticeService = Depends(get_practice_service),
) -> List[ResultResponse]:
    return [_result_response(r) for r in service.list_results(user_id, paper_name, limit)]


@router.get(
    "/users/{user_id}/papers/{paper_name}/best-score",
    response_model=BestScoreResponse,
    summary="Best score of a user on a paper",
)
def best_score(
    user_id: str,
    paper_name: str,
    service: PracticeService = Depends(get_practice_service),
) -> BestScoreResponse:
    return BestScoreResponse(
        user_id=user_id,
        paper_name=paper_name,
        best_score=service.best_score(user_id, paper_name),
    )
