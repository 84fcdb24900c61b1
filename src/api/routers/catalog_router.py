"""
Catalog router: read-only access to published papers.

Answer keys are never returned here.
"""
from __future__ import annotations

from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from src.api.routers.practice_router import get_practice_service
from src.quiz.service import PracticeService

router = APIRouter()


class PaperSummaryResponse(BaseModel):
    """Response model for a paper listing row."""

    name: str
    title: Optional[str]
    question_count: int


class QuestionResponse(BaseModel):
    """Response model for a question as shown to a candidate."""

    number: int
    text: str
    options: Dict[str, str]


class PaperResponse(BaseModel):
    """Response model for a full paper."""

    name: str
    title: Optional[str]
    questions: List[QuestionResponse]


@router.get("", response_model=List[PaperSummaryResponse], summary="List papers")
def list_papers(
    service: PracticeService = Depends(get_practice_service),
) -> List[PaperSummaryResponse]:
    return [PaperSummaryResponse(**row) for row in service.list_papers()]


@router.get("/{paper_name}", response_model=PaperResponse, summary="Get paper")
def get_paper(
    paper_name: str,
    service: PracticeService = Depends(get_practice_service),
) -> PaperResponse:
    paper = service.get_paper(paper_name)
    return PaperResponse(
        name=paper.name,
        title=paper.title,
        questions=[QuestionResponse(**q.public()) for q in paper.questions],
    )


@router.get(
    "/{paper_name}/questions/{question_no}",
    response_model=QuestionResponse,
    summary="Get question",
)
def get_question(
    paper_name: str,
    question_no: int,
    service: PracticeService = Depends(get_practice_service),
) -> QuestionResponse:
    return QuestionResponse(**service.get_question(paper_name, question_no).public())
