# backend/prepcoach/interview_flow.py
"""
Interview lifecycle: draft -> in-progress -> completed.

These functions mutate an Interview in memory and never touch storage; the
service layer persists the result with a version check.
"""

import logging
import random
from datetime import datetime
from typing import Optional

from .errors import InvalidStateError, NotFoundError, ValidationError
from .feedback import build_ai_feedback
from .question_bank import select_questions
from .schemas import (
    Difficulty,
    Feedback,
    Interview,
    InterviewStatus,
    InterviewType,
    Question,
    Response,
    utcnow,
)
from .scoring import aggregate

logger = logging.getLogger(__name__)

DRAFT = InterviewStatus.DRAFT.value
IN_PROGRESS = InterviewStatus.IN_PROGRESS.value
COMPLETED = InterviewStatus.COMPLETED.value


def _require(interview: Interview, required: str, action: str) -> None:
    if interview.status != required:
        raise InvalidStateError(
            f"Interview cannot {action} while '{interview.status}'; it must be '{required}'",
            current=interview.status,
            required=required,
        )


def create_interview(
    owner: str,
    title: str,
    interview_type: str,
    difficulty: str,
    question_count: int,
    rng: Optional[random.Random] = None,
) -> Interview:
    if not title or not title.strip():
        raise ValidationError("title is required")
    if question_count < 1:
        raise ValidationError("question_count must be at least 1")
    try:
        interview_type = InterviewType(interview_type)
        difficulty = Difficulty(difficulty)
    except ValueError as e:
        raise ValidationError(str(e)) from e

    questions = select_questions(interview_type, difficulty, question_count, rng=rng)
    return Interview(
        owner=owner,
        title=title.strip(),
        type=interview_type,
        difficulty=difficulty,
        questions=questions,
    )


def start(interview: Interview, now: Optional[datetime] = None) -> Interview:
    _require(interview, DRAFT, "start")
    interview.status = IN_PROGRESS
    interview.started_at = now or utcnow()
    logger.info("Interview %s started", interview.id)
    return interview


def _question(interview: Interview, question_id: str) -> Question:
    question = interview.find_question(question_id)
    if question is None:
        raise NotFoundError(f"Question {question_id} not found in interview {interview.id}")
    return question


def record_response(interview: Interview, question_id: str, response: Response) -> Question:
    """Store (or overwrite) the response; any earlier analysis is discarded."""
    _require(interview, IN_PROGRESS, "accept responses")
    question = _question(interview, question_id)
    question.response = response
    question.analysis = None
    return question


def attach_analysis(interview: Interview, question_id: str, analysis) -> Question:
    _require(interview, IN_PROGRESS, "accept analyses")
    question = _question(interview, question_id)
    if question.response is None:
        raise ValidationError(f"Question {question_id} has no response to analyze")
    question.analysis = analysis
    return question


def complete(interview: Interview, now: Optional[datetime] = None) -> Interview:
    """
    Terminal transition. A second call fails with reason 'already_completed'
    so a client retrying a lost reply can tell its first call succeeded.
    """
    if interview.status == COMPLETED:
        raise InvalidStateError(
            "Interview is already completed",
            current=COMPLETED,
            required=IN_PROGRESS,
            reason="already_completed",
        )
    if interview.status != IN_PROGRESS:
        raise InvalidStateError(
            "Interview has not been started",
            current=interview.status,
            required=IN_PROGRESS,
            reason="not_started",
        )

    completed_at = now or utcnow()
    overall = aggregate(interview.questions)

    interview.status = COMPLETED
    interview.completed_at = completed_at
    interview.duration = max(0, int((completed_at - interview.started_at).total_seconds()))
    interview.overall_analysis = overall
    interview.feedback = Feedback(ai=build_ai_feedback(interview.questions, overall))

    logger.info(
        "Interview %s completed: %d/%d answered, grade %s",
        interview.id, overall.answered_questions, overall.total_questions, overall.grade,
    )
    return interview
