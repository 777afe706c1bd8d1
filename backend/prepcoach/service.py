# backend/prepcoach/service.py
import logging
import random
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from . import interview_flow
from .badges import available_badges, evaluate
from .db import InterviewRepository, UserRepository
from .errors import AnalyzerError, ConflictError, InvalidStateError, PrepCoachError, ValidationError
from .evaluator import Analysis, ResponseAnalyzer, ResponseInput
from .schemas import Badge, Interview, InterviewCreate, Question, Response, User
from .stats import achievements, compute_user_stats, dashboard, gamification, leaderboard, profile_summary

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


class SubmissionResult(NamedTuple):
    question: Question
    analysis: Optional[Analysis] = None
    error: Optional[Dict[str, Any]] = None

    @property
    def partial(self) -> bool:
        return self.analysis is None


class InterviewService:
    def __init__(self, repo: InterviewRepository, analyzer: ResponseAnalyzer, rng: Optional[random.Random] = None):
        self.repo = repo
        self.analyzer = analyzer
        self.rng = rng

    async def create(self, owner: str, payload: InterviewCreate) -> Interview:
        interview = interview_flow.create_interview(
            owner,
            payload.title,
            payload.type,
            payload.difficulty,
            payload.question_count,
            rng=self.rng,
        )
        return await self.repo.insert(interview)

    async def get(self, owner: str, interview_id: str) -> Interview:
        return await self.repo.get(interview_id, owner)

    async def list(
        self,
        owner: str,
        status: Optional[str] = None,
        interview_type: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Dict[str, Any]:
        if page < 1 or not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(f"page must be >= 1 and limit between 1 and {MAX_PAGE_SIZE}")
        interviews, total = await self.repo.list(owner, status, interview_type, page, limit)
        return {
            "interviews": interviews,
            "pagination": {
                "current": page,
                "pages": (total + limit - 1) // limit,
                "total": total,
            },
        }

    async def start(self, owner: str, interview_id: str) -> Interview:
        interview = await self.repo.get(interview_id, owner)
        version = interview.version
        interview_flow.start(interview)
        return await self.repo.save(interview, version)

    async def submit_response(
        self,
        owner: str,
        interview_id: str,
        question_id: str,
        response_input: ResponseInput,
        audio_url: Optional[str] = None,
        video_url: Optional[str] = None,
    ) -> SubmissionResult:
        """
        Store the answer, then analyze it. The answer is committed before the
        analyzer runs, so an analyzer failure still leaves it saved and the
        result comes back with `analysis=None` and the error attached.
        """
        if not response_input.has_content:
            raise ValidationError("Either text response or media file is required")

        interview = await self.repo.get(interview_id, owner)
        version = interview.version
        response = Response(
            text=response_input.text,
            audio_url=audio_url,
            video_url=video_url,
            duration=response_input.duration,
        )
        interview_flow.record_response(interview, question_id, response)
        interview = await self.repo.save(interview, version)
        stored = interview.find_question(question_id)

        try:
            analysis = await self.analyzer.analyze(stored.text, response_input, stored.expected_answer)
        except AnalyzerError as e:
            logger.warning("Analysis failed for interview %s question %s: %s", interview_id, question_id, e)
            return SubmissionResult(question=stored, error=e.to_dict())

        try:
            question = await self._attach(interview, question_id, analysis)
        except ConflictError:
            # someone wrote in between; only attach if our answer is still the stored one
            interview = await self.repo.get(interview_id, owner)
            current = interview.find_question(question_id)
            if current is None or current.response != stored.response:
                error = ConflictError("Response was replaced before its analysis finished")
                return SubmissionResult(question=current or stored, error=error.to_dict())
            try:
                question = await self._attach(interview, question_id, analysis)
            except (ConflictError, InvalidStateError) as e:
                return self._dropped(current, e)
        except InvalidStateError as e:
            return self._dropped(stored, e)

        return SubmissionResult(question=question, analysis=question.analysis)

    def _dropped(self, question: Question, error: PrepCoachError) -> SubmissionResult:
        logger.warning("Dropping analysis for question %s: %s", question.id, error)
        return SubmissionResult(question=question, error=error.to_dict())

    async def _attach(self, interview: Interview, question_id: str, analysis: Analysis) -> Question:
        version = interview.version
        interview_flow.attach_analysis(interview, question_id, analysis)
        saved = await self.repo.save(interview, version)
        return saved.find_question(question_id)

    async def complete(self, owner: str, interview_id: str) -> Interview:
        interview = await self.repo.get(interview_id, owner)
        version = interview.version
        interview_flow.complete(interview)
        return await self.repo.save(interview, version)

    async def delete(self, owner: str, interview_id: str) -> None:
        await self.repo.delete(interview_id, owner)


class ProfileService:
    """Cached user stats and badges, rebuilt from the completed interviews."""

    def __init__(self, users: UserRepository, interviews: InterviewRepository):
        self.users = users
        self.interviews = interviews

    async def refresh(self, user_id: str) -> Tuple[User, List[Badge], List[Interview]]:
        """
        Recompute stats and award badges. A write lost to a parallel refresh
        is retried once against the reloaded profile; if that also loses, the
        freshly computed profile is returned without being stored.
        """
        completed = await self.interviews.list_completed(user_id)
        stats = compute_user_stats(completed)

        for attempt in range(2):
            user = await self.users.get_or_create(user_id)
            new_badges = evaluate(stats, completed, [b.name for b in user.badges])

            version = user.version
            user.stats = stats
            user.badges = user.badges + new_badges
            try:
                user = await self.users.save(user, version)
                break
            except ConflictError:
                if attempt:
                    logger.warning("Profile %s kept changing; returning unsaved stats", user_id)
                    return user, new_badges, completed

        if new_badges:
            logger.info("User %s earned %s", user_id, ", ".join(b.name for b in new_badges))
        return user, new_badges, completed

    async def profile(self, user_id: str) -> Dict[str, Any]:
        user, _, completed = await self.refresh(user_id)
        return {"user": user, "summary": profile_summary(completed)}

    async def badges(self, user_id: str) -> Dict[str, Any]:
        user, new_badges, _ = await self.refresh(user_id)
        return {
            "badges": user.badges,
            "new_badges": new_badges,
            "available_badges": available_badges(),
        }

    async def achievements(self, user_id: str) -> List[Dict[str, Any]]:
        user, _, completed = await self.refresh(user_id)
        return achievements(user.stats, user.badges, completed)

    async def dashboard(self, user_id: str, days: int = 30) -> Dict[str, Any]:
        completed = await self.interviews.list_completed(user_id)
        return dashboard(completed, days)

    async def gamification(self, user_id: str) -> Dict[str, Any]:
        user, _, completed = await self.refresh(user_id)
        return gamification(completed, user.badges)

    async def leaderboard(self, user_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        users = await self.users.list_all()
        return leaderboard(users, user_id, limit=limit)
