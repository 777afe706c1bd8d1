import pytest

from conftest import FailingAnalyzer
from prepcoach import interview_flow
from prepcoach.db import InterviewRepository, UserRepository
from prepcoach.errors import AnalyzerTimeoutError, ConflictError, InvalidStateError, NotFoundError, ValidationError
from prepcoach.evaluator import ResponseInput
from prepcoach.schemas import InterviewCreate, Response
from prepcoach.service import InterviewService, ProfileService

ANSWER = (
    "I led a team of four engineers to rebuild our billing service. "
    "I planned the work in small milestones and we delivered it early."
)


async def _started(service, owner="user-1", count=2):
    created = await service.create(owner, InterviewCreate(title="Mock", type="behavioral", difficulty="beginner", question_count=count))
    return await service.start(owner, created.id)


@pytest.mark.asyncio
async def test_full_interview_scenario(interview_repo, user_repo, analyzer, rng):
    service = InterviewService(interview_repo, analyzer, rng=rng)
    interview = await _started(service)
    assert interview.status == "in-progress"

    for question in interview.questions:
        result = await service.submit_response(
            "user-1", interview.id, question.id, ResponseInput(text=ANSWER, duration=25)
        )
        assert result.partial is False
        assert result.question.response.text == ANSWER
        assert result.analysis.kind == "text"

    completed = await service.complete("user-1", interview.id)
    assert completed.status == "completed"
    assert completed.overall_analysis.answered_questions == 2
    assert completed.overall_analysis.has_data is True
    assert completed.feedback.ai.summary

    with pytest.raises(InvalidStateError) as exc:
        await service.complete("user-1", interview.id)
    assert exc.value.reason == "already_completed"

    stored = await service.get("user-1", interview.id)
    assert stored.overall_analysis == completed.overall_analysis

    profiles = ProfileService(user_repo, interview_repo)
    user, new_badges, _ = await profiles.refresh("user-1")
    assert "First Steps" in [b.name for b in new_badges]
    assert user.stats.total_interviews == 1

    _, again, _ = await profiles.refresh("user-1")
    assert again == []


@pytest.mark.asyncio
async def test_analyzer_failure_keeps_response(interview_repo, rng):
    failing = FailingAnalyzer()
    service = InterviewService(interview_repo, failing, rng=rng)
    interview = await _started(service)

    result = await service.submit_response("user-1", interview.id, "q1", ResponseInput(text=ANSWER))

    assert result.partial is True
    assert result.analysis is None
    assert result.error["error"] == "AnalyzerError"
    stored = (await service.get("user-1", interview.id)).find_question("q1")
    assert stored.response.text == ANSWER
    assert stored.analysis is None
    assert failing.calls == 1


@pytest.mark.asyncio
async def test_analyzer_timeout_is_partial_success(interview_repo, rng):
    service = InterviewService(interview_repo, FailingAnalyzer(AnalyzerTimeoutError("too slow")), rng=rng)
    interview = await _started(service)

    result = await service.submit_response("user-1", interview.id, "q2", ResponseInput(text=ANSWER))
    assert result.error["error"] == "AnalyzerTimeoutError"


@pytest.mark.asyncio
async def test_empty_submission_is_rejected(interview_repo, analyzer, rng):
    service = InterviewService(interview_repo, analyzer, rng=rng)
    interview = await _started(service)

    with pytest.raises(ValidationError):
        await service.submit_response("user-1", interview.id, "q1", ResponseInput(text=" "))
    assert (await service.get("user-1", interview.id)).find_question("q1").response is None


@pytest.mark.asyncio
async def test_stale_version_conflicts(interview_repo, analyzer, rng):
    service = InterviewService(interview_repo, analyzer, rng=rng)
    interview = await _started(service)
    stale = await interview_repo.get(interview.id, "user-1")

    await service.submit_response("user-1", interview.id, "q1", ResponseInput(text=ANSWER))

    stale.title = "renamed"
    with pytest.raises(ConflictError):
        await interview_repo.save(stale, stale.version)
    assert (await interview_repo.get(interview.id, "user-1")).title == "Mock"


@pytest.mark.asyncio
async def test_interviews_are_scoped_to_owner(interview_repo, analyzer, rng):
    service = InterviewService(interview_repo, analyzer, rng=rng)
    interview = await _started(service)

    with pytest.raises(NotFoundError):
        await service.get("someone-else", interview.id)
    with pytest.raises(NotFoundError):
        await service.delete("someone-else", interview.id)


@pytest.mark.asyncio
async def test_list_paginates_and_filters(interview_repo, analyzer, rng):
    service = InterviewService(interview_repo, analyzer, rng=rng)
    for i in range(3):
        await service.create("user-1", InterviewCreate(title=f"HR {i}", type="hr", difficulty="beginner", question_count=1))
    await service.create("user-1", InterviewCreate(title="Tech", type="technical", difficulty="beginner", question_count=1))

    page = await service.list("user-1", interview_type="hr", page=1, limit=2)
    assert len(page["interviews"]) == 2
    assert page["pagination"] == {"current": 1, "pages": 2, "total": 3}

    with pytest.raises(ValidationError):
        await service.list("user-1", page=0)


@pytest.mark.asyncio
async def test_delete_removes_interview(interview_repo, analyzer, rng):
    service = InterviewService(interview_repo, analyzer, rng=rng)
    created = await service.create("user-1", InterviewCreate(title="Temp", type="hr", difficulty="beginner", question_count=1))

    await service.delete("user-1", created.id)
    with pytest.raises(NotFoundError):
        await service.get("user-1", created.id)


class RacingInterviewRepository(InterviewRepository):
    """Lets another writer change the stored interview just before the given saves."""

    def __init__(self, collection, change, at):
        super().__init__(collection)
        self.change = change
        self.at = set(at)
        self.saves = 0

    async def save(self, interview, expected_version):
        self.saves += 1
        if self.saves in self.at:
            fresh = await self.get(interview.id, interview.owner)
            self.change(fresh)
            await super().save(fresh, fresh.version)
        return await super().save(interview, expected_version)


def _rename(interview):
    interview.title = "renamed"


# saves: start is 1, storing the response is 2, attaching the analysis is 3
ATTACH = 3


@pytest.mark.asyncio
async def test_analysis_dropped_when_completed_during_analysis(interview_collection, analyzer, rng):
    repo = RacingInterviewRepository(interview_collection, interview_flow.complete, at=[ATTACH])
    service = InterviewService(repo, analyzer, rng=rng)
    interview = await _started(service)

    result = await service.submit_response("user-1", interview.id, "q1", ResponseInput(text=ANSWER))

    assert result.partial is True
    assert result.error["error"] == "InvalidStateError"
    stored = await service.get("user-1", interview.id)
    assert stored.status == "completed"
    assert stored.find_question("q1").response.text == ANSWER
    assert stored.find_question("q1").analysis is None


@pytest.mark.asyncio
async def test_analysis_attached_after_unrelated_concurrent_write(interview_collection, analyzer, rng):
    repo = RacingInterviewRepository(interview_collection, _rename, at=[ATTACH])
    service = InterviewService(repo, analyzer, rng=rng)
    interview = await _started(service)

    result = await service.submit_response("user-1", interview.id, "q1", ResponseInput(text=ANSWER))

    assert result.partial is False
    stored = await service.get("user-1", interview.id)
    assert stored.title == "renamed"
    assert stored.find_question("q1").analysis is not None


@pytest.mark.asyncio
async def test_analysis_dropped_when_retry_conflicts_again(interview_collection, analyzer, rng):
    repo = RacingInterviewRepository(interview_collection, _rename, at=[ATTACH, ATTACH + 1])
    service = InterviewService(repo, analyzer, rng=rng)
    interview = await _started(service)

    result = await service.submit_response("user-1", interview.id, "q1", ResponseInput(text=ANSWER))

    assert result.partial is True
    assert result.error["error"] == "ConflictError"
    assert result.question.response.text == ANSWER
    assert (await service.get("user-1", interview.id)).find_question("q1").analysis is None


@pytest.mark.asyncio
async def test_analysis_dropped_when_response_replaced(interview_collection, analyzer, rng):
    def replace(interview):
        interview_flow.record_response(interview, "q1", Response(text="a newer answer"))

    repo = RacingInterviewRepository(interview_collection, replace, at=[ATTACH])
    service = InterviewService(repo, analyzer, rng=rng)
    interview = await _started(service)

    result = await service.submit_response("user-1", interview.id, "q1", ResponseInput(text=ANSWER))

    assert result.partial is True
    assert result.error["error"] == "ConflictError"
    assert result.question.response.text == "a newer answer"
    assert result.question.analysis is None


class RacingUserRepository(UserRepository):
    """Bumps the stored profile version before the next `conflicts` saves."""

    def __init__(self, collection, conflicts):
        super().__init__(collection)
        self.conflicts = conflicts

    async def save(self, user, expected_version):
        if self.conflicts:
            self.conflicts -= 1
            current = await self.get_or_create(user.id)
            await super().save(current, current.version)
        return await super().save(user, expected_version)


async def _completed_once(interview_repo, analyzer, rng):
    service = InterviewService(interview_repo, analyzer, rng=rng)
    interview = await _started(service, count=1)
    question = interview.questions[0]
    await service.submit_response("user-1", interview.id, question.id, ResponseInput(text=ANSWER))
    await service.complete("user-1", interview.id)


@pytest.mark.asyncio
async def test_refresh_retries_after_concurrent_profile_write(interview_repo, user_collection, analyzer, rng):
    await _completed_once(interview_repo, analyzer, rng)
    users = RacingUserRepository(user_collection, conflicts=1)
    profiles = ProfileService(users, interview_repo)

    user, new_badges, _ = await profiles.refresh("user-1")

    assert user.stats.total_interviews == 1
    assert [b.name for b in new_badges].count("First Steps") == 1
    stored = await users.get_or_create("user-1")
    assert stored.stats.total_interviews == 1
    assert [b.name for b in stored.badges].count("First Steps") == 1


@pytest.mark.asyncio
async def test_refresh_returns_unsaved_stats_when_profile_keeps_changing(interview_repo, user_collection, analyzer, rng):
    await _completed_once(interview_repo, analyzer, rng)
    users = RacingUserRepository(user_collection, conflicts=2)
    profiles = ProfileService(users, interview_repo)

    user, _, completed = await profiles.refresh("user-1")

    assert user.stats.total_interviews == 1
    assert len(completed) == 1
    assert (await users.get_or_create("user-1")).stats.total_interviews == 0
