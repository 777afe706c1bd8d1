import io

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from conftest import FailingAnalyzer
from prepcoach import main
from prepcoach.errors import ValidationError

USER = {"X-User-Id": "user-1"}
ANSWER = (
    "In my last role I owned the release process. I automated the checks, "
    "documented each step and cut release time in half."
)


def _create(client, count=2, itype="behavioral", headers=USER):
    resp = client.post(
        "/interviews",
        json={"title": "Practice run", "type": itype, "difficulty": "beginner", "question_count": count},
        headers=headers,
    )
    assert resp.status_code == 201
    return resp.json()["interview"]


def _started(client, **kwargs):
    interview = _create(client, **kwargs)
    resp = client.put(f"/interviews/{interview['id']}/start", headers=USER)
    assert resp.status_code == 200
    return resp.json()["interview"]


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_missing_user_header_is_unauthorized(client):
    assert client.get("/interviews").status_code == 401


def test_create_validates_payload(client):
    resp = client.post(
        "/interviews",
        json={"title": "x", "type": "astrology", "difficulty": "beginner", "question_count": 2},
        headers=USER,
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "ValidationError"

    resp = client.post(
        "/interviews",
        json={"title": "x", "type": "hr", "difficulty": "beginner", "question_count": 50},
        headers=USER,
    )
    assert resp.status_code == 400


def test_interview_flow_over_http(client):
    interview = _started(client)
    assert interview["status"] == "in-progress"

    for question in interview["questions"]:
        resp = client.put(
            f"/interviews/{interview['id']}/questions/{question['id']}/response",
            data={"text": ANSWER, "duration": "30"},
            headers=USER,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["analysis"]["kind"] == "text"
        assert body["question"]["response"]["text"] == ANSWER

    resp = client.put(f"/interviews/{interview['id']}/complete", headers=USER)
    assert resp.status_code == 200
    body = resp.json()
    assert body["interview"]["status"] == "completed"
    assert body["overall_analysis"]["answered_questions"] == 2
    assert "First Steps" in [b["name"] for b in body["new_badges"]]

    resp = client.put(f"/interviews/{interview['id']}/complete", headers=USER)
    assert resp.status_code == 400
    assert resp.json()["reason"] == "already_completed"

    resp = client.get(f"/interviews/{interview['id']}/report.pdf", headers=USER)
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/pdf"
    assert resp.content.startswith(b"%PDF")


def test_start_twice_is_invalid_state(client):
    interview = _started(client)
    resp = client.put(f"/interviews/{interview['id']}/start", headers=USER)
    assert resp.status_code == 400
    assert resp.json()["error"] == "InvalidStateError"
    assert resp.json()["current"] == "in-progress"


def test_analyzer_failure_returns_multi_status(client):
    main.app.dependency_overrides[main.get_analyzer] = lambda: FailingAnalyzer()
    interview = _started(client)

    resp = client.put(
        f"/interviews/{interview['id']}/questions/q1/response",
        data={"text": ANSWER},
        headers=USER,
    )
    assert resp.status_code == 207
    body = resp.json()
    assert body["analysis"] is None
    assert body["error"]["error"] == "AnalyzerError"
    assert body["question"]["response"]["text"] == ANSWER

    stored = client.get(f"/interviews/{interview['id']}", headers=USER).json()["interview"]
    assert stored["questions"][0]["response"]["text"] == ANSWER
    assert stored["questions"][0]["analysis"] is None


def test_audio_upload_is_analyzed(client):
    interview = _started(client)
    resp = client.put(
        f"/interviews/{interview['id']}/questions/q1/response",
        data={"duration": "12"},
        files={"audio": ("answer.wav", b"RIFF0000WAVEfmt ", "audio/wav")},
        headers=USER,
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["analysis"]["kind"] == "audio"
    assert body["question"]["response"]["audio_url"].startswith("/uploads/user-1/")


def test_non_media_upload_is_rejected(client):
    interview = _started(client)
    resp = client.put(
        f"/interviews/{interview['id']}/questions/q1/response",
        files={"video": ("notes.txt", b"not a video", "text/plain")},
        headers=USER,
    )
    assert resp.status_code == 400


def test_empty_submission_is_rejected(client):
    interview = _started(client)
    resp = client.put(f"/interviews/{interview['id']}/questions/q1/response", data={"text": ""}, headers=USER)
    assert resp.status_code == 400


def test_other_users_cannot_see_interview(client):
    interview = _create(client)
    resp = client.get(f"/interviews/{interview['id']}", headers={"X-User-Id": "intruder"})
    assert resp.status_code == 404
    assert resp.json()["error"] == "NotFoundError"


def test_report_requires_completion(client):
    interview = _started(client)
    resp = client.get(f"/interviews/{interview['id']}/report.pdf", headers=USER)
    assert resp.status_code == 400


def test_list_and_delete(client):
    first = _create(client, itype="hr", count=1)
    _create(client, itype="technical", count=1)

    resp = client.get("/interviews", params={"type": "hr"}, headers=USER)
    assert resp.status_code == 200
    assert [i["id"] for i in resp.json()["interviews"]] == [first["id"]]
    assert resp.json()["pagination"]["total"] == 1

    assert client.get("/interviews", params={"limit": 0}, headers=USER).status_code == 400

    assert client.delete(f"/interviews/{first['id']}", headers=USER).status_code == 200
    assert client.get(f"/interviews/{first['id']}", headers=USER).status_code == 404


@pytest.mark.parametrize(
    "path",
    [
        "/users/me/profile",
        "/users/me/badges",
        "/users/me/achievements",
        "/users/me/dashboard",
        "/users/me/gamification",
        "/users/leaderboard",
    ],
)
def test_user_endpoints_for_new_user(client, path):
    resp = client.get(path, headers=USER)
    assert resp.status_code == 200


def test_profile_after_completion(client):
    interview = _started(client, count=1)
    client.put(f"/interviews/{interview['id']}/questions/q1/response", data={"text": ANSWER}, headers=USER)
    client.put(f"/interviews/{interview['id']}/complete", headers=USER)

    profile = client.get("/users/me/profile", headers=USER).json()
    assert profile["user"]["stats"]["total_interviews"] == 1
    assert profile["summary"]["total_interviews"] == 1

    badges = client.get("/users/me/badges", headers=USER).json()
    assert [b["name"] for b in badges["badges"]] == ["First Steps"]
    assert badges["new_badges"] == []

    board = client.get("/users/leaderboard", headers=USER).json()["leaderboard"]
    assert board[0]["is_current_user"] is True


@pytest.mark.parametrize("user_id", ["../../escape-attempt", "..", ".hidden", "a/b", "x" * 65])
def test_unsafe_user_ids_are_rejected(client, user_id):
    resp = client.get("/interviews", headers={"X-User-Id": user_id})
    assert resp.status_code == 401
    assert not (main.UPLOAD_DIR.parent.parent / "escape-attempt").exists()


def test_email_style_user_id_is_accepted(client):
    assert client.get("/interviews", headers={"X-User-Id": "jane.doe@example.com"}).status_code == 200


@pytest.mark.asyncio
async def test_save_upload_stays_inside_upload_dir():
    upload = UploadFile(file=io.BytesIO(b"RIFF"), filename="answer.wav", headers=Headers({"content-type": "audio/wav"}))
    with pytest.raises(ValidationError):
        await main.save_upload(upload, "audio", "..")


def test_rejected_submission_leaves_no_upload_behind(client):
    headers = {"X-User-Id": "cleanup-user"}
    # never started, so the response is refused after the upload was stored
    interview = _create(client, headers=headers)
    resp = client.put(
        f"/interviews/{interview['id']}/questions/q1/response",
        files={
            "audio": ("answer.wav", b"RIFF0000WAVEfmt ", "audio/wav"),
            "video": ("answer.mp4", b"\x00\x00\x00\x18ftypmp42", "video/mp4"),
        },
        headers=headers,
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "InvalidStateError"
    assert list((main.UPLOAD_DIR / "cleanup-user").glob("*")) == []


def test_dashboard_and_gamification_after_completion(client):
    interview = _started(client, count=1)
    client.put(f"/interviews/{interview['id']}/questions/q1/response", data={"text": ANSWER}, headers=USER)
    client.put(f"/interviews/{interview['id']}/complete", headers=USER)

    resp = client.get("/users/me/dashboard", params={"timeframe": 7}, headers=USER)
    assert resp.status_code == 200
    dash = resp.json()
    assert dash["timeframe_days"] == 7
    assert dash["stats"]["total_interviews"] == 1
    assert dash["charts"]["interview_type_distribution"] == [{"type": "behavioral", "count": 1, "percentage": 100.0}]
    assert len(dash["charts"]["confidence_over_time"]) == 1

    assert client.get("/users/me/dashboard", params={"timeframe": 0}, headers=USER).status_code == 400

    game = client.get("/users/me/gamification", headers=USER).json()
    assert game["total_interviews"] == 1
    assert game["badges_earned"] == 1
    assert game["streak_days"] == 1
    assert game["level"] == 1
    assert game["rank"] == "Beginner Interviewer"
    assert game["experience_points"] >= 125
