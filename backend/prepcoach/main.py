# backend/prepcoach/main.py
import logging
import pathlib
import re
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from fastapi import Depends, FastAPI, File, Form, Header, HTTPException, Query, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from fastapi.staticfiles import StaticFiles

from .config import CORS_ORIGINS, LOG_LEVEL, MAX_UPLOAD_BYTES, UPLOAD_DIR
from .db import InterviewRepository, UserRepository, interviews_collection
from .errors import PrepCoachError, ValidationError
from .evaluator import ResponseAnalyzer, ResponseInput
from .reports import render_interview_report
from .schemas import InterviewCreate, InterviewStatus, InterviewType
from .service import InterviewService, ProfileService

# ------ logging ------
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger("prepcoach-backend")

app = FastAPI(title="PrepCoach Interview Practice", version="1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=str(UPLOAD_DIR), check_dir=False), name="uploads")

CHUNK_SIZE = 1024 * 1024
MEDIA_EXTENSIONS = {
    "audio": {".mp3", ".wav", ".m4a", ".ogg", ".webm"},
    "video": {".mp4", ".webm", ".mov", ".avi"},
}


# ------------------------------
# Errors
# ------------------------------

@app.exception_handler(PrepCoachError)
async def prepcoach_error_handler(request: Request, exc: PrepCoachError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}"
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"error": ValidationError.__name__, "message": "Invalid request", "details": details},
    )


# ------------------------------
# Dependencies
# ------------------------------

_analyzer: Optional[ResponseAnalyzer] = None


def get_analyzer() -> ResponseAnalyzer:
    global _analyzer
    if _analyzer is None:
        _analyzer = ResponseAnalyzer()
    return _analyzer


def get_interview_repository() -> InterviewRepository:
    return InterviewRepository()


def get_user_repository() -> UserRepository:
    return UserRepository()


def get_interview_service(
    repo: InterviewRepository = Depends(get_interview_repository),
    analyzer: ResponseAnalyzer = Depends(get_analyzer),
) -> InterviewService:
    return InterviewService(repo, analyzer)


def get_profile_service(
    users: UserRepository = Depends(get_user_repository),
    interviews: InterviewRepository = Depends(get_interview_repository),
) -> ProfileService:
    return ProfileService(users, interviews)


# one path segment under UPLOAD_DIR; no leading dot
USER_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-][A-Za-z0-9_.@-]{0,63}$")


async def current_user(x_user_id: Optional[str] = Header(None)) -> str:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    user_id = x_user_id.strip()
    if not USER_ID_PATTERN.match(user_id):
        raise HTTPException(status_code=401, detail="X-User-Id header is invalid")
    return user_id


async def save_upload(upload: UploadFile, kind: str, owner: str) -> pathlib.Path:
    """Stream an uploaded recording to UPLOAD_DIR/<owner>/, enforcing type and size."""
    content_type = upload.content_type or ""
    suffix = pathlib.Path(upload.filename or "").suffix.lower()
    if not content_type.startswith(f"{kind}/") and suffix not in MEDIA_EXTENSIONS[kind]:
        raise ValidationError(f"Only {kind} files are allowed for '{kind}'")
    if suffix not in MEDIA_EXTENSIONS[kind]:
        suffix = ""

    root = UPLOAD_DIR.resolve()
    target_dir = (root / owner).resolve()
    if target_dir.parent != root:
        raise ValidationError("Invalid upload location")
    target_dir.mkdir(parents=True, exist_ok=True)
    target = target_dir / f"{kind}-{uuid4().hex}{suffix}"

    written = 0
    with open(target, "wb") as fh:
        while True:
            chunk = await upload.read(CHUNK_SIZE)
            if not chunk:
                break
            written += len(chunk)
            if written > MAX_UPLOAD_BYTES:
                break
            fh.write(chunk)
    if written > MAX_UPLOAD_BYTES:
        target.unlink(missing_ok=True)
        raise ValidationError(f"Upload exceeds {MAX_UPLOAD_BYTES} bytes")

    logger.info("Stored %s upload for %s (%d bytes)", kind, owner, written)
    return target


def discard_uploads(paths) -> None:
    for path in paths:
        path.unlink(missing_ok=True)


def upload_url(path: pathlib.Path) -> str:
    return "/uploads/" + path.relative_to(UPLOAD_DIR.resolve()).as_posix()


@app.on_event("startup")
async def startup_event():
    logger.info("Starting PrepCoach backend.")
    try:
        await interviews_collection().find_one({}, projection={"_id": 1})
        logger.info("Mongo collections appear accessible.")
    except Exception as e:
        logger.warning("DB startup check failed (may still be okay): %s", e)


@app.get("/health")
async def health():
    return {"status": "ok", "time": datetime.now(timezone.utc).isoformat()}


# ------------------------------
# Interviews
# ------------------------------

@app.post("/interviews", status_code=201)
async def create_interview(
    payload: InterviewCreate,
    owner: str = Depends(current_user),
    service: InterviewService = Depends(get_interview_service),
):
    interview = await service.create(owner, payload)
    return {"interview": interview}


@app.get("/interviews")
async def list_interviews(
    status: Optional[InterviewStatus] = Query(None),
    type: Optional[InterviewType] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    owner: str = Depends(current_user),
    service: InterviewService = Depends(get_interview_service),
):
    return await service.list(
        owner,
        status=status.value if status else None,
        interview_type=type.value if type else None,
        page=page,
        limit=limit,
    )


@app.get("/interviews/{interview_id}")
async def get_interview(
    interview_id: str,
    owner: str = Depends(current_user),
    service: InterviewService = Depends(get_interview_service),
):
    return {"interview": await service.get(owner, interview_id)}


@app.put("/interviews/{interview_id}/start")
async def start_interview(
    interview_id: str,
    owner: str = Depends(current_user),
    service: InterviewService = Depends(get_interview_service),
):
    interview = await service.start(owner, interview_id)
    return {"interview": interview}


@app.put("/interviews/{interview_id}/questions/{question_id}/response")
async def submit_response(
    interview_id: str,
    question_id: str,
    text: str = Form(""),
    duration: float = Form(0.0),
    eye_contact: Optional[float] = Form(None),
    posture: Optional[float] = Form(None),
    audio: Optional[UploadFile] = File(None),
    video: Optional[UploadFile] = File(None),
    owner: str = Depends(current_user),
    service: InterviewService = Depends(get_interview_service),
):
    if duration < 0:
        raise ValidationError("duration must not be negative")

    saved = []
    try:
        audio_path = await save_upload(audio, "audio", owner) if audio is not None else None
        if audio_path:
            saved.append(audio_path)
        video_path = await save_upload(video, "video", owner) if video is not None else None
        if video_path:
            saved.append(video_path)

        response_input = ResponseInput(
            text=text,
            audio_path=str(audio_path) if audio_path else None,
            video_path=str(video_path) if video_path else None,
            duration=duration,
            eye_contact=eye_contact,
            posture=posture,
        )
        result = await service.submit_response(
            owner,
            interview_id,
            question_id,
            response_input,
            audio_url=upload_url(audio_path) if audio_path else None,
            video_url=upload_url(video_path) if video_path else None,
        )
    except PrepCoachError:
        # nothing references the recordings if the answer was never stored
        discard_uploads(saved)
        raise

    body = {"question": result.question, "analysis": result.analysis}
    if result.partial:
        body["error"] = result.error
        return JSONResponse(status_code=207, content=jsonable_encoder(body))
    return body


@app.put("/interviews/{interview_id}/complete")
async def complete_interview(
    interview_id: str,
    owner: str = Depends(current_user),
    service: InterviewService = Depends(get_interview_service),
    profiles: ProfileService = Depends(get_profile_service),
):
    interview = await service.complete(owner, interview_id)

    new_badges = []
    try:
        _, new_badges, _ = await profiles.refresh(owner)
    except PrepCoachError:
        # the interview is already committed; stats catch up on the next profile read
        logger.exception("Profile refresh failed after completing interview %s", interview_id)

    return {
        "interview": interview,
        "overall_analysis": interview.overall_analysis,
        "new_badges": new_badges,
    }


@app.delete("/interviews/{interview_id}")
async def delete_interview(
    interview_id: str,
    owner: str = Depends(current_user),
    service: InterviewService = Depends(get_interview_service),
):
    await service.delete(owner, interview_id)
    return {"message": "Interview deleted successfully"}


@app.get("/interviews/{interview_id}/report.pdf")
async def interview_report(
    interview_id: str,
    owner: str = Depends(current_user),
    service: InterviewService = Depends(get_interview_service),
):
    interview = await service.get(owner, interview_id)
    pdf = render_interview_report(interview)
    return StreamingResponse(
        pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="interview-{interview.id}.pdf"'},
    )


# ------------------------------
# Users
# ------------------------------

@app.get("/users/me/profile")
async def user_profile(
    owner: str = Depends(current_user),
    profiles: ProfileService = Depends(get_profile_service),
):
    return await profiles.profile(owner)


@app.get("/users/me/badges")
async def user_badges(
    owner: str = Depends(current_user),
    profiles: ProfileService = Depends(get_profile_service),
):
    return await profiles.badges(owner)


@app.get("/users/me/achievements")
async def user_achievements(
    owner: str = Depends(current_user),
    profiles: ProfileService = Depends(get_profile_service),
):
    return {"achievements": await profiles.achievements(owner)}


@app.get("/users/leaderboard")
async def users_leaderboard(
    limit: int = Query(50, ge=1, le=100),
    owner: str = Depends(current_user),
    profiles: ProfileService = Depends(get_profile_service),
):
    return {"leaderboard": await profiles.leaderboard(owner, limit=limit)}


@app.get("/users/me/dashboard")
async def user_dashboard(
    timeframe: int = Query(30, ge=1, le=365),
    owner: str = Depends(current_user),
    profiles: ProfileService = Depends(get_profile_service),
):
    return await profiles.dashboard(owner, days=timeframe)


@app.get("/users/me/gamification")
async def user_gamification(
    owner: str = Depends(current_user),
    profiles: ProfileService = Depends(get_profile_service),
):
    return await profiles.gamification(owner)
