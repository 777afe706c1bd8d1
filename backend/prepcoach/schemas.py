# backend/prepcoach/schemas.py
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InterviewType(str, Enum):
    TECHNICAL = "technical"
    BEHAVIORAL = "behavioral"
    HR = "hr"
    SITUATIONAL = "situational"


class Difficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class InterviewStatus(str, Enum):
    DRAFT = "draft"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


# ---------- responses & per-question analysis ----------

class Response(BaseModel):
    text: str = ""
    audio_url: Optional[str] = None
    video_url: Optional[str] = None
    duration: float = 0.0  # seconds
    submitted_at: datetime = Field(default_factory=utcnow)


class Sentiment(BaseModel):
    overall: float = 0.0  # producer-defined scale, never renormalised
    positivity: float = 0.0
    negativity: float = 0.0


class Communication(BaseModel):
    clarity: float = 0.0  # 0-10
    word_count: int = 0
    words_per_minute: Optional[float] = None
    filler_words: int = 0
    pace: str = "none"


class Confidence(BaseModel):
    score: float = 0.0  # 0-10
    indicators: List[str] = Field(default_factory=list)


class AnswerScore(BaseModel):
    score: float = 0.0  # 0-10
    grade: str = "F"
    feedback: str = ""
    keyword_matches: List[str] = Field(default_factory=list)
    missing_keywords: List[str] = Field(default_factory=list)


class ScoredObservation(BaseModel):
    score: float = 0.0  # 0-10
    feedback: str = ""


class NonVerbal(BaseModel):
    eye_contact: ScoredObservation = Field(default_factory=ScoredObservation)
    posture: ScoredObservation = Field(default_factory=ScoredObservation)
    overall_presence: float = 0.0


class _AnalysisCore(BaseModel):
    confidence: Confidence = Field(default_factory=Confidence)
    communication: Communication = Field(default_factory=Communication)
    sentiment: Sentiment = Field(default_factory=Sentiment)
    answer_score: Optional[AnswerScore] = None
    strengths: List[str] = Field(default_factory=list)
    suggested_improvements: List[str] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)


class TextAnalysis(_AnalysisCore):
    kind: Literal["text"] = "text"


class AudioAnalysis(_AnalysisCore):
    kind: Literal["audio"] = "audio"
    transcript: str = ""
    media_duration: float = 0.0


class VideoAnalysis(_AnalysisCore):
    kind: Literal["video"] = "video"
    transcript: str = ""
    media_duration: float = 0.0
    non_verbal: Optional[NonVerbal] = None


AnalysisResult = Annotated[
    Union[TextAnalysis, AudioAnalysis, VideoAnalysis],
    Field(discriminator="kind"),
]


class Question(BaseModel):
    id: str
    text: str
    category: str = ""
    expected_time: int = 120  # seconds
    expected_answer: str = ""
    response: Optional[Response] = None
    analysis: Optional[AnalysisResult] = None

    @model_validator(mode="after")
    def _analysis_needs_response(self):
        if self.analysis is not None and self.response is None:
            raise ValueError(f"question {self.id} has an analysis but no response")
        return self

    @property
    def answered(self) -> bool:
        return self.response is not None and self.analysis is not None


# ---------- interview-level results ----------

class OverallAnalysis(BaseModel):
    average_confidence: float = 0.0
    average_clarity: float = 0.0
    answer_score: float = 0.0
    sentiment_score: float = 0.0
    average_presence: float = 0.0
    answered_questions: int = 0
    total_questions: int = 0
    completion_rate: float = 0.0
    total_word_count: int = 0
    total_filler_words: int = 0
    grade: str = "F"
    has_data: bool = False
    strongest_skill: Optional[str] = None
    improvement_area: Optional[str] = None
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)


class AIFeedback(BaseModel):
    summary: str = ""
    recommendations: List[str] = Field(default_factory=list)
    next_steps: List[str] = Field(default_factory=list)


class Feedback(BaseModel):
    ai: Optional[AIFeedback] = None


class Interview(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_assignment=True, validate_default=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    owner: str
    title: str
    type: InterviewType
    difficulty: Difficulty
    status: InterviewStatus = InterviewStatus.DRAFT
    questions: List[Question] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration: Optional[int] = None  # seconds, set on completion
    overall_analysis: Optional[OverallAnalysis] = None
    feedback: Feedback = Field(default_factory=Feedback)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    version: int = 0

    def find_question(self, question_id: str) -> Optional[Question]:
        for q in self.questions:
            if q.id == question_id:
                return q
        return None

    def to_document(self) -> Dict[str, Any]:
        doc = self.model_dump(mode="python")
        doc["_id"] = doc.pop("id")
        return doc

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Interview":
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        return cls.model_validate(data)


# ---------- users ----------

class UserStats(BaseModel):
    total_interviews: int = 0
    technical_interviews: int = 0
    average_confidence: float = 0.0
    average_clarity: float = 0.0
    improvement_trend: float = 0.0
    updated_at: Optional[datetime] = None


class Badge(BaseModel):
    name: str
    description: str = ""
    icon: str = ""
    earned_at: datetime = Field(default_factory=utcnow)


class User(BaseModel):
    id: str
    username: str = ""
    stats: UserStats = Field(default_factory=UserStats)
    badges: List[Badge] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    version: int = 0

    def to_document(self) -> Dict[str, Any]:
        doc = self.model_dump(mode="python")
        doc["_id"] = doc.pop("id")
        return doc

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "User":
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        return cls.model_validate(data)


# ---------- request payloads ----------

class InterviewCreate(BaseModel):
    title: str = ""
    type: InterviewType
    difficulty: Difficulty
    question_count: int = 5
