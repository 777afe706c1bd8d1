# backend/prepcoach/evaluator.py
import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Union

import openai  # ✅ use functional API
from pydantic import BaseModel

from .answer_scoring import score_answer
from .config import ANALYZER_TIMEOUT_SECONDS, OPENAI_API_KEY, OPENAI_MODEL, TRANSCRIBE_MODEL
from .errors import AnalyzerError, AnalyzerTimeoutError
from .schemas import (
    AnswerScore,
    AudioAnalysis,
    NonVerbal,
    ScoredObservation,
    TextAnalysis,
    VideoAnalysis,
)
from .scoring import score_to_grade
from .text_analysis import TextMetrics, extract_keywords

logger = logging.getLogger(__name__)

# Configure once
if OPENAI_API_KEY:
    openai.api_key = OPENAI_API_KEY

LLM_WEIGHT = 0.6

Analysis = Union[TextAnalysis, AudioAnalysis, VideoAnalysis]


class ResponseInput(BaseModel):
    """What the candidate submitted for one question."""

    text: str = ""
    audio_path: Optional[str] = None
    video_path: Optional[str] = None
    duration: float = 0.0
    # body-language scores reported by the recording client (0-10)
    eye_contact: Optional[float] = None
    posture: Optional[float] = None

    @property
    def media_path(self) -> Optional[str]:
        return self.video_path or self.audio_path

    @property
    def has_content(self) -> bool:
        return bool(self.text.strip()) or self.media_path is not None


async def _call_llm_system(prompt: str, expect_json: bool = True) -> Dict[str, Any]:
    """Call OpenAI ChatCompletion and parse JSON if required."""
    try:
        resp = await asyncio.to_thread(
            openai.chat.completions.create,
            model=OPENAI_MODEL,
            messages=[
                {"role": "system", "content": "You are an interview coach grading practice answers."},
                {"role": "user", "content": prompt},
            ],
            temperature=0.0,
            max_tokens=400,
        )

        text = resp.choices[0].message.content.strip()

        if text.startswith("```"):
            text = text.strip("`")
            if text.lower().startswith("json"):
                text = text[4:].strip()

        return json.loads(text) if expect_json else {"raw": text}

    except Exception as e:
        logger.warning("LLM grading failed: %s", e)
        return {"score": None, "reasoning": f"LLM error: {e}"}


async def transcribe(media_path: str) -> str:
    """Speech-to-text for an uploaded recording."""

    def _run() -> str:
        with open(media_path, "rb") as fh:
            result = openai.audio.transcriptions.create(model=TRANSCRIBE_MODEL, file=fh)
        return (result.text or "").strip()

    return await asyncio.to_thread(_run)


def _eye_contact_feedback(score: float) -> str:
    if score >= 8.5:
        return "Excellent eye contact maintained throughout"
    if score >= 7:
        return "Good eye contact with minor lapses"
    if score >= 5.5:
        return "Adequate eye contact, can be improved"
    return "Limited eye contact, try to look directly at the camera"


def _posture_feedback(score: float) -> str:
    if score >= 8.5:
        return "Professional posture maintained throughout"
    if score >= 7:
        return "Good posture with minor adjustments needed"
    if score >= 5.5:
        return "Adequate posture, maintain straight back"
    return "Posture needs improvement, sit up straight"


def build_non_verbal(eye_contact: Optional[float], posture: Optional[float]) -> Optional[NonVerbal]:
    if eye_contact is None or posture is None:
        return None
    eye = max(0.0, min(10.0, eye_contact))
    pos = max(0.0, min(10.0, posture))
    return NonVerbal(
        eye_contact=ScoredObservation(score=eye, feedback=_eye_contact_feedback(eye)),
        posture=ScoredObservation(score=pos, feedback=_posture_feedback(pos)),
        overall_presence=round((eye + pos) / 2, 1),
    )


def collect_strengths(analysis: Analysis) -> List[str]:
    strengths = []
    answer = analysis.answer_score
    if answer is not None:
        if answer.score >= 7:
            strengths.append("Strong answer content")
        if answer.grade in ("A+", "A", "A-", "B+"):
            strengths.append("Excellent answer quality")
    if analysis.confidence.score >= 7:
        strengths.append("Confident delivery")
    if analysis.communication.clarity >= 7:
        strengths.append("Clear communication")
    if analysis.sentiment.positivity > 0.6:
        strengths.append("Positive attitude")
    if analysis.communication.word_count > 50:
        strengths.append("Detailed response")

    non_verbal = getattr(analysis, "non_verbal", None)
    if non_verbal is not None:
        if non_verbal.eye_contact.score >= 8:
            strengths.append("Excellent eye contact")
        if non_verbal.posture.score >= 8:
            strengths.append("Professional posture")
        if non_verbal.overall_presence >= 8:
            strengths.append("Strong screen presence")

    wpm = analysis.communication.words_per_minute
    if wpm is not None and 120 <= wpm <= 150:
        strengths.append("Optimal speaking pace")
    return strengths


class ResponseAnalyzer:
    """
    Scores one answer. Local text metrics always run; OpenAI is used for
    transcription of recordings and for grading against the reference answer
    when an API key is configured. Every call is bounded by `timeout`.
    """

    def __init__(self, timeout: float = ANALYZER_TIMEOUT_SECONDS, use_llm: Optional[bool] = None):
        self.timeout = timeout
        self.use_llm = bool(OPENAI_API_KEY) if use_llm is None else use_llm

    async def analyze(self, question_text: str, response: ResponseInput, expected_answer: str = "") -> Analysis:
        if not response.has_content:
            raise AnalyzerError("Either text response or media file is required")
        try:
            return await asyncio.wait_for(
                self._analyze(question_text, response, expected_answer),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            raise AnalyzerTimeoutError(f"Analysis did not finish within {self.timeout:g}s")

    async def transcribe(self, media_path: str) -> str:
        if not self.use_llm:
            return ""
        try:
            return await transcribe(media_path)
        except Exception as e:
            # the typed text is still scored when speech-to-text is unavailable
            logger.warning("Transcription failed for %s: %s", media_path, e)
            return ""

    async def grade_answer(self, question_text: str, answer: str, expected_answer: str) -> Optional[AnswerScore]:
        if not expected_answer or not answer.strip():
            return None

        local = score_answer(answer, expected_answer)
        if not self.use_llm:
            return local

        prompt = (
            f"Question: {question_text}\n\n"
            f"Reference answer: {expected_answer}\n\n"
            f"Candidate answer: {answer}\n\n"
            "Return JSON {score: float 0-10, reasoning: str}"
        )
        llm_result = await _call_llm_system(prompt, expect_json=True)

        try:
            llm_score = float(llm_result.get("score"))
        except (TypeError, ValueError):
            return local
        llm_score = max(0.0, min(10.0, llm_score))

        final = round((1 - LLM_WEIGHT) * local.score + LLM_WEIGHT * llm_score, 1)
        return local.model_copy(update={
            "score": final,
            "grade": score_to_grade(final),
            "feedback": llm_result.get("reasoning") or local.feedback,
        })

    async def _analyze(self, question_text: str, response: ResponseInput, expected_answer: str) -> Analysis:
        transcript = ""
        if response.media_path:
            transcript = await self.transcribe(response.media_path)

        text = " ".join(part for part in (response.text.strip(), transcript) if part)
        metrics = TextMetrics(text, duration=response.duration if response.media_path else None)

        confidence = metrics.confidence_block()
        communication = metrics.communication()
        improvements = metrics.improvements()
        non_verbal = None

        if response.video_path:
            non_verbal = build_non_verbal(response.eye_contact, response.posture)
            if non_verbal is not None:
                presence = non_verbal.overall_presence
                confidence.score = round(confidence.score * 0.6 + presence * 0.4, 1)
                communication.clarity = round(communication.clarity * 0.6 + presence * 0.4, 1)
                if non_verbal.eye_contact.score < 7:
                    improvements.append("Maintain better eye contact by looking directly at the camera")
                if non_verbal.posture.score < 7:
                    improvements.append("Improve posture by sitting up straight and keeping shoulders back")

        common = dict(
            confidence=confidence,
            communication=communication,
            sentiment=metrics.sentiment(),
            answer_score=await self.grade_answer(question_text, text, expected_answer),
            suggested_improvements=improvements,
            keywords=extract_keywords(text),
        )

        if response.video_path:
            analysis: Analysis = VideoAnalysis(
                transcript=transcript, media_duration=response.duration, non_verbal=non_verbal, **common
            )
        elif response.audio_path:
            analysis = AudioAnalysis(transcript=transcript, media_duration=response.duration, **common)
        else:
            analysis = TextAnalysis(**common)

        analysis.strengths = collect_strengths(analysis)
        return analysis
