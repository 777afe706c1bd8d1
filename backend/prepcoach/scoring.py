# backend/prepcoach/scoring.py
import math
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .schemas import OverallAnalysis, Question

# Canonical breakpoints for every letter grade in the system: per-answer
# grades, interview grades and the profile summary all map through here.
GRADE_BREAKPOINTS: Tuple[Tuple[float, str], ...] = (
    (9.5, "A+"),
    (9.0, "A"),
    (8.5, "A-"),
    (8.0, "B+"),
    (7.5, "B"),
    (7.0, "B-"),
    (6.5, "C+"),
    (6.0, "C"),
    (5.5, "C-"),
    (5.0, "D+"),
    (4.0, "D"),
)

# Tie-break order for strongest skill / improvement area.
SKILL_PRIORITY: Tuple[str, ...] = ("confidence", "clarity", "sentiment")


def score_to_grade(score: float) -> str:
    for threshold, grade in GRADE_BREAKPOINTS:
        if score >= threshold:
            return grade
    return "F"


def _mean(values: Sequence[float]) -> float:
    # fsum keeps the mean independent of question order
    return math.fsum(values) / len(values) if values else 0.0


def _unique(items: Iterable[str], limit: int) -> List[str]:
    out: List[str] = []
    for item in items:
        if item not in out:
            out.append(item)
        if len(out) >= limit:
            break
    return out


def sentiment_on_ten(sentiment: float) -> float:
    """Map the -1..1 sentiment mean onto the 0-10 scale of the other skills."""
    return (max(-1.0, min(1.0, sentiment)) + 1) / 2 * 10


def skill_scores(confidence: float, clarity: float, sentiment: float) -> Dict[str, float]:
    return {"confidence": confidence, "clarity": clarity, "sentiment": sentiment_on_ten(sentiment)}


def strongest_skill(skills: Dict[str, float]) -> Optional[str]:
    """Arg-max over the skill means; earlier entries in SKILL_PRIORITY win ties."""
    best = None
    for name in SKILL_PRIORITY:
        if name in skills and (best is None or skills[name] > skills[best]):
            best = name
    return best


def improvement_area(skills: Dict[str, float]) -> Optional[str]:
    worst = None
    for name in SKILL_PRIORITY:
        if name in skills and (worst is None or skills[name] < skills[worst]):
            worst = name
    return worst


def aggregate(questions: Sequence[Question]) -> OverallAnalysis:
    """
    Reduce per-question analyses into the interview-level OverallAnalysis.
    Only questions holding both a response and an analysis count. With no
    such question the result is the no-data sentinel (has_data=False).
    """
    total = len(questions)
    answered = [q for q in questions if q.response is not None and q.analysis is not None]

    if not answered:
        return OverallAnalysis(total_questions=total, has_data=False)

    confidence = _mean([q.analysis.confidence.score for q in answered])
    clarity = _mean([q.analysis.communication.clarity for q in answered])
    sentiment = _mean([q.analysis.sentiment.overall for q in answered])

    scored = [q.analysis.answer_score.score for q in answered if q.analysis.answer_score is not None]
    answer = _mean(scored)

    graded = [confidence, clarity]
    if scored:
        graded.append(answer)

    presence = [
        q.analysis.non_verbal.overall_presence
        for q in answered
        if getattr(q.analysis, "non_verbal", None) is not None
    ]

    skills = skill_scores(confidence, clarity, sentiment)

    return OverallAnalysis(
        average_confidence=confidence,
        average_clarity=clarity,
        answer_score=answer,
        sentiment_score=sentiment,
        average_presence=_mean(presence),
        answered_questions=len(answered),
        total_questions=total,
        completion_rate=round(len(answered) / total * 100, 1),
        total_word_count=sum(q.analysis.communication.word_count for q in answered),
        total_filler_words=sum(q.analysis.communication.filler_words for q in answered),
        grade=score_to_grade(_mean(graded)),
        has_data=True,
        strongest_skill=strongest_skill(skills),
        improvement_area=improvement_area(skills),
        strengths=_unique((s for q in answered for s in q.analysis.strengths), 5),
        improvements=_unique((s for q in answered for s in q.analysis.suggested_improvements), 5),
    )
