# backend/prepcoach/stats.py
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence

from .schemas import Badge, Interview, User, UserStats, utcnow
from .scoring import improvement_area, skill_scores, strongest_skill

TREND_WINDOW = 5

# GPA points per letter, used only for the averaged profile grade
GRADE_POINTS: Dict[str, float] = {
    "A+": 4.0, "A": 4.0, "A-": 3.7,
    "B+": 3.3, "B": 3.0, "B-": 2.7,
    "C+": 2.3, "C": 2.0, "C-": 1.7,
    "D+": 1.3, "D": 1.0, "F": 0.0,
}


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _confidence(interview: Interview) -> float:
    return interview.overall_analysis.average_confidence if interview.overall_analysis else 0.0


def _clarity(interview: Interview) -> float:
    return interview.overall_analysis.average_clarity if interview.overall_analysis else 0.0


def _sentiment(interview: Interview) -> float:
    return interview.overall_analysis.sentiment_score if interview.overall_analysis else 0.0


def newest_first(interviews: Sequence[Interview]) -> List[Interview]:
    epoch = datetime.min.replace(tzinfo=timezone.utc)

    def key(i: Interview) -> datetime:
        ts = i.completed_at or i.created_at
        if ts is None:
            return epoch
        return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)

    return sorted(interviews, key=key, reverse=True)


def improvement_trend(completed: Sequence[Interview]) -> float:
    """
    Percent change of the newest five interviews' confidence mean against the
    five before them. Needs ten completed interviews; otherwise 0.
    A previous mean of 0 also yields 0.
    """
    if len(completed) < TREND_WINDOW * 2:
        return 0.0
    ordered = newest_first(completed)
    recent = _mean([_confidence(i) for i in ordered[:TREND_WINDOW]])
    previous = _mean([_confidence(i) for i in ordered[TREND_WINDOW:TREND_WINDOW * 2]])
    if previous == 0:
        return 0.0
    return round((recent - previous) / previous * 100, 1)


def compute_user_stats(completed: Sequence[Interview], now: Optional[datetime] = None) -> UserStats:
    """Rebuild the cached profile counters from every completed interview."""
    return UserStats(
        total_interviews=len(completed),
        technical_interviews=sum(1 for i in completed if i.type == "technical"),
        average_confidence=round(_mean([_confidence(i) for i in completed]), 1),
        average_clarity=round(_mean([_clarity(i) for i in completed]), 1),
        improvement_trend=improvement_trend(completed),
        updated_at=now or utcnow(),
    )


def average_grade(completed: Sequence[Interview]) -> str:
    if not completed:
        return "N/A"
    points = _mean([
        GRADE_POINTS.get(i.overall_analysis.grade if i.overall_analysis else "F", 0.0)
        for i in completed
    ])
    if points >= 3.7:
        return "A"
    if points >= 3.3:
        return "B+"
    if points >= 3.0:
        return "B"
    if points >= 2.7:
        return "B-"
    if points >= 2.3:
        return "C+"
    if points >= 2.0:
        return "C"
    if points >= 1.7:
        return "C-"
    if points >= 1.0:
        return "D"
    return "F"


def profile_summary(completed: Sequence[Interview]) -> Dict[str, object]:
    if not completed:
        return {
            "total_interviews": 0,
            "average_grade": "N/A",
            "strongest_skill": None,
            "improvement_area": None,
        }
    skills = skill_scores(
        _mean([_confidence(i) for i in completed]),
        _mean([_clarity(i) for i in completed]),
        _mean([_sentiment(i) for i in completed]),
    )
    return {
        "total_interviews": len(completed),
        "average_grade": average_grade(completed),
        "strongest_skill": strongest_skill(skills),
        "improvement_area": improvement_area(skills),
    }


def _progress(current: float, target: float) -> float:
    return round(min(current / target * 100, 100.0), 1)


def achievements(stats: UserStats, badges: Sequence[Badge], completed: Sequence[Interview]) -> List[Dict[str, object]]:
    return [
        {
            "name": "Interview Count",
            "current": len(completed),
            "target": 25,
            "progress": _progress(len(completed), 25),
            "description": "Complete interview practice sessions",
        },
        {
            "name": "Confidence Level",
            "current": stats.average_confidence,
            "target": 9,
            "progress": _progress(stats.average_confidence, 9),
            "description": "Achieve high confidence scores",
        },
        {
            "name": "Communication Clarity",
            "current": stats.average_clarity,
            "target": 9,
            "progress": _progress(stats.average_clarity, 9),
            "description": "Master clear communication",
        },
        {
            "name": "Badge Collection",
            "current": len(badges),
            "target": 10,
            "progress": _progress(len(badges), 10),
            "description": "Earn achievement badges",
        },
    ]


def leaderboard(users: Sequence[User], current_user_id: str, limit: int = 50) -> List[Dict[str, object]]:
    """Rank users by average confidence; everyone but the caller is anonymized."""
    ranked = sorted(
        (u for u in users if u.stats.total_interviews > 0),
        key=lambda u: u.stats.average_confidence,
        reverse=True,
    )[:limit]

    rows = []
    for rank, user in enumerate(ranked, start=1):
        is_current = user.id == current_user_id
        rows.append({
            "rank": rank,
            "username": (user.username or user.id) if is_current else f"User{user.id[-4:]}",
            "is_current_user": is_current,
            "stats": {
                "total_interviews": user.stats.total_interviews,
                "average_confidence": user.stats.average_confidence,
                "average_clarity": user.stats.average_clarity,
                "improvement_trend": user.stats.improvement_trend,
            },
            "badge_count": len(user.badges),
        })
    return rows


def _completed_on(interview: Interview) -> datetime:
    ts = interview.completed_at or interview.created_at
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def _frequency(items, key: str, limit: int = 5) -> List[Dict[str, object]]:
    return [{key: item, "count": count} for item, count in Counter(items).most_common(limit)]


def dashboard(completed: Sequence[Interview], days: int = 30, now: Optional[datetime] = None) -> Dict[str, object]:
    """
    Progress analytics over the completed interviews of the last `days` days:
    headline stats, score time series (oldest first) and distributions.
    """
    now = now or utcnow()
    cutoff = now - timedelta(days=days)
    recent = [i for i in newest_first(completed) if _completed_on(i) >= cutoff]
    total = len(recent)

    # newer half against older half
    trend = 0.0
    if total >= TREND_WINDOW:
        half = (total + 1) // 2
        newer = _mean([_confidence(i) for i in recent[:half]])
        older = _mean([_confidence(i) for i in recent[half:]])
        if older > 0:
            trend = round((newer - older) / older * 100, 1)

    chronological = list(reversed(recent))
    types = Counter(i.type for i in recent)

    return {
        "timeframe_days": days,
        "stats": {
            "total_interviews": total,
            "average_confidence": round(_mean([_confidence(i) for i in recent]), 1),
            "average_clarity": round(_mean([_clarity(i) for i in recent]), 1),
            "average_sentiment": round(_mean([_sentiment(i) for i in recent]), 2),
            "improvement_trend": trend,
        },
        "charts": {
            "confidence_over_time": [
                {"date": _completed_on(i), "value": _confidence(i), "label": i.type} for i in chronological
            ],
            "clarity_over_time": [
                {"date": _completed_on(i), "value": _clarity(i), "label": i.type} for i in chronological
            ],
            "interview_type_distribution": [
                {"type": t, "count": c, "percentage": round(c / total * 100, 1)} for t, c in types.most_common()
            ],
            "difficulty_distribution": dict(Counter(i.difficulty for i in recent)),
            "strengths_frequency": _frequency(
                (s for i in recent if i.overall_analysis for s in i.overall_analysis.strengths), "strength"
            ),
            "improvement_areas": _frequency(
                (s for i in recent if i.overall_analysis for s in i.overall_analysis.improvements), "improvement"
            ),
        },
    }


XP_PER_INTERVIEW = 100
XP_PER_PERFECT_SCORE = 50
XP_PER_BADGE = 25
XP_PER_LEVEL = 500

RANKS = ((8, "Expert Interviewer"), (5, "Advanced Interviewer"), (3, "Intermediate Interviewer"))


def practice_streak(completed: Sequence[Interview], now: Optional[datetime] = None) -> int:
    """Consecutive days with a completed interview, ending today or yesterday."""
    today = (now or utcnow()).date()
    days = {_completed_on(i).date() for i in completed}
    day = today if today in days else today - timedelta(days=1)
    streak = 0
    while day in days:
        streak += 1
        day -= timedelta(days=1)
    return streak


def gamification(completed: Sequence[Interview], badges: Sequence[Badge], now: Optional[datetime] = None) -> Dict[str, object]:
    now = now or utcnow()
    perfect = sum(1 for i in completed if _confidence(i) >= 9.5 or _clarity(i) >= 9.5)
    xp = len(completed) * XP_PER_INTERVIEW + perfect * XP_PER_PERFECT_SCORE + len(badges) * XP_PER_BADGE
    level = xp // XP_PER_LEVEL + 1
    rank = next((name for threshold, name in RANKS if level >= threshold), "Beginner Interviewer")

    week_start = now - timedelta(days=now.weekday())
    week_start = week_start.replace(hour=0, minute=0, second=0, microsecond=0)
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    dates = [_completed_on(i) for i in completed]

    return {
        "total_interviews": len(completed),
        "technical_interviews": sum(1 for i in completed if i.type == "technical"),
        "perfect_scores": perfect,
        "badges_earned": len(badges),
        "streak_days": practice_streak(completed, now),
        "today_interviews": sum(1 for d in dates if d.date() == now.date()),
        "week_interviews": sum(1 for d in dates if d >= week_start),
        "month_interviews": sum(1 for d in dates if d >= month_start),
        "month_badges": sum(1 for b in badges if b.earned_at >= month_start),
        "experience_points": xp,
        "level": level,
        "next_level_xp": level * XP_PER_LEVEL,
        "rank": rank,
    }
