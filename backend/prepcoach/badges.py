# backend/prepcoach/badges.py
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from .schemas import Badge, Interview, UserStats, utcnow

GOOD_GRADES = ("A+", "A", "A-", "B+")


class BadgeContext(NamedTuple):
    stats: UserStats
    interviews: Sequence[Interview]  # completed interviews only
    now: datetime


Predicate = Callable[[BadgeContext], bool]


class BadgeDefinition(NamedTuple):
    name: str
    description: str
    icon: str
    predicate: Predicate


def _overall(interview: Interview, field: str, default=0.0):
    if interview.overall_analysis is None:
        return default
    return getattr(interview.overall_analysis, field)


def _as_aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _completed_within(ctx: BadgeContext, days: int) -> int:
    cutoff = ctx.now - timedelta(days=days)
    return sum(1 for i in ctx.interviews if i.completed_at and _as_aware(i.completed_at) >= cutoff)


DEFAULT_BADGES: Tuple[BadgeDefinition, ...] = (
    BadgeDefinition("First Steps", "Complete your first interview", "🎯",
                    lambda ctx: len(ctx.interviews) >= 1),
    BadgeDefinition("Confidence Builder", "Achieve 8+ confidence score", "💪",
                    lambda ctx: any(_overall(i, "average_confidence") >= 8 for i in ctx.interviews)),
    BadgeDefinition("Clear Communicator", "Achieve 8+ clarity score", "🗣️",
                    lambda ctx: any(_overall(i, "average_clarity") >= 8 for i in ctx.interviews)),
    BadgeDefinition("Interview Veteran", "Complete 10 interviews", "🏆",
                    lambda ctx: len(ctx.interviews) >= 10),
    BadgeDefinition("Perfectionist", "Get an A+ grade", "⭐",
                    lambda ctx: any(_overall(i, "grade", None) == "A+" for i in ctx.interviews)),
    BadgeDefinition("Consistent Performer", "Complete 5 interviews in a week", "📈",
                    lambda ctx: _completed_within(ctx, 7) >= 5),
    BadgeDefinition("Technical Expert", "Complete 5 technical interviews", "⚙️",
                    lambda ctx: sum(1 for i in ctx.interviews if i.type == "technical") >= 5),
    BadgeDefinition("People Person", "Excel in behavioral interviews", "👥",
                    lambda ctx: any(i.type == "behavioral" and _overall(i, "grade", None) in GOOD_GRADES
                                    for i in ctx.interviews)),
    BadgeDefinition("Improvement Master", "Show 50% improvement trend", "📊",
                    lambda ctx: ctx.stats.improvement_trend >= 50),
    BadgeDefinition("Marathon Runner", "Complete 25 interviews", "🏃",
                    lambda ctx: len(ctx.interviews) >= 25),
)


def evaluate(
    stats: UserStats,
    completed_interviews: Sequence[Interview],
    existing_badge_names: Iterable[str],
    definitions: Sequence[BadgeDefinition] = DEFAULT_BADGES,
    now: Optional[datetime] = None,
) -> List[Badge]:
    """
    Return the badges newly earned, in table order. Names already in
    `existing_badge_names` are skipped without evaluating their predicate.
    """
    earned = set(existing_badge_names)
    now = now or utcnow()
    ctx = BadgeContext(stats=stats, interviews=list(completed_interviews), now=now)

    new_badges = []
    for definition in definitions:
        if definition.name in earned:
            continue
        if definition.predicate(ctx):
            new_badges.append(Badge(
                name=definition.name,
                description=definition.description,
                icon=definition.icon,
                earned_at=now,
            ))
            earned.add(definition.name)
    return new_badges


def available_badges(definitions: Sequence[BadgeDefinition] = DEFAULT_BADGES) -> List[dict]:
    return [{"name": d.name, "description": d.description, "icon": d.icon} for d in definitions]
