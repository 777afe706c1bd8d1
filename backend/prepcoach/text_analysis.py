# backend/prepcoach/text_analysis.py
"""Lexicon-based delivery metrics for a typed or transcribed answer.

Scores are deterministic: the same text always yields the same confidence,
clarity and sentiment, so resubmitting an answer is reproducible.
"""

import re
from collections import Counter
from typing import Dict, List, Optional

from .schemas import Communication, Confidence, Sentiment

# interview-specific sentiment weights, added on top of the base lexicon
INTERVIEW_WORDS: Dict[str, int] = {
    "confident": 3, "excited": 3, "passionate": 3, "enthusiastic": 3,
    "experienced": 2, "skilled": 2, "motivated": 2, "dedicated": 2,
    "professional": 2, "capable": 2,
    "nervous": -2, "unsure": -2, "confused": -2, "worried": -2, "anxious": -2,
    "uncertain": -1, "hesitant": -1,
}

BASE_LEXICON: Dict[str, int] = {
    "good": 3, "great": 3, "excellent": 3, "success": 2, "successful": 2,
    "improve": 2, "improved": 2, "achieve": 2, "achieved": 2, "love": 3,
    "enjoy": 2, "happy": 3, "proud": 2, "win": 4, "effective": 2, "help": 2,
    "helped": 2, "solve": 1, "solved": 1, "learn": 1, "learned": 1,
    "bad": -3, "fail": -2, "failed": -2, "failure": -2, "problem": -2,
    "difficult": -1, "hate": -3, "angry": -3, "wrong": -2, "poor": -2,
    "struggle": -2, "struggled": -2, "mistake": -2, "worst": -3,
}

CONFIDENCE_KEYWORDS = [
    "confident", "sure", "certain", "definitely", "absolutely",
    "experienced", "skilled", "capable", "proficient", "expert",
]

UNCERTAINTY_KEYWORDS = [
    "maybe", "perhaps", "might", "possibly", "probably",
    "i think", "i guess", "not sure", "unsure", "uncertain",
]

FILLER_WORDS = [
    "um", "uh", "er", "like", "you know", "actually",
    "basically", "literally", "sort of", "kind of",
]

STOP_WORDS = {
    "the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with",
    "by", "is", "are", "was", "were", "be", "been", "being", "have", "has",
    "had", "do", "does", "did", "will", "would", "could", "should", "may",
    "might", "can", "this", "that", "these", "those", "i", "you", "he",
    "she", "it", "we", "they", "my", "your", "his", "her", "its", "our", "their",
}

_REAL_WORD = re.compile(r"\b[a-z]{3,}\b")
_SENTENCE_SPLIT = re.compile(r"[.!?]+")


def count_keywords(text: str, keywords: List[str]) -> int:
    lower = text.lower()
    return sum(len(re.findall(rf"\b{re.escape(k)}\b", lower)) for k in keywords)


def _clamp(value: float, low: float = 0.0, high: float = 10.0) -> float:
    return max(low, min(high, value))


def sentiment_score(text: str) -> int:
    words = re.findall(r"[a-z']+", text.lower())
    score = sum(BASE_LEXICON.get(w, 0) for w in words)
    score += sum(INTERVIEW_WORDS.get(w, 0) for w in words)
    return score


def determine_pace(word_count: int, text_length: int) -> str:
    if word_count == 0:
        return "none"
    avg_word_length = text_length / word_count
    if word_count < 50 or avg_word_length > 6:
        return "slow"
    if word_count > 150 or avg_word_length < 4:
        return "fast"
    return "normal"


def pace_from_wpm(wpm: float) -> str:
    if wpm < 100:
        return "slow"
    if wpm > 160:
        return "fast"
    return "normal"


def extract_keywords(text: str, limit: int = 5) -> List[str]:
    words = re.sub(r"[^\w\s]", "", text.lower()).split()
    counts = Counter(w for w in words if len(w) > 3 and w not in STOP_WORDS)
    return [word for word, _ in counts.most_common(limit)]


def confidence_indicators(confident: int, uncertain: int, fillers: int) -> List[str]:
    indicators = []
    if confident > 2:
        indicators.append("Uses confident language")
    if uncertain > 3:
        indicators.append("Shows uncertainty in responses")
    if fillers > 5:
        indicators.append("Frequent use of filler words")
    if confident > uncertain:
        indicators.append("Generally confident tone")
    return indicators


def suggest_improvements(confidence: float, clarity: float, fillers: int, word_count: int) -> List[str]:
    improvements = []
    if confidence < 7:
        improvements.append("Practice speaking with more conviction about your achievements")
        improvements.append("Use action words to describe your experiences")
    if clarity < 7:
        improvements.append("Use the STAR method (Situation, Task, Action, Result) for storytelling")
        improvements.append("Practice organizing your thoughts before speaking")
    if word_count and fillers / word_count > 0.05:
        improvements.append("Record yourself practicing to identify filler word patterns")
        improvements.append("Take brief pauses to collect your thoughts instead of using fillers")
    if word_count < 30:
        improvements.append("Provide more detailed examples to support your answers")
        improvements.append("Elaborate on your experiences with specific details")
    return improvements


class TextMetrics:
    """Delivery metrics for one answer; `duration` enables words-per-minute."""

    def __init__(self, text: str, duration: Optional[float] = None):
        self.text = (text or "").strip()
        self.duration = duration or 0.0

        words = self.text.lower().split()
        self.word_count = len(words)
        self.confident = count_keywords(self.text, CONFIDENCE_KEYWORDS)
        self.uncertain = count_keywords(self.text, UNCERTAINTY_KEYWORDS)
        self.fillers = count_keywords(self.text, FILLER_WORDS)
        self.raw_sentiment = sentiment_score(self.text)

    @property
    def empty(self) -> bool:
        return self.word_count == 0

    @property
    def words_per_minute(self) -> Optional[float]:
        if self.empty or self.duration <= 0:
            return None
        return round(self.word_count / (self.duration / 60), 1)

    def confidence(self) -> float:
        if self.empty:
            return 0.0
        normalized = _clamp((self.raw_sentiment + 10) / 20, 0.0, 1.0)
        length_factor = _clamp(self.word_count / 100, 0.3, 1.0)
        score = 5 * length_factor * (0.7 + normalized * 0.3)
        score += self.confident * 0.5
        score -= self.uncertain * 0.5
        score -= (self.fillers / self.word_count) * 15
        return round(_clamp(score), 1)

    def clarity(self) -> float:
        if self.empty:
            return 0.0
        real_words = _REAL_WORD.findall(self.text.lower())
        if len(self.text) < 15 or len(real_words) < 2 or len(real_words) / self.word_count < 0.5:
            return 2.0

        sentences = [s for s in _SENTENCE_SPLIT.split(self.text) if s.strip()]
        words_per_sentence = self.word_count / max(1, len(sentences))
        # around 15-20 words per sentence keeps the full baseline
        structure = _clamp(20 / max(1.0, words_per_sentence), 0.5, 1.0)

        score = 7 * structure
        score -= min(5.0, (self.fillers / self.word_count) * 25)
        score -= min(3.0, self.uncertain * 0.3)
        return round(_clamp(score), 1)

    def sentiment(self) -> Sentiment:
        raw = self.raw_sentiment
        magnitude = max(1, abs(raw))
        return Sentiment(
            overall=round(_clamp(raw / 10, -1.0, 1.0), 3),
            positivity=max(0.0, raw / magnitude),
            negativity=max(0.0, -raw / magnitude),
        )

    def communication(self) -> Communication:
        wpm = self.words_per_minute
        return Communication(
            clarity=self.clarity(),
            word_count=self.word_count,
            words_per_minute=wpm,
            filler_words=self.fillers,
            pace=pace_from_wpm(wpm) if wpm is not None else determine_pace(self.word_count, len(self.text)),
        )

    def confidence_block(self) -> Confidence:
        return Confidence(
            score=self.confidence(),
            indicators=confidence_indicators(self.confident, self.uncertain, self.fillers),
        )

    def improvements(self) -> List[str]:
        if self.empty:
            return ["Provide a response to get detailed feedback"]
        return suggest_improvements(self.confidence(), self.clarity(), self.fillers, self.word_count)
