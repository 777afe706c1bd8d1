# backend/prepcoach/answer_scoring.py
from difflib import SequenceMatcher
import re
from typing import List, Tuple

from .schemas import AnswerScore
from .scoring import score_to_grade

COMMON_WORDS = {"a", "an", "the", "and", "or", "but", "if", "of", "to", "in", "on", "at", "by", "for", "with", "about"}

KEYWORD_WEIGHT = 0.5
CONTENT_WEIGHT = 0.3
EXACT_MATCH_WEIGHT = 0.2


def _normalize(text: str) -> str:
    return " ".join((text or "").lower().split())


def extract_key_phrases(expected: str) -> List[str]:
    """Two/three-word phrases and long words from the reference answer."""
    phrases: List[str] = []
    for chunk in re.split(r"[.,;:!?]", _normalize(expected)):
        words = chunk.split()
        for i, word in enumerate(words[:-1]):
            if len(word) > 3 and word not in COMMON_WORDS:
                if len(words[i + 1]) > 3:
                    phrases.append(f"{word} {words[i + 1]}")
                if i + 2 < len(words) and len(words[i + 2]) > 3:
                    phrases.append(f"{word} {words[i + 1]} {words[i + 2]}")
        phrases.extend(w for w in words if len(w) > 4 and w not in COMMON_WORDS)
    return list(dict.fromkeys(phrases))


def keyword_score(answer: str, phrases: List[str]) -> Tuple[float, List[str], List[str]]:
    """Keyword coverage (0.0 - 1.0) with matched and missing phrases."""
    matched = [p for p in phrases if p in answer]
    missing = [p for p in phrases if p not in answer]
    score = len(matched) / len(phrases) if phrases else 0.0
    return score, matched, missing


def content_similarity(answer: str, expected: str) -> float:
    answer_words = {w for w in answer.split() if len(w) > 3}
    expected_words = {w for w in expected.split() if len(w) > 3}
    union = answer_words | expected_words
    return len(answer_words & expected_words) / len(union) if union else 0.0


def exact_match_score(answer: str, expected: str) -> float:
    if answer == expected:
        return 1.0
    if answer in expected or expected in answer:
        ratio = min(len(answer), len(expected)) / max(len(answer), len(expected))
        return 0.8 + 0.2 * ratio
    return SequenceMatcher(None, answer, expected).ratio()


def feedback_for(score: float) -> str:
    if score >= 9:
        return "Excellent answer that covers all key points."
    if score >= 7:
        return "Good answer that covers most key points."
    if score >= 5:
        return "Adequate answer but missing some important points."
    if score >= 3:
        return "Answer needs improvement and is missing several key points."
    return "Answer does not address the expected points."


def score_answer(user_answer: str, expected_answer: str) -> AnswerScore:
    """Score an answer against the reference answer on a 0-10 scale."""
    answer = _normalize(user_answer)
    expected = _normalize(expected_answer)

    if not answer or not expected:
        return AnswerScore(score=0.0, grade="F", feedback="Unable to score: missing answer or expected answer")

    phrases = extract_key_phrases(expected)

    if len(answer) < 15:
        return AnswerScore(
            score=2.0,
            grade="F",
            feedback="Answer is too brief to properly address the question.",
            missing_keywords=phrases,
        )

    if len(re.findall(r"\b[a-z]{3,}\b", answer)) < 2:
        return AnswerScore(
            score=1.0,
            grade="F",
            feedback="Answer appears to be nonsensical or random characters.",
            missing_keywords=phrases,
        )

    exact = exact_match_score(answer, expected)
    kw, matched, missing = keyword_score(answer, phrases)
    content = content_similarity(answer, expected)

    final = (kw * KEYWORD_WEIGHT + content * CONTENT_WEIGHT + exact * EXACT_MATCH_WEIGHT) * 10
    final = max(0.0, min(10.0, final))
    if exact > 0.9:
        final = max(final, 9.5)

    final = round(final, 1)
    return AnswerScore(
        score=final,
        grade=score_to_grade(final),
        feedback=feedback_for(final),
        keyword_matches=matched,
        missing_keywords=missing,
    )
