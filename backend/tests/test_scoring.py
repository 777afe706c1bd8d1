import random

from prepcoach.schemas import (
    AnswerScore,
    Communication,
    Confidence,
    Question,
    Response,
    Sentiment,
    TextAnalysis,
)
from prepcoach.scoring import aggregate, improvement_area, score_to_grade, sentiment_on_ten, strongest_skill


def answered(qid, confidence, clarity, sentiment=0.0, answer=None, words=40, fillers=0, strengths=()):
    analysis = TextAnalysis(
        confidence=Confidence(score=confidence),
        communication=Communication(clarity=clarity, word_count=words, filler_words=fillers),
        sentiment=Sentiment(overall=sentiment),
        answer_score=AnswerScore(score=answer, grade=score_to_grade(answer)) if answer is not None else None,
        strengths=list(strengths),
    )
    return Question(id=qid, text=f"question {qid}", response=Response(text="an answer"), analysis=analysis)


def test_grade_breakpoints():
    assert score_to_grade(10) == "A+"
    assert score_to_grade(9.5) == "A+"
    assert score_to_grade(9.49) == "A"
    assert score_to_grade(8.0) == "B+"
    assert score_to_grade(7.0) == "B-"
    assert score_to_grade(5.0) == "D+"
    assert score_to_grade(4.0) == "D"
    assert score_to_grade(3.99) == "F"
    assert score_to_grade(0) == "F"


def test_aggregate_empty_is_no_data_sentinel():
    overall = aggregate([])
    assert overall.has_data is False
    assert overall.grade == "F"
    assert overall.answered_questions == 0
    assert overall.strongest_skill is None


def test_aggregate_unanswered_questions_is_no_data_sentinel():
    questions = [Question(id="q1", text="a"), Question(id="q2", text="b", response=Response(text="x"))]
    overall = aggregate(questions)

    assert overall.has_data is False
    assert overall.total_questions == 2
    assert overall.average_confidence == 0
    assert overall.completion_rate == 0


def test_aggregate_means_over_answered_only():
    questions = [
        answered("q1", 8.0, 6.0, words=50, fillers=2),
        answered("q2", 6.0, 8.0, words=30, fillers=1),
        Question(id="q3", text="skipped"),
    ]
    overall = aggregate(questions)

    assert overall.has_data is True
    assert overall.average_confidence == 7.0
    assert overall.average_clarity == 7.0
    assert overall.answered_questions == 2
    assert overall.total_questions == 3
    assert overall.completion_rate == 66.7
    assert overall.total_word_count == 80
    assert overall.total_filler_words == 3
    assert overall.grade == "B-"


def test_aggregate_is_order_independent():
    questions = [answered(f"q{i}", 0.1 * i + 5.3, 7.7 - 0.3 * i) for i in range(1, 8)]
    shuffled = list(questions)
    random.Random(5).shuffle(shuffled)

    assert aggregate(questions).average_confidence == aggregate(shuffled).average_confidence
    assert aggregate(questions).average_clarity == aggregate(shuffled).average_clarity


def test_answer_score_joins_the_grade_when_present():
    without = aggregate([answered("q1", 9.0, 9.0)])
    with_low_answer = aggregate([answered("q1", 9.0, 9.0, answer=0.0)])

    assert without.grade == "A"
    assert with_low_answer.answer_score == 0.0
    assert with_low_answer.grade == "C"


def test_skill_tie_break_prefers_confidence_then_clarity():
    assert strongest_skill({"confidence": 5, "clarity": 5, "sentiment": 1}) == "confidence"
    assert improvement_area({"confidence": 5, "clarity": 1, "sentiment": 1}) == "clarity"
    assert strongest_skill({}) is None


def test_sentiment_is_ranked_on_the_ten_point_scale():
    assert sentiment_on_ten(-1.0) == 0.0
    assert sentiment_on_ten(0.0) == 5.0
    assert sentiment_on_ten(1.0) == 10.0
    assert sentiment_on_ten(3.0) == 10.0

    # fully positive sentiment beats weak delivery scores
    overall = aggregate([answered("q1", 3.0, 2.5, sentiment=1.0)])
    assert overall.strongest_skill == "sentiment"
    assert overall.improvement_area == "clarity"
    assert overall.sentiment_score == 1.0

    # neutral sentiment sits mid-scale, below strong delivery
    overall = aggregate([answered("q1", 9.0, 8.0, sentiment=0.0)])
    assert overall.strongest_skill == "confidence"
    assert overall.improvement_area == "sentiment"


def test_strengths_are_deduplicated():
    overall = aggregate([
        answered("q1", 7, 7, strengths=["Confident delivery", "Clear communication"]),
        answered("q2", 7, 7, strengths=["Confident delivery"]),
    ])
    assert overall.strengths == ["Confident delivery", "Clear communication"]
