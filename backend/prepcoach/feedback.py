# backend/prepcoach/feedback.py
from typing import Sequence

from .schemas import AIFeedback, OverallAnalysis, Question


def build_ai_feedback(questions: Sequence[Question], overall: OverallAnalysis) -> AIFeedback:
    """Summary text plus recommendations produced alongside the OverallAnalysis."""
    if not overall.has_data:
        return AIFeedback(
            summary="No questions were answered, so there is nothing to score yet.",
            recommendations=["Answer at least one question to receive feedback"],
            next_steps=["Start a new practice interview and respond to each question"],
        )

    answered = overall.answered_questions
    confidence = overall.average_confidence
    clarity = overall.average_clarity
    has_answer_scores = any(q.answered and q.analysis.answer_score is not None for q in questions)
    video = [q.analysis.non_verbal for q in questions if q.answered and getattr(q.analysis, "non_verbal", None)]

    summary = (
        f"You completed {answered} of {overall.total_questions} questions with an average confidence "
        f"score of {confidence:.1f}/10 and clarity score of {clarity:.1f}/10."
    )
    if has_answer_scores:
        summary += (
            f" Your answer content received an average score of {overall.answer_score:.1f}/10"
            f" (Grade: {overall.grade})."
        )
    if overall.total_word_count > 0:
        summary += f" You provided a total of {overall.total_word_count} words across all responses."
    if video:
        summary += f" Your video responses showed an average presence score of {overall.average_presence:.1f}/10."

    recommendations = []
    next_steps = []

    if confidence < 7:
        recommendations.append("Practice speaking with more conviction about your achievements")
        next_steps.append("Record yourself answering common interview questions")
    if clarity < 7:
        recommendations.append("Work on structuring your answers more clearly using the STAR method")
        next_steps.append("Practice organizing your thoughts before speaking")
    if has_answer_scores and overall.answer_score < 7:
        recommendations.append("Focus on addressing key points expected in your answers")
        next_steps.append("Review common questions and prepare comprehensive answers")
    if overall.total_filler_words > answered * 3:
        recommendations.append("Reduce filler words by taking brief pauses to collect your thoughts")
        next_steps.append("Practice mindful speaking exercises")
    if 0 < overall.total_word_count and overall.total_word_count / answered < 30:
        recommendations.append("Try to provide more detailed responses with specific examples")
        next_steps.append("Practice elaborating on your experiences with concrete details")

    if video:
        if overall.average_presence < 7:
            recommendations.append("Improve your screen presence by maintaining eye contact and good posture")
            next_steps.append("Practice video recording to become more comfortable on camera")
        if sum(nv.eye_contact.score for nv in video) / len(video) < 7:
            recommendations.append("Maintain better eye contact by looking directly at the camera")
        if sum(nv.posture.score for nv in video) / len(video) < 7:
            recommendations.append("Improve your posture - sit up straight and keep shoulders back")

    if confidence >= 8 and clarity >= 8 and (not video or overall.average_presence >= 8):
        recommendations.append("Excellent communication skills! Continue practicing to maintain this level")
        next_steps.append("Consider practicing more challenging interview scenarios")

    return AIFeedback(summary=summary, recommendations=recommendations, next_steps=next_steps)
