# backend/prepcoach/reports.py
from io import BytesIO
from typing import List
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import PageBreak, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .errors import InvalidStateError
from .schemas import Interview

TABLE_STYLE = TableStyle([
    ("BACKGROUND", (0, 0), (-1, 0), colors.grey),
    ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
    ("ALIGN", (0, 0), (-1, -1), "CENTER"),
    ("GRID", (0, 0), (-1, -1), 0.5, colors.black),
])


def _fmt(value) -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        return f"{value:.1f}"
    return str(value)


def _bullets(items: List[str], style) -> List[Paragraph]:
    return [Paragraph(f"- {escape(item)}", style) for item in items]


def render_interview_report(interview: Interview) -> BytesIO:
    """PDF with a cover page, one section per question and summary tables."""
    if interview.status != "completed" or interview.overall_analysis is None:
        raise InvalidStateError(
            "Reports are only available for completed interviews",
            current=interview.status,
            required="completed",
        )

    overall = interview.overall_analysis
    ai = interview.feedback.ai

    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, rightMargin=50, leftMargin=50, topMargin=50, bottomMargin=50)

    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle(name="NormalSmall", fontSize=10, leading=14))

    elements = []

    # ===== COVER PAGE =====
    elements.append(Paragraph("Interview Practice Report", styles["Title"]))
    elements.append(Spacer(1, 20))
    elements.append(Paragraph(f"<b>Title:</b> {escape(interview.title)}", styles["Normal"]))
    elements.append(Paragraph(f"<b>Type:</b> {interview.type.title()} ({interview.difficulty})", styles["Normal"]))
    elements.append(Paragraph(f"<b>Completed At:</b> {interview.completed_at:%Y-%m-%d %H:%M}", styles["Normal"]))
    if interview.duration is not None:
        minutes, seconds = divmod(interview.duration, 60)
        elements.append(Paragraph(f"<b>Duration:</b> {minutes}m {seconds}s", styles["Normal"]))
    elements.append(Paragraph(
        f"<b>Answered:</b> {overall.answered_questions}/{overall.total_questions} "
        f"({overall.completion_rate:g}%)",
        styles["Normal"],
    ))
    elements.append(Spacer(1, 20))
    elements.append(Paragraph(f"<b>Overall Grade:</b> {overall.grade if overall.has_data else 'N/A'}", styles["Heading2"]))
    if ai is not None and ai.summary:
        elements.append(Paragraph(escape(ai.summary), styles["NormalSmall"]))
    elements.append(PageBreak())

    # ===== QUESTIONS =====
    elements.append(Paragraph("Question Breakdown", styles["Heading1"]))
    elements.append(Spacer(1, 20))

    for idx, q in enumerate(interview.questions, 1):
        elements.append(Paragraph(f"<b>Q{idx} [{escape(q.category)}]:</b> {escape(q.text)}", styles["Normal"]))
        if q.response is None:
            elements.append(Paragraph("<i>Not answered</i>", styles["NormalSmall"]))
            elements.append(Spacer(1, 15))
            continue

        if q.response.text:
            elements.append(Paragraph(f"<b>Answer:</b> {escape(q.response.text)}", styles["NormalSmall"]))
        analysis = q.analysis
        if analysis is None:
            elements.append(Paragraph("<i>Analysis unavailable</i>", styles["NormalSmall"]))
        else:
            line = (
                f"<b>Confidence:</b> {_fmt(analysis.confidence.score)} | "
                f"<b>Clarity:</b> {_fmt(analysis.communication.clarity)} | "
                f"<b>Words:</b> {analysis.communication.word_count}"
            )
            if analysis.answer_score is not None:
                line += f" | <b>Answer:</b> {_fmt(analysis.answer_score.score)} ({analysis.answer_score.grade})"
            elements.append(Paragraph(line, styles["NormalSmall"]))
            if analysis.strengths:
                elements.append(Paragraph(
                    f"<b>Strengths:</b> {escape(', '.join(analysis.strengths))}", styles["NormalSmall"]
                ))
            if analysis.suggested_improvements:
                elements.append(Paragraph(
                    f"<b>Improve:</b> {escape('; '.join(analysis.suggested_improvements))}", styles["NormalSmall"]
                ))
        elements.append(Spacer(1, 15))

    elements.append(PageBreak())

    # ===== SUMMARY =====
    elements.append(Paragraph("Summary", styles["Heading1"]))
    elements.append(Spacer(1, 20))

    score_data = [
        ["Metric", "Score"],
        ["Confidence", _fmt(overall.average_confidence)],
        ["Clarity", _fmt(overall.average_clarity)],
        ["Answer content", _fmt(overall.answer_score)],
        ["Sentiment", _fmt(overall.sentiment_score)],
    ]
    if overall.average_presence:
        score_data.append(["Presence", _fmt(overall.average_presence)])
    score_table = Table(score_data, hAlign="CENTER", colWidths=[200, 200])
    score_table.setStyle(TABLE_STYLE)
    elements.append(score_table)
    elements.append(Spacer(1, 20))

    skill_table = Table(
        [
            ["Strongest skill", "Improvement area", "Words", "Filler words"],
            [
                _fmt(overall.strongest_skill),
                _fmt(overall.improvement_area),
                overall.total_word_count,
                overall.total_filler_words,
            ],
        ],
        hAlign="CENTER",
        colWidths=[110, 110, 100, 100],
    )
    skill_table.setStyle(TABLE_STYLE)
    elements.append(skill_table)
    elements.append(Spacer(1, 20))

    elements.append(Paragraph("<b>Strengths:</b>", styles["Heading3"]))
    elements.extend(_bullets(overall.strengths, styles["NormalSmall"]))
    elements.append(Paragraph("<b>Improvements:</b>", styles["Heading3"]))
    elements.extend(_bullets(overall.improvements, styles["NormalSmall"]))

    if ai is not None:
        elements.append(Paragraph("<b>Recommendations:</b>", styles["Heading3"]))
        elements.extend(_bullets(ai.recommendations, styles["NormalSmall"]))
        elements.append(Paragraph("<b>Next Steps:</b>", styles["Heading3"]))
        elements.extend(_bullets(ai.next_steps, styles["NormalSmall"]))

    doc.build(elements)
    buffer.seek(0)
    return buffer
