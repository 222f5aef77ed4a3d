"""Paginates a Report into a downloadable PDF.

Section order follows the report fields: problem, operator narrative, applied
solution, recommended solutions, preventive recommendations, management
summary, analysed files.
"""

import asyncio
import io
import logging
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.enums import TA_JUSTIFY
from reportlab.lib.enums import TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph
from reportlab.platypus import SimpleDocTemplate
from reportlab.platypus import Spacer

from reporter.models.report_models import Report

logger = logging.getLogger(__name__)

REPORT_TITLE = "REPORT PROFESSIONALE"
FOOTER_TEXT = "Report generato automaticamente dal sistema Professional Problem Reporter"

SECTION_PROBLEM = "PROBLEMA IDENTIFICATO:"
SECTION_NARRATIVE = "DESCRIZIONE DELL'OPERATORE:"
SECTION_USER_SOLUTION = "SOLUZIONE APPLICATA:"
SECTION_SOLUTIONS = "SOLUZIONI RACCOMANDATE:"
SECTION_PREVENTIVE = "RACCOMANDAZIONI PREVENTIVE:"
SECTION_SUMMARY = "RIEPILOGO GESTIONALE:"
SECTION_FILES = "FILE ALLEGATI:"


class PdfBuilderError(Exception):
    """Raised when the PDF rendering of a report fails"""


def _styles() -> dict[str, ParagraphStyle]:
    base = getSampleStyleSheet()
    return {
        "title": ParagraphStyle("Title", parent=base["Heading1"], alignment=TA_CENTER, spaceAfter=12),
        "date": ParagraphStyle("Date", parent=base["BodyText"], alignment=TA_RIGHT, spaceAfter=18),
        "h2": ParagraphStyle("H2", parent=base["Heading2"], spaceBefore=10, spaceAfter=6),
        "h3": ParagraphStyle("H3", parent=base["Heading3"], spaceBefore=6, spaceAfter=4),
        "body": ParagraphStyle("Body", parent=base["BodyText"], alignment=TA_JUSTIFY, leading=14, spaceAfter=6),
        "quote": ParagraphStyle("Quote", parent=base["BodyText"], fontName="Helvetica-Oblique", alignment=TA_JUSTIFY, leading=14),
        "step": ParagraphStyle("Step", parent=base["BodyText"], leftIndent=18, spaceBefore=2),
        "footer": ParagraphStyle("Footer", parent=base["BodyText"], alignment=TA_CENTER, fontSize=9, textColor=colors.grey, spaceBefore=30),
    }


def _p(text: str, style: ParagraphStyle) -> Paragraph:
    return Paragraph(escape(text).replace("\n", "<br/>"), style)


def _story(report: Report) -> list:
    s = _styles()
    story: list = [
        _p(REPORT_TITLE, s["title"]),
        _p(f"Data: {report.timestamp.strftime('%d/%m/%Y')}", s["date"]),
        _p(SECTION_PROBLEM, s["h2"]),
        _p(report.problem_description, s["body"]),
    ]

    if report.audio_transcription:
        story += [_p(SECTION_NARRATIVE, s["h2"]), _p(f'"{report.audio_transcription}"', s["quote"])]

    if report.user_solution:
        story += [_p(SECTION_USER_SOLUTION, s["h2"]), _p(report.user_solution, s["body"])]

    if report.detailed_solutions:
        story.append(_p(SECTION_SOLUTIONS, s["h2"]))
        for index, solution in enumerate(report.detailed_solutions, start=1):
            story.append(_p(f"{index}. {solution.title}", s["h3"]))
            story.append(_p(f"Priorità: {solution.priority.upper()} | Tempo stimato: {solution.estimated_time}", s["body"]))
            story.append(_p("Descrizione:", s["body"]))
            story.append(_p(solution.description, s["body"]))
            if solution.steps:
                story.append(_p("Passaggi:", s["body"]))
                story += [_p(f"{n}. {step}", s["step"]) for n, step in enumerate(solution.steps, start=1)]
            if solution.required_tools:
                story.append(_p("Strumenti necessari:", s["body"]))
                story.append(_p(", ".join(solution.required_tools), s["step"]))
            story.append(Spacer(1, 0.15 * inch))

    if report.preventive_recommendations:
        story.append(_p(SECTION_PREVENTIVE, s["h2"]))
        story += [_p(f"{n}. {rec}", s["body"]) for n, rec in enumerate(report.preventive_recommendations, start=1)]

    if report.management_summary:
        story += [_p(SECTION_SUMMARY, s["h2"]), _p(report.management_summary, s["body"])]

    if report.files_analyzed:
        story.append(_p(SECTION_FILES, s["h2"]))
        story += [_p(f"{n}. {f.name} ({f.type})", s["body"]) for n, f in enumerate(report.files_analyzed, start=1)]

    story.append(_p(FOOTER_TEXT, s["footer"]))
    return story


def build_report_pdf(report: Report) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=0.7 * inch,
        rightMargin=0.7 * inch,
        topMargin=0.7 * inch,
        bottomMargin=0.7 * inch,
        title=REPORT_TITLE,
    )
    doc.build(_story(report))
    return buffer.getvalue()


async def render_report_pdf(report: Report, request_id: str) -> bytes:
    try:
        pdf_bytes = await asyncio.to_thread(build_report_pdf, report)
    except Exception as err:
        logger.exception("[%s] PDF generation failed", request_id)
        raise PdfBuilderError("Errore durante la generazione del PDF") from err
    logger.info("[%s] PDF report ready (%d bytes)", request_id, len(pdf_bytes))
    return pdf_bytes
