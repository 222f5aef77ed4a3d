"""Assembles the synthesis prompt for a classified submission.

One Jinja2 template exists per operating mode. Every evidence section is
always present in the rendered prompt; a section with nothing to show is
rendered as ``[]`` so the model can tell "absent" apart from "forgotten".
"""

import logging
from typing import Any

from reporter.core.config import settings
from reporter.models.report_models import ExtractedEvidence
from reporter.models.report_models import ExtractedImageText
from reporter.models.report_models import ModeDecision
from reporter.models.report_models import ModificationTarget
from reporter.models.report_models import OperatingMode
from reporter.models.report_models import PdfText
from reporter.models.report_models import SynthesisRequest
from reporter.services.extractor import TRUNCATION_MARKER
from reporter.services.llm import render_prompt

from .static_content import EMPTY_SECTION_MARKER
from .static_content import MODIFICATION_PERSONA
from .static_content import MODIFICATION_TEMPLATE
from .static_content import REPORT_PERSONA
from .static_content import REPORT_TEMPLATE

__all__ = [
    "_format_rows",
    "_build_synthesis_request",
]

logger = logging.getLogger(__name__)

TARGET_LABELS: dict[ModificationTarget, str] = {
    ModificationTarget.EXCEL: "foglio Excel",
    ModificationTarget.WORD: "documento Word",
}


def _format_rows(rows: list[list[str]]) -> str:
    """Render a row matrix as one pipe-delimited line per row."""
    return "\n".join(" | ".join(row) for row in rows)


def _clip(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + f"\n{TRUNCATION_MARKER}"


def _template_context(evidence: ExtractedEvidence, decision: ModeDecision, evidence_limit: int | None) -> dict[str, Any]:
    def clip(text: str) -> str:
        return text if evidence_limit is None else _clip(text, evidence_limit)

    context: dict[str, Any] = {
        "empty_marker": EMPTY_SECTION_MARKER,
        "transcript": evidence.transcript or EMPTY_SECTION_MARKER,
        "image_texts": [ExtractedImageText(filename=i.filename, extracted_text=clip(i.extracted_text)) for i in evidence.image_texts],
        "pdf_texts": [PdfText(filename=p.filename, text=clip(p.text)) for p in evidence.pdf_texts],
    }

    if decision.mode is OperatingMode.REPORT:
        context["file_summaries"] = evidence.file_summaries
        return context

    if decision.target is ModificationTarget.EXCEL and evidence.spreadsheet is not None:
        filename = evidence.spreadsheet.filename
        current = _format_rows(evidence.spreadsheet.rows)
    elif decision.target is ModificationTarget.WORD and evidence.document is not None:
        filename = evidence.document.filename
        current = evidence.document.text
    else:
        # A ModeDecision always comes from classify(); this is a programming error
        raise ValueError(f"No captured content for modification target {decision.target}")

    context.update(
        target=decision.target.value,
        target_label=TARGET_LABELS[decision.target],
        target_filename=filename,
        current_content=clip(current),
    )
    return context


def _evidence_items(evidence: ExtractedEvidence) -> int:
    return len(evidence.image_texts) + len(evidence.pdf_texts) + (1 if evidence.spreadsheet or evidence.document else 0)


def _build_synthesis_request(evidence: ExtractedEvidence, decision: ModeDecision, request_id: str) -> SynthesisRequest:
    """Render the prompt for *decision* and pair it with the mode's persona.

    When the rendered prompt exceeds ``max_total_prompt_chars`` the evidence
    texts are clipped to an equal share of the budget and the prompt is
    rendered again; the instructions and JSON schema are never cut.
    """
    if decision.mode is OperatingMode.REPORT:
        template, persona = REPORT_TEMPLATE, REPORT_PERSONA
    else:
        template, persona = MODIFICATION_TEMPLATE, MODIFICATION_PERSONA

    prompt = render_prompt(template, **_template_context(evidence, decision, None))

    if len(prompt) > settings.max_total_prompt_chars:
        items = max(_evidence_items(evidence), 1)
        share = max(settings.max_total_prompt_chars // items - len(TRUNCATION_MARKER), 0)
        logger.warning(
            "[%s] Prompt too large (%d > %d chars), clipping %d evidence texts to %d chars each",
            request_id,
            len(prompt),
            settings.max_total_prompt_chars,
            items,
            share,
        )
        prompt = render_prompt(template, **_template_context(evidence, decision, share))

    logger.info("[%s] Prompt assembled for %s mode (%d chars)", request_id, decision.label, len(prompt))
    return SynthesisRequest(decision=decision, persona=persona, prompt=prompt)
