from __future__ import annotations

import base64
import logging
from pathlib import Path

from reporter.core.config import settings
from reporter.core.exceptions import PipelineError
from reporter.generation_logic import _build_synthesis_request
from reporter.generation_logic import _extract_evidence
from reporter.generation_logic import _parse_outcome
from reporter.generation_logic import classify
from reporter.models.report_models import ExtractedEvidence
from reporter.models.report_models import FileModification
from reporter.models.report_models import ModeDecision
from reporter.models.report_models import ModificationOutcome
from reporter.models.report_models import ModificationTarget
from reporter.models.report_models import Report
from reporter.models.report_models import ReportOutcome
from reporter.models.report_models import Submission
from reporter.models.report_models import SynthesisRequest
from reporter.services.capabilities import Capabilities
from reporter.services.doc_builder import EXTENSIONS
from reporter.services.doc_builder import render_modification
from reporter.services.llm import LLMError

# Configure module logger
logger = logging.getLogger(__name__)


def modified_filename(original: str, target: ModificationTarget) -> str:
    """``modificato_<stem><ext>`` where the extension always matches the regenerated format."""
    return f"modificato_{Path(original).stem}{EXTENSIONS[target]}"


class PipelineService:
    """Runs one submission from raw bytes to its output artifact.

    The capability bundle is handed in by the caller; nothing here reaches
    for a global client.
    """

    def __init__(self, capabilities: Capabilities):
        self.capabilities = capabilities

    async def _invoke_synthesis(self, request: SynthesisRequest, request_id: str) -> str | None:
        """Return the raw reply, or None when the invocation failed for any reason."""
        try:
            reply = await self.capabilities.synthesis.complete(
                request.persona,
                request.prompt,
                settings.llm_temperature,
                request_id=request_id,
            )
        except LLMError as e:
            logger.error("[%s] Synthesis failed in %s mode: %s", request_id, request.decision.label, str(e))
            return None
        except Exception as e:
            logger.error("[%s] Unexpected synthesis failure in %s mode: %s", request_id, request.decision.label, str(e), exc_info=True)
            return None
        logger.info("[%s] Synthesis reply received (%d chars)", request_id, len(reply))
        return reply

    def _render_report(self, evidence: ExtractedEvidence, outcome: ReportOutcome) -> Report:
        return Report(
            audio_transcription=evidence.transcript,
            extracted_image_texts=evidence.image_texts,
            files_analyzed=evidence.file_summaries,
            pdf_texts=evidence.pdf_texts,
            warnings=evidence.warnings,
            problem_description=outcome.problem_description,
            user_solution=outcome.user_solution,
            detailed_solutions=outcome.detailed_solutions,
            preventive_recommendations=outcome.preventive_recommendations,
            management_summary=outcome.management_summary,
        )

    async def _render_file_modification(
        self,
        evidence: ExtractedEvidence,
        decision: ModeDecision,
        outcome: ModificationOutcome,
        request_id: str,
    ) -> FileModification:
        target = decision.target
        capture = evidence.spreadsheet if target is ModificationTarget.EXCEL else evidence.document
        if target is None or capture is None:
            raise PipelineError(f"No captured file to modify for {decision.label} mode")
        original = capture.filename

        # DocBuilderError is terminal for the submission and propagates
        file_bytes = await render_modification(outcome, target, request_id)

        return FileModification(
            file_type=target,
            original_filename=original,
            modified_filename=modified_filename(original, target),
            modified_file_content=base64.b64encode(file_bytes).decode("ascii"),
            modifications=outcome.modifications,
            summary=outcome.summary,
            audio_transcription=evidence.transcript,
            extracted_image_texts=evidence.image_texts,
        )

    async def run(self, submission: Submission, request_id: str) -> Report | FileModification:
        logger.info("[%s] Starting pipeline run with %d attached files", request_id, len(submission.files))

        evidence = await _extract_evidence(submission, self.capabilities, request_id)
        for warning in evidence.warnings:
            logger.warning("[%s] Extraction warning: %s", request_id, warning)

        decision = classify(evidence, request_id)
        request = _build_synthesis_request(evidence, decision, request_id)
        reply = await self._invoke_synthesis(request, request_id)
        outcome = _parse_outcome(reply, decision, request_id)

        artifact: Report | FileModification
        if isinstance(outcome, ReportOutcome):
            artifact = self._render_report(evidence, outcome)
        else:
            artifact = await self._render_file_modification(evidence, decision, outcome, request_id)

        logger.info("[%s] Pipeline completed in %s mode", request_id, decision.label)
        return artifact


async def run_pipeline(submission: Submission, capabilities: Capabilities, request_id: str) -> Report | FileModification:
    """Entry point: process *submission* with the injected *capabilities*."""
    return await PipelineService(capabilities).run(submission, request_id)
