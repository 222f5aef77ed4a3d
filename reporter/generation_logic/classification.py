import logging

from reporter.models.report_models import ExtractedEvidence
from reporter.models.report_models import ModeDecision
from reporter.models.report_models import ModificationTarget
from reporter.models.report_models import OperatingMode

__all__ = [
    "classify",
]

logger = logging.getLogger(__name__)


def classify(evidence: ExtractedEvidence, request_id: str = "-") -> ModeDecision:
    """Pick the operating mode for a submission.

    A captured spreadsheet wins over a captured document; with neither the
    submission is analysed as a report. Images, PDFs and the transcript never
    influence the choice.
    """
    if evidence.spreadsheet is not None:
        decision = ModeDecision(mode=OperatingMode.MODIFICATION, target=ModificationTarget.EXCEL)
    elif evidence.document is not None:
        decision = ModeDecision(mode=OperatingMode.MODIFICATION, target=ModificationTarget.WORD)
    else:
        decision = ModeDecision(mode=OperatingMode.REPORT)
    logger.info("[%s] Submission classified as %s", request_id, decision.label)
    return decision
