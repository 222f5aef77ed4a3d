import logging

from pydantic import ValidationError

from reporter.models.report_models import ModeDecision
from reporter.models.report_models import ModificationOutcome
from reporter.models.report_models import OperatingMode
from reporter.models.report_models import ReportOutcome
from reporter.services.llm import JSONParsingError
from reporter.services.llm import extract_json

from .static_content import DEFAULT_MODIFICATION_OUTCOME
from .static_content import DEFAULT_REPORT_OUTCOME

__all__ = [
    "_parse_outcome",
    "_default_outcome",
]

logger = logging.getLogger(__name__)


def _default_outcome(decision: ModeDecision) -> ReportOutcome | ModificationOutcome:
    """Return a fresh copy of the mode's fallback outcome."""
    if decision.mode is OperatingMode.REPORT:
        return DEFAULT_REPORT_OUTCOME.model_copy(deep=True)
    return DEFAULT_MODIFICATION_OUTCOME.model_copy(deep=True)


def _parse_outcome(reply: str | None, decision: ModeDecision, request_id: str = "-") -> ReportOutcome | ModificationOutcome:
    """Turn the raw synthesis reply into the mode's outcome.

    The decoded object is used whole or not at all: a missing reply, an
    undecodable body or a body that does not validate against the outcome
    model all yield the complete default.
    """
    if reply is None:
        logger.warning("[%s] No synthesis reply for %s mode, using default outcome", request_id, decision.label)
        return _default_outcome(decision)

    try:
        data = extract_json(reply, request_id)
    except JSONParsingError as e:
        logger.warning("[%s] Synthesis reply not parseable (%s), using default outcome", request_id, str(e))
        return _default_outcome(decision)

    model = ReportOutcome if decision.mode is OperatingMode.REPORT else ModificationOutcome
    try:
        outcome = model.model_validate(data)
    except ValidationError as e:
        logger.warning(
            "[%s] Synthesis reply does not match %s schema (%d errors), using default outcome",
            request_id,
            model.__name__,
            e.error_count(),
        )
        return _default_outcome(decision)

    logger.info("[%s] Synthesis reply parsed as %s", request_id, model.__name__)
    return outcome
