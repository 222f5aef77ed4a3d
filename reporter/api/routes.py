import logging
from collections.abc import Callable
from datetime import datetime
from datetime import timezone
from functools import wraps
from typing import Any
from uuid import uuid4

from fastapi import APIRouter
from fastapi import Depends
from fastapi import File
from fastapi import HTTPException
from fastapi import Request
from fastapi import UploadFile
from fastapi.responses import JSONResponse
from fastapi.responses import StreamingResponse

from reporter.core.exceptions import ConfigurationError
from reporter.core.exceptions import PipelineError

# Generation-logic helpers -------------------------------------------------
from reporter.generation_logic import _build_submission
from reporter.generation_logic import _generate_and_stream_pdf
from reporter.generation_logic import _stream_modified_file
from reporter.models.report_models import DownloadModifiedFilePayload
from reporter.models.report_models import GeneratePdfPayload
from reporter.services.capabilities import Capabilities

# Error classes re-used in endpoint-level exception handling --------------
from reporter.services.doc_builder import DocBuilderError
from reporter.services.pipeline import run_pipeline

# Configure module logger
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

PROCESSING_ERROR_MESSAGE = "Errore durante l'elaborazione del report"


def get_capabilities(request: Request) -> Capabilities:
    """Return the capability bundle built at application startup."""
    capabilities = getattr(request.app.state, "capabilities", None)
    if capabilities is None:
        raise ConfigurationError("Service capabilities are not initialised")
    return capabilities


# --- Error Handling Decorator for submission processing ---
def handle_processing_errors(func: Callable) -> Callable:
    """Turn terminal processing failures into ``{"success": false}`` JSON responses.

    Boundary validation errors (HTTPException) pass through unchanged.
    """

    @wraps(func)
    async def wrapper(request: Request, *args: Any, **kwargs: Any) -> Any:
        request_id = str(uuid4())
        request.state.request_id = request_id

        try:
            return await func(request, *args, **kwargs)
        except HTTPException:
            raise
        except DocBuilderError as e:
            logger.error("[%s] Rendering failed, no artifact produced: %s", request_id, str(e))
            return JSONResponse({"success": False, "error": str(e)}, status_code=500)
        except PipelineError as e:
            logger.error("[%s] PipelineError during processing: %s", request_id, str(e))
            return JSONResponse({"success": False, "error": str(e)}, status_code=500)
        except Exception as e:
            logger.error("[%s] Unexpected error during processing: %s", request_id, str(e), exc_info=True)
            return JSONResponse({"success": False, "error": PROCESSING_ERROR_MESSAGE}, status_code=500)

    return wrapper


@router.post("/process-report")
@handle_processing_errors
async def process_report(
    request: Request,
    audio: UploadFile | None = File(default=None),
    files: list[UploadFile] | None = File(default=None),
    capabilities: Capabilities = Depends(get_capabilities),
) -> dict[str, Any]:
    """Process a voice note plus attachments into a report or a modified file.

    The response is ``{"success": true, "report": <artifact>}`` where the
    artifact ``type`` is either ``report`` or ``file_modification``.
    """
    request_id = request.state.request_id
    logger.info("[%s] Processing submission: audio=%s, files=%d", request_id, audio is not None, len(files or []))

    submission = await _build_submission(audio, files or [], request_id)
    artifact = await run_pipeline(submission, capabilities, request_id)
    return {"success": True, "report": artifact.model_dump(mode="json", by_alias=True)}


@router.post("/generate-pdf")
async def generate_pdf(payload: GeneratePdfPayload) -> StreamingResponse:
    """Render a previously returned Report as a downloadable PDF."""
    request_id = str(uuid4())
    logger.info("[%s] PDF requested for report of %s", request_id, payload.report.timestamp.isoformat())
    return await _generate_and_stream_pdf(payload.report, request_id)


@router.post("/download-modified-file")
async def download_modified_file(payload: DownloadModifiedFilePayload) -> StreamingResponse:
    """Return the regenerated binary carried by a FileModification."""
    request_id = str(uuid4())
    logger.info("[%s] Download requested for %s", request_id, payload.report.modified_filename)
    return await _stream_modified_file(payload.report, request_id)


@router.get("/health")
async def health_check() -> dict[str, str]:
    logger.info("Health check endpoint called")
    return {"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat()}
