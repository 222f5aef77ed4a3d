"""Streams the downloadable artifacts: the report PDF and the regenerated office file."""

import base64
import binascii
import logging
from datetime import datetime
from datetime import timezone

from fastapi import HTTPException
from fastapi.responses import StreamingResponse

from reporter.models.report_models import FileModification
from reporter.models.report_models import Report
from reporter.services.doc_builder import MEDIA_TYPES
from reporter.services.pdf_builder import render_report_pdf

__all__ = [
    "_generate_and_stream_pdf",
    "_stream_modified_file",
    "PDF_MEDIA_TYPE",
]

logger = logging.getLogger(__name__)

PDF_MEDIA_TYPE = "application/pdf"


def _pdf_filename() -> str:
    return f"report_{int(datetime.now(timezone.utc).timestamp() * 1000)}.pdf"


async def _generate_and_stream_pdf(report: Report, request_id: str) -> StreamingResponse:
    """Render *report* as a PDF and stream it back as an attachment.

    PdfBuilderError propagates to the application error handler.
    """
    pdf_bytes = await render_report_pdf(report, request_id)
    filename = _pdf_filename()
    logger.info("[%s] Streaming PDF report %s", request_id, filename)
    return StreamingResponse(
        iter([pdf_bytes]),
        media_type=PDF_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


async def _stream_modified_file(modification: FileModification, request_id: str) -> StreamingResponse:
    """Decode the base64 payload of a FileModification and stream the binary back."""
    try:
        file_bytes = base64.b64decode(modification.modified_file_content, validate=True)
    except (binascii.Error, ValueError) as e:
        logger.warning("[%s] Invalid base64 content for %s: %s", request_id, modification.modified_filename, str(e))
        raise HTTPException(status_code=400, detail="Contenuto del file modificato non valido.") from e

    logger.info("[%s] Streaming modified file %s (%d bytes)", request_id, modification.modified_filename, len(file_bytes))
    return StreamingResponse(
        iter([file_bytes]),
        media_type=MEDIA_TYPES[modification.file_type],
        headers={"Content-Disposition": f'attachment; filename="{modification.modified_filename}"'},
    )
