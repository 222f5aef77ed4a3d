import asyncio
import functools
import io
import logging
from typing import Any

import openpyxl
from docx import Document

from reporter.models.report_models import ModificationOutcome
from reporter.models.report_models import ModificationTarget

# Configure module logger
logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

MEDIA_TYPES: dict[ModificationTarget, str] = {
    ModificationTarget.EXCEL: XLSX_MEDIA_TYPE,
    ModificationTarget.WORD: DOCX_MEDIA_TYPE,
}

EXTENSIONS: dict[ModificationTarget, str] = {
    ModificationTarget.EXCEL: ".xlsx",
    ModificationTarget.WORD: ".docx",
}


class DocBuilderError(Exception):
    """Raised when a regenerated spreadsheet or document cannot be produced"""


def _normalise_rows(new_content: Any) -> list[list[str]]:
    if not isinstance(new_content, list) or not all(isinstance(row, list) for row in new_content):
        raise DocBuilderError("Il contenuto modificato non contiene una matrice di righe valida per il foglio Excel.")
    return [["" if cell is None else str(cell) for cell in row] for row in new_content]


def build_spreadsheet(rows: list[list[str]], sheet_title: str = "Foglio1") -> bytes:
    """Encode *rows* as a brand-new single-sheet workbook."""
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.title = sheet_title
    for row in rows:
        sheet.append(row)
    bio = io.BytesIO()
    workbook.save(bio)
    return bio.getvalue()


def build_document(text: str) -> bytes:
    """Encode *text* as a brand-new document, one paragraph per line."""
    doc = Document()
    for line in text.replace("\r\n", "\n").split("\n"):
        doc.add_paragraph(line)
    bio = io.BytesIO()
    doc.save(bio)
    return bio.getvalue()


async def render_modification(outcome: ModificationOutcome, target: ModificationTarget, request_id: str) -> bytes:
    """Re-encode the parsed edit as a full replacement file for *target*.

    The original binary is never patched. A missing or ill-typed
    ``new_content`` is terminal: no file is produced.
    """
    if outcome.new_content is None:
        logger.error("[%s] Parsed modification lacks newContent for target %s", request_id, target.value)
        raise DocBuilderError(f"La risposta del modello non contiene il nuovo contenuto richiesto per il file {target.value}.")

    if target is ModificationTarget.EXCEL:
        rows = _normalise_rows(outcome.new_content)
        work = functools.partial(build_spreadsheet, rows)
    else:
        if not isinstance(outcome.new_content, str):
            raise DocBuilderError("Il contenuto modificato non è un testo valido per il documento Word.")
        text = outcome.new_content
        work = functools.partial(build_document, text)

    try:
        data = await asyncio.to_thread(work)
    except Exception as err:
        logger.exception("[%s] Regeneration of %s file failed", request_id, target.value)
        raise DocBuilderError("unexpected rendering error") from err

    logger.info("[%s] Regenerated %s file ready (%d bytes)", request_id, target.value, len(data))
    return data
