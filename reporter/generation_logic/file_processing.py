"""Handles upload validation and per-modality evidence extraction.

This module provides the core functionality to:
- Validate uploaded files against size, count, type and extension constraints.
- Build the request-scoped Submission from the validated uploads.
- Run the modality extractors concurrently and fold their results into ExtractedEvidence.

Extraction failures are isolated per file: they surface as sentinel text or
as an extraction warning, never as an exception out of `_extract_evidence`.
"""

import asyncio
import logging
from collections.abc import Awaitable
from pathlib import Path
from typing import TypeVar

import magic
from fastapi import HTTPException
from fastapi import UploadFile

from reporter.core.config import settings
from reporter.core.validation import ALLOWED_EXTENSIONS
from reporter.core.validation import MAX_FILE_SIZE
from reporter.core.validation import MAX_FILES
from reporter.core.validation import MAX_TOTAL_SIZE
from reporter.core.validation import MIME_MAPPING
from reporter.core.validation import categorize
from reporter.models.report_models import DocumentCapture
from reporter.models.report_models import ExtractedEvidence
from reporter.models.report_models import ExtractedImageText
from reporter.models.report_models import FileSummary
from reporter.models.report_models import PdfText
from reporter.models.report_models import SpreadsheetCapture
from reporter.models.report_models import SubmittedFile
from reporter.models.report_models import Submission
from reporter.services.capabilities import Capabilities
from reporter.services.extractor import AUDIO_ERROR_MARKER
from reporter.services.extractor import DOCUMENT_ERROR_MARKER
from reporter.services.extractor import IMAGE_ERROR_MARKER
from reporter.services.extractor import PDF_ERROR_MARKER
from reporter.services.extractor import ExtractorError
from reporter.services.extractor import extract_audio
from reporter.services.extractor import extract_document
from reporter.services.extractor import extract_image
from reporter.services.extractor import extract_pdf
from reporter.services.extractor import extract_spreadsheet
from reporter.services.extractor import guard_corpus

__all__ = [
    "_build_submission",
    "_extract_evidence",
    "_summarize_file",
]

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MB = 1024 * 1024


# ---------------------------------------------------------------------------
# Boundary validation
# ---------------------------------------------------------------------------


async def _read_upload(f_obj: UploadFile, filename: str, request_id: str) -> bytes:
    try:
        await f_obj.seek(0)
        contents = await f_obj.read()
    except Exception as read_err:
        logger.error("[%s] Failed to read content for %s: %s", request_id, filename, read_err, exc_info=True)
        raise HTTPException(
            status_code=400,
            detail=f"Impossibile leggere '{filename}': errore di accesso al contenuto.",
        ) from read_err

    size = len(contents)
    if size == 0:
        logger.warning("[%s] Rejected empty file: %s", request_id, filename)
        raise HTTPException(
            status_code=400,
            detail=f"Il file '{filename}' è vuoto e non può essere processato.",
        )
    if size > MAX_FILE_SIZE:
        logger.warning("[%s] Rejected file exceeding size limit: %s (%d bytes)", request_id, filename, size)
        raise HTTPException(
            status_code=413,
            detail=f"File '{filename}' troppo grande ({size // _MB}MB). Limite per file: {MAX_FILE_SIZE // _MB}MB",
        )
    return contents


async def _validate_single_uploaded_file(f_obj: UploadFile, request_id: str) -> SubmittedFile:
    filename = f_obj.filename or "unknown_file"
    ext = Path(filename).suffix.lower()
    if ext not in ALLOWED_EXTENSIONS:
        logger.warning("[%s] Rejected file with invalid extension: %s for file %s", request_id, ext, filename)
        raise HTTPException(
            status_code=400,
            detail=f"Tipo file non supportato ('{filename}'). Estensioni permesse: {', '.join(sorted(ALLOWED_EXTENSIONS))}",
        )

    contents = await _read_upload(f_obj, filename, request_id)

    try:
        mime = await asyncio.to_thread(magic.from_buffer, contents, mime=True)
    except Exception as mime_err:
        logger.error("[%s] Failed to detect MIME type for: %s - %s", request_id, filename, str(mime_err))
        raise HTTPException(
            status_code=500,
            detail=f"Errore durante l'analisi del tipo di file: {filename}",
        ) from mime_err

    accepted = MIME_MAPPING[ext]
    if mime not in accepted:
        logger.warning(
            "[%s] Rejected file with mismatched content type: %s. Expected one of: %s, Got: %s",
            request_id,
            filename,
            sorted(accepted),
            mime,
        )
        raise HTTPException(
            status_code=400,
            detail=f"Il contenuto del file '{filename}' (rilevato: {mime}) non corrisponde all'estensione '{ext}'.",
        )

    logger.debug("[%s] File validation successful: %s (%d bytes, MIME: %s)", request_id, filename, len(contents), mime)
    return SubmittedFile(filename=filename, media_type=f_obj.content_type or mime, content=contents)


async def _build_submission(audio: UploadFile | None, files: list[UploadFile], request_id: str) -> Submission:
    """Validate the multipart parts and assemble the request-scoped Submission.

    Raises HTTPException (400/413) before any extraction work starts.
    """
    if len(files) > MAX_FILES:
        logger.warning("[%s] Upload rejected: too many files (%d > %d)", request_id, len(files), MAX_FILES)
        raise HTTPException(
            status_code=413,
            detail=f"Puoi processare al massimo {MAX_FILES} file alla volta.",
        )

    audio_bytes: bytes | None = None
    audio_filename: str | None = None
    if audio is not None:
        audio_filename = audio.filename or "audio.wav"
        audio_bytes = await _read_upload(audio, audio_filename, request_id)

    submitted = list(await asyncio.gather(*(_validate_single_uploaded_file(f, request_id) for f in files)))

    total_size = sum(len(f.content) for f in submitted) + len(audio_bytes or b"")
    if total_size > MAX_TOTAL_SIZE:
        logger.warning("[%s] Total data size exceeds limit: %d bytes > %d bytes", request_id, total_size, MAX_TOTAL_SIZE)
        raise HTTPException(
            status_code=413,
            detail=f"La dimensione totale dei file ({total_size // _MB}MB) supera il limite di {MAX_TOTAL_SIZE // _MB}MB.",
        )

    logger.info(
        "[%s] Submission accepted: audio=%s, %d attached files, %d bytes total",
        request_id,
        audio_bytes is not None,
        len(submitted),
        total_size,
    )
    return Submission(audio=audio_bytes, audio_filename=audio_filename, files=submitted)


# ---------------------------------------------------------------------------
# Evidence extraction
# ---------------------------------------------------------------------------


def _summarize_file(submitted: SubmittedFile) -> FileSummary:
    extension = Path(submitted.filename).suffix.lower()
    return FileSummary(
        name=submitted.filename,
        type=categorize(extension, submitted.media_type),
        size=len(submitted.content),
        extension=extension,
    )


async def _try_spreadsheet(submitted: SubmittedFile, request_id: str) -> list[list[str]] | None:
    try:
        return await extract_spreadsheet(submitted.content, submitted.filename, request_id)
    except ExtractorError as e:
        logger.warning(
            "[%s] EXTRACTION stage=spreadsheet file=%s: %s. Continuing as if no spreadsheet was attached.",
            request_id,
            submitted.filename,
            str(e),
        )
        return None


async def _extract_evidence(submission: Submission, capabilities: Capabilities, request_id: str) -> ExtractedEvidence:
    """Run every extractor the submission needs and fold the results.

    Extractors run concurrently, bounded by ``max_concurrent_extractions``.
    Only the first spreadsheet and the first document attached are decoded;
    later ones are summarized like any other file.
    """
    semaphore = asyncio.Semaphore(settings.max_concurrent_extractions)

    async def bounded(aw: Awaitable[T]) -> T:
        async with semaphore:
            return await aw

    summaries = [_summarize_file(f) for f in submission.files]
    images = [f for f, s in zip(submission.files, summaries, strict=True) if s.type == "image"]
    pdfs = [f for f, s in zip(submission.files, summaries, strict=True) if s.type == "pdf"]
    first_sheet = next((f for f, s in zip(submission.files, summaries, strict=True) if s.type == "spreadsheet"), None)
    first_doc = next((f for f, s in zip(submission.files, summaries, strict=True) if s.type == "document"), None)

    async def _no_audio() -> str:
        return ""

    async def _nothing() -> None:
        return None

    audio_task = (
        bounded(extract_audio(submission.audio, capabilities.transcription, request_id, filename=submission.audio_filename))
        if submission.audio is not None
        else _no_audio()
    )
    sheet_task = bounded(_try_spreadsheet(first_sheet, request_id)) if first_sheet is not None else _nothing()
    doc_task = bounded(extract_document(first_doc.content, first_doc.filename, request_id)) if first_doc is not None else _nothing()

    transcript, sheet_rows, doc_text, image_results, pdf_results = await asyncio.gather(
        audio_task,
        sheet_task,
        doc_task,
        asyncio.gather(*(bounded(extract_image(f.content, f.filename, capabilities.ocr, request_id)) for f in images)),
        asyncio.gather(*(bounded(extract_pdf(f.content, f.filename, request_id)) for f in pdfs)),
    )

    warnings: list[str] = []
    if transcript == AUDIO_ERROR_MARKER:
        warnings.append(f"Trascrizione audio non riuscita ({submission.audio_filename or 'audio'})")

    image_texts: list[ExtractedImageText] = []
    for f, text in zip(images, image_results, strict=True):
        if text == IMAGE_ERROR_MARKER:
            warnings.append(f"Estrazione del testo non riuscita per l'immagine '{f.filename}'")
        image_texts.append(ExtractedImageText(filename=f.filename, extracted_text=guard_corpus(text, request_id)))

    pdf_texts: list[PdfText] = []
    for f, text in zip(pdfs, pdf_results, strict=True):
        if text == PDF_ERROR_MARKER:
            warnings.append(f"Estrazione del testo non riuscita per il PDF '{f.filename}'")
        pdf_texts.append(PdfText(filename=f.filename, text=guard_corpus(text, request_id)))

    spreadsheet: SpreadsheetCapture | None = None
    if first_sheet is not None:
        if sheet_rows is None:
            warnings.append(f"Impossibile leggere il foglio di calcolo '{first_sheet.filename}': file ignorato")
        else:
            spreadsheet = SpreadsheetCapture(filename=first_sheet.filename, rows=sheet_rows)

    document: DocumentCapture | None = None
    if first_doc is not None and doc_text is not None:
        if doc_text == DOCUMENT_ERROR_MARKER:
            warnings.append(f"Estrazione del testo non riuscita per il documento '{first_doc.filename}'")
        document = DocumentCapture(filename=first_doc.filename, text=guard_corpus(doc_text, request_id))

    evidence = ExtractedEvidence(
        transcript=guard_corpus(transcript, request_id),
        image_texts=image_texts,
        spreadsheet=spreadsheet,
        document=document,
        pdf_texts=pdf_texts,
        file_summaries=summaries,
        warnings=warnings,
    )
    logger.info(
        "[%s] Evidence extracted: transcript=%d chars, images=%d, pdfs=%d, spreadsheet=%s, document=%s, warnings=%d",
        request_id,
        len(evidence.transcript),
        len(image_texts),
        len(pdf_texts),
        spreadsheet.filename if spreadsheet else None,
        document.filename if document else None,
        len(warnings),
    )
    return evidence
