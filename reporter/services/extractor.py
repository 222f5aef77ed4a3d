import asyncio
import io
import logging

import openpyxl
import pdfplumber
import pytesseract
from docx import Document
from pdf2image import convert_from_bytes
from pdf2image.exceptions import PDFInfoNotInstalledError
from pdf2image.exceptions import PDFPageCountError
from pdf2image.exceptions import PDFSyntaxError

from reporter.core.cleanup import stage_audio
from reporter.core.config import settings
from reporter.services.capabilities import OCRPort
from reporter.services.capabilities import TranscriptionPort

# Configure module logger
logger = logging.getLogger(__name__)

# Sentinel markers embedded in place of text that could not be extracted
AUDIO_ERROR_MARKER = "[Errore nella trascrizione audio]"
IMAGE_ERROR_MARKER = "[Errore nell'estrazione del testo dall'immagine]"
DOCUMENT_ERROR_MARKER = "[Errore nell'estrazione del testo dal documento]"
PDF_ERROR_MARKER = "[Errore nell'estrazione del testo dal PDF]"
TRUNCATION_MARKER = "[TESTO TRONCATO PER LIMITE TOKEN]"

IMAGE_OCR_INSTRUCTION = (
    "Estrai tutto il testo presente in questa immagine. "
    "Se l'immagine contiene una tabella, riportala come testo semplice mantenendo righe e colonne, "
    "separando le celle con ' | ' e le righe con un a capo. "
    "Restituisci solo il testo estratto, senza commenti."
)

# --- Configuration for PDF OCR Fallback ---
MIN_PDF_TEXT_LENGTH_FOR_DIRECT_EXTRACTION = 50  # Threshold for triggering OCR
PDF_OCR_DPI = 150  # DPI for converting PDF pages to images for OCR


class ExtractorError(Exception):
    """Base exception for extraction-related errors"""


# ---------------------------------------------------------------------------
# Audio
# ---------------------------------------------------------------------------


async def extract_audio(audio_bytes: bytes, transcriber: TranscriptionPort, request_id: str, filename: str | None = None) -> str:
    """Return the transcript of *audio_bytes*, or AUDIO_ERROR_MARKER on failure."""
    suffix = "." + filename.rsplit(".", 1)[-1].lower() if filename and "." in filename else ".wav"
    try:
        with stage_audio(audio_bytes, request_id, suffix=suffix) as audio_path:
            transcript = await transcriber.transcribe(audio_path, settings.transcription_language, request_id=request_id)
        logger.info("[%s] AUDIO: Transcribed %d chars", request_id, len(transcript))
        return transcript
    except Exception as e:
        logger.error("[%s] AUDIO: Transcription failed: %s", request_id, str(e), exc_info=True)
        return AUDIO_ERROR_MARKER


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------


async def extract_image(image_bytes: bytes, fname: str, ocr_port: OCRPort, request_id: str) -> str:
    """Return text read from an image, or IMAGE_ERROR_MARKER for this file only."""
    logger.info("[%s] IMAGE_HANDLER: Processing image file: %s", request_id, fname)
    try:
        text = await ocr_port.extract_text(image_bytes, fname, IMAGE_OCR_INSTRUCTION, request_id=request_id)
        logger.debug("[%s] IMAGE_HANDLER: OCR for '%s' extracted %d chars", request_id, fname, len(text.strip()))
        return text
    except Exception as e:
        logger.error("[%s] IMAGE_HANDLER: Failed to handle image file '%s': %s", request_id, fname, str(e), exc_info=True)
        return IMAGE_ERROR_MARKER


# ---------------------------------------------------------------------------
# Spreadsheets
# ---------------------------------------------------------------------------


def _sync_spreadsheet_rows(file_bytes: bytes) -> list[list[str]]:
    workbook = openpyxl.load_workbook(io.BytesIO(file_bytes), data_only=True)
    sheet = workbook.worksheets[0]
    rows = [["" if value is None else str(value) for value in row] for row in sheet.iter_rows(values_only=True)]

    # A brand-new sheet reports a single empty cell
    if all(cell == "" for row in rows for cell in row):
        return []

    width = max(len(row) for row in rows)
    return [row + [""] * (width - len(row)) for row in rows]


async def extract_spreadsheet(file_bytes: bytes, fname: str, request_id: str) -> list[list[str]]:
    """Return the first sheet as a rectangular row matrix.

    Raises ExtractorError when the workbook cannot be decoded.
    """
    try:
        rows = await asyncio.to_thread(_sync_spreadsheet_rows, file_bytes)
    except Exception as e:
        logger.error("[%s] EXCEL: Failed to decode spreadsheet '%s': %s", request_id, fname, str(e))
        raise ExtractorError(f"Failed to extract rows from spreadsheet: {fname}") from e
    logger.debug("[%s] EXCEL: Extracted %d rows from '%s'", request_id, len(rows), fname)
    return rows


# ---------------------------------------------------------------------------
# Word documents
# ---------------------------------------------------------------------------


async def extract_document(file_bytes: bytes, fname: str, request_id: str) -> str:
    """Return the plain text of a DOCX file, or DOCUMENT_ERROR_MARKER on failure."""

    def _sync_docx_extraction(content: bytes) -> str:
        doc = Document(io.BytesIO(content))
        return "\n".join(p.text for p in doc.paragraphs)

    try:
        text = await asyncio.to_thread(_sync_docx_extraction, file_bytes)
        logger.debug("[%s] DOCX: Extracted %d chars from DOCX '%s'", request_id, len(text), fname)
        return text
    except Exception as e:
        logger.error("[%s] DOCX: Failed to extract text from DOCX '%s': %s", request_id, fname, str(e), exc_info=True)
        return DOCUMENT_ERROR_MARKER


# ---------------------------------------------------------------------------
# PDF
# ---------------------------------------------------------------------------


async def _ocr_pdf_pages(pdf_file_bytes: bytes, fname: str, request_id: str) -> str:
    """Converts PDF pages to images and OCRs them in a worker thread."""

    def _sync_ocr_pdf_pages_processing(file_bytes: bytes, lang: str, ocr_dpi_setting: int) -> str:
        try:
            images_from_pdf = convert_from_bytes(file_bytes, dpi=ocr_dpi_setting)
        except (PDFInfoNotInstalledError, PDFPageCountError) as e:
            logger.error("[%s] PDF_OCR_HELPER for '%s': Poppler utilities not found or PDF issue: %s", request_id, fname, e)
            raise ExtractorError(f"Poppler/PDF issue during PDF OCR for {fname}: {e}") from e
        except PDFSyntaxError as e:
            logger.error("[%s] PDF_OCR_HELPER for '%s': PDF syntax error: %s", request_id, fname, e)
            raise ExtractorError(f"PDF syntax error during PDF OCR for {fname}: {e}") from e

        pages: list[str] = []
        for i, page_image in enumerate(images_from_pdf):
            try:
                pages.append(pytesseract.image_to_string(page_image, lang=lang))
            except Exception as e_ocr_page:
                logger.error("[%s] PDF_OCR_HELPER for '%s': Error OCR'ing page %d: %s", request_id, fname, i + 1, e_ocr_page)
                pages.append(f"\n[ERROR_OCR_PAGE_{i + 1}]\n")
        return "\n\n--- PDF Page Break (OCR) ---\n\n".join(pages)

    return await asyncio.to_thread(_sync_ocr_pdf_pages_processing, pdf_file_bytes, settings.ocr_language, PDF_OCR_DPI)


def _sync_pdf_direct_extraction(file_bytes: bytes) -> str:
    with pdfplumber.open(io.BytesIO(file_bytes)) as pdf:
        return "\n".join(text for text in (p.extract_text() for p in pdf.pages) if text is not None)


async def extract_pdf(file_bytes: bytes, fname: str, request_id: str) -> str:
    """Extract text from a PDF. Tries direct extraction, falls back to OCR for scanned files."""
    try:
        direct_text = await asyncio.to_thread(_sync_pdf_direct_extraction, file_bytes)
    except Exception as e:
        logger.warning("[%s] PDF_DIRECT: pdfplumber failed for '%s': %s. Will attempt OCR fallback.", request_id, fname, str(e))
        direct_text = ""

    if len(direct_text.strip()) >= MIN_PDF_TEXT_LENGTH_FOR_DIRECT_EXTRACTION:
        logger.info("[%s] PDF_HANDLER for '%s': Direct text extraction sufficient (%d chars).", request_id, fname, len(direct_text.strip()))
        return direct_text

    try:
        ocr_text = await _ocr_pdf_pages(file_bytes, fname, request_id)
    except Exception as e:
        logger.error("[%s] PDF_HANDLER for '%s': OCR fallback failed: %s", request_id, fname, str(e))
        return direct_text if direct_text.strip() else PDF_ERROR_MARKER

    if len(ocr_text.strip()) > len(direct_text.strip()):
        logger.info("[%s] PDF_HANDLER for '%s': Using OCR fallback text (%d chars).", request_id, fname, len(ocr_text.strip()))
        return ocr_text
    return direct_text


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------


def guard_corpus(corpus: str, request_id: str) -> str:
    """Ensure a single evidence text doesn't exceed the maximum length."""
    original_len = len(corpus)

    if original_len > settings.max_prompt_chars:
        logger.warning(
            "[%s] CORPUS_GUARD: Text exceeds max length (%d > %d), truncating",
            request_id,
            original_len,
            settings.max_prompt_chars,
        )
        return corpus[: settings.max_prompt_chars] + f"\n\n{TRUNCATION_MARKER}"

    return corpus
