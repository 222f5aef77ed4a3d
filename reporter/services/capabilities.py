"""External service ports and the capability bundle handed to the pipeline.

The bundle is built once at application startup and passed explicitly into
the pipeline entry point, so tests can substitute doubles for every port.
"""

from __future__ import annotations

import logging
import pathlib
from dataclasses import dataclass
from typing import Protocol

from reporter.core.config import settings
from reporter.core.ocr import ocr
from reporter.services.llm import OpenAISynthesisPort
from reporter.services.llm import OpenAITranscriptionPort
from reporter.services.llm import OpenAIVisionOCRPort
from reporter.services.llm import build_openai_client

logger = logging.getLogger(__name__)


class SynthesisPort(Protocol):
    async def complete(self, persona: str, prompt: str, temperature: float, request_id: str = "-") -> str: ...


class TranscriptionPort(Protocol):
    async def transcribe(self, audio_path: pathlib.Path, language: str, request_id: str = "-") -> str: ...


class OCRPort(Protocol):
    async def extract_text(self, image_bytes: bytes, filename: str, instruction: str, request_id: str = "-") -> str: ...


class TesseractOCRPort:
    """Local OCR through pytesseract; the instruction is not used by Tesseract."""

    async def extract_text(self, image_bytes: bytes, filename: str, instruction: str, request_id: str = "-") -> str:
        logger.debug("[%s] Running Tesseract OCR on %s", request_id, filename)
        return await ocr(image_bytes)


@dataclass(frozen=True)
class Capabilities:
    synthesis: SynthesisPort
    transcription: TranscriptionPort
    ocr: OCRPort


def build_capabilities() -> Capabilities:
    """Construct the production capability bundle from settings."""
    client = build_openai_client()
    ocr_port: OCRPort
    if settings.ocr_backend == "tesseract":
        ocr_port = TesseractOCRPort()
    else:
        ocr_port = OpenAIVisionOCRPort(client)
    logger.info("Capabilities built (model=%s, ocr_backend=%s)", settings.model_id, settings.ocr_backend)
    return Capabilities(
        synthesis=OpenAISynthesisPort(client),
        transcription=OpenAITranscriptionPort(client),
        ocr=ocr_port,
    )
