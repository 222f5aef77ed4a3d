import asyncio
import io
import logging

import pytesseract
from PIL import Image

from reporter.core.config import settings

logger = logging.getLogger(__name__)


async def ocr(image_bytes: bytes) -> str:
    """Performs OCR on raw image bytes using pytesseract in a non-blocking way."""

    def _sync_perform_ocr_on_image_bytes(image_bytes_content: bytes, lang_setting: str) -> str:
        try:
            image = Image.open(io.BytesIO(image_bytes_content))
            logger.debug(f"OCR_CORE: Image opened: format={image.format}, size={image.size}, mode={image.mode}")
            # preserve_interword_spaces keeps table columns readable as plain text
            return pytesseract.image_to_string(image, lang=lang_setting, config="--psm 6 -c preserve_interword_spaces=1")
        except Exception as e:
            logger.error(f"OCR_CORE: Pytesseract image_to_string error: {type(e).__name__}: {str(e)}", exc_info=True)
            raise

    return await asyncio.to_thread(_sync_perform_ocr_on_image_bytes, image_bytes, settings.ocr_language)
