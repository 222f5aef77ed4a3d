import pytest
import pytesseract

from reporter.core.config import settings
from reporter.core.ocr import ocr
from reporter.services.capabilities import TesseractOCRPort


@pytest.mark.asyncio
async def test_ocr_invokes_pytesseract(monkeypatch, png_bytes):
    seen = {}

    def _image_to_string(img_obj, lang, config):
        seen["lang"] = lang
        seen["size"] = img_obj.size
        return "dummy OCR text"

    monkeypatch.setattr(pytesseract, "image_to_string", _image_to_string)

    result = await ocr(png_bytes)

    assert result == "dummy OCR text"
    assert seen == {"lang": settings.ocr_language, "size": (20, 20)}


@pytest.mark.asyncio
async def test_tesseract_port_delegates_to_ocr(monkeypatch, png_bytes):
    async def _fake_ocr(image_bytes):
        return "testo locale"

    monkeypatch.setattr("reporter.services.capabilities.ocr", _fake_ocr)

    assert await TesseractOCRPort().extract_text(png_bytes, "a.png", "ignored") == "testo locale"


@pytest.mark.asyncio
async def test_ocr_propagates_decoder_errors():
    with pytest.raises(Exception):
        await ocr(b"not an image")
