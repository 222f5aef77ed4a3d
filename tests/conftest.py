import io

import openpyxl
import pytest
from docx import Document
from PIL import Image
from starlette.datastructures import Headers
from starlette.datastructures import UploadFile

from reporter.core.config import settings
from reporter.services.capabilities import Capabilities
from tests.fakes import FakeOCR
from tests.fakes import FakeSynthesis
from tests.fakes import FakeTranscription


@pytest.fixture
def make_capabilities():
    def _make(reply: str = "{}", synthesis_error=None, transcript: str = "", transcription_error=None, ocr_texts=None, ocr_failing=None):
        return Capabilities(
            synthesis=FakeSynthesis(reply, synthesis_error),
            transcription=FakeTranscription(transcript, transcription_error),
            ocr=FakeOCR(ocr_texts, ocr_failing),
        )

    return _make


@pytest.fixture(autouse=True)
def scratch_dir(tmp_path, monkeypatch):
    scratch = tmp_path / "scratch"
    monkeypatch.setattr(settings, "scratch_dir", scratch)
    return scratch


# ---------------------------------------------------------------------------
# File payloads
# ---------------------------------------------------------------------------


@pytest.fixture
def make_xlsx():
    def _make(rows):
        workbook = openpyxl.Workbook()
        sheet = workbook.active
        for row in rows:
            sheet.append(row)
        bio = io.BytesIO()
        workbook.save(bio)
        return bio.getvalue()

    return _make


@pytest.fixture
def make_docx():
    def _make(paragraphs):
        doc = Document()
        for text in paragraphs:
            doc.add_paragraph(text)
        bio = io.BytesIO()
        doc.save(bio)
        return bio.getvalue()

    return _make


@pytest.fixture
def png_bytes():
    bio = io.BytesIO()
    Image.new("RGB", (20, 20), color="white").save(bio, format="PNG")
    return bio.getvalue()


# Fixture factory to create in-memory multipart uploads
@pytest.fixture
def make_dummy_upload():
    def _make_dummy_upload(filename: str, content: bytes, content_type: str | None = None):
        headers = Headers({"content-type": content_type}) if content_type else None
        return UploadFile(file=io.BytesIO(content), filename=filename, headers=headers)

    return _make_dummy_upload
