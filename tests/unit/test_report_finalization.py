import base64

import pytest
from fastapi import HTTPException
from fastapi.responses import StreamingResponse

from reporter.generation_logic.report_finalization import PDF_MEDIA_TYPE
from reporter.generation_logic.report_finalization import _generate_and_stream_pdf
from reporter.generation_logic.report_finalization import _stream_modified_file
from reporter.models.report_models import FileModification
from reporter.models.report_models import ModificationTarget
from reporter.models.report_models import Report
from reporter.services.doc_builder import XLSX_MEDIA_TYPE
from reporter.services.pdf_builder import PdfBuilderError


async def _body(response: StreamingResponse) -> bytes:
    body = b""
    async for chunk in response.body_iterator:
        body += chunk
    return body


def _modification(content: str) -> FileModification:
    return FileModification(
        file_type=ModificationTarget.EXCEL,
        original_filename="inv.xlsx",
        modified_filename="modificato_inv.xlsx",
        modified_file_content=content,
        modifications="m",
        summary="s",
    )


@pytest.mark.asyncio
async def test_generate_and_stream_pdf_happy(monkeypatch):
    report = Report(problem_description="Guasto")

    async def fake_render(rep, request_id):
        assert rep is report
        return b"%PDF-bytes"

    monkeypatch.setattr("reporter.generation_logic.report_finalization.render_report_pdf", fake_render)

    response = await _generate_and_stream_pdf(report, "req-1")

    assert isinstance(response, StreamingResponse)
    assert response.media_type == PDF_MEDIA_TYPE
    assert response.headers["Content-Disposition"].startswith('attachment; filename="report_')
    assert await _body(response) == b"%PDF-bytes"


@pytest.mark.asyncio
async def test_generate_and_stream_pdf_error_propagates(monkeypatch):
    async def fake_render(rep, request_id):
        raise PdfBuilderError("fail")

    monkeypatch.setattr("reporter.generation_logic.report_finalization.render_report_pdf", fake_render)

    with pytest.raises(PdfBuilderError):
        await _generate_and_stream_pdf(Report(problem_description="x"), "req-2")


@pytest.mark.asyncio
async def test_stream_modified_file_decodes_payload():
    response = await _stream_modified_file(_modification(base64.b64encode(b"xlsx-bytes").decode()), "req")

    assert response.media_type == XLSX_MEDIA_TYPE
    assert response.headers["Content-Disposition"] == 'attachment; filename="modificato_inv.xlsx"'
    assert await _body(response) == b"xlsx-bytes"


@pytest.mark.asyncio
async def test_stream_modified_file_rejects_bad_base64():
    with pytest.raises(HTTPException) as exc:
        await _stream_modified_file(_modification("***not base64***"), "req")
    assert exc.value.status_code == 400
