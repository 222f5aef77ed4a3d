import io

import openpyxl
import pytest
from docx import Document

from reporter.models.report_models import ModificationOutcome
from reporter.models.report_models import ModificationTarget
from reporter.services.doc_builder import DocBuilderError
from reporter.services.doc_builder import _normalise_rows
from reporter.services.doc_builder import build_document
from reporter.services.doc_builder import build_spreadsheet
from reporter.services.doc_builder import render_modification
from reporter.services.extractor import extract_document
from reporter.services.extractor import extract_spreadsheet


def _outcome(new_content):
    return ModificationOutcome(new_content=new_content, modifications="m", summary="s")


def test_build_spreadsheet_single_sheet():
    data = build_spreadsheet([["A", "B"], ["1", "2"]])

    workbook = openpyxl.load_workbook(io.BytesIO(data))
    assert len(workbook.worksheets) == 1
    rows = [list(r) for r in workbook.active.iter_rows(values_only=True)]
    assert rows == [["A", "B"], ["1", "2"]]


@pytest.mark.asyncio
async def test_spreadsheet_survives_render_and_extract():
    matrix = [["A", "B"], ["1", "2"]]

    assert await extract_spreadsheet(build_spreadsheet(matrix), "x.xlsx", "req") == matrix


@pytest.mark.asyncio
async def test_document_survives_render_and_extract():
    assert await extract_document(build_document("Riga uno\nRiga due"), "x.docx", "req") == "Riga uno\nRiga due"


def test_build_document_one_paragraph_per_line():
    data = build_document("Riga uno\r\nRiga due")

    paragraphs = [p.text for p in Document(io.BytesIO(data)).paragraphs]
    assert paragraphs == ["Riga uno", "Riga due"]


@pytest.mark.asyncio
async def test_render_excel_writes_text_cells():
    data = await render_modification(_outcome([["Codice", 12], ["Vite", 3.5]]), ModificationTarget.EXCEL, "req")

    rows = [list(r) for r in openpyxl.load_workbook(io.BytesIO(data)).active.iter_rows(values_only=True)]
    assert rows == [["Codice", "12"], ["Vite", "3.5"]]


def test_normalise_rows_blank_cells():
    assert _normalise_rows([[None, 1], ["a"]]) == [["", "1"], ["a"]]


@pytest.mark.asyncio
async def test_render_word():
    data = await render_modification(_outcome("Primo\nSecondo"), ModificationTarget.WORD, "req")
    assert [p.text for p in Document(io.BytesIO(data)).paragraphs] == ["Primo", "Secondo"]


@pytest.mark.asyncio
@pytest.mark.parametrize("target", list(ModificationTarget))
async def test_render_missing_new_content_is_terminal(target):
    with pytest.raises(DocBuilderError):
        await render_modification(_outcome(None), target, "req")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "target, new_content",
    [
        (ModificationTarget.EXCEL, "not rows"),
        (ModificationTarget.EXCEL, ["flat", "list"]),
        (ModificationTarget.WORD, [["a"]]),
    ],
)
async def test_render_ill_typed_new_content(target, new_content):
    with pytest.raises(DocBuilderError):
        await render_modification(_outcome(new_content), target, "req")


@pytest.mark.asyncio
async def test_render_wraps_codec_failures(monkeypatch):
    def _boom(_text):
        raise OSError("disk full")

    monkeypatch.setattr("reporter.services.doc_builder.build_document", _boom)

    with pytest.raises(DocBuilderError):
        await render_modification(_outcome("testo"), ModificationTarget.WORD, "req")
