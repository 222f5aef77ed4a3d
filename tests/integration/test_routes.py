import base64
import json

import pytest
from fastapi import FastAPI
from fastapi import status
from fastapi.testclient import TestClient

# Router under test
from reporter.api import routes as routes_module
from reporter.services.llm import LLMError

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sniff(monkeypatch):
    """Replace libmagic sniffing with a prefix lookup."""

    def _from_buffer(data, mime=True):
        if data.startswith(b"\x89PNG"):
            return "image/png"
        if data.startswith(b"PK"):
            return XLSX_MIME
        if data.startswith(b"%PDF"):
            return "application/pdf"
        return "application/octet-stream"

    monkeypatch.setattr("reporter.generation_logic.file_processing.magic.from_buffer", _from_buffer)


@pytest.fixture()
def build_client(sniff):
    """Return a factory for TestClients whose app uses the given capability bundle."""

    def _build(capabilities) -> TestClient:
        app = FastAPI()
        app.include_router(routes_module.router)
        app.dependency_overrides[routes_module.get_capabilities] = lambda: capabilities
        return TestClient(app)

    return _build


# ---------------------------------------------------------------------------
# /api/health
# ---------------------------------------------------------------------------


def test_health(build_client, make_capabilities):
    resp = build_client(make_capabilities()).get("/api/health")

    assert resp.status_code == status.HTTP_200_OK
    assert resp.json()["status"] == "OK"
    assert "timestamp" in resp.json()


# ---------------------------------------------------------------------------
# /api/process-report
# ---------------------------------------------------------------------------


def test_process_report_audio_only_default_report(build_client, make_capabilities):
    capabilities = make_capabilities(transcript="il motore si blocca", synthesis_error=LLMError("unreachable"))

    resp = build_client(capabilities).post(
        "/api/process-report",
        files=[("audio", ("nota.webm", b"voice-bytes", "audio/webm"))],
    )

    assert resp.status_code == status.HTTP_200_OK
    body = resp.json()
    assert body["success"] is True
    report = body["report"]
    assert report["type"] == "report"
    assert report["audioTranscription"] == "il motore si blocca"
    assert report["problemDescription"] == "Problema generico rilevato"
    assert report["userSolution"] is None
    assert report["detailedSolutions"][0]["priority"] == "media"


def test_process_report_spreadsheet_modification(build_client, make_capabilities, make_xlsx, png_bytes):
    reply = json.dumps(
        {
            "modificationType": "excel",
            "newContent": [["Articolo", "Qta"], ["Viti", "12"]],
            "modifications": "Quantità aggiornata",
            "summary": "Fatto",
        }
    )
    capabilities = make_capabilities(reply=reply, ocr_texts={"foto.png": "Viti 12"})

    resp = build_client(capabilities).post(
        "/api/process-report",
        files=[
            ("files", ("foto.png", png_bytes, "image/png")),
            ("files", ("inventario.xlsx", make_xlsx([["Articolo", "Qta"], ["Viti", 10]]), XLSX_MIME)),
        ],
    )

    assert resp.status_code == status.HTTP_200_OK
    artifact = resp.json()["report"]
    assert artifact["type"] == "file_modification"
    assert artifact["fileType"] == "excel"
    assert artifact["originalFilename"] == "inventario.xlsx"
    assert artifact["modifiedFilename"] == "modificato_inventario.xlsx"
    assert artifact["audioTranscription"] == ""
    assert artifact["extractedImageTexts"] == [{"filename": "foto.png", "extractedText": "Viti 12"}]
    assert base64.b64decode(artifact["modifiedFileContent"]).startswith(b"PK")


def test_process_report_modification_failure_returns_error(build_client, make_capabilities, make_xlsx):
    capabilities = make_capabilities(reply="nessun JSON qui")

    resp = build_client(capabilities).post(
        "/api/process-report",
        files=[("files", ("inventario.xlsx", make_xlsx([["A"]]), XLSX_MIME))],
    )

    assert resp.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    body = resp.json()
    assert body["success"] is False
    assert body["error"]


def test_process_report_unexpected_error_is_reported(build_client, make_capabilities, monkeypatch):
    async def _boom(*_args, **_kwargs):
        raise RuntimeError("kaboom")

    monkeypatch.setattr(routes_module, "run_pipeline", _boom)

    resp = build_client(make_capabilities()).post(
        "/api/process-report",
        files=[("audio", ("nota.wav", b"voice", "audio/wav"))],
    )

    assert resp.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert resp.json() == {"success": False, "error": routes_module.PROCESSING_ERROR_MESSAGE}


def test_process_report_rejects_unsupported_extension(build_client, make_capabilities):
    resp = build_client(make_capabilities()).post(
        "/api/process-report",
        files=[("files", ("script.exe", b"MZ....", "application/octet-stream"))],
    )

    assert resp.status_code == status.HTTP_400_BAD_REQUEST


# ---------------------------------------------------------------------------
# /api/generate-pdf and /api/download-modified-file
# ---------------------------------------------------------------------------


def test_generate_pdf(build_client, make_capabilities):
    payload = {
        "report": {
            "type": "report",
            "timestamp": "2024-05-01T10:00:00Z",
            "audioTranscription": "perdita",
            "filesAnalyzed": [{"name": "a.png", "type": "image", "size": 3, "extension": ".png"}],
            "problemDescription": "Perdita idraulica",
            "userSolution": None,
            "detailedSolutions": [],
            "preventiveRecommendations": ["Controllo"],
            "managementSummary": "Ok",
        }
    }

    resp = build_client(make_capabilities()).post("/api/generate-pdf", json=payload)

    assert resp.status_code == status.HTTP_200_OK
    assert resp.headers["content-type"] == "application/pdf"
    assert resp.content.startswith(b"%PDF")


def test_generate_pdf_requires_report(build_client, make_capabilities):
    resp = build_client(make_capabilities()).post("/api/generate-pdf", json={})
    assert resp.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_download_modified_file(build_client, make_capabilities):
    payload = {
        "report": {
            "type": "file_modification",
            "fileType": "word",
            "originalFilename": "verbale.docx",
            "modifiedFilename": "modificato_verbale.docx",
            "modifiedFileContent": base64.b64encode(b"docx-bytes").decode(),
            "modifications": "m",
            "summary": "s",
        }
    }

    resp = build_client(make_capabilities()).post("/api/download-modified-file", json=payload)

    assert resp.status_code == status.HTTP_200_OK
    assert resp.content == b"docx-bytes"
    assert 'filename="modificato_verbale.docx"' in resp.headers["content-disposition"]
