import logging

from fastapi import FastAPI
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from reporter.api.routes import router
from reporter.core.cleanup import cleanup_tmp
from reporter.core.config import settings
from reporter.core.exceptions import PipelineError
from reporter.core.logging import setup_logging
from reporter.services.capabilities import build_capabilities
from reporter.services.doc_builder import DocBuilderError
from reporter.services.llm import LLMError
from reporter.services.pdf_builder import PdfBuilderError

setup_logging()

app = FastAPI(title="Professional Problem Reporter")

logger = logging.getLogger(__name__)


def _jsonable_errors(exc: RequestValidationError) -> list[dict]:
    # ctx may hold exception instances that JSONResponse cannot encode
    return [{"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")} for err in exc.errors()]


@app.on_event("startup")
async def startup_event() -> None:
    settings.scratch_dir.mkdir(parents=True, exist_ok=True)
    cleanup_tmp()
    app.state.capabilities = build_capabilities()
    logger.info("Application startup complete (scratch_dir=%s)", settings.scratch_dir)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    logger.error(f"HTTP exception: {exc.detail} (status: {exc.status_code})")
    return JSONResponse({"success": False, "error": exc.detail}, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.error("Request validation failed: %s", exc.errors(), exc_info=False)
    return JSONResponse(
        {"success": False, "error": "Input validation failed", "details": _jsonable_errors(exc)},
        status_code=422,
    )


@app.exception_handler(PipelineError)
async def pipeline_exception_handler(_request: Request, exc: PipelineError) -> JSONResponse:
    logger.error(f"Pipeline error: {str(exc)}")
    return JSONResponse({"success": False, "error": str(exc)}, status_code=500)


@app.exception_handler(DocBuilderError)
async def docbuilder_exception_handler(_request: Request, exc: DocBuilderError) -> JSONResponse:
    logger.error(f"DocBuilder error: {str(exc)}")
    return JSONResponse({"success": False, "error": str(exc)}, status_code=500)


@app.exception_handler(PdfBuilderError)
async def pdfbuilder_exception_handler(_request: Request, exc: PdfBuilderError) -> JSONResponse:
    logger.error(f"PDF builder error: {str(exc)}")
    return JSONResponse({"success": False, "error": str(exc)}, status_code=500)


@app.exception_handler(LLMError)
async def llm_exception_handler(_request: Request, exc: LLMError) -> JSONResponse:
    logger.error(f"LLM error: {str(exc)}")
    return JSONResponse({"success": False, "error": str(exc)}, status_code=500)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_methods=["POST", "GET", "OPTIONS"],
    allow_headers=["*"],
)
app.include_router(router)
