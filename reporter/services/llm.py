import base64
import json
import logging
import pathlib
from typing import Any

import httpx
import jinja2
from openai import AsyncOpenAI
from openai import OpenAIError
from tenacity import AsyncRetrying
from tenacity import RetryCallState
from tenacity import stop_after_attempt
from tenacity import wait_exponential

from reporter.core.config import settings

# Configure module logger
logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Raised when LLM call fails"""


class JSONParsingError(Exception):
    """Raised when JSON parsing fails"""


# --- Reusable Jinja2 Environment ---
PROMPT_DIR = pathlib.Path(__file__).parent / "prompt_templates"
env = jinja2.Environment(
    loader=jinja2.FileSystemLoader(PROMPT_DIR),
    undefined=jinja2.StrictUndefined,
    keep_trailing_newline=True,
)


def render_prompt(template_name: str, **context: Any) -> str:
    """Render one of the prompt templates shipped with the package."""
    try:
        return env.get_template(template_name).render(**context)
    except jinja2.TemplateNotFound:
        logger.error("Template not found: %s", template_name)
        raise LLMError(f"Internal configuration error: Template '{template_name}' not found.") from None


# ---------------------------------------------------------------
# OpenAI client
# ---------------------------------------------------------------
def build_openai_client() -> AsyncOpenAI:
    """Create the single AsyncOpenAI client shared by every OpenAI-backed port."""
    timeout_config = httpx.Timeout(settings.LLM_CONNECT_TIMEOUT, read=settings.LLM_READ_TIMEOUT)
    return AsyncOpenAI(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        timeout=timeout_config,
        # Retries are governed by llm_max_attempts, not by the SDK
        max_retries=0,
    )


# ---------------------------------------------------------------
# Helper predicate for tenacity retry
# ---------------------------------------------------------------
def _should_retry_llm_call(retry_state: RetryCallState) -> bool:
    """Determines if a retry should occur based on the exception in RetryCallState."""
    if not retry_state.outcome:
        return False

    exc = retry_state.outcome.exception()
    if not exc:
        return False

    # Unwrap our custom LLMError to get to the original cause (e.g., OpenAIError)
    actual_exception = exc.__cause__ if isinstance(exc, LLMError) and exc.__cause__ else exc

    status = getattr(actual_exception, "status", None) or getattr(actual_exception, "status_code", None)
    if status in {429, 500, 502, 503, 504}:
        logger.debug("Retryable API error status %s detected. Retrying...", status)
        return True
    return False


def _first_message_content(rsp: Any, request_id: str) -> str:
    if not rsp or not getattr(rsp, "choices", None):
        logger.error("[%s] Invalid response structure from LLM API: %s", request_id, str(rsp))
        raise LLMError(f"Invalid response structure from LLM API: {str(rsp)}")

    first_choice = rsp.choices[0]
    message = getattr(first_choice, "message", None)
    if message is None:
        logger.error("[%s] Missing 'message' in LLM API response: %s", request_id, str(first_choice))
        raise LLMError(f"Missing 'message' in LLM API response: {str(first_choice)}")

    content = getattr(message, "content", None)
    if content is None:
        logger.error("[%s] No content in message: %s", request_id, str(message))
        raise LLMError(f"No content in message: {str(message)}")
    return content.strip()


class OpenAISynthesisPort:
    """Generative text service backed by the chat completions API."""

    def __init__(self, client: AsyncOpenAI, model: str | None = None):
        self.client = client
        self.model = model or settings.model_id

    async def _complete_once(self, persona: str, prompt: str, temperature: float, request_id: str) -> str:
        try:
            rsp = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": persona},
                    {"role": "user", "content": prompt},
                ],
                temperature=temperature,
                max_tokens=settings.llm_max_tokens,
            )
        except OpenAIError as e:
            logger.error("[%s] OpenAI API error: %s", request_id, str(e))
            raise LLMError(f"OpenAI API error: {str(e)}") from e

        content = _first_message_content(rsp, request_id)
        logger.debug("[%s] LLM response received, length: %d chars", request_id, len(content))
        return content

    async def complete(self, persona: str, prompt: str, temperature: float, request_id: str = "-") -> str:
        logger.info("[%s] Making LLM API call with model: %s", request_id, self.model)
        retrying = AsyncRetrying(
            wait=wait_exponential(multiplier=1, min=2, max=10),
            stop=stop_after_attempt(settings.llm_max_attempts),
            retry=_should_retry_llm_call,
            reraise=True,
        )
        content = ""
        async for attempt in retrying:
            with attempt:
                content = await self._complete_once(persona, prompt, temperature, request_id)
        return content


class OpenAITranscriptionPort:
    """Speech-to-text service backed by the Whisper transcription endpoint."""

    def __init__(self, client: AsyncOpenAI, model: str | None = None):
        self.client = client
        self.model = model or settings.transcription_model

    async def transcribe(self, audio_path: pathlib.Path, language: str, request_id: str = "-") -> str:
        logger.info("[%s] Transcribing %s with model %s", request_id, audio_path.name, self.model)
        try:
            with audio_path.open("rb") as audio_file:
                transcription = await self.client.audio.transcriptions.create(
                    file=audio_file,
                    model=self.model,
                    language=language,
                )
        except OpenAIError as e:
            raise LLMError(f"Transcription API error: {str(e)}") from e
        return transcription.text


class OpenAIVisionOCRPort:
    """Reads text out of images through a vision-capable chat model."""

    def __init__(self, client: AsyncOpenAI, model: str | None = None):
        self.client = client
        self.model = model or settings.vision_model

    async def extract_text(self, image_bytes: bytes, filename: str, instruction: str, request_id: str = "-") -> str:
        data_uri = f"data:{detect_image_mime_type(image_bytes)};base64,{base64.b64encode(image_bytes).decode('ascii')}"
        try:
            rsp = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": instruction},
                            {"type": "image_url", "image_url": {"url": data_uri}},
                        ],
                    }
                ],
                max_tokens=settings.llm_max_tokens,
            )
        except OpenAIError as e:
            raise LLMError(f"Vision API error for {filename}: {str(e)}") from e
        return _first_message_content(rsp, request_id)


def detect_image_mime_type(image_bytes: bytes) -> str:
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith((b"GIF87a", b"GIF89a")):
        return "image/gif"
    if image_bytes.startswith(b"RIFF") and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/png"


# ---------------------------------------------------------------
# JSON extractor helper
# ---------------------------------------------------------------
def extract_json(text: str, request_id: str = "-") -> dict[str, Any]:
    """Decode the object spanning the first ``{`` to the last ``}`` of *text*.

    Prose around the object is tolerated. Raises JSONParsingError when no
    brace pair exists, the slice does not decode, or the result is not a
    non-empty object.
    """
    logger.debug("[%s] Attempting to parse JSON response, length: %d", request_id, len(text))
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        logger.warning("[%s] No JSON object marker found in response", request_id)
        raise JSONParsingError("No JSON object marker found in response")

    try:
        data = json.loads(text[start : end + 1])
    except json.JSONDecodeError as e:
        logger.warning("[%s] Failed to decode JSON body: %s", request_id, str(e))
        raise JSONParsingError(f"Invalid JSON body: {e}") from e

    if not isinstance(data, dict) or not data:
        logger.warning("[%s] Decoded JSON is not a non-empty object", request_id)
        raise JSONParsingError("Decoded JSON is not a non-empty object")
    return data
