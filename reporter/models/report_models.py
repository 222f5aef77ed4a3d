from datetime import datetime
from datetime import timezone
from enum import Enum
from typing import Any
from typing import Literal

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialised with the camelCase keys the client expects."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Submission (inbound)
# ---------------------------------------------------------------------------


class SubmittedFile(BaseModel):
    """One attached file as received at the boundary."""

    filename: str
    media_type: str | None = None
    content: bytes


class Submission(BaseModel):
    """The unit of work: an optional voice note plus ordered attachments."""

    audio: bytes | None = None
    audio_filename: str | None = None
    files: list[SubmittedFile] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Extracted evidence
# ---------------------------------------------------------------------------


class FileSummary(CamelModel):
    """Summary metadata for a non-audio attachment."""

    name: str
    type: Literal["image", "video", "pdf", "spreadsheet", "document"]
    size: int
    extension: str


class ExtractedImageText(CamelModel):
    filename: str
    extracted_text: str


class SpreadsheetCapture(BaseModel):
    filename: str
    rows: list[list[str]]


class DocumentCapture(BaseModel):
    filename: str
    text: str


class PdfText(CamelModel):
    filename: str
    text: str


class ExtractedEvidence(BaseModel):
    """Immutable, normalised view over a Submission."""

    model_config = ConfigDict(frozen=True)

    transcript: str = ""
    image_texts: list[ExtractedImageText] = Field(default_factory=list)
    spreadsheet: SpreadsheetCapture | None = None
    document: DocumentCapture | None = None
    pdf_texts: list[PdfText] = Field(default_factory=list)
    file_summaries: list[FileSummary] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Operating mode
# ---------------------------------------------------------------------------


class OperatingMode(str, Enum):
    REPORT = "report"
    MODIFICATION = "modification"


class ModificationTarget(str, Enum):
    EXCEL = "excel"
    WORD = "word"


class ModeDecision(BaseModel):
    """Tagged variant produced once by the classifier and threaded through the pipeline."""

    model_config = ConfigDict(frozen=True)

    mode: OperatingMode
    target: ModificationTarget | None = None

    @property
    def label(self) -> str:
        return self.mode.value if self.target is None else f"{self.mode.value}/{self.target.value}"


class SynthesisRequest(BaseModel):
    decision: ModeDecision
    persona: str
    prompt: str


# ---------------------------------------------------------------------------
# Parsed outcomes
# ---------------------------------------------------------------------------


class DetailedSolution(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True)

    title: str
    description: str
    steps: list[str]
    priority: Literal["alta", "media", "bassa"]
    estimated_time: str
    required_tools: list[str]

    @field_validator("priority", mode="before")
    @classmethod
    def normalise_priority(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v


class ReportOutcome(CamelModel):
    """Report Mode shape of the parsed model reply."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True)

    problem_description: str
    user_solution: str | None = None
    detailed_solutions: list[DetailedSolution]
    preventive_recommendations: list[str]
    management_summary: str


class ModificationOutcome(CamelModel):
    """Modification Mode shape of the parsed model reply.

    ``new_content`` stays loosely typed here; the renderer decides whether it
    is usable for the active target.
    """

    modification_type: ModificationTarget | None = None
    new_content: Any = None
    modifications: str
    summary: str

    @field_validator("modification_type", mode="before")
    @classmethod
    def normalise_modification_type(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v


# ---------------------------------------------------------------------------
# Output artifacts
# ---------------------------------------------------------------------------


class Report(CamelModel):
    type: Literal["report"] = "report"
    timestamp: datetime = Field(default_factory=_utc_now)
    audio_transcription: str = ""
    extracted_image_texts: list[ExtractedImageText] = Field(default_factory=list)
    files_analyzed: list[FileSummary] = Field(default_factory=list)
    pdf_texts: list[PdfText] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    problem_description: str
    user_solution: str | None = None
    detailed_solutions: list[DetailedSolution] = Field(default_factory=list)
    preventive_recommendations: list[str] = Field(default_factory=list)
    management_summary: str = ""


class FileModification(CamelModel):
    type: Literal["file_modification"] = "file_modification"
    timestamp: datetime = Field(default_factory=_utc_now)
    file_type: ModificationTarget
    original_filename: str
    modified_filename: str
    modified_file_content: str  # base64
    modifications: str
    summary: str
    audio_transcription: str = ""
    extracted_image_texts: list[ExtractedImageText] = Field(default_factory=list)


class GeneratePdfPayload(BaseModel):
    report: Report


class DownloadModifiedFilePayload(BaseModel):
    report: FileModification
