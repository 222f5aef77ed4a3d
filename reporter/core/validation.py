"""Defines constants for upload validation and coarse file categorisation."""

MAX_FILE_SIZE: int = 50 * 1024 * 1024  # 50 MB per file

# Maximum number of attachments allowed in a single submission (audio excluded)
MAX_FILES: int = 20

MAX_TOTAL_SIZE: int = 200 * 1024 * 1024  # 200 MB total upload limit

IMAGE_EXTENSIONS: set[str] = {".png", ".jpg", ".jpeg", ".gif", ".webp"}
VIDEO_EXTENSIONS: set[str] = {".mp4", ".webm", ".mov"}
SPREADSHEET_EXTENSIONS: set[str] = {".xlsx", ".xls"}
DOCUMENT_EXTENSIONS: set[str] = {".docx", ".doc"}
PDF_EXTENSIONS: set[str] = {".pdf"}

ALLOWED_EXTENSIONS: set[str] = IMAGE_EXTENSIONS | VIDEO_EXTENSIONS | SPREADSHEET_EXTENSIONS | DOCUMENT_EXTENSIONS | PDF_EXTENSIONS

# OOXML containers are often sniffed as plain zip archives by older libmagic builds
_OOXML_FALLBACKS = {"application/zip", "application/octet-stream"}

# Accepted sniffed MIME types per extension
MIME_MAPPING: dict[str, set[str]] = {
    ".png": {"image/png"},
    ".jpg": {"image/jpeg"},
    ".jpeg": {"image/jpeg"},
    ".gif": {"image/gif"},
    ".webp": {"image/webp"},
    ".mp4": {"video/mp4"},
    ".webm": {"video/webm", "audio/webm"},
    ".mov": {"video/quicktime"},
    ".pdf": {"application/pdf"},
    ".xlsx": {"application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"} | _OOXML_FALLBACKS,
    ".xls": {"application/vnd.ms-excel", "application/x-ole-storage", "application/CDFV2"},
    ".docx": {"application/vnd.openxmlformats-officedocument.wordprocessingml.document"} | _OOXML_FALLBACKS,
    ".doc": {"application/msword", "application/x-ole-storage", "application/CDFV2"},
}


def categorize(extension: str, media_type: str | None) -> str:
    """Return the coarse category of an attachment from its extension and declared media type."""
    media_type = (media_type or "").lower()
    extension = extension.lower()
    if media_type.startswith("image/") or extension in IMAGE_EXTENSIONS:
        return "image"
    if media_type.startswith("video/") or extension in VIDEO_EXTENSIONS:
        return "video"
    if "pdf" in media_type or extension in PDF_EXTENSIONS:
        return "pdf"
    if "spreadsheet" in media_type or "excel" in media_type or extension in SPREADSHEET_EXTENSIONS:
        return "spreadsheet"
    return "document"
