"""Generation logic package.

This package groups the helper functions that orchestrate the submission
workflow (upload validation, evidence extraction, mode classification, prompt
assembly, reply parsing, artifact streaming). Keeping them here allows
`reporter/api/routes.py` to stay minimal and focused on HTTP routing while
core business logic lives in composable modules.
"""

from .classification import classify  # noqa: F401
from .context_preparation import _build_synthesis_request  # noqa: F401

# Re-export most commonly-used helpers for convenience
from .file_processing import _build_submission  # noqa: F401
from .file_processing import _extract_evidence  # noqa: F401
from .report_finalization import _generate_and_stream_pdf  # noqa: F401
from .report_finalization import _stream_modified_file  # noqa: F401
from .response_parsing import _parse_outcome  # noqa: F401
