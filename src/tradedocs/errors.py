"""Document engine error types.

Typed exceptions raised by the prefill, editor, lifecycle and export layers.
The API layer maps each subclass to an HTTP status via its ``code``.
"""

from __future__ import annotations


class DocEngineError(Exception):
    """Base exception for document engine operations.

    Attributes:
        message: Human-readable error message.
        code: Machine-readable error code.
    """

    code = "DOC_ENGINE_ERROR"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class NotFoundError(DocEngineError):
    """Raised when a job, draft or template does not exist."""

    code = "NOT_FOUND"


class JobNotFoundError(NotFoundError):
    """Raised when the job record cannot be loaded."""

    code = "JOB_NOT_FOUND"

    def __init__(self, job_id: str) -> None:
        super().__init__(f"Job not found: {job_id}")
        self.job_id = job_id


class TemplateNotFoundError(NotFoundError):
    """Raised when no template is registered for a document type."""

    code = "TEMPLATE_NOT_FOUND"

    def __init__(self, doc_type: str) -> None:
        super().__init__(f"No template registered for document type: {doc_type}")
        self.doc_type = doc_type


class DraftNotFoundError(NotFoundError):
    """Raised when no draft exists for a (job_id, doc_type) pair."""

    code = "DRAFT_NOT_FOUND"

    def __init__(self, job_id: str, doc_type: str) -> None:
        super().__init__(
            f"Document draft not found for job {job_id} ({doc_type}). Create a draft first."
        )
        self.job_id = job_id
        self.doc_type = doc_type


class AccessError(DocEngineError):
    """Raised when the caller fails an ownership, plan-tier or verification gate."""

    code = "FORBIDDEN"


class IssuanceValidationError(DocEngineError):
    """Raised when issuer details are incomplete and issuance is blocked.

    Attributes:
        missing_required: Items that block issuance.
        missing_recommended: Items reported but not blocking.
        warnings: Free-text advisories.
    """

    code = "ISSUER_VALIDATION_FAILED"

    def __init__(
        self,
        missing_required: list[str],
        missing_recommended: list[str] | None = None,
        warnings: list[str] | None = None,
        *,
        redirect_to: str = "/settings/business-profile",
    ) -> None:
        super().__init__("Cannot issue document due to missing business details")
        self.missing_required = list(missing_required)
        self.missing_recommended = list(missing_recommended or [])
        self.warnings = list(warnings or [])
        self.redirect_to = redirect_to


class GenerationError(DocEngineError):
    """Raised when the upstream text-generation call fails. Retryable."""

    code = "GENERATION_FAILED"


class ConflictError(DocEngineError):
    """Raised when a save carries a stale draft version."""

    code = "DRAFT_VERSION_CONFLICT"

    def __init__(self, expected_version: int, actual_version: int) -> None:
        super().__init__(
            f"Draft has been modified (expected version {expected_version}, "
            f"found {actual_version})"
        )
        self.expected_version = expected_version
        self.actual_version = actual_version


class IssuanceRequiredError(DocEngineError):
    """Raised when a client-facing export is requested for a draft that is not issued."""

    code = "ISSUANCE_REQUIRED"

    def __init__(self, message: str = "Document must be issued before client export") -> None:
        super().__init__(message)
        self.redirect_to = "issue"


class EditorError(DocEngineError):
    """Raised when an edit targets an unknown section, field, column or row."""

    code = "INVALID_EDIT"


class MinRowsViolationError(EditorError):
    """Raised when removing a row would drop a table below its minimum."""

    code = "MIN_ROWS_VIOLATION"

    def __init__(self, section_id: str, min_rows: int) -> None:
        super().__init__(
            f"Table in section '{section_id}' must keep at least {min_rows} row(s)"
        )
        self.section_id = section_id
        self.min_rows = min_rows
