from __future__ import annotations


class MediaServiceError(Exception):
    """Base class for errors rendered into the failure envelope."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(MediaServiceError):
    """Raised when a required field is missing or malformed."""

    status_code = 400


class IncompleteUploadError(MediaServiceError):
    """Raised when the remote part set does not match the declared chunk count."""

    status_code = 400

    def __init__(
        self, message: str, *, expected: int, uploaded_chunks: list[int]
    ) -> None:
        super().__init__(message)
        self.expected = expected
        self.uploaded_chunks = uploaded_chunks


class NotFoundError(MediaServiceError):
    status_code = 404


class ConflictError(MediaServiceError):
    status_code = 409


class UpstreamError(MediaServiceError):
    """Raised when the object store or its transport fails."""

    status_code = 502

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class TransientUpstreamError(UpstreamError):
    """Connection-level failure that is worth retrying."""

    status_code = 503
