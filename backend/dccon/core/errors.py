"""Error taxonomy shared by the job queue, the downloader and the HTTP layer."""
from __future__ import annotations


class DcconError(Exception):
    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(DcconError):
    status_code = 400


class NotFoundError(DcconError):
    status_code = 404


class NotReadyError(DcconError):
    status_code = 409


class PackageFetchError(DcconError):
    """Origin site failure while a job is running. Recorded on the job, never raised to HTTP callers."""

    status_code = 502


class SessionError(PackageFetchError):
    pass


class DetailError(PackageFetchError):
    pass


class ImageFetchError(PackageFetchError):
    pass


class ResizeError(DcconError):
    pass
