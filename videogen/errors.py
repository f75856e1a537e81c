from __future__ import annotations


class VideoGenError(Exception):
    """Base class for errors raised by the generation service."""


class InvalidRequest(VideoGenError):
    pass


class RecordNotFound(VideoGenError):
    def __init__(self, generation_id: str) -> None:
        super().__init__(f"Generation not found: {generation_id}")
        self.generation_id = generation_id


class ReferenceImageFetchError(VideoGenError):
    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Failed to fetch reference image: {reason}")
        self.url = url
        self.reason = reason


class UpstreamSubmitError(VideoGenError):
    """The provider refused (or never received) a job submission."""

    def __init__(self, message: str, *, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class UpstreamStatusError(VideoGenError):
    """A job status lookup failed. Recoverable: the next poll tries again."""

    def __init__(self, job_id: str, reason: str, *, status_code: int | None = None) -> None:
        super().__init__(f"status check failed for {job_id}: {reason}")
        self.job_id = job_id
        self.status_code = status_code


class UpstreamDownloadError(VideoGenError):
    def __init__(self, job_id: str, reason: str, *, status_code: int | None = None) -> None:
        super().__init__(f"content download failed for {job_id}: {reason}")
        self.job_id = job_id
        self.status_code = status_code


class ArtifactStoreError(VideoGenError):
    pass
