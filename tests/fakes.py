from videogen.errors import (
    ArtifactStoreError,
    ReferenceImageFetchError,
    UpstreamDownloadError,
    UpstreamStatusError,
    UpstreamSubmitError,
)
from videogen.providers.openai_videos import ProviderJobStatus
from videogen.providers.reference import ReferenceImage


class FakeVideoClient:
    """In-memory provider. Queue responses per call with the ``*_results`` lists."""

    def __init__(self) -> None:
        self.submissions: list[dict] = []
        self.status_calls: list[str] = []
        self.download_calls: list[str] = []
        self.submit_error: Exception | None = None
        self.status_results: list[ProviderJobStatus | Exception] = []
        self.download_results: list[bytes | Exception] = []
        self.closed = False

    def submit(self, prompt, *, size, seconds=None, reference_image=None) -> str:
        if self.submit_error is not None:
            raise self.submit_error
        job_id = f"video_{len(self.submissions) + 1}"
        self.submissions.append(
            {
                "prompt": prompt,
                "size": size,
                "seconds": seconds,
                "reference_image": reference_image,
                "job_id": job_id,
            }
        )
        return job_id

    def fetch_status(self, job_id: str) -> ProviderJobStatus:
        self.status_calls.append(job_id)
        result = self.status_results.pop(0) if self.status_results else ProviderJobStatus(state="queued")
        if isinstance(result, Exception):
            raise result
        return result

    def fetch_artifact(self, job_id: str) -> bytes:
        self.download_calls.append(job_id)
        result = self.download_results.pop(0) if self.download_results else b"\x00\x00\x00\x18ftypmp42"
        if isinstance(result, Exception):
            raise result
        return result

    def close(self) -> None:
        self.closed = True


class FakeArtifactStore:
    def __init__(self) -> None:
        self.stored: list[bytes] = []
        self.errors: list[Exception] = []

    def store(self, data: bytes, *, suffix: str = ".mp4") -> str:
        if self.errors:
            raise self.errors.pop(0)
        self.stored.append(data)
        return f"https://cdn.example.com/videos/{len(self.stored)}{suffix}"


class FakeReferenceFetcher:
    def __init__(self, image: ReferenceImage | None = None, error: Exception | None = None) -> None:
        self.image = image or ReferenceImage(content=b"\x89PNG\r\n\x1a\n", content_type="image/png")
        self.error = error
        self.fetched: list[str] = []

    def fetch(self, url: str) -> ReferenceImage:
        self.fetched.append(url)
        if self.error is not None:
            raise self.error
        return self.image


def status_error(job_id: str = "video_1") -> UpstreamStatusError:
    return UpstreamStatusError(job_id, "connection reset")


def download_error(job_id: str = "video_1") -> UpstreamDownloadError:
    return UpstreamDownloadError(job_id, "HTTP 502", status_code=502)


def submit_error() -> UpstreamSubmitError:
    return UpstreamSubmitError("OpenAI API error", status_code=400, body='{"error": "bad size"}')


def reference_error(url: str = "https://img.example.com/cat.png") -> ReferenceImageFetchError:
    return ReferenceImageFetchError(url, "HTTP 404")


def store_error() -> ArtifactStoreError:
    return ArtifactStoreError("disk full")
