"""Client for the OpenAI Videos API (``/v1/videos``).

Three calls make up a generation job: submit a prompt (optionally with a
reference image), poll the job status, and download the finished MP4 once the
job reports ``completed``. Every failure is raised as one of the typed upstream
errors so callers can decide which ones are fatal.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from videogen.errors import (
    InvalidRequest,
    UpstreamDownloadError,
    UpstreamStatusError,
    UpstreamSubmitError,
)
from videogen.providers.reference import ReferenceImage

logger = logging.getLogger(__name__)

DEFAULT_SECONDS = 4
SUPPORTED_SIZES = frozenset({"1280x720", "720x1280"})

_PROVIDER_STATES = {
    "queued": "queued",
    "in_progress": "processing",
    "processing": "processing",
    "completed": "completed",
    "failed": "failed",
}


@dataclass(slots=True, frozen=True)
class ProviderJobStatus:
    state: str  # queued | processing | completed | failed
    progress: int | None = None
    error_message: str | None = None


def _normalize_seconds(seconds: Any) -> int:
    if isinstance(seconds, bool):
        return DEFAULT_SECONDS
    try:
        value = int(seconds)
    except (TypeError, ValueError):
        return DEFAULT_SECONDS
    return value if value > 0 else DEFAULT_SECONDS


def _normalize_progress(raw: Any) -> int | None:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = int(float(raw))
    except (TypeError, ValueError):
        return None
    return max(0, min(100, value))


def parse_job_status(payload: dict[str, Any]) -> ProviderJobStatus:
    raw_state = str(payload.get("status") or "").strip().lower()
    state = _PROVIDER_STATES.get(raw_state, "processing")

    error_message = None
    error = payload.get("error")
    if isinstance(error, dict):
        error_message = error.get("message") or None
    elif isinstance(error, str):
        error_message = error or None

    return ProviderJobStatus(
        state=state,
        progress=_normalize_progress(payload.get("progress")),
        error_message=error_message,
    )


class OpenAIVideoClient:
    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        model: str = "sora-2",
        timeout_seconds: float = 60.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._headers = {"Authorization": f"Bearer {api_key}"}
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=timeout_seconds)

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def __enter__(self) -> "OpenAIVideoClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def submit(
        self,
        prompt: str,
        *,
        size: str,
        seconds: int | None = None,
        reference_image: ReferenceImage | None = None,
    ) -> str:
        if not prompt or not prompt.strip():
            raise InvalidRequest("prompt is required")
        if size not in SUPPORTED_SIZES:
            raise InvalidRequest(f"unsupported size: {size}")

        # (None, value) parts are plain form fields; the endpoint only accepts
        # multipart bodies, with or without a reference image.
        parts: list[tuple[str, tuple]] = [
            ("prompt", (None, prompt.encode("utf-8"))),
            ("model", (None, self._model.encode("utf-8"))),
            ("seconds", (None, str(_normalize_seconds(seconds)).encode("ascii"))),
            ("size", (None, size.encode("ascii"))),
        ]
        if reference_image is not None:
            parts.append(
                (
                    "input_reference",
                    (
                        reference_image.filename,
                        reference_image.content,
                        reference_image.content_type,
                    ),
                )
            )

        url = f"{self._base_url}/videos"
        try:
            response = self._http.post(url, headers=self._headers, files=parts)
        except httpx.HTTPError as exc:
            raise UpstreamSubmitError(f"video submit request failed: {exc}") from exc

        body = response.text
        logger.debug("video submit response", extra={"status_code": response.status_code, "body": body})
        if not response.is_success:
            raise UpstreamSubmitError(
                "OpenAI API error",
                status_code=response.status_code,
                body=body,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamSubmitError(
                "video submit returned invalid JSON",
                status_code=response.status_code,
                body=body,
            ) from exc
        job_id = payload.get("id") if isinstance(payload, dict) else None
        if not job_id:
            raise UpstreamSubmitError(
                "video submit response has no job id",
                status_code=response.status_code,
                body=body,
            )
        return str(job_id)

    def fetch_status(self, job_id: str) -> ProviderJobStatus:
        url = f"{self._base_url}/videos/{job_id}"
        try:
            response = self._http.get(url, headers=self._headers)
        except httpx.HTTPError as exc:
            raise UpstreamStatusError(job_id, str(exc)) from exc

        if not response.is_success:
            raise UpstreamStatusError(
                job_id,
                response.text or f"HTTP {response.status_code}",
                status_code=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamStatusError(job_id, "invalid JSON in status response") from exc
        if not isinstance(payload, dict):
            raise UpstreamStatusError(job_id, "unexpected status payload")
        return parse_job_status(payload)

    def fetch_artifact(self, job_id: str) -> bytes:
        url = f"{self._base_url}/videos/{job_id}/content"
        try:
            response = self._http.get(url, headers=self._headers, follow_redirects=True)
        except httpx.HTTPError as exc:
            raise UpstreamDownloadError(job_id, str(exc)) from exc

        if not response.is_success:
            raise UpstreamDownloadError(
                job_id,
                response.text or f"HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response.content
