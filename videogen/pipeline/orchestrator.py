"""Lifecycle of a single video generation.

A generation starts in ``processing`` when the provider accepts the job and
moves exactly once into ``completed`` or ``failed``. ``check_status`` is safe to
call on any interval: terminal records are answered from the database, and
transient upstream problems are reported as ``processing`` so the next poll
tries again.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Protocol

from sqlalchemy.orm import Session

from videogen import crud
from videogen.errors import (
    ArtifactStoreError,
    InvalidRequest,
    RecordNotFound,
    UpstreamDownloadError,
    UpstreamStatusError,
)
from videogen.models import AspectRatio, GenerationStatus, VideoGeneration
from videogen.providers.openai_videos import ProviderJobStatus
from videogen.providers.reference import ReferenceImage

logger = logging.getLogger(__name__)

DEFAULT_DURATION_SECONDS = 4
PORTRAIT_SIZE = "720x1280"
SIZE_BY_ASPECT_RATIO = {
    AspectRatio.LANDSCAPE.value: "1280x720",
}
GENERIC_FAILURE_MESSAGE = "Video generation failed"
TIMEOUT_FAILURE_MESSAGE = "Video generation timed out"


class VideoJobClient(Protocol):
    def submit(
        self,
        prompt: str,
        *,
        size: str,
        seconds: int | None = None,
        reference_image: ReferenceImage | None = None,
    ) -> str:
        ...

    def fetch_status(self, job_id: str) -> ProviderJobStatus:
        ...

    def fetch_artifact(self, job_id: str) -> bytes:
        ...


class ArtifactStore(Protocol):
    def store(self, data: bytes, *, suffix: str = ".mp4") -> str:
        ...


class ReferenceFetcher(Protocol):
    def fetch(self, url: str) -> ReferenceImage:
        ...


@dataclass(slots=True, frozen=True)
class CreateResult:
    generation_id: str
    job_id: str


@dataclass(slots=True, frozen=True)
class StatusResult:
    status: GenerationStatus
    video_url: str | None = None
    error_message: str | None = None
    progress: int | None = None

    @classmethod
    def from_record(cls, generation: VideoGeneration) -> "StatusResult":
        return cls(
            status=generation.status,
            video_url=generation.video_url,
            error_message=generation.error_message,
        )


StatusCheck = ProviderJobStatus | UpstreamStatusError


def size_for_aspect_ratio(aspect_ratio: str | None) -> str:
    """Unknown ratios get the portrait size rather than a validation error."""
    return SIZE_BY_ASPECT_RATIO.get(aspect_ratio or "", PORTRAIT_SIZE)


def _record_aspect_ratio(aspect_ratio: str | None) -> AspectRatio:
    try:
        return AspectRatio(aspect_ratio)
    except ValueError:
        return AspectRatio.PORTRAIT


def _normalize_duration(duration: int | None, default: int) -> int:
    if duration is None or isinstance(duration, bool):
        return default
    return duration if duration > 0 else default


def poll_provider(client: VideoJobClient, job_id: str) -> StatusCheck:
    """Fetch the provider status, returning a failed lookup as a value."""
    try:
        return client.fetch_status(job_id)
    except UpstreamStatusError as exc:
        return exc


def mask_status_error(error: UpstreamStatusError) -> StatusResult:
    """A failed status lookup is reported as still processing.

    Nothing is written to the record; the caller's next poll retries.
    """
    logger.warning(
        "status check failed, reporting processing",
        extra={"job_id": error.job_id, "upstream_status": error.status_code, "reason": str(error)},
    )
    return StatusResult(status=GenerationStatus.PROCESSING)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class GenerationOrchestrator:
    def __init__(
        self,
        db: Session,
        *,
        client: VideoJobClient,
        artifacts: ArtifactStore,
        reference_fetcher: ReferenceFetcher | None = None,
        default_duration_seconds: int = DEFAULT_DURATION_SECONDS,
        max_processing_seconds: int | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.db = db
        self.client = client
        self.artifacts = artifacts
        self.reference_fetcher = reference_fetcher
        self.default_duration_seconds = default_duration_seconds
        self.max_processing_seconds = max_processing_seconds
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def create(
        self,
        *,
        prompt: str,
        image_url: str | None = None,
        aspect_ratio: str | None = None,
        duration: int | None = None,
        created_by: str | None = None,
    ) -> CreateResult:
        if not prompt or not prompt.strip():
            raise InvalidRequest("prompt is required")

        size = size_for_aspect_ratio(aspect_ratio)
        seconds = _normalize_duration(duration, self.default_duration_seconds)

        # fetched before submitting so a bad image never leaves an upstream job behind
        reference_image = None
        if image_url:
            if self.reference_fetcher is None:
                raise RuntimeError("a reference_fetcher is required to create with image_url")
            reference_image = self.reference_fetcher.fetch(image_url)
            logger.info(
                "reference image fetched",
                extra={"content_type": reference_image.content_type, "bytes": len(reference_image.content)},
            )

        job_id = self.client.submit(
            prompt,
            size=size,
            seconds=seconds,
            reference_image=reference_image,
        )
        logger.info("video job submitted", extra={"job_id": job_id, "size": size, "seconds": seconds})

        try:
            generation = crud.create_generation(
                self.db,
                prompt=prompt,
                job_id=job_id,
                aspect_ratio=_record_aspect_ratio(aspect_ratio),
                duration=seconds,
                image_url=image_url,
                created_by=created_by,
            )
        except Exception:
            logger.error("generation record not saved, upstream job orphaned", extra={"job_id": job_id})
            raise

        logger.info(
            "generation created",
            extra={"generation_id": generation.id, "job_id": job_id},
        )
        return CreateResult(generation_id=generation.id, job_id=job_id)

    def check_status(self, generation_id: str) -> StatusResult:
        generation = crud.get_generation(self.db, generation_id)
        if generation is None:
            raise RecordNotFound(generation_id)

        if generation.status.is_terminal:
            return StatusResult.from_record(generation)

        check = poll_provider(self.client, generation.job_id)
        if isinstance(check, UpstreamStatusError):
            return self._expire_if_overdue(generation) or mask_status_error(check)

        if check.state == "completed":
            return self._complete(generation)
        if check.state == "failed":
            return self._finalize(
                generation,
                GenerationStatus.FAILED,
                error_message=check.error_message or GENERIC_FAILURE_MESSAGE,
            )

        return self._expire_if_overdue(generation) or StatusResult(
            status=GenerationStatus.PROCESSING,
            progress=check.progress or 0,
        )

    def _complete(self, generation: VideoGeneration) -> StatusResult:
        try:
            data = self.client.fetch_artifact(generation.job_id)
            video_url = self.artifacts.store(data)
        except (UpstreamDownloadError, ArtifactStoreError) as exc:
            # stays processing; the next poll downloads again
            logger.warning(
                "video download not stored, will retry",
                extra={"generation_id": generation.id, "job_id": generation.job_id, "reason": str(exc)},
            )
            return StatusResult(status=GenerationStatus.PROCESSING, progress=100)

        return self._finalize(generation, GenerationStatus.COMPLETED, video_url=video_url)

    def _finalize(
        self,
        generation: VideoGeneration,
        status: GenerationStatus,
        *,
        video_url: str | None = None,
        error_message: str | None = None,
    ) -> StatusResult:
        stored, applied = crud.finalize_generation(
            self.db,
            generation.id,
            status=status,
            video_url=video_url,
            error_message=error_message,
        )
        if applied:
            logger.info(
                "generation finished",
                extra={"generation_id": stored.id, "job_id": stored.job_id, "status": status.value},
            )
        else:
            logger.warning(
                "generation already finished by another poll",
                extra={"generation_id": stored.id, "status": stored.status.value},
            )
            if video_url and video_url != stored.video_url:
                # stored by this poll but no record points at it
                logger.warning(
                    "stored video left unreferenced",
                    extra={"generation_id": stored.id, "job_id": stored.job_id, "video_url": video_url},
                )
        return StatusResult.from_record(stored)

    def _expire_if_overdue(self, generation: VideoGeneration) -> StatusResult | None:
        if not self.max_processing_seconds:
            return None
        age = self._clock() - _as_utc(generation.created_at)
        if age.total_seconds() <= self.max_processing_seconds:
            return None
        return self._finalize(generation, GenerationStatus.FAILED, error_message=TIMEOUT_FAILURE_MESSAGE)
