import logging
from contextlib import closing

from sqlalchemy.orm import Session

from videogen.celery_app import celery_app
from videogen.config import settings
from videogen.db import SessionLocal
from videogen.errors import RecordNotFound
from videogen.pipeline.orchestrator import GenerationOrchestrator, VideoJobClient
from videogen.providers.openai_videos import OpenAIVideoClient
from videogen.storage.local import LocalArtifactStore

logger = logging.getLogger(__name__)


def build_orchestrator(db: Session, client: VideoJobClient) -> GenerationOrchestrator:
    return GenerationOrchestrator(
        db,
        client=client,
        artifacts=LocalArtifactStore(settings.storage_root, settings.public_base_url),
        default_duration_seconds=settings.default_duration_seconds,
        max_processing_seconds=settings.max_processing_seconds,
    )


def _new_client() -> OpenAIVideoClient:
    return OpenAIVideoClient(
        api_key=settings.openai_api_key,
        base_url=settings.openai_api_base,
        model=settings.video_model,
        timeout_seconds=settings.provider_timeout_seconds,
    )


def _schedule_next(generation_id: str, attempt: int) -> None:
    poll_generation.apply_async((generation_id, attempt), countdown=settings.poll_interval_seconds)


@celery_app.task(name="videogen.tasks.poll_generation")
def poll_generation(generation_id: str, attempt: int = 1) -> dict[str, str]:
    """Server-side stand-in for the browser's status polling loop."""
    db = SessionLocal()
    try:
        with closing(_new_client()) as client:
            orchestrator = build_orchestrator(db, client)
            try:
                result = orchestrator.check_status(generation_id)
            except RecordNotFound:
                logger.warning("poll skipped, generation missing", extra={"generation_id": generation_id})
                return {"generation_id": generation_id, "status": "missing"}
    finally:
        db.close()

    if result.status.is_terminal:
        return {"generation_id": generation_id, "status": result.status.value}

    if settings.max_poll_attempts and attempt >= settings.max_poll_attempts:
        logger.warning(
            "server-side polling gave up",
            extra={"generation_id": generation_id, "attempts": attempt},
        )
        return {"generation_id": generation_id, "status": result.status.value}

    _schedule_next(generation_id, attempt + 1)
    return {"generation_id": generation_id, "status": result.status.value}
