import logging
from typing import assert_never

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from videogen import crud
from videogen.api.deps import get_orchestrator
from videogen.config import settings
from videogen.db import get_db
from videogen.errors import (
    InvalidRequest,
    RecordNotFound,
    ReferenceImageFetchError,
    UpstreamSubmitError,
)
from videogen.pipeline.orchestrator import GenerationOrchestrator
from videogen.schemas import (
    CheckStatusAction,
    CreateGenerationAction,
    CreateGenerationResponse,
    GenerateVideoRequest,
    GenerationResponse,
    GenerationStatusResponse,
)
from videogen.security.auth import CurrentUser, get_current_user
from videogen.tasks import poll_generation

logger = logging.getLogger(__name__)

router = APIRouter(tags=["generations"])


def _schedule_server_polling(generation_id: str) -> None:
    if not settings.server_polling_enabled:
        return
    try:
        poll_generation.apply_async((generation_id,), countdown=settings.poll_interval_seconds)
    except Exception:  # noqa: BLE001 - broker error path, client polling still works
        logger.warning(
            "failed to enqueue server-side polling",
            extra={"generation_id": generation_id},
            exc_info=True,
        )


def _create(
    payload: CreateGenerationAction,
    orchestrator: GenerationOrchestrator,
    user: CurrentUser,
) -> CreateGenerationResponse:
    try:
        result = orchestrator.create(
            prompt=payload.prompt,
            image_url=payload.image_url,
            aspect_ratio=payload.aspect_ratio,
            duration=payload.duration,
            created_by=user.identity,
        )
    except InvalidRequest as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ReferenceImageFetchError as exc:
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to fetch reference image", "details": exc.reason},
        ) from exc
    except UpstreamSubmitError as exc:
        raise HTTPException(
            status_code=500,
            detail={"error": str(exc), "status": exc.status_code, "details": exc.body},
        ) from exc

    _schedule_server_polling(result.generation_id)
    return CreateGenerationResponse(generation_id=result.generation_id, job_id=result.job_id)


def _check_status(
    payload: CheckStatusAction,
    orchestrator: GenerationOrchestrator,
    user: CurrentUser,
) -> GenerationStatusResponse:
    generation = crud.get_generation(orchestrator.db, payload.generation_id)
    if generation is None or generation.created_by not in (None, user.identity):
        raise HTTPException(status_code=404, detail="Generation not found")
    try:
        result = orchestrator.check_status(payload.generation_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail="Generation not found") from exc

    return GenerationStatusResponse(
        status=result.status,
        video_url=result.video_url,
        error_message=result.error_message,
        progress=result.progress,
    )


@router.post(
    "/generate-video",
    response_model=CreateGenerationResponse | GenerationStatusResponse,
    response_model_exclude_none=True,
)
def generate_video(
    payload: GenerateVideoRequest = Body(...),
    user: CurrentUser = Depends(get_current_user),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> CreateGenerationResponse | GenerationStatusResponse:
    if isinstance(payload, CreateGenerationAction):
        return _create(payload, orchestrator, user)
    if isinstance(payload, CheckStatusAction):
        return _check_status(payload, orchestrator, user)
    assert_never(payload)


@router.get("/generations", response_model=list[GenerationResponse])
def list_generations(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    limit: int = Query(default=50, ge=1, le=100),
) -> list[GenerationResponse]:
    return crud.list_generations(db, created_by=user.identity, limit=limit)


@router.get("/generations/{generation_id}", response_model=GenerationResponse)
def get_generation(
    generation_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> GenerationResponse:
    generation = crud.get_generation(db, generation_id)
    if generation is None or generation.created_by not in (None, user.identity):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Generation not found")
    return generation
