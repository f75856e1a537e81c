from fastapi import Depends, Request
from sqlalchemy.orm import Session

from videogen.config import settings
from videogen.db import get_db
from videogen.pipeline.orchestrator import (
    ArtifactStore,
    GenerationOrchestrator,
    ReferenceFetcher,
    VideoJobClient,
)
from videogen.storage.local import LocalArtifactStore


def get_video_client(request: Request) -> VideoJobClient:
    return request.app.state.video_client


def get_reference_fetcher(request: Request) -> ReferenceFetcher:
    return request.app.state.reference_fetcher


def get_artifact_store(request: Request) -> LocalArtifactStore:
    return request.app.state.artifact_store


def get_orchestrator(
    db: Session = Depends(get_db),
    client: VideoJobClient = Depends(get_video_client),
    artifacts: ArtifactStore = Depends(get_artifact_store),
    reference_fetcher: ReferenceFetcher = Depends(get_reference_fetcher),
) -> GenerationOrchestrator:
    return GenerationOrchestrator(
        db,
        client=client,
        artifacts=artifacts,
        reference_fetcher=reference_fetcher,
        default_duration_seconds=settings.default_duration_seconds,
        max_processing_seconds=settings.max_processing_seconds,
    )
