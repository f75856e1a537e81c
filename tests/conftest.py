import os

# must be set before videogen.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SERVER_POLLING_ENABLED", "false")

from typing import Iterator

import pytest
from sqlalchemy.orm import Session

from videogen import models  # noqa: F401 - registers tables on Base.metadata
from videogen.db import Base, SessionLocal, engine
from videogen.pipeline.orchestrator import GenerationOrchestrator

from fakes import FakeArtifactStore, FakeReferenceFetcher, FakeVideoClient


@pytest.fixture
def db() -> Iterator[Session]:
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def fake_client() -> FakeVideoClient:
    return FakeVideoClient()


@pytest.fixture
def fake_store() -> FakeArtifactStore:
    return FakeArtifactStore()


@pytest.fixture
def fake_fetcher() -> FakeReferenceFetcher:
    return FakeReferenceFetcher()


@pytest.fixture
def orchestrator(db, fake_client, fake_store, fake_fetcher) -> GenerationOrchestrator:
    return GenerationOrchestrator(
        db,
        client=fake_client,
        artifacts=fake_store,
        reference_fetcher=fake_fetcher,
    )
