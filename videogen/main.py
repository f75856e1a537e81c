from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from videogen.api.routes.generations import router as generations_router
from videogen.api.routes.health import router as health_router
from videogen.api.routes.media import router as media_router
from videogen.config import settings
from videogen.db import Base, engine
from videogen.logging_config import configure_logging
from videogen.providers.openai_videos import OpenAIVideoClient
from videogen.providers.reference import ReferenceImageFetcher
from videogen.security.auth import StaticTokenAuthProvider
from videogen.storage.local import LocalArtifactStore


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


def create_app() -> FastAPI:
    configure_logging(settings.log_level)
    app = FastAPI(title=settings.app_name)

    app.state.video_client = OpenAIVideoClient(
        api_key=settings.openai_api_key,
        base_url=settings.openai_api_base,
        model=settings.video_model,
        timeout_seconds=settings.provider_timeout_seconds,
    )
    app.state.reference_fetcher = ReferenceImageFetcher(
        timeout_seconds=settings.reference_image_timeout_seconds,
    )
    app.state.artifact_store = LocalArtifactStore(settings.storage_root, settings.public_base_url)
    app.state.auth_provider = StaticTokenAuthProvider(settings.api_tokens)

    @app.on_event("startup")
    def on_startup() -> None:
        Base.metadata.create_all(bind=engine)

    @app.on_event("shutdown")
    def on_shutdown() -> None:
        app.state.video_client.close()
        app.state.reference_fetcher.close()

    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.include_router(health_router, prefix="/api/v1")
    app.include_router(generations_router, prefix="/api/v1")
    app.include_router(media_router, prefix="/api/v1")
    return app


app = create_app()
