from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.responses import FileResponse

from videogen.api.deps import get_artifact_store
from videogen.errors import ArtifactStoreError, InvalidRequest
from videogen.schemas import ImageUploadResponse
from videogen.security.auth import CurrentUser, get_current_user
from videogen.storage.local import LocalArtifactStore


router = APIRouter(tags=["media"])

_MEDIA_TYPES = {
    ".mp4": "video/mp4",
    ".jpg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
}


@router.post(
    "/uploads/images",
    response_model=ImageUploadResponse,
    status_code=status.HTTP_201_CREATED,
)
def upload_reference_image(
    file: UploadFile = File(...),
    user: CurrentUser = Depends(get_current_user),
    store: LocalArtifactStore = Depends(get_artifact_store),
) -> ImageUploadResponse:
    if not (file.content_type or "").startswith("image/"):
        raise HTTPException(status_code=400, detail="Please upload an image file (JPG, PNG, WEBP)")

    try:
        file_url, width, height = store.store_reference_image(file)
    except InvalidRequest as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ArtifactStoreError as exc:
        raise HTTPException(status_code=500, detail="Failed to store image") from exc
    finally:
        file.file.close()

    return ImageUploadResponse(file_url=file_url, width=width, height=height)


@router.get("/media/{kind}/{file_name}", response_class=FileResponse, include_in_schema=False)
def download_media(
    kind: str,
    file_name: str,
    store: LocalArtifactStore = Depends(get_artifact_store),
) -> FileResponse:
    try:
        path = store.resolve(kind, file_name)
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail="File not found") from exc
    return FileResponse(path=path, filename=path.name, media_type=_MEDIA_TYPES.get(path.suffix))
