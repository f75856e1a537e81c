from __future__ import annotations

import io
import os
import re
import tempfile
import uuid
from pathlib import Path

from fastapi import UploadFile
from PIL import Image, UnidentifiedImageError

from videogen.errors import ArtifactStoreError, InvalidRequest


_SAFE_NAME_PATTERN = re.compile(r"[^a-zA-Z0-9._-]+")
_IMAGE_FORMATS = {"PNG": ".png", "WEBP": ".webp", "JPEG": ".jpg"}

MEDIA_KINDS = ("videos", "images")


def _safe_name(name: str) -> str:
    return _SAFE_NAME_PATTERN.sub("_", name).strip("._")


class LocalArtifactStore:
    """Filesystem blob store whose files are served back by the media route."""

    def __init__(self, root: str | Path, public_base_url: str) -> None:
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")

    def public_url(self, kind: str, name: str) -> str:
        return f"{self.public_base_url}/api/v1/media/{kind}/{name}"

    def _write_atomic(self, kind: str, data: bytes, suffix: str) -> str:
        directory = self.root / kind
        name = f"{uuid.uuid4().hex}{suffix}"
        tmp_path: str | None = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".part")
            with os.fdopen(fd, "wb") as fp:
                fp.write(data)
                fp.flush()
                os.fsync(fp.fileno())
            os.replace(tmp_path, directory / name)
        except OSError as exc:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise ArtifactStoreError(f"failed to store {kind} file: {exc}") from exc
        return name

    def store(self, data: bytes, *, suffix: str = ".mp4") -> str:
        if not data:
            raise ArtifactStoreError("refusing to store an empty artifact")
        name = self._write_atomic("videos", data, suffix)
        return self.public_url("videos", name)

    def store_reference_image(self, upload: UploadFile) -> tuple[str, int, int]:
        data = upload.file.read()
        try:
            with Image.open(io.BytesIO(data)) as img:
                fmt = img.format or "JPEG"
                ext = _IMAGE_FORMATS.get(fmt, ".jpg")
                converted = img.convert("RGBA" if fmt in {"PNG", "WEBP"} else "RGB")
                width, height = converted.size
                buffer = io.BytesIO()
                converted.save(buffer, format="JPEG" if ext == ".jpg" else fmt)
        except (UnidentifiedImageError, OSError) as exc:
            raise InvalidRequest(f"not a valid image: {upload.filename or 'upload'}") from exc

        name = self._write_atomic("images", buffer.getvalue(), ext)
        return self.public_url("images", name), width, height

    def resolve(self, kind: str, name: str) -> Path:
        if kind not in MEDIA_KINDS:
            raise FileNotFoundError(kind)
        safe = _safe_name(name)
        if not safe or safe != name:
            raise FileNotFoundError(name)
        path = (self.root / kind / safe).resolve()
        if path.parent != (self.root / kind).resolve() or not path.is_file():
            raise FileNotFoundError(name)
        return path
