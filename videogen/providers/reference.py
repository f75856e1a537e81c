from __future__ import annotations

from dataclasses import dataclass

import httpx

from videogen.errors import ReferenceImageFetchError

DEFAULT_CONTENT_TYPE = "image/jpeg"


@dataclass(slots=True, frozen=True)
class ReferenceImage:
    content: bytes
    content_type: str = DEFAULT_CONTENT_TYPE

    @property
    def extension(self) -> str:
        if "png" in self.content_type:
            return "png"
        if "webp" in self.content_type:
            return "webp"
        return "jpg"

    @property
    def filename(self) -> str:
        return f"reference.{self.extension}"


class ReferenceImageFetcher:
    """Downloads the caller's reference image so it can be forwarded upstream."""

    def __init__(self, *, timeout_seconds: float = 30.0, http_client: httpx.Client | None = None) -> None:
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=timeout_seconds, follow_redirects=True)

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def fetch(self, url: str) -> ReferenceImage:
        try:
            response = self._http.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise ReferenceImageFetchError(url, str(exc)) from exc
        if not response.is_success:
            raise ReferenceImageFetchError(url, f"HTTP {response.status_code}")

        content_type = response.headers.get("content-type") or DEFAULT_CONTENT_TYPE
        content_type = content_type.split(";", 1)[0].strip() or DEFAULT_CONTENT_TYPE
        return ReferenceImage(content=response.content, content_type=content_type)
