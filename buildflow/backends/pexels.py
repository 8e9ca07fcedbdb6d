# buildflow/backends/pexels.py
import logging
from typing import Optional

import httpx

from ..core.collaborators import IImageSearch, ImageResult
from ..core.exceptions import ImageSearchError

logger = logging.getLogger(__name__)

PEXELS_SEARCH_URL = "https://api.pexels.com/v1/search"
ORIENTATIONS = ("landscape", "portrait", "square")


class PexelsImageSearch(IImageSearch):
    """Stock photo search; the credential is optional at construction and checked per call."""

    def __init__(self, api_key: Optional[str], endpoint: str = PEXELS_SEARCH_URL,
                 timeout: float = 15.0, client: Optional[httpx.AsyncClient] = None):
        self.api_key = api_key
        self.endpoint = endpoint
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self.client.aclose()

    async def search(self, query: str, orientation: str = "landscape") -> ImageResult:
        if not self.api_key:
            raise ImageSearchError("Image search credential is not configured.")
        if orientation not in ORIENTATIONS:
            orientation = "landscape"

        try:
            response = await self.client.get(
                self.endpoint,
                params={"query": query, "orientation": orientation, "per_page": 1},
                headers={"Authorization": self.api_key},
            )
        except httpx.HTTPError as e:
            raise ImageSearchError(f"Image search request failed: {e}") from e

        if response.status_code >= 400:
            raise ImageSearchError(f"Image search failed (status={response.status_code}).")
        photos = response.json().get("photos") or []
        if not photos:
            raise ImageSearchError(f"No images found for '{query}'.")

        photo = photos[0]
        src = photo.get("src") or {}
        image_url = src.get(orientation) or src.get("large") or src.get("original")
        if not image_url:
            raise ImageSearchError(f"No usable image URL for '{query}'.")
        photographer = photo.get("photographer") or "unknown"
        logger.debug("Image search %r -> %s", query, image_url)
        return ImageResult(image_url=image_url, attribution=f"Photo by {photographer} on Pexels")
