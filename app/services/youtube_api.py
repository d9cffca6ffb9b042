"""
YouTube Data API v3 client for the authenticated playlist paths.

The gateway never issues tokens; it forwards the caller's bearer token.
"""
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from app.core.config import Settings, settings
from app.core.constants import ResponseDefaults, YouTubeConfig
from app.core.exceptions import AuthError, YouTubeApiError
from app.models import PlaylistSource, PlaylistSummary

# Largest first
THUMBNAIL_PREFERENCE = ("maxres", "standard", "high", "medium", "default")


def build_http_client(config: Settings = settings) -> httpx.AsyncClient:
    """Shared HTTP client, created in the application lifespan."""
    return httpx.AsyncClient(
        base_url=config.YOUTUBE_API_BASE_URL,
        timeout=config.YOUTUBE_API_TIMEOUT_SECONDS,
    )


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _api_items(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    items = data.get("items")
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


def _pick_thumbnail(thumbnails: Dict[str, Any]) -> str:
    for size in THUMBNAIL_PREFERENCE:
        url = _as_text(_as_dict(thumbnails.get(size)).get("url"))
        if url:
            return url
    return ""


def playlist_from_api_item(item: Dict[str, Any]) -> PlaylistSummary:
    """Map a `playlists` resource onto a PlaylistSummary; fields of the wrong type fall back to defaults."""
    snippet = _as_dict(item.get("snippet"))
    details = _as_dict(item.get("contentDetails"))
    try:
        item_count = max(int(details.get("itemCount") or 0), 0)
    except (TypeError, ValueError, OverflowError):
        item_count = 0

    return PlaylistSummary(
        id=_as_text(item.get("id")),
        title=_as_text(snippet.get("title")) or ResponseDefaults.UNKNOWN,
        description=_as_text(snippet.get("description")),
        thumbnail_url=_pick_thumbnail(_as_dict(snippet.get("thumbnails"))),
        item_count=item_count,
        source=PlaylistSource.YOUTUBE_API,
    )


class YouTubeApiClient:
    """
    Async client for the `playlists` endpoint of the YouTube Data API.

    Attributes:
        http: Shared httpx client whose base_url points at the API root.
    """

    def __init__(self, http: httpx.AsyncClient):
        self.http = http

    async def _get(self, endpoint: str, access_token: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Make an authenticated GET request.

        Raises:
            AuthError: When the token is rejected (401) or lacks scope (403).
            YouTubeApiError: On transport failures, any other error status or
                a body that is not a JSON object.
        """
        try:
            response = await self.http.get(
                endpoint,
                params=params,
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.HTTPError as e:
            raise YouTubeApiError(f"YouTube API request failed: {e}") from e

        if response.status_code in (401, 403):
            logger.warning(f"YouTube API rejected the access token ({response.status_code})")
            raise AuthError("Access token is missing, invalid or expired.")
        if response.is_error:
            raise YouTubeApiError(
                f"YouTube API returned {response.status_code} for {endpoint}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise YouTubeApiError("YouTube API returned malformed JSON") from e
        if not isinstance(data, dict):
            raise YouTubeApiError(f"YouTube API returned an unexpected payload for {endpoint}")
        return data

    async def list_my_playlists(self, access_token: str) -> List[PlaylistSummary]:
        """Every playlist owned by the token's account, following pagination."""
        playlists: List[PlaylistSummary] = []
        page_token: Optional[str] = None

        while True:
            params: Dict[str, Any] = {
                "part": "snippet,contentDetails",
                "mine": "true",
                "maxResults": YouTubeConfig.API_PAGE_SIZE,
            }
            if page_token:
                params["pageToken"] = page_token

            data = await self._get("playlists", access_token, params)
            playlists.extend(playlist_from_api_item(item) for item in _api_items(data))

            page_token = _as_text(data.get("nextPageToken"))
            if not page_token:
                break

        logger.info(f"Fetched {len(playlists)} playlists from YouTube API")
        return playlists

    async def get_playlist(self, access_token: str, playlist_id: str) -> PlaylistSummary:
        """A single playlist by id, as visible to the token's account."""
        data = await self._get(
            "playlists",
            access_token,
            {"part": "snippet,contentDetails", "id": playlist_id},
        )
        items = _api_items(data)
        if not items:
            raise YouTubeApiError(f"Playlist '{playlist_id}' was not found", status_code=404)

        summary = playlist_from_api_item(items[0])
        if not summary.id:
            summary = summary.model_copy(update={"id": playlist_id})
        return summary
