"""
API endpoints for playlist metadata, video metadata and audio downloads.
"""
import re
import time
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from loguru import logger
from starlette.types import Receive, Scope, Send

from app.api.auth import current_access_token, optional_access_token
from app.api.dependencies import get_media_service
from app.core.constants import YouTubeConfig
from app.core.exceptions import ValidationError
from app.models import DownloadInfo, PlaylistSummary, PlaylistVideoList, UserPlaylists
from app.services.media import AudioDownload, MediaService

router = APIRouter()

_ID_RE = re.compile(YouTubeConfig.ID_PATTERN)


class AudioDownloadResponse(StreamingResponse):
    """
    Streams an AudioDownload and releases its yt-dlp process afterwards.

    Depending on the ASGI server a disconnect can cancel the response before
    the body iterator is started, so the stream is closed here as well.
    """

    def __init__(self, download: AudioDownload):
        super().__init__(download.body(), media_type=download.media_type, headers=download.headers)
        self.download = download

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self.download.close()


def require_identifier(value: Optional[str], parameter: str) -> str:
    """
    Validate a video or playlist id taken from the query string.

    Raises:
        ValidationError: When the id is missing or contains characters a
            YouTube id never has.
    """
    if value is None or not value.strip():
        raise ValidationError.missing(parameter)
    value = value.strip()
    if not _ID_RE.match(value):
        raise ValidationError(f"Invalid YouTube {parameter}: {value!r}")
    return value


@router.get("/user-playlists", response_model=UserPlaylists)
async def get_user_playlists(
    access_token: str = Depends(current_access_token),
    media: MediaService = Depends(get_media_service),
):
    """
    Lists the playlists owned by the account behind the bearer token.

    Returns:
        UserPlaylists: Every playlist of the account, across all API pages.
    """
    logger.info("Fetching playlists for authenticated user")
    return await media.get_user_playlists(access_token)


@router.get("/playlist-info", response_model=PlaylistSummary)
async def get_playlist_info(
    playlist_id: Optional[str] = Query(default=None, alias="playlistId"),
    access_token: Optional[str] = Depends(optional_access_token),
    media: MediaService = Depends(get_media_service),
):
    """
    Playlist-level metadata.

    yt-dlp is tried first; when it fails and a bearer token was sent, the
    YouTube Data API is used instead.
    """
    playlist_id = require_identifier(playlist_id, "playlistId")
    logger.info(f"Fetching playlist info for {playlist_id}")
    return await media.get_playlist_info(playlist_id, access_token)


@router.get("/playlist-videos", response_model=PlaylistVideoList)
async def get_playlist_videos(
    playlist_id: Optional[str] = Query(default=None, alias="playlistId"),
    media: MediaService = Depends(get_media_service),
):
    """Ordered videos of a playlist, from a flat-playlist extraction."""
    playlist_id = require_identifier(playlist_id, "playlistId")
    logger.info(f"Listing videos of playlist {playlist_id}")

    start_time = time.perf_counter()
    result = await media.list_playlist_videos(playlist_id)
    duration = time.perf_counter() - start_time
    logger.info(f"Playlist listing completed in {duration:.2f}s")
    return result


@router.get("/download-info", response_model=DownloadInfo)
async def get_download_info(
    video_id: Optional[str] = Query(default=None, alias="videoId"),
    media: MediaService = Depends(get_media_service),
):
    """
    Metadata for one video.

    ``downloadUrl`` is the watch URL; the bytes themselves are served by
    ``/api/download``.
    """
    video_id = require_identifier(video_id, "videoId")
    logger.info(f"Fetching download info for {video_id}")
    return await media.get_download_info(video_id)


@router.get("/download")
async def download_audio(
    video_id: Optional[str] = Query(default=None, alias="videoId"),
    media: MediaService = Depends(get_media_service),
):
    """
    Streams the best available audio of a video as an attachment.

    Everything that can fail before the first audio bytes arrive is reported
    as a JSON error; after that the connection is simply cut.
    """
    video_id = require_identifier(video_id, "videoId")
    logger.info(f"Starting audio download for {video_id}")

    download = await media.prepare_download(video_id)
    return AudioDownloadResponse(download)
