"""
Route-level operations of the gateway.
"""
import asyncio
from typing import AsyncIterator, Dict, Optional

from loguru import logger

from app.core.constants import DownloadConfig
from app.core.exceptions import AppException, ExtractionError, StreamError
from app.models import (
    DownloadInfo,
    DownloadState,
    PlaylistSummary,
    PlaylistVideoList,
    UserPlaylists,
)
from app.services.extractor import AudioStream, ExtractorService
from app.services.normalization import (
    download_filename,
    normalize_download_info,
    normalize_playlist_summary,
    normalize_playlist_videos,
)
from app.services.youtube_api import YouTubeApiClient


class AudioDownload:
    """
    One streamed audio download.

    State moves idle -> headers_sent -> streaming -> completed | aborted.
    Once headers are sent the status code is fixed, so any later failure can
    only end the connection.
    """

    def __init__(self, info: DownloadInfo, stream: AudioStream):
        self.info = info
        self.stream = stream
        self.state = DownloadState.IDLE
        self.bytes_sent = 0

    @property
    def filename(self) -> str:
        return download_filename(self.info.title)

    @property
    def headers(self) -> Dict[str, str]:
        return {"Content-Disposition": f'attachment; filename="{self.filename}"'}

    @property
    def media_type(self) -> str:
        return DownloadConfig.CONTENT_TYPE

    @property
    def headers_sent(self) -> bool:
        return self.state != DownloadState.IDLE

    async def body(self) -> AsyncIterator[bytes]:
        """
        Response body iterator.

        The ASGI server sends the response start message before pulling the
        first chunk, so entering this generator means headers are committed.
        """
        self.state = DownloadState.HEADERS_SENT
        try:
            async for chunk in self.stream.chunks():
                self.state = DownloadState.STREAMING
                self.bytes_sent += len(chunk)
                yield chunk
            self.state = DownloadState.COMPLETED
            logger.info(f"Streamed {self.bytes_sent} bytes for {self.info.video_id}")
        except StreamError as e:
            self.state = DownloadState.ABORTED
            logger.error(f"Audio stream for {self.info.video_id} aborted after {self.bytes_sent} bytes: {e.message}")
            raise
        except asyncio.CancelledError:
            self.state = DownloadState.ABORTED
            logger.info(f"Client disconnected from {self.info.video_id} after {self.bytes_sent} bytes")
            raise
        finally:
            if self.state != DownloadState.COMPLETED:
                self.state = DownloadState.ABORTED
            await self.stream.close()

    async def close(self) -> None:
        """Release the stream even if ``body`` was never iterated."""
        if self.state != DownloadState.COMPLETED:
            if self.state == DownloadState.IDLE:
                logger.info(f"Download of {self.info.video_id} ended before any audio was sent")
            self.state = DownloadState.ABORTED
        await self.stream.close()


class MediaService:
    """
    Orchestrates the extractor and the YouTube Data API for each route.

    No state is shared between requests besides the extractor's
    concurrency gate.
    """

    def __init__(self, extractor: ExtractorService, youtube_api: YouTubeApiClient):
        self.extractor = extractor
        self.youtube_api = youtube_api

    async def get_user_playlists(self, access_token: str) -> UserPlaylists:
        playlists = await self.youtube_api.list_my_playlists(access_token)
        return UserPlaylists(playlists=playlists)

    async def get_playlist_info(self, playlist_id: str, access_token: Optional[str] = None) -> PlaylistSummary:
        """
        Playlist summary from yt-dlp, falling back to the YouTube Data API.

        The fallback is only attempted when the caller sent a bearer token.
        If it fails too, the original extractor error is raised.
        """
        try:
            payload = await self.extractor.fetch_playlist(playlist_id)
            return normalize_playlist_summary(playlist_id, payload)
        except ExtractionError as extraction_error:
            if not access_token:
                raise
            logger.warning(
                f"yt-dlp failed for playlist {playlist_id} ({extraction_error.message}), "
                "falling back to YouTube API"
            )
            try:
                return await self.youtube_api.get_playlist(access_token, playlist_id)
            except AppException as api_error:
                logger.error(f"YouTube API fallback failed for playlist {playlist_id}: {api_error.message}")
                raise extraction_error from api_error

    async def list_playlist_videos(self, playlist_id: str) -> PlaylistVideoList:
        payload = await self.extractor.fetch_playlist(playlist_id)
        playlist = normalize_playlist_videos(playlist_id, payload)
        logger.info(f"Playlist {playlist_id}: {len(playlist.videos)} videos")
        return playlist

    async def get_download_info(self, video_id: str) -> DownloadInfo:
        payload = await self.extractor.fetch_video(video_id)
        return normalize_download_info(video_id, payload)

    async def prepare_download(self, video_id: str) -> AudioDownload:
        """
        Resolve the title and start the audio stream.

        Waits for the first audio bytes so that a failure to start is still
        reported as a 500 before any header is committed.
        """
        info = await self.get_download_info(video_id)
        stream = await self.extractor.open_audio_stream(video_id)
        try:
            await stream.first_chunk()
        except BaseException:
            await stream.close()
            raise
        return AudioDownload(info, stream)
