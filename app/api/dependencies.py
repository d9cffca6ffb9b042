"""
Dependency injection factories for FastAPI.

Long-lived collaborators (extractor, HTTP client) are built once in the
application lifespan and stored on ``app.state``; request-scoped services
are assembled from them here.
"""
from fastapi import Depends, Request

from app.services.extractor import ExtractorService
from app.services.media import MediaService
from app.services.youtube_api import YouTubeApiClient


def get_extractor_service(request: Request) -> ExtractorService:
    """Get the extractor wrapper created at startup."""
    return request.app.state.extractor_service


def get_youtube_api_client(request: Request) -> YouTubeApiClient:
    """Get a YouTube Data API client bound to the shared HTTP client."""
    return YouTubeApiClient(http=request.app.state.http_client)


def get_media_service(
    extractor: ExtractorService = Depends(get_extractor_service),
    youtube_api: YouTubeApiClient = Depends(get_youtube_api_client),
) -> MediaService:
    """Get the media service wiring extractor and YouTube API together."""
    return MediaService(extractor=extractor, youtube_api=youtube_api)
