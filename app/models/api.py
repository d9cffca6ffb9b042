"""
Pydantic models for API response schemas.

Attributes are snake_case in Python and serialized as camelCase on the wire.
"""
from typing import List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.models.enums import PlaylistSource


class CamelModel(BaseModel):
    """Base model emitting camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class ServiceStatus(BaseModel):
    """Response model for the root status route."""

    status: str
    service: str
    version: str


class HealthStatus(BaseModel):
    """Response model for the health route."""

    status: str = "healthy"


class VideoSummary(CamelModel):
    """A single video as listed inside a playlist."""

    id: str
    title: str
    author: str
    duration: int = Field(ge=0)
    thumbnail_url: str
    url: str


class DownloadInfo(CamelModel):
    """Metadata for one video plus the URL its audio is served from."""

    video_id: str
    title: str
    author: str
    length_seconds: int = Field(ge=0)
    download_url: str
    quality: str
    format: str


class PlaylistSummary(CamelModel):
    """Playlist-level metadata."""

    id: str
    title: str
    description: str
    thumbnail_url: str
    item_count: int = Field(ge=0)
    source: PlaylistSource


class PlaylistVideoList(CamelModel):
    """Ordered videos of a playlist."""

    playlist_id: str
    title: str
    item_count: int = Field(ge=0)
    videos: List[VideoSummary] = Field(default_factory=list)


class UserPlaylists(CamelModel):
    """Playlists owned by the authenticated account."""

    playlists: List[PlaylistSummary] = Field(default_factory=list)
