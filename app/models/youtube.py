from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

# --- Internal Parsing Models (yt-dlp) ---

class YtDlpThumbnail(BaseModel):
    url: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None

    model_config = ConfigDict(extra='ignore')

class YtDlpFormat(BaseModel):
    format_id: Optional[str] = None
    ext: Optional[str] = None
    acodec: Optional[str] = None
    vcodec: Optional[str] = None
    abr: Optional[float] = None
    url: Optional[str] = None

    model_config = ConfigDict(extra='ignore')

class YtDlpEntry(BaseModel):
    type: Optional[str] = Field(default=None, alias='_type')
    id: Optional[str] = None
    title: Optional[str] = None
    url: Optional[str] = None
    description: Optional[str] = None
    uploader: Optional[str] = None
    channel: Optional[str] = None
    uploader_id: Optional[str] = None
    channel_id: Optional[str] = None
    duration: Any = None
    thumbnail: Optional[str] = None
    thumbnails: List[YtDlpThumbnail] = Field(default_factory=list)

    model_config = ConfigDict(extra='ignore', populate_by_name=True)

    @field_validator('thumbnails', mode='before')
    @classmethod
    def drop_invalid_thumbnails(cls, v: Any) -> list:
        if not isinstance(v, list):
            return []
        return [t for t in v if isinstance(t, dict)]

class YtDlpVideo(YtDlpEntry):
    formats: List[YtDlpFormat] = Field(default_factory=list)

    @field_validator('formats', mode='before')
    @classmethod
    def drop_invalid_formats(cls, v: Any) -> list:
        if not isinstance(v, list):
            return []
        return [f for f in v if isinstance(f, dict)]

class YtDlpPlaylist(YtDlpEntry):
    playlist_count: Optional[int] = None
    entries: List[YtDlpEntry] = Field(default_factory=list)

    @field_validator('entries', mode='before')
    @classmethod
    def drop_unavailable_entries(cls, v: Any) -> list:
        # yt-dlp leaves None holes for private or deleted videos
        if not isinstance(v, list):
            return []
        return [e for e in v if isinstance(e, dict)]
