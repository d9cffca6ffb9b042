"""
Enums for type-safe values across the application.
"""
from enum import Enum


class PlaylistSource(str, Enum):
    """Backend that produced a playlist summary."""
    EXTRACTOR = "yt-dlp"
    YOUTUBE_API = "youtube-api"


class EntryType(str, Enum):
    """`_type` tag yt-dlp attaches to the objects it prints."""
    PLAYLIST = "playlist"
    URL = "url"
    VIDEO = "video"


class DownloadState(str, Enum):
    """Lifecycle of a streamed audio download."""
    IDLE = "idle"
    HEADERS_SENT = "headers_sent"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ABORTED = "aborted"
