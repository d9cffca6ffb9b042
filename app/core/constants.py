"""
Application-wide constants.

Grouped into static classes for namespace management and discoverability.
"""


class YouTubeConfig:
    """Canonical YouTube URLs and identifier rules."""
    WATCH_URL = "https://www.youtube.com/watch?v={video_id}"
    PLAYLIST_URL = "https://www.youtube.com/playlist?list={playlist_id}"
    ID_PATTERN = r"^[A-Za-z0-9_-]+$"
    API_PAGE_SIZE = 50


class ExtractorConfig:
    """Command-line flags passed to yt-dlp."""
    BINARY_NAME = "yt-dlp"
    MODULE_NAME = "yt_dlp"

    VIDEO_METADATA_FLAGS = (
        "--dump-single-json",
        "--no-playlist",
        "--skip-download",
        "--no-warnings",
    )
    PLAYLIST_METADATA_FLAGS = (
        "--flat-playlist",
        "--dump-single-json",
        "--no-warnings",
    )
    AUDIO_FORMAT = "bestaudio[ext=m4a]/bestaudio"
    AUDIO_STREAM_FLAGS = (
        "-f", AUDIO_FORMAT,
        "-o", "-",
        "--no-playlist",
        "--no-part",
        "--quiet",
        "--no-warnings",
    )

    TERMINATE_GRACE_SECONDS = 5.0
    STDERR_TAIL_LINES = 20


class ResponseDefaults:
    """Values substituted for fields missing from extractor output."""
    UNKNOWN = "Unknown"
    QUALITY = "unknown"
    AUDIO_FORMAT = "audio/mp4"
    FILENAME = "audio"


class DownloadConfig:
    """Headers for the audio download route."""
    CONTENT_TYPE = "audio/mp4"
    FILE_EXTENSION = "m4a"
