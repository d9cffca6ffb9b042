from .youtube import YtDlpThumbnail, YtDlpFormat, YtDlpEntry, YtDlpVideo, YtDlpPlaylist
from .api import (
    ServiceStatus,
    HealthStatus,
    VideoSummary,
    DownloadInfo,
    PlaylistSummary,
    PlaylistVideoList,
    UserPlaylists,
)
from .extractor import ExtractorLocation
from .enums import PlaylistSource, EntryType, DownloadState
