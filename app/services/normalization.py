"""
Mapping of raw yt-dlp documents onto the gateway's fixed response schemas.

yt-dlp field names drift between versions and extraction modes, so every
output field is resolved through an ordered fallback chain and ends up with a
documented default rather than being left out.
"""
import math
import re
from typing import Any, Iterable, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from app.core.constants import DownloadConfig, ResponseDefaults, YouTubeConfig
from app.core.exceptions import ExtractionError
from app.models import (
    DownloadInfo,
    EntryType,
    PlaylistSource,
    PlaylistSummary,
    PlaylistVideoList,
    VideoSummary,
    YtDlpEntry,
    YtDlpFormat,
    YtDlpPlaylist,
    YtDlpVideo,
)

AUTHOR_FIELDS = ("uploader", "channel", "uploader_id", "channel_id")

_FILENAME_UNSAFE = re.compile(r"[^a-zA-Z0-9]")

_AUDIO_MIME_TYPES = {
    "m4a": "audio/mp4",
    "mp4": "audio/mp4",
    "webm": "audio/webm",
    "opus": "audio/ogg",
    "ogg": "audio/ogg",
    "mp3": "audio/mpeg",
}


def watch_url(video_id: str) -> str:
    return YouTubeConfig.WATCH_URL.format(video_id=video_id)


def playlist_url(playlist_id: str) -> str:
    return YouTubeConfig.PLAYLIST_URL.format(playlist_id=playlist_id)


def first_present(source: Any, *fields: str, default: Any = None) -> Any:
    """
    Return the first field of ``source`` holding a non-empty value.

    Args:
        source: A pydantic model or a plain dict.
        *fields: Candidate field names, in priority order.
        default: Returned when every candidate is missing or empty.
    """
    for field in fields:
        if isinstance(source, dict):
            value = source.get(field)
        else:
            value = getattr(source, field, None)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return default


def coerce_seconds(value: Any) -> int:
    """Coerce a duration into whole non-negative seconds, 0 when unusable."""
    if isinstance(value, bool) or value is None:
        return 0
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return 0
    if math.isnan(seconds) or math.isinf(seconds) or seconds < 0:
        return 0
    return int(seconds)


def resolve_author(entry: YtDlpEntry) -> str:
    return first_present(entry, *AUTHOR_FIELDS, default=ResponseDefaults.UNKNOWN)


def resolve_thumbnail(entry: YtDlpEntry) -> str:
    if entry.thumbnail:
        return entry.thumbnail
    # yt-dlp orders thumbnails from worst to best
    for thumb in reversed(entry.thumbnails):
        if thumb.url:
            return thumb.url
    return ""


def sanitize_filename(title: str) -> str:
    """Replace every character outside [a-zA-Z0-9] with `_` and lowercase."""
    cleaned = _FILENAME_UNSAFE.sub("_", title or "").lower()
    return cleaned or ResponseDefaults.FILENAME


def pick_best_audio(formats: Iterable[YtDlpFormat]) -> Optional[YtDlpFormat]:
    """Return the audio-only format with the highest average bitrate."""
    best: Optional[YtDlpFormat] = None
    for fmt in formats:
        if fmt.vcodec != "none" or fmt.acodec in (None, "none"):
            continue
        if best is None or (fmt.abr or 0) > (best.abr or 0):
            best = fmt
    return best


def audio_mime_type(ext: Optional[str]) -> str:
    return _AUDIO_MIME_TYPES.get((ext or "").lower(), ResponseDefaults.AUDIO_FORMAT)


def split_playlist_document(payload: Any) -> Tuple[dict, List[dict]]:
    """
    Separate the playlist-level document from its item list.

    yt-dlp normally prints one object carrying an ``entries`` list. Some flag
    combinations instead print one object per line, in which case the objects
    are classified by their ``_type`` tag.
    """
    if isinstance(payload, dict):
        entries = payload.get("entries")
        if not isinstance(entries, list):
            return payload, []
        return payload, [e for e in entries if isinstance(e, dict)]

    if not isinstance(payload, list):
        raise ExtractionError("Unexpected playlist output from extractor")

    playlist_doc: dict = {}
    items: List[dict] = []
    for obj in payload:
        if not isinstance(obj, dict):
            continue
        if obj.get("_type") == EntryType.PLAYLIST.value:
            # Prefer the first playlist document but still collect nested entries
            if not playlist_doc:
                playlist_doc = obj
            nested = obj.get("entries")
            if isinstance(nested, list):
                items.extend(e for e in nested if isinstance(e, dict))
        else:
            items.append(obj)
    return playlist_doc, items


def _parse(model: type, document: dict):
    try:
        return model.model_validate(document)
    except PydanticValidationError as e:
        raise ExtractionError(f"Extractor returned an unexpected document: {e.error_count()} invalid field(s)") from e


def normalize_video_entry(entry: YtDlpEntry) -> Optional[VideoSummary]:
    """Build a VideoSummary from a flat-playlist entry, None when it has no id."""
    if not entry.id:
        return None
    return VideoSummary(
        id=entry.id,
        title=first_present(entry, "title", default=ResponseDefaults.UNKNOWN),
        author=resolve_author(entry),
        duration=coerce_seconds(entry.duration),
        thumbnail_url=resolve_thumbnail(entry),
        url=watch_url(entry.id),
    )


def normalize_download_info(video_id: str, document: Any) -> DownloadInfo:
    """Shape full single-video metadata into a DownloadInfo."""
    if isinstance(document, list):
        document = next((d for d in document if isinstance(d, dict)), None)
    if not isinstance(document, dict):
        raise ExtractionError("Unexpected video output from extractor")

    video: YtDlpVideo = _parse(YtDlpVideo, document)
    best = pick_best_audio(video.formats)
    quality = f"{int(best.abr)}kbps" if best and best.abr else ResponseDefaults.QUALITY

    return DownloadInfo(
        video_id=video_id,
        title=first_present(video, "title", default=ResponseDefaults.UNKNOWN),
        author=resolve_author(video),
        length_seconds=coerce_seconds(video.duration),
        download_url=watch_url(video_id),
        quality=quality,
        format=audio_mime_type(best.ext) if best else ResponseDefaults.AUDIO_FORMAT,
    )


def _load_playlist(payload: Any) -> Tuple[YtDlpPlaylist, List[VideoSummary]]:
    playlist_doc, raw_items = split_playlist_document(payload)
    playlist: YtDlpPlaylist = _parse(YtDlpPlaylist, {**playlist_doc, "entries": []})

    videos: List[VideoSummary] = []
    for raw in raw_items:
        try:
            entry = YtDlpEntry.model_validate(raw)
        except PydanticValidationError:
            continue
        video = normalize_video_entry(entry)
        if video:
            videos.append(video)
    return playlist, videos


def _item_count(playlist: YtDlpPlaylist, videos: List[VideoSummary]) -> int:
    if playlist.playlist_count is None:
        return len(videos)
    return max(playlist.playlist_count, 0)


def normalize_playlist_summary(playlist_id: str, payload: Any) -> PlaylistSummary:
    """Shape flat-playlist output into a PlaylistSummary."""
    playlist, videos = _load_playlist(payload)
    return PlaylistSummary(
        id=playlist_id,
        title=first_present(playlist, "title", default=ResponseDefaults.UNKNOWN),
        description=playlist.description or "",
        thumbnail_url=resolve_thumbnail(playlist),
        item_count=_item_count(playlist, videos),
        source=PlaylistSource.EXTRACTOR,
    )


def normalize_playlist_videos(playlist_id: str, payload: Any) -> PlaylistVideoList:
    """Shape flat-playlist output into a PlaylistVideoList."""
    playlist, videos = _load_playlist(payload)
    return PlaylistVideoList(
        playlist_id=playlist_id,
        title=first_present(playlist, "title", default=ResponseDefaults.UNKNOWN),
        item_count=_item_count(playlist, videos),
        videos=videos,
    )


def download_filename(title: str) -> str:
    return f"{sanitize_filename(title)}.{DownloadConfig.FILE_EXTENSION}"
