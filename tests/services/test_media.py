import asyncio
from unittest.mock import AsyncMock

import httpx
import pytest

from app.core.exceptions import AuthError, ExtractionError, StreamError, YouTubeApiError
from app.models import DownloadState, PlaylistSource, PlaylistSummary
from app.services.extractor import ExtractorService
from app.services.media import AudioDownload, MediaService
from app.services.youtube_api import YouTubeApiClient
from fakes import FakeAudioStream


@pytest.fixture
def mock_extractor():
    return AsyncMock(spec=ExtractorService)


@pytest.fixture
def mock_youtube_api():
    return AsyncMock(spec=YouTubeApiClient)


@pytest.fixture
def media_service(mock_extractor, mock_youtube_api):
    return MediaService(extractor=mock_extractor, youtube_api=mock_youtube_api)


@pytest.fixture
def api_playlist():
    return PlaylistSummary(
        id="PL1",
        title="From API",
        description="",
        thumbnail_url="",
        item_count=4,
        source=PlaylistSource.YOUTUBE_API,
    )


@pytest.mark.asyncio
async def test_playlist_info_from_extractor(media_service, mock_extractor, mock_youtube_api):
    mock_extractor.fetch_playlist.return_value = {"title": "Mix", "entries": [{"id": "a"}]}

    summary = await media_service.get_playlist_info("PL1", "token")

    assert summary.source == PlaylistSource.EXTRACTOR
    assert summary.item_count == 1
    mock_youtube_api.get_playlist.assert_not_called()


@pytest.mark.asyncio
async def test_playlist_info_falls_back_to_api_with_token(
    media_service, mock_extractor, mock_youtube_api, api_playlist
):
    mock_extractor.fetch_playlist.side_effect = ExtractionError("ERROR: This playlist is private")
    mock_youtube_api.get_playlist.return_value = api_playlist

    summary = await media_service.get_playlist_info("PL1", "token")

    assert summary.source == PlaylistSource.YOUTUBE_API
    mock_youtube_api.get_playlist.assert_called_with("token", "PL1")


@pytest.mark.asyncio
async def test_playlist_info_without_token_propagates_extractor_error(
    media_service, mock_extractor, mock_youtube_api
):
    mock_extractor.fetch_playlist.side_effect = ExtractionError("ERROR: This playlist is private")

    with pytest.raises(ExtractionError, match="This playlist is private"):
        await media_service.get_playlist_info("PL1")

    mock_youtube_api.get_playlist.assert_not_called()


@pytest.mark.asyncio
@pytest.mark.parametrize("api_error", [AuthError(), YouTubeApiError("down")])
async def test_playlist_info_both_paths_fail_raises_extractor_error(
    media_service, mock_extractor, mock_youtube_api, api_error
):
    original = ExtractionError("ERROR: This playlist is private")
    mock_extractor.fetch_playlist.side_effect = original
    mock_youtube_api.get_playlist.side_effect = api_error

    with pytest.raises(ExtractionError) as exc_info:
        await media_service.get_playlist_info("PL1", "token")

    assert exc_info.value is original


@pytest.mark.asyncio
async def test_list_playlist_videos_from_line_delimited_output(media_service, mock_extractor):
    mock_extractor.fetch_playlist.return_value = [
        {"_type": "url", "id": "v1", "title": "One"},
        {"_type": "url", "id": "v2", "title": "Two"},
    ]

    playlist = await media_service.list_playlist_videos("PL1")

    assert [v.id for v in playlist.videos] == ["v1", "v2"]


@pytest.mark.asyncio
async def test_user_playlists(media_service, mock_youtube_api, api_playlist):
    mock_youtube_api.list_my_playlists.return_value = [api_playlist]

    result = await media_service.get_user_playlists("token")

    assert result.playlists == [api_playlist]


@pytest.mark.asyncio
async def test_prepare_download_waits_for_first_chunk(media_service, mock_extractor):
    mock_extractor.fetch_video.return_value = {"id": "abc123", "title": "Song: Live!"}
    stream = FakeAudioStream([b"aa", b"bb"])
    mock_extractor.open_audio_stream.return_value = stream

    download = await media_service.prepare_download("abc123")

    assert download.state == DownloadState.IDLE
    assert not download.headers_sent
    assert download.filename == "song__live_.m4a"
    assert download.media_type == "audio/mp4"
    assert download.headers == {"Content-Disposition": 'attachment; filename="song__live_.m4a"'}


@pytest.mark.asyncio
async def test_prepare_download_metadata_failure_never_opens_stream(media_service, mock_extractor):
    mock_extractor.fetch_video.side_effect = ExtractionError("ERROR: Video unavailable")

    with pytest.raises(ExtractionError):
        await media_service.prepare_download("abc123")

    mock_extractor.open_audio_stream.assert_not_called()


@pytest.mark.asyncio
async def test_download_body_completes(download_info):
    stream = FakeAudioStream([b"aa", b"bb"])
    download = AudioDownload(download_info, stream)

    body = [chunk async for chunk in download.body()]

    assert body == [b"aa", b"bb"]
    assert download.state == DownloadState.COMPLETED
    assert download.bytes_sent == 4
    assert stream.closed


@pytest.mark.asyncio
async def test_download_body_aborts_on_stream_error(download_info):
    stream = FakeAudioStream([b"aa"], error=StreamError("ERROR: fragment not found"))
    download = AudioDownload(download_info, stream)

    received = []
    with pytest.raises(StreamError):
        async for chunk in download.body():
            assert download.headers_sent
            received.append(chunk)

    assert received == [b"aa"]
    assert download.state == DownloadState.ABORTED
    assert stream.closed


@pytest.mark.asyncio
async def test_download_body_aborts_on_client_disconnect(download_info):
    class EndlessStream(FakeAudioStream):
        async def chunks(self):
            try:
                yield b"aa"
                await asyncio.Event().wait()
            finally:
                await self.close()

    stream = EndlessStream([b"aa"])
    download = AudioDownload(download_info, stream)
    body = download.body()

    assert await body.__anext__() == b"aa"
    assert download.state == DownloadState.STREAMING

    pending = asyncio.ensure_future(body.__anext__())
    await asyncio.sleep(0.01)
    pending.cancel()
    with pytest.raises(asyncio.CancelledError):
        await pending

    assert download.state == DownloadState.ABORTED
    assert stream.closed


@pytest.mark.asyncio
async def test_prepare_download_cancelled_before_first_chunk_closes_stream(media_service, mock_extractor):
    class StalledStream(FakeAudioStream):
        async def first_chunk(self):
            await asyncio.Event().wait()

    mock_extractor.fetch_video.return_value = {"id": "abc123", "title": "Song"}
    stream = StalledStream([])
    mock_extractor.open_audio_stream.return_value = stream

    pending = asyncio.ensure_future(media_service.prepare_download("abc123"))
    await asyncio.sleep(0.01)
    pending.cancel()
    with pytest.raises(asyncio.CancelledError):
        await pending

    assert stream.closed


@pytest.mark.asyncio
async def test_closing_unstarted_download_aborts_it(download_info):
    stream = FakeAudioStream([b"aa"])
    download = AudioDownload(download_info, stream)

    await download.close()

    assert download.state == DownloadState.ABORTED
    assert stream.closed


@pytest.mark.asyncio
async def test_playlist_info_unexpected_api_payload_raises_extractor_error(mock_extractor):
    original = ExtractionError("ERROR: This playlist is private")
    mock_extractor.fetch_playlist.side_effect = original
    http = httpx.AsyncClient(
        base_url="https://www.googleapis.com/youtube/v3",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json=["not", "an", "object"])),
    )
    media_service = MediaService(extractor=mock_extractor, youtube_api=YouTubeApiClient(http=http))

    with pytest.raises(ExtractionError) as exc_info:
        await media_service.get_playlist_info("PL1", "token")

    assert exc_info.value is original
    assert isinstance(exc_info.value.__cause__, YouTubeApiError)
