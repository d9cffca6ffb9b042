"""
Shared pytest fixtures and configuration.
"""
from unittest.mock import AsyncMock

import pytest

from app.main import app
from app.api.dependencies import get_media_service
from app.models import DownloadInfo
from app.services.media import MediaService


@pytest.fixture
def download_info():
    return DownloadInfo(
        video_id="abc123",
        title="Never Gonna Give You Up (Official Video)",
        author="Rick Astley",
        length_seconds=213,
        download_url="https://www.youtube.com/watch?v=abc123",
        quality="129kbps",
        format="audio/mp4",
    )


@pytest.fixture
def mock_media_service():
    """Create a mock MediaService."""
    return AsyncMock(spec=MediaService)


@pytest.fixture
def override_dependencies(mock_media_service):
    """Override FastAPI dependencies for testing."""
    def override_get_media_service():
        return mock_media_service

    app.dependency_overrides[get_media_service] = override_get_media_service

    yield

    app.dependency_overrides.clear()
