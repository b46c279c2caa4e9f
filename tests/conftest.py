from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from backend.app.dependencies import reset_cached_dependencies
from backend.app.main import create_app
from tests.fake_youtube_api import TEST_BASE_URL, FakeYouTubeApi, build_fake_api


@pytest.fixture
def fake_youtube_api(monkeypatch: pytest.MonkeyPatch) -> FakeYouTubeApi:
    api = build_fake_api(30)
    monkeypatch.setattr("backend.app.services.youtube_client._fetch_youtube_json", api)
    return api


@pytest.fixture
def client(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    fake_youtube_api: FakeYouTubeApi,
) -> Iterator[TestClient]:
    _ = fake_youtube_api
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("YT_SEARCH_DATA_DIR", str(tmp_path / "runtime-data"))
    monkeypatch.setenv("YT_SEARCH_YOUTUBE_API_KEY", "test-api-key")
    monkeypatch.setenv("YT_SEARCH_YOUTUBE_BASE_URL", TEST_BASE_URL)
    monkeypatch.setenv("YT_SEARCH_LISTING_PAGE_SIZE", "7")
    monkeypatch.setenv("YT_SEARCH_NEIGHBORHOOD_RADIUS", "3")
    reset_cached_dependencies()

    app = create_app()
    with TestClient(app) as test_client:
        yield test_client

    reset_cached_dependencies()
