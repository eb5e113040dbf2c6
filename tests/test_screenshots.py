import re

import pytest

from devtrace.browser.models import ScreenshotLabel
from devtrace.browser.screenshots import ScreenshotPipeline, safe_timestamp, screenshot_filename

FILENAME_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{3}Z-(initial-load|error|network-error|route-change)\.png$")


@pytest.fixture
def pipeline(tmp_path):
    return ScreenshotPipeline(tmp_path / "screenshots", tmp_path / "public" / "screenshots", reporting_port=3684)


class TestFilenames:
    def test_safe_timestamp(self):
        assert safe_timestamp("2024-05-01T12:30:15.123Z") == "2024-05-01T12-30-15-123Z"

    def test_filename_from_label_enum(self):
        name = screenshot_filename(ScreenshotLabel.ROUTE_CHANGE, "2024-05-01T12:30:15.123Z")
        assert name == "2024-05-01T12-30-15-123Z-route-change.png"

    def test_generated_filename_is_filesystem_safe(self):
        name = screenshot_filename("error")
        assert FILENAME_PATTERN.match(name)
        assert ":" not in name


class TestScreenshotPipeline:
    def test_creates_both_directories(self, tmp_path, pipeline):
        assert (tmp_path / "screenshots").is_dir()
        assert (tmp_path / "public" / "screenshots").is_dir()

    @pytest.mark.asyncio
    async def test_capture_writes_identical_copies(self, pipeline, make_page, png_bytes):
        page = make_page()
        url = await pipeline.capture(page, ScreenshotLabel.INITIAL_LOAD)

        assert url.startswith("http://localhost:3684/screenshots/")
        filename = url.rsplit("/", 1)[-1]
        assert FILENAME_PATTERN.match(filename)

        local = pipeline.screenshot_dir / filename
        public = pipeline.public_dir / filename
        assert local.read_bytes() == png_bytes
        assert public.read_bytes() == local.read_bytes()

    @pytest.mark.asyncio
    async def test_capture_is_viewport_only_without_animations(self, pipeline, make_page):
        page = make_page()
        await pipeline.capture(page, "error")
        assert page.screenshots[0]["full_page"] is False
        assert page.screenshots[0]["animations"] == "disabled"

    @pytest.mark.asyncio
    async def test_capture_records_artifact(self, pipeline, make_page):
        url = await pipeline.capture(make_page(), ScreenshotLabel.NETWORK_ERROR)
        artifacts = pipeline.get_artifacts()
        assert len(artifacts) == 1
        assert artifacts[0]["url"] == url
        assert artifacts[0]["label"] == "network-error"
        assert artifacts[0]["local_path"].endswith(artifacts[0]["filename"])
        assert artifacts[0]["public_path"].endswith(artifacts[0]["filename"])
        assert pipeline.get_artifacts(label="error") == []

    @pytest.mark.asyncio
    async def test_capture_failure_returns_none(self, pipeline, make_page):
        page = make_page(fail_screenshot=True)
        url = await pipeline.capture(page, ScreenshotLabel.ERROR)
        assert url is None
        assert pipeline.artifacts == []
        assert list(pipeline.public_dir.iterdir()) == []
