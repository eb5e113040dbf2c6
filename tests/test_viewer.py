import pytest
from fastapi.testclient import TestClient

from devtrace.viewer.app import create_app, parse_log

SAMPLE_LOG = (
    "[2024-05-01T12:00:00.000Z] [SERVER] ready - started server on 0.0.0.0:3000\n"
    "[2024-05-01T12:00:01.000Z] [BROWSER] [PAGE ERROR] x is not defined\n"
    "[2024-05-01T12:00:01.050Z] [BROWSER] [SCREENSHOT] http://localhost:3684/screenshots/2024-05-01T12-00-01-050Z-error.png\n"
    "[2024-05-01T12:00:01.060Z] [BROWSER] [PAGE ERROR STACK] ReferenceError: x is not defined\n"
    "    at Home (webpack-internal:///./pages/index.js:12:5)\n"
    "[2024-05-01T12:00:02.000Z] [SERVER] ERROR: warn - compiled with warnings\n"
)


@pytest.fixture
def viewer(tmp_path):
    log_file = tmp_path / "devtrace.log"
    log_file.write_text(SAMPLE_LOG)
    screenshot_dir = tmp_path / "public" / "screenshots"
    app = create_app(log_file, screenshot_dir, version="9.9.9")
    return TestClient(app), log_file, screenshot_dir


class TestParseLog:
    def test_entries_and_sources(self):
        entries = parse_log(SAMPLE_LOG)
        assert [e.source for e in entries] == ["server", "browser", "browser", "browser", "server"]
        assert entries[0].timestamp == "2024-05-01T12:00:00.000Z"

    def test_continuation_lines_join_previous_entry(self):
        stack = parse_log(SAMPLE_LOG)[3]
        assert stack.message.startswith("[PAGE ERROR STACK] ReferenceError")
        assert stack.message.endswith("at Home (webpack-internal:///./pages/index.js:12:5)")

    def test_screenshot_entries_point_at_static_mount(self):
        entry = parse_log(SAMPLE_LOG)[2]
        assert entry.screenshot == "/screenshots/2024-05-01T12-00-01-050Z-error.png"
        assert parse_log(SAMPLE_LOG)[1].screenshot is None

    def test_orphan_lines_are_dropped(self):
        assert parse_log("npm WARN something\n") == []


class TestViewerRoutes:
    def test_health(self, viewer):
        client, log_file, _ = viewer
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {
            "status": "healthy",
            "version": "9.9.9",
            "log_file": str(log_file),
            "log_file_exists": True,
        }

    def test_api_logs(self, viewer):
        client, log_file, _ = viewer
        data = client.get("/api/logs").json()
        assert data["log_file"] == str(log_file)
        assert data["total"] == 5
        assert data["entries"][2]["screenshot"].startswith("/screenshots/")

    def test_api_logs_source_filter_and_limit(self, viewer):
        client, _, _ = viewer
        data = client.get("/api/logs", params={"source": "server", "limit": 1}).json()
        assert data["total"] == 2
        assert len(data["entries"]) == 1
        assert data["entries"][0]["message"] == "ERROR: warn - compiled with warnings"

    def test_api_logs_rejects_unknown_source(self, viewer):
        client, _, _ = viewer
        assert client.get("/api/logs", params={"source": "database"}).status_code == 422

    def test_missing_log_file_is_empty(self, tmp_path):
        client = TestClient(create_app(tmp_path / "absent.log", tmp_path / "shots"))
        assert client.get("/api/logs").json()["total"] == 0
        assert client.get("/health").json()["log_file_exists"] is False

    def test_timeline_page(self, viewer):
        client, _, _ = viewer
        response = client.get("/logs")
        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert "x is not defined" in response.text
        assert 'src="/screenshots/2024-05-01T12-00-01-050Z-error.png"' in response.text

    def test_root_answers_head_request(self, viewer):
        client, _, _ = viewer
        assert client.head("/").status_code == 200
        assert client.get("/").status_code == 200

    def test_serves_screenshots(self, viewer, png_bytes):
        client, _, screenshot_dir = viewer
        (screenshot_dir / "2024-05-01T12-00-01-050Z-error.png").write_bytes(png_bytes)
        response = client.get("/screenshots/2024-05-01T12-00-01-050Z-error.png")
        assert response.status_code == 200
        assert response.content == png_bytes
        assert client.get("/screenshots/missing.png").status_code == 404
