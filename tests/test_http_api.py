import http.client
import threading
from urllib.parse import urlsplit

import pytest
import requests

from services.mission_control.http_api import make_server
from shared.builder import DataBuilder
from shared.config import MissionControlConfig
from shared.model import RepositoryAnalytics
from shared.runtime import MissionControlRuntime
from shared.workspace import WorkspaceReader


@pytest.fixture
def api(workspace):
    cfg = MissionControlConfig(workspace=workspace, debounce_ms=50)
    builder = DataBuilder(WorkspaceReader(workspace), analytics=lambda r: RepositoryAnalytics.failed(str(r), "Not a git repository"))
    rt = MissionControlRuntime(cfg, builder=builder)
    server = make_server(rt, "127.0.0.1", 0)
    thread = threading.Thread(target=server.serve_forever, kwargs={"poll_interval": 0.05}, daemon=True)
    thread.start()
    host, port = server.server_address[:2]
    yield rt, f"http://{host}:{port}"
    rt.stop()
    server.shutdown()
    thread.join(timeout=2)
    server.server_close()


def test_data_unavailable_before_first_build(api):
    _, base = api
    resp = requests.get(f"{base}/api/data", timeout=5)
    assert resp.status_code == 503
    assert resp.headers["Access-Control-Allow-Origin"] == "*"


def test_data_and_health_after_rebuild(api):
    rt, base = api
    resp = requests.post(f"{base}/api/rebuild", timeout=5)
    assert resp.status_code == 200
    assert resp.json()["version"] == 1

    data = requests.get(f"{base}/api/data", timeout=5).json()
    assert data["agents"]["quinn"]["model"] == "model-x"
    assert data["metadata"]["schemaVersion"] == "1.0.0"

    health = requests.get(f"{base}/api/health", timeout=5).json()
    assert health["version"] == 1
    assert health["status"] == "ok"


def test_rebuild_failure_is_500(api):
    rt, base = api

    class Broken:
        def build(self):
            raise RuntimeError("disk on fire")

    rt.builder = Broken()
    resp = requests.post(f"{base}/api/rebuild", timeout=5)
    assert resp.status_code == 500
    assert resp.json() == {"ok": False, "error": "disk on fire"}


def test_add_task_endpoint(api, workspace):
    _, base = api
    resp = requests.post(f"{base}/api/tasks", json={"title": "From dashboard", "priority": "P2"}, timeout=5)
    assert resp.status_code == 201
    assert resp.json()["task"]["priority"] == "P2"
    assert "**From dashboard** [P2]" in (workspace / "active-tasks.md").read_text(encoding="utf-8")

    bad = requests.post(f"{base}/api/tasks", json={"title": ""}, timeout=5)
    assert bad.status_code == 400


def test_project_status_endpoint(api):
    _, base = api
    ok = requests.post(f"{base}/api/projects/status", json={"projectId": "mission-control", "status": "Done"}, timeout=5)
    assert ok.status_code == 200
    missing = requests.post(f"{base}/api/projects/status", json={"project": "ghost", "status": "Done"}, timeout=5)
    assert missing.status_code == 404


def test_invalid_json_and_unknown_routes(api):
    _, base = api
    resp = requests.post(f"{base}/api/tasks", data="{nope", headers={"Content-Type": "application/json"}, timeout=5)
    assert resp.status_code == 400
    assert requests.get(f"{base}/api/nothing", timeout=5).status_code == 404
    assert requests.options(f"{base}/api/data", timeout=5).status_code == 204


def test_event_stream_delivers_rebuilds(api):
    rt, base = api
    with requests.get(f"{base}/api/events", stream=True, timeout=5) as resp:
        assert resp.headers["Content-Type"] == "text/event-stream"
        resp.encoding = "utf-8"
        lines = resp.iter_lines(chunk_size=1, decode_unicode=True)
        assert next(lines) == "event: connected"
        next(lines)
        next(lines)
        rt.rebuild_now()
        assert next(lines) == "event: rebuilt"
        assert '"version": 1' in next(lines)


@pytest.mark.parametrize("title", ["@dex", "[P1]", "Ping @bob about [P2] ticket"])
def test_add_task_with_tags_in_title_is_rejected(api, workspace, title):
    _, base = api
    before = (workspace / "active-tasks.md").read_text(encoding="utf-8")
    resp = requests.post(f"{base}/api/tasks", json={"title": title}, timeout=5)
    assert resp.status_code == 400
    assert resp.json()["ok"] is False
    assert (workspace / "active-tasks.md").read_text(encoding="utf-8") == before


@pytest.mark.parametrize("length", ["abc", "-1"])
def test_bad_content_length_is_rejected(api, length):
    _, base = api
    url = urlsplit(base)
    conn = http.client.HTTPConnection(url.hostname, url.port, timeout=5)
    try:
        conn.putrequest("POST", "/api/tasks")
        conn.putheader("Content-Length", length)
        conn.putheader("Content-Type", "application/json")
        conn.endheaders()
        resp = conn.getresponse()
        assert resp.status == 400
        assert b"invalid_content_length" in resp.read()
    finally:
        conn.close()
