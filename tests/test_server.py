"""Tests for server.py Flask endpoints -- upstream calls are faked, storage is in memory."""

import json
import re

import pytest

from agents.generator import GeneratorAgent
from agents.planner import PlannerAgent
from core.orchestrator import Orchestrator
from core.storage import InMemoryStore

PAGE = """<!DOCTYPE html>
<html>
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<meta name="description" content="Crumbs bakery">
<title>Crumbs</title>
</head>
<body>
<h1>Crumbs</h1>
</body>
</html>"""


def _no_upstream(system, user, model=None, max_tokens=None):
    raise RuntimeError("ANTHROPIC_API_KEY is not set")


def _fake_stream(system, user, model=None, max_tokens=None):
    for path in re.search(r"Files to produce: (.*)", user).group(1).split(", "):
        content = PAGE if path.endswith(".html") else "body { margin: 0; }"
        yield f"```{path}\n{content}\n```\n"


@pytest.fixture
def client():
    """Flask test client with a fresh in-memory store each test."""
    import server
    server.app.config["TESTING"] = True
    server.orchestrator = Orchestrator(
        store=InMemoryStore(),
        planner=PlannerAgent(llm=_no_upstream),
        generator=GeneratorAgent(stream=_fake_stream),
    )
    with server.app.test_client() as c:
        yield c


def _sse_events(body):
    """Parse a text/event-stream body into (type, data) pairs."""
    events = []
    for frame in body.strip().split("\n\n"):
        lines = dict(line.split(": ", 1) for line in frame.split("\n"))
        events.append((lines["event"], json.loads(lines["data"])))
    return events


# ---------------------------------------------------------------------------
# POST /api/plan
# ---------------------------------------------------------------------------

def test_plan_dry_run(client):
    resp = client.post("/api/plan", json={"prompt": "a bakery website with a contact page"})
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["mode"] == "flat-markup"
    assert data["plan"]["source"] == "fallback"
    assert [p["file"] for p in data["plan"]["pages"]] == ["index.html", "contact.html"]
    assert all(s["status"] == "pending" for s in data["plan"]["steps"])


def test_plan_reports_mode_signals(client):
    data = client.post("/api/plan", json={"prompt": "a todo app with user login"}).get_json()
    assert data["mode"] == "full-stack"
    assert "login" in data["scores"]["full-stack"]


def test_plan_missing_prompt(client):
    resp = client.post("/api/plan", json={"prompt": "  "})
    assert resp.status_code == 400
    assert "prompt" in resp.get_json()["error"]


def test_non_json_body_rejected(client):
    resp = client.post("/api/plan", data="prompt=x", content_type="text/plain")
    assert resp.status_code == 400


# ---------------------------------------------------------------------------
# POST /api/generate/stream
# ---------------------------------------------------------------------------

def test_generate_stream(client):
    resp = client.post("/api/generate/stream", json={"prompt": "a bakery website"})
    assert resp.status_code == 200
    assert resp.mimetype == "text/event-stream"

    events = _sse_events(resp.get_data(as_text=True))
    types = [t for t, _ in events]
    assert types[0] == "plan"
    assert types[-1] == "done"
    assert {"chunk", "file", "status", "validation"} <= set(types)

    done = events[-1][1]
    assert done["projectId"] == "bakery"
    assert done["version"] == 1
    assert done["files"]["index.html"]["content"] == PAGE


def test_generate_then_fetch_project(client):
    client.post("/api/generate/stream", json={"prompt": "a bakery website"}).get_data()
    resp = client.get("/api/projects/bakery")
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["version"] == 1
    assert "index.html" in data["files"]


def test_follow_up_by_project_id(client):
    client.post("/api/generate/stream", json={"prompt": "a bakery website"}).get_data()
    resp = client.post("/api/generate/stream",
                       json={"prompt": "make the font bigger", "projectId": "bakery"})
    events = _sse_events(resp.get_data(as_text=True))
    plan = events[0][1]
    assert plan["source"] == "amend"
    assert events[-1][1]["version"] == 2


def test_generate_unknown_project_fails_in_stream(client):
    resp = client.post("/api/generate/stream", json={"prompt": "x", "projectId": "../nope"})
    events = _sse_events(resp.get_data(as_text=True))
    assert [t for t, _ in events] == ["error"]


def test_generate_missing_prompt(client):
    assert client.post("/api/generate/stream", json={}).status_code == 400


# ---------------------------------------------------------------------------
# POST /api/validate and /api/autofix
# ---------------------------------------------------------------------------

def test_validate(client):
    resp = client.post("/api/validate", json={"content": "<h1>a</h1><h1>b</h1>"})
    data = resp.get_json()
    assert resp.status_code == 200
    assert data["passed"] is False
    assert any(f["rule"] == "heading-count" for f in data["findings"])


def test_validate_kind_from_path(client):
    data = client.post("/api/validate", json={"content": "p { color: #fff; }", "path": "style.css"}).get_json()
    assert data["kind"] == "css"
    assert data["findings"][0]["rule"] == "hardcoded-color"


def test_validate_unknown_kind(client):
    assert client.post("/api/validate", json={"content": "x", "kind": "cobol"}).status_code == 400


def test_validate_missing_content(client):
    assert client.post("/api/validate", json={"kind": "html"}).status_code == 400


def test_autofix(client):
    content = PAGE.replace("<h1>Crumbs</h1>", '<h1>Crumbs</h1>\n<button onclick="go()">Go</button>')
    data = client.post("/api/autofix", json={"content": content}).get_json()
    assert "onclick" not in data["fixed"]
    assert data["fixes"]
    assert data["remainingIssues"] == 0
    assert data["report"]["passed"] is True


def test_autofix_with_supplied_report(client):
    report = {"kind": "html", "findings": [{"rule": "contrast-ratio", "severity": "error", "message": "Low contrast"}]}
    data = client.post("/api/autofix", json={"content": PAGE, "report": report}).get_json()
    assert data["fixed"] == PAGE
    assert data["remainingIssues"] == 1


@pytest.mark.parametrize("report", [
    {"kind": "html", "findings": [{"rule": "heading-count", "severity": "critical", "message": "x"}]},
    {"kind": "html", "findings": ["x"]},
    {"kind": "html", "findings": "heading-count"},
    ["heading-count"],
])
def test_autofix_malformed_report_rejected(client, report):
    resp = client.post("/api/autofix", json={"content": PAGE, "report": report})
    assert resp.status_code == 400
    assert "Invalid report" in resp.get_json()["error"]


# ---------------------------------------------------------------------------
# POST /api/iterate/classify
# ---------------------------------------------------------------------------

def test_iterate_classify(client):
    payload = {
        "instruction": "change the button color",
        "existingFiles": [{"path": "index.html", "content": PAGE}, {"path": "style.css", "content": "p {}"}],
    }
    data = client.post("/api/iterate/classify", json=payload).get_json()
    assert data == {"mode": "amend", "targets": ["style.css"], "rationale": "explicit-keyword", "topics": ["style"]}


def test_iterate_classify_fresh(client):
    data = client.post("/api/iterate/classify", json={"prompt": "start over"}).get_json()
    assert data["mode"] == "fresh"
    assert data["targets"] == []


def test_iterate_classify_bad_files(client):
    resp = client.post("/api/iterate/classify", json={"instruction": "x", "existingFiles": "index.html"})
    assert resp.status_code == 400


# ---------------------------------------------------------------------------
# GET /api/projects/<id>
# ---------------------------------------------------------------------------

def test_project_not_found(client):
    assert client.get("/api/projects/nothing-here").status_code == 404


def test_project_invalid_id(client):
    assert client.get("/api/projects/Not_Valid!").status_code == 400
