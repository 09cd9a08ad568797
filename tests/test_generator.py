"""Tests for agents.generator -- step execution with a faked upstream stream."""

import anthropic
import httpx

from agents.generator import GeneratorAgent, normalize_path
from agents.planner import build_amend_plan, build_fallback_plan
from core.events import FileChunk, FileReady, StepStatusEvent, ValidationEvent
from core.state import BuildRequest, GeneratedArtifact, Mode, StepStatus

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
<button onclick="order()">Order</button>
</body>
</html>"""

CSS_RESPONSE = "```style.css\n:root { --bg: #fff; }\nbody { background: var(--bg); }\n```"
PAGE_RESPONSE = "Here is the home page:\n```index.html\n" + PAGE + "\n```\n"


def _api_error():
    return anthropic.APIConnectionError(request=httpx.Request("POST", "https://api.anthropic.com/v1/messages"))


def _fake_stream(responses, closed=None):
    """Upstream stand-in: one entry per call, text (streamed in two halves) or an exception."""
    calls = []

    def stream(system, user, model=None, max_tokens=None):
        calls.append(user)
        item = responses[len(calls) - 1]
        try:
            if isinstance(item, Exception):
                raise item
            half = len(item) // 2
            yield item[:half]
            yield item[half:]
        finally:
            if closed is not None:
                closed.append(len(calls))

    stream.calls = calls
    return stream


def _plan():
    # style.css, script.js, index.html
    return build_fallback_plan("a bakery", "Crumbs", Mode.FLAT_MARKUP)


def _run(responses, plan=None, request=None, targets=None):
    plan = plan or _plan()
    request = request or BuildRequest(prompt="a bakery", project_name="Crumbs")
    artifact = GeneratedArtifact()
    agent = GeneratorAgent(stream=_fake_stream(responses))
    events = list(agent.execute(plan, request, artifact, targets=targets))
    return plan, artifact, events, agent


def test_failed_step_does_not_abort_the_rest():
    plan, artifact, events, _ = _run([CSS_RESPONSE, _api_error(), PAGE_RESPONSE])
    assert [s.status for s in plan.steps] == [StepStatus.DONE, StepStatus.ERROR, StepStatus.DONE]
    assert plan.steps[1].error
    assert sorted(artifact.paths()) == ["index.html", "style.css"]
    errors = [e for e in events if isinstance(e, StepStatusEvent) and e.status == StepStatus.ERROR]
    assert [e.step_id for e in errors] == ["step-2"]


def test_events_ordered_per_step():
    plan, _, events, _ = _run([CSS_RESPONSE, CSS_RESPONSE, PAGE_RESPONSE])
    order = [s.id for s in plan.steps]
    positions = [order.index(e.step_id) for e in events]
    assert positions == sorted(positions)

    first = [e for e in events if e.step_id == "step-1"]
    assert isinstance(first[0], StepStatusEvent) and first[0].status == StepStatus.RUNNING
    assert isinstance(first[-1], StepStatusEvent) and first[-1].status == StepStatus.DONE
    assert any(isinstance(e, FileChunk) for e in first)


def test_generated_page_is_validated_and_fixed():
    _, artifact, events, _ = _run([CSS_RESPONSE, CSS_RESPONSE, PAGE_RESPONSE])
    ready = [e for e in events if isinstance(e, FileReady) and e.path == "index.html"][0]
    validation = [e for e in events if isinstance(e, ValidationEvent) and e.path == "index.html"][0]

    assert "onclick" not in ready.content
    assert validation.report.passed
    assert validation.fixes
    assert artifact.get("index.html").content == ready.content


def test_clean_file_reports_without_fixes():
    _, _, events, _ = _run([CSS_RESPONSE, CSS_RESPONSE, PAGE_RESPONSE])
    css = [e for e in events if isinstance(e, ValidationEvent) and e.path == "style.css"][0]
    assert css.report.findings == ()
    assert css.fixes == ()


def test_response_without_files_is_a_step_error():
    plan, artifact, _, _ = _run(["Sorry, I can't do that.", CSS_RESPONSE, PAGE_RESPONSE])
    assert plan.steps[0].status == StepStatus.ERROR
    assert "style.css" in artifact


def test_missing_api_key_is_a_step_error():
    plan, _, _, _ = _run([RuntimeError("no key"), RuntimeError("no key"), RuntimeError("no key")])
    assert all(s.status == StepStatus.ERROR for s in plan.steps)


def test_consumer_close_stops_upstream_calls():
    closed = []
    stream = _fake_stream([CSS_RESPONSE, CSS_RESPONSE, PAGE_RESPONSE], closed)
    plan = _plan()
    artifact = GeneratedArtifact()
    events = GeneratorAgent(stream=stream).execute(plan, BuildRequest(prompt="a bakery"), artifact)

    for event in events:
        if isinstance(event, FileChunk):
            break
    events.close()

    assert len(stream.calls) == 1
    assert closed == [1]
    assert len(artifact) == 0
    assert plan.steps[0].status == StepStatus.RUNNING
    assert plan.steps[1].status == StepStatus.PENDING


def test_amend_never_overwrites_non_targets():
    existing = {"index.html": "<h1>old home</h1>", "about.html": "<h1>old about</h1>"}
    request = BuildRequest(prompt="reword the home intro", existing_files=existing)
    plan = build_amend_plan(request.prompt, ["index.html"], "Crumbs", Mode.FLAT_MARKUP)
    response = PAGE_RESPONSE + "```about.html\n<h1>new about</h1>\n```"

    _, artifact, _, agent = _run([response], plan=plan, request=request, targets=["index.html"])
    assert artifact.paths() == ["index.html"]
    # The step prompt carries the current content of its target
    assert "<h1>old home</h1>" in agent._stream.calls[0]


def test_paths_outside_project_dropped():
    response = "```../../etc/passwd\nroot\n```\n" + CSS_RESPONSE
    _, artifact, _, _ = _run([response, CSS_RESPONSE, PAGE_RESPONSE])
    assert "style.css" in artifact
    assert all(".." not in p for p in artifact.paths())


def test_normalize_path():
    assert normalize_path("./css/style.css") == "css/style.css"
    assert normalize_path("/index.html") == "index.html"
    assert normalize_path("a/../b.html") == "b.html"
    assert normalize_path("../secret") is None
