#!/usr/bin/env python3
"""SiteForge - HTTP endpoints for the build pipeline."""

import os

from flask import Flask, Response, jsonify, request, stream_with_context

from agents.fixer import auto_fix
from agents.validator import VALIDATORS, kind_for_path, validate
from core.events import to_sse
from core.orchestrator import Orchestrator
from core.quality import ValidationReport
from core.state import BuildRequest, HistoryTurn
from core.storage import FileSystemStore
from manager.classifier import classify
from manager.iteration import classify_iteration

app = Flask(__name__)
orchestrator = Orchestrator(store=FileSystemStore())


class InvalidPayload(ValueError):
    pass


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidPayload("Expected a JSON object body")
    return data


def _existing_files(raw):
    """Accept {path: content} or [{"path": ..., "content": ...}]."""
    if not raw:
        return {}
    if isinstance(raw, dict):
        return {str(k): str(v) for k, v in raw.items()}
    if isinstance(raw, list):
        return {str(f["path"]): str(f.get("content", "")) for f in raw
                if isinstance(f, dict) and f.get("path")}
    raise InvalidPayload("existingFiles must be an object or a list of files")


def _history(raw):
    return [HistoryTurn(prompt=str(t.get("prompt", "")), response=str(t.get("response", "")))
            for t in (raw or []) if isinstance(t, dict)]


def _build_request(data):
    prompt = (data.get("prompt") or "").strip()
    if not prompt:
        raise InvalidPayload("Missing prompt")
    return BuildRequest(
        prompt=prompt,
        project_name=(data.get("projectName") or "").strip(),
        existing_files=_existing_files(data.get("existingFiles")),
        history=_history(data.get("history")),
        project_id=(data.get("projectId") or "").strip(),
    )


def _content_and_kind(data):
    content = data.get("content")
    if not isinstance(content, str):
        raise InvalidPayload("Missing content")
    kind = data.get("kind") or kind_for_path(data.get("path") or "") or "html"
    if kind not in VALIDATORS:
        raise InvalidPayload(f"Unknown kind: {kind}")
    return content, kind


@app.errorhandler(InvalidPayload)
def handle_bad_request(e):
    return jsonify({"error": str(e)}), 400


@app.route("/api/plan", methods=["POST"])
def api_plan():
    """Dry run: classify and plan without generating anything."""
    build = _build_request(_json_body())
    mode, scores = classify(build.prompt)
    plan = orchestrator.plan(build)
    return jsonify({"plan": plan.to_dict(), "mode": mode.value, "scores": scores})


@app.route("/api/generate/stream", methods=["POST"])
def api_generate_stream():
    """Run a build and stream its events as text/event-stream.

    A client that disconnects closes the generator, which cancels the
    build before the next upstream call.
    """
    build = _build_request(_json_body())
    stream = orchestrator.run(build)
    app.logger.info("Streaming build for %r", build.project_id or build.prompt[:60])

    def generate():
        with stream:
            for event in stream:
                yield to_sse(event)

    return Response(
        stream_with_context(generate()),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@app.route("/api/validate", methods=["POST"])
def api_validate():
    content, kind = _content_and_kind(_json_body())
    return jsonify(validate(content, kind).to_dict())


@app.route("/api/autofix", methods=["POST"])
def api_autofix():
    data = _json_body()
    content, kind = _content_and_kind(data)
    if data.get("report") is not None:
        try:
            report = ValidationReport.from_dict(data["report"])
        except ValueError as e:
            raise InvalidPayload(f"Invalid report: {e}") from e
    else:
        report = validate(content, kind)
    result = auto_fix(content, report, kind)
    if result.fixes:
        app.logger.info("Auto-fix applied %d fix(es), %d remaining", len(result.fixes), result.remaining_issues)
    return jsonify(result.to_dict())


@app.route("/api/iterate/classify", methods=["POST"])
def api_iterate_classify():
    data = _json_body()
    instruction = (data.get("instruction") or data.get("prompt") or "").strip()
    if not instruction:
        raise InvalidPayload("Missing instruction")
    decision = classify_iteration(
        _existing_files(data.get("existingFiles")),
        _history(data.get("history")),
        instruction,
    )
    return jsonify(decision.to_dict())


@app.route("/api/projects/<project_id>")
def api_project(project_id):
    try:
        stored = orchestrator.store.load(project_id)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    if not stored.exists:
        return jsonify({"error": "Project not found"}), 404
    return jsonify({"projectId": stored.project_id, "version": stored.version, "files": stored.files})


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5001))
    print(f"SiteForge running at http://localhost:{port}")
    app.run(debug=False, port=port)
