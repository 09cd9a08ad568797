"""Generator agent -- executes plan steps and streams what it produces."""

import logging
import posixpath
import time
from contextlib import closing

import anthropic

from agents.fixer import auto_fix
from agents.validator import kind_for_path, validate
from config.defaults import DEFAULTS
from core.events import FileChunk, FileReady, StepStatusEvent, ValidationEvent
from core.state import FileEntry, StepStatus
from utils.llm import guess_language, parse_files, stream_llm
from utils.template_engine import load_prompt, render_prompt

logger = logging.getLogger(__name__)

_HISTORY_TURNS = 3


def normalize_path(path):
    """Clean a path from upstream output; None if it escapes the project root."""
    cleaned = posixpath.normpath(path.strip().replace("\\", "/")).lstrip("/")
    if cleaned in ("", ".") or cleaned.startswith("../") or cleaned == "..":
        return None
    return cleaned


def _existing_section(step, existing_files):
    parts = []
    for path in step.files:
        if path in existing_files:
            parts.append(f"```{path}\n{existing_files[path]}\n```")
    if not parts:
        return ""
    return "\nCurrent content of the files to change (return them complete):\n" + "\n".join(parts) + "\n"


def _history_section(history):
    if not history:
        return ""
    lines = [f"- {turn.prompt}" for turn in history[-_HISTORY_TURNS:]]
    return "\nEarlier requests in this project:\n" + "\n".join(lines) + "\n"


class GeneratorAgent:
    """Runs a plan step by step: one streamed upstream call per step.

    Every produced file is validated, auto-fixed where possible and
    re-validated before it is announced. A step that fails is marked
    "error" and the remaining steps still run.
    """

    name = "generator"

    def __init__(self, stream=None):
        self._stream = stream or stream_llm

    def execute(self, plan, request, artifact, targets=None):
        """Yield events for every step of `plan`, in order.

        Files from steps that finish "done" are put into `artifact`. With a
        `targets` collection (amend mode), existing files outside it are
        never overwritten.
        """
        system = load_prompt("generator.txt")
        allowed = set(targets) if targets is not None else None

        for index, step in enumerate(plan.steps, 1):
            step.advance(StepStatus.RUNNING)
            yield StepStatusEvent(step.id, StepStatus.RUNNING)
            started = time.monotonic()

            user_message = self._step_message(plan, step, index, request, artifact)
            try:
                with closing(self._stream(system, user_message,
                                          model=DEFAULTS["model"],
                                          max_tokens=DEFAULTS["step_max_tokens"])) as deltas:
                    parts = []
                    for text in deltas:
                        parts.append(text)
                        yield FileChunk(step.id, text)
                entries = self._collect(step, "".join(parts), request, allowed)
            except (anthropic.APIError, RuntimeError, ValueError) as e:
                step.duration_ms = int((time.monotonic() - started) * 1000)
                step.error = str(e)
                step.advance(StepStatus.ERROR)
                logger.warning("Step %s (%s) failed: %s", step.id, step.label, e)
                yield StepStatusEvent(step.id, StepStatus.ERROR, step.duration_ms, step.error)
                continue

            for entry in entries:
                entry, report, fixes = self._check(entry)
                yield FileReady(step.id, entry.path, entry.content, entry.language)
                if report is not None:
                    yield ValidationEvent(step.id, entry.path, report, fixes)
                artifact.put(entry)

            step.duration_ms = int((time.monotonic() - started) * 1000)
            step.advance(StepStatus.DONE)
            yield StepStatusEvent(step.id, StepStatus.DONE, step.duration_ms)

    def _step_message(self, plan, step, index, request, artifact):
        return render_prompt("generator_step.txt", {
            "project_name": request.project_name or plan.title,
            "prompt": request.prompt,
            "mode": plan.mode.value,
            "plan_title": plan.title,
            "plan_description": plan.description,
            "pages": ", ".join(f"{p.name} ({p.file})" for p in plan.pages) or "n/a",
            "step_index": index,
            "step_count": len(plan.steps),
            "step_label": step.label,
            "step_detail": step.detail,
            "step_files": ", ".join(step.files),
            "done_files": ", ".join(artifact.paths()) or "none",
            "existing_section": _existing_section(step, request.existing_files),
            "history_section": _history_section(request.history),
        })

    def _collect(self, step, response, request, allowed):
        """Turn a step response into file entries. Raises ValueError if none are usable."""
        entries = []
        for raw_path, content in parse_files(response):
            path = normalize_path(raw_path)
            if path is None:
                logger.warning("Step %s: dropping file outside the project root: %s", step.id, raw_path)
                continue
            if allowed is not None and path in request.existing_files and path not in allowed:
                logger.warning("Step %s: %s is not an amend target, keeping the existing file", step.id, path)
                continue
            entries.append(FileEntry(path=path, content=content,
                                     language=guess_language(path), step_id=step.id))
        if not entries:
            raise ValueError("No usable files found in the response")
        return entries

    def _check(self, entry):
        """Validate, auto-fix when there is something to fix, and return the final report."""
        kind = kind_for_path(entry.path)
        if kind is None:
            return entry, None, ()
        report = validate(entry.content, kind)
        if not report.errors and not report.warnings:
            return entry, report, ()
        result = auto_fix(entry.content, report, kind)
        if result.changed:
            entry = FileEntry(path=entry.path, content=result.fixed,
                              language=entry.language, step_id=entry.step_id)
        return entry, result.report, result.fixes
