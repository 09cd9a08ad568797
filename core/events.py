"""Typed build events and the cancellable stream that carries them."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field

from core.quality import ValidationReport
from core.state import StepStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlanEvent:
    plan: dict
    type: str = field(default="plan", init=False)

    def payload(self) -> dict:
        return self.plan


@dataclass(frozen=True)
class FileChunk:
    """Raw text delta produced while a step is running. Never final content."""
    step_id: str
    text: str
    type: str = field(default="chunk", init=False)

    def payload(self) -> dict:
        return {"stepId": self.step_id, "text": self.text}


@dataclass(frozen=True)
class FileReady:
    """Finished content for one file of a step that is about to complete."""
    step_id: str
    path: str
    content: str
    language: str
    type: str = field(default="file", init=False)

    def payload(self) -> dict:
        return {"stepId": self.step_id, "path": self.path,
                "content": self.content, "language": self.language}


@dataclass(frozen=True)
class StepStatusEvent:
    step_id: str
    status: StepStatus
    duration_ms: int | None = None
    message: str = ""
    type: str = field(default="status", init=False)

    def payload(self) -> dict:
        data = {"stepId": self.step_id, "status": StepStatus(self.status).value}
        if self.duration_ms is not None:
            data["durationMs"] = self.duration_ms
        if self.message:
            data["message"] = self.message
        return data


@dataclass(frozen=True)
class ValidationEvent:
    step_id: str
    path: str
    report: ValidationReport
    fixes: tuple[str, ...] = ()
    type: str = field(default="validation", init=False)

    def payload(self) -> dict:
        return {"stepId": self.step_id, "path": self.path,
                "report": self.report.to_dict(), "fixes": list(self.fixes)}


@dataclass(frozen=True)
class DoneEvent:
    files: dict
    plan: dict
    quality_score: int
    project_id: str = ""
    version: int = 0
    type: str = field(default="done", init=False)

    def payload(self) -> dict:
        return {"files": self.files, "plan": self.plan, "qualityScore": self.quality_score,
                "projectId": self.project_id, "version": self.version}


@dataclass(frozen=True)
class ErrorEvent:
    message: str
    type: str = field(default="error", init=False)

    def payload(self) -> dict:
        return {"message": self.message}


TERMINAL_TYPES = ("done", "error")


def to_sse(event) -> str:
    """Format one event as a text/event-stream frame."""
    return f"event: {event.type}\ndata: {json.dumps(event.payload())}\n\n"


class EventStream:
    """Single-producer/single-consumer wrapper around an event generator.

    States: open -> done | error | cancelled. A consumer that stops early
    calls close(); the producer sees GeneratorExit and issues no further
    upstream calls. Events after the first terminal event are dropped.
    """

    def __init__(self, producer):
        self._producer = producer
        self.state = "open"

    def __iter__(self):
        return self

    def __next__(self):
        if self.state != "open":
            raise StopIteration
        try:
            event = next(self._producer)
        except StopIteration:
            # Producer ended without a terminal event
            self.state = "error"
            raise
        if event.type in TERMINAL_TYPES:
            self.state = event.type
            self._producer.close()
        return event

    def close(self) -> None:
        if self.state == "open":
            self.state = "cancelled"
            logger.info("Event stream cancelled by consumer")
        self._producer.close()

    @property
    def closed(self) -> bool:
        return self.state != "open"

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False
