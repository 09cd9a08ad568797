"""Build pipeline models shared across all stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Mode(str, Enum):
    FLAT_MARKUP = "flat-markup"
    COMPONENT_FRAMEWORK = "component-framework"
    FULL_STACK = "full-stack"


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"


class StepCategory(str, Enum):
    SCHEMA = "schema"
    CONFIG = "config"
    TYPES = "types"
    COMPONENT = "component"
    HOOK = "hook"
    PAGE = "page"
    API = "api"
    STYLE = "style"
    TEST = "test"
    BUILD = "build"


# Allowed forward moves; DONE and ERROR are terminal
_TRANSITIONS = {
    StepStatus.PENDING: {StepStatus.RUNNING},
    StepStatus.RUNNING: {StepStatus.DONE, StepStatus.ERROR},
    StepStatus.DONE: set(),
    StepStatus.ERROR: set(),
}

MAX_STEP_FILES = 4


@dataclass
class PlanStep:
    id: str
    label: str
    detail: str
    category: StepCategory
    files: list[str]
    status: StepStatus = StepStatus.PENDING
    duration_ms: int | None = None
    error: str = ""

    def __post_init__(self):
        if not self.id:
            raise ValueError("PlanStep requires an id")
        if not self.label:
            raise ValueError(f"PlanStep {self.id} requires a label")
        self.category = StepCategory(self.category)
        self.status = StepStatus(self.status)
        if not 1 <= len(self.files) <= MAX_STEP_FILES:
            raise ValueError(
                f"PlanStep {self.id} must target 1-{MAX_STEP_FILES} files, got {len(self.files)}"
            )

    def advance(self, status: StepStatus) -> None:
        """Move to `status`; statuses only ever move forward."""
        status = StepStatus(status)
        if status not in _TRANSITIONS[self.status]:
            raise ValueError(f"Step {self.id}: illegal transition {self.status.value} -> {status.value}")
        self.status = status

    @property
    def finished(self) -> bool:
        return self.status in (StepStatus.DONE, StepStatus.ERROR)

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "label": self.label,
            "detail": self.detail,
            "category": self.category.value,
            "files": list(self.files),
            "status": self.status.value,
        }
        if self.duration_ms is not None:
            data["durationMs"] = self.duration_ms
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class PageEntry:
    name: str
    file: str

    def to_dict(self) -> dict:
        return {"name": self.name, "file": self.file}


@dataclass
class GenerationPlan:
    title: str
    description: str
    mode: Mode
    estimated_files: int
    estimated_seconds: int
    steps: list[PlanStep]
    pages: list[PageEntry] = field(default_factory=list)
    tech_stack: list[str] = field(default_factory=list)
    source: str = "upstream"            # upstream|fallback|amend

    def step(self, step_id: str) -> PlanStep | None:
        return next((s for s in self.steps if s.id == step_id), None)

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "description": self.description,
            "mode": self.mode.value,
            "estimatedFiles": self.estimated_files,
            "estimatedSeconds": self.estimated_seconds,
            "steps": [s.to_dict() for s in self.steps],
            "pages": [p.to_dict() for p in self.pages],
            "techStack": list(self.tech_stack),
            "source": self.source,
        }


@dataclass
class HistoryTurn:
    prompt: str
    response: str


@dataclass
class BuildRequest:
    prompt: str
    project_name: str = ""
    existing_files: dict[str, str] = field(default_factory=dict)
    history: list[HistoryTurn] = field(default_factory=list)
    project_id: str = ""

    @property
    def is_follow_up(self) -> bool:
        return bool(self.existing_files)


@dataclass
class FileEntry:
    path: str           # relative path e.g. "index.html"
    content: str
    language: str       # "html", "css", "javascript", etc.
    step_id: str = ""

    def to_dict(self) -> dict:
        return {"path": self.path, "content": self.content, "language": self.language}


class GeneratedArtifact:
    """Finished files keyed by path. Only completed steps put files here."""

    def __init__(self, files=None):
        self._files: dict[str, FileEntry] = {}
        for entry in files or []:
            self.put(entry)

    def put(self, entry: FileEntry) -> None:
        self._files[entry.path] = entry

    def get(self, path: str) -> FileEntry | None:
        return self._files.get(path)

    def paths(self) -> list[str]:
        return list(self._files)

    def contents(self) -> dict[str, str]:
        return {path: f.content for path, f in self._files.items()}

    def __contains__(self, path) -> bool:
        return path in self._files

    def __iter__(self):
        return iter(self._files.values())

    def __len__(self) -> int:
        return len(self._files)

    def to_dict(self) -> dict:
        return {path: f.to_dict() for path, f in self._files.items()}


class IterationMode(str, Enum):
    AMEND = "amend"
    FRESH = "fresh"


class Rationale(str, Enum):
    EXPLICIT_KEYWORD = "explicit-keyword"
    DEFAULT = "default"


@dataclass(frozen=True)
class IterationDecision:
    mode: IterationMode
    targets: tuple[str, ...] = ()
    rationale: Rationale = Rationale.DEFAULT
    topics: tuple[str, ...] = ()

    def __post_init__(self):
        if self.mode == IterationMode.FRESH and self.targets:
            raise ValueError("A fresh decision regenerates everything and carries no targets")
        if self.mode == IterationMode.AMEND and not self.targets:
            raise ValueError("An amend decision needs at least one target file")

    def to_dict(self) -> dict:
        return {
            "mode": self.mode.value,
            "targets": list(self.targets),
            "rationale": self.rationale.value,
            "topics": list(self.topics),
        }
