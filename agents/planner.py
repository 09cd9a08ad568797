"""Planner agent -- turns a prompt into a structured, inspectable build plan."""

import json
import logging
import re

import anthropic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from config.defaults import DEFAULTS
from config.plans import (
    FALLBACK_SHAPE,
    FALLBACK_STEPS,
    HOME_PAGE,
    PAGE_KEYWORDS,
    STACK_EXTRAS,
    STACK_LABELS,
)
from core.state import (
    MAX_STEP_FILES,
    GenerationPlan,
    Mode,
    PageEntry,
    PlanStep,
    StepCategory,
)
from manager.classifier import detect_mode
from utils.llm import call_llm, extract_json_object
from utils.template_engine import load_prompt, render_prompt

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------
# Upstream payload schema. Anything that does not fit is malformed output.
# ----------------------------------------------------------------------

class StepPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    label: str = Field(min_length=1)
    detail: str = ""
    category: StepCategory
    files: list[str] = Field(min_length=1, max_length=MAX_STEP_FILES)

    @field_validator("files")
    @classmethod
    def _non_empty_paths(cls, files):
        cleaned = [f.strip() for f in files]
        if not all(cleaned):
            raise ValueError("step file paths must be non-empty")
        return cleaned


class PagePayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    file: str = Field(min_length=1)


class PlanPayload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    title: str = Field(min_length=1)
    description: str = ""
    estimated_files: int = Field(alias="estimatedFiles", gt=0)
    estimated_seconds: int = Field(alias="estimatedSeconds", ge=0)
    pages: list[PagePayload] = Field(default_factory=list)
    steps: list[StepPayload] = Field(min_length=1)


def parse_plan_payload(text):
    """Extract and validate the plan object from raw upstream text.

    Raises ValueError (json.JSONDecodeError and pydantic.ValidationError are
    both ValueError subclasses) when the text holds no usable plan.
    """
    candidate = extract_json_object(text or "")
    if candidate is None:
        raise ValueError("no JSON object in upstream response")
    return PlanPayload.model_validate(json.loads(candidate))


# ----------------------------------------------------------------------
# Page extraction
# ----------------------------------------------------------------------

_NUMBERED_PAGE_RE = re.compile(r"^\s*\d+[.)]\s+([A-Za-z][\w ]*?)\s+page\b\s*(?:[-:–—].*)?$",
                               re.IGNORECASE | re.MULTILINE)
_PAGES_LIST_RE = re.compile(r"\bpages\s*(?:include|:|–|—)\s*([^\n.]+)", re.IGNORECASE)
_HOME_NAMES = {"home", "landing", "main", "index"}


def _page_file(name):
    slug = re.sub(r"[^a-z0-9\s-]", "", name.lower()).strip()
    slug = re.sub(r"[\s-]+", "-", slug)
    if slug in _HOME_NAMES:
        return HOME_PAGE[1]
    return f"{slug}.html"


def _named_pages(names):
    pages = []
    for raw in names:
        name = re.sub(r"\(.*?\)", "", raw)
        name = re.sub(r"\bpage\b", "", name, flags=re.IGNORECASE).strip(" -")
        if 1 < len(name) < 40:
            if name.lower() in _HOME_NAMES:
                name = HOME_PAGE[0]
            pages.append(PageEntry(name=name.title(), file=_page_file(name)))
    return pages


def _ensure_home_first(pages):
    """Dedup by file and guarantee the Home page exists and leads the list."""
    seen = set()
    unique = []
    for page in pages:
        if page.file not in seen:
            seen.add(page.file)
            unique.append(page)
    home = next((p for p in unique if p.file == HOME_PAGE[1]), None)
    if home is None:
        home = PageEntry(name=HOME_PAGE[0], file=HOME_PAGE[1])
    else:
        unique.remove(home)
    return [home] + unique


def extract_pages(prompt):
    """Derive the page manifest for a flat-markup site from the prompt.

    Tries a numbered list ("1. Home page"), then an explicit "Pages: ..."
    list, then the keyword table. Home is always present and first.
    """
    pages = _named_pages(_NUMBERED_PAGE_RE.findall(prompt or ""))

    if not pages:
        match = _PAGES_LIST_RE.search(prompt or "")
        if match:
            pages = _named_pages(re.split(r"[,;]|\band\b", match.group(1)))

    if not pages:
        lower = (prompt or "").lower()
        for keywords, name, filename in PAGE_KEYWORDS:
            if any(re.search(r"\b" + re.escape(k), lower) for k in keywords):
                pages.append(PageEntry(name=name, file=filename))

    return _ensure_home_first(pages)


def tech_stack_for(prompt, mode):
    stack = list(STACK_LABELS[mode.value])
    lower = (prompt or "").lower()
    for keyword, label in STACK_EXTRAS:
        if keyword in lower and label not in stack:
            stack.append(label)
    return stack


# ----------------------------------------------------------------------
# Plans
# ----------------------------------------------------------------------

def _step(n, label, detail, category, files):
    return PlanStep(id=f"step-{n}", label=label, detail=detail, category=category, files=list(files))


def build_fallback_plan(prompt, project_name, mode):
    """Deterministic, mode-specific template plan. No network call."""
    steps = [
        _step(n, label, detail, category, files)
        for n, (label, detail, category, files) in enumerate(FALLBACK_STEPS[mode.value], 1)
    ]
    shape = FALLBACK_SHAPE[mode.value]

    if mode == Mode.FLAT_MARKUP:
        pages = extract_pages(prompt)
        for page in pages:
            steps.append(_step(
                len(steps) + 1,
                f"Build {page.name} page",
                f"Complete HTML for {page.name} with real content",
                StepCategory.PAGE,
                [page.file],
            ))
        estimated_files = len(pages) + 2
        estimated_seconds = len(pages) * shape["seconds_per_page"]
    else:
        pages = [PageEntry(name=name, file=filename) for name, filename in shape["pages"]]
        estimated_files = shape["estimated_files"]
        estimated_seconds = shape["estimated_seconds"]

    return GenerationPlan(
        title=project_name or "My Site",
        description=shape["description"],
        mode=mode,
        estimated_files=estimated_files,
        estimated_seconds=estimated_seconds,
        steps=steps,
        pages=pages,
        tech_stack=tech_stack_for(prompt, mode),
        source="fallback",
    )


def plan_from_payload(payload, prompt, mode):
    """Normalize a validated payload into a GenerationPlan.

    Missing or duplicate step ids become step-<n>; every step starts pending
    whatever the upstream text claimed; the classifier's mode always wins.
    """
    steps = []
    seen = set()
    for n, item in enumerate(payload.steps, 1):
        step_id = (item.id or "").strip()
        if not step_id or step_id in seen:
            step_id = f"step-{n}"
            suffix = 2
            while step_id in seen:
                step_id = f"step-{n}-{suffix}"
                suffix += 1
        seen.add(step_id)
        steps.append(PlanStep(
            id=step_id,
            label=item.label,
            detail=item.detail,
            category=item.category,
            files=item.files,
        ))

    pages = [PageEntry(name=p.name, file=p.file) for p in payload.pages]
    if mode == Mode.FLAT_MARKUP:
        pages = _ensure_home_first(pages or extract_pages(prompt))

    return GenerationPlan(
        title=payload.title,
        description=payload.description,
        mode=mode,
        estimated_files=payload.estimated_files,
        estimated_seconds=payload.estimated_seconds,
        steps=steps,
        pages=pages,
        tech_stack=tech_stack_for(prompt, mode),
        source="upstream",
    )


_AMEND_CATEGORIES = (
    (lambda p: p.endswith(".css"), StepCategory.STYLE, "Update styles"),
    (lambda p: p.endswith((".html", ".htm")), StepCategory.PAGE, "Update pages"),
    (lambda p: "/api/" in p or p.startswith("api/"), StepCategory.API, "Update API routes"),
    (lambda p: p.endswith((".tsx", ".jsx")), StepCategory.COMPONENT, "Update components"),
    (lambda p: p.endswith(".prisma"), StepCategory.SCHEMA, "Update schema"),
)


def _amend_category(path):
    for matches, category, label in _AMEND_CATEGORIES:
        if matches(path.lower()):
            return category, label
    return StepCategory.CONFIG, "Update scripts and config"


def build_amend_plan(instruction, targets, project_name, mode, existing_pages=None):
    """Plan for an amend iteration: only the target files, grouped by kind."""
    groups = {}
    for path in targets:
        category, label = _amend_category(path)
        groups.setdefault((category, label), []).append(path)

    steps = []
    for (category, label), paths in groups.items():
        for i in range(0, len(paths), MAX_STEP_FILES):
            steps.append(_step(len(steps) + 1, label, instruction, category, paths[i:i + MAX_STEP_FILES]))

    return GenerationPlan(
        title=project_name or "My Site",
        description=f"Apply requested changes to {len(targets)} existing file(s)",
        mode=mode,
        estimated_files=len(targets),
        estimated_seconds=15 * len(steps),
        steps=steps,
        pages=list(existing_pages or []),
        tech_stack=tech_stack_for(instruction, mode),
        source="amend",
    )


class PlannerAgent:
    """Produces a GenerationPlan for a prompt. Never fails visibly."""

    name = "planner"

    def __init__(self, llm=None):
        self._llm = llm or call_llm

    def create_plan(self, prompt, project_name, mode=None) -> GenerationPlan:
        mode = mode or detect_mode(prompt)
        system = load_prompt("planner.txt")
        user_message = render_prompt("planner_request.txt", {
            "project_name": project_name,
            "prompt": prompt,
            "mode": mode.value,
        })

        try:
            text = self._llm(system, user_message,
                             model=DEFAULTS["plan_model"],
                             max_tokens=DEFAULTS["plan_max_tokens"])
            plan = plan_from_payload(parse_plan_payload(text), prompt, mode)
        except (anthropic.APIError, RuntimeError) as e:
            logger.warning("Planner upstream unavailable, using fallback plan: %s", e)
            return build_fallback_plan(prompt, project_name, mode)
        except ValueError as e:
            logger.warning("Planner returned malformed output, using fallback plan: %s", e)
            return build_fallback_plan(prompt, project_name, mode)

        logger.info("Planned %d step(s) for %r in %s mode", len(plan.steps), project_name, mode.value)
        return plan

