"""Tests for agents.planner -- upstream calls are always faked."""

import json

import anthropic
import httpx
import pytest

from agents.planner import (
    PlannerAgent,
    build_amend_plan,
    build_fallback_plan,
    extract_pages,
    parse_plan_payload,
)
from core.state import Mode, StepCategory, StepStatus


def _upstream(text):
    def fake_llm(system, user, model=None, max_tokens=None):
        return text
    return fake_llm


def _failing(exc):
    def fake_llm(system, user, model=None, max_tokens=None):
        raise exc
    return fake_llm


def _payload(**overrides):
    data = {
        "title": "Bloom Florist",
        "description": "A florist site",
        "mode": "flat-markup",
        "estimatedFiles": 4,
        "estimatedSeconds": 60,
        "pages": [{"name": "Home", "file": "index.html"}, {"name": "About", "file": "about.html"}],
        "steps": [
            {"id": "step-1", "label": "Set up design system", "detail": "Tokens",
             "category": "style", "files": ["style.css"], "status": "done"},
            {"label": "Build home page", "detail": "Hero and intro",
             "category": "page", "files": ["index.html"]},
            {"id": "step-1", "label": "Build about page", "detail": "Story",
             "category": "page", "files": ["about.html"]},
        ],
    }
    data.update(overrides)
    return data


def _api_error():
    return anthropic.APIConnectionError(request=httpx.Request("POST", "https://api.anthropic.com/v1/messages"))


# --- upstream path ---

def test_upstream_plan_parsed_from_prose():
    text = "Here you go!\n" + json.dumps(_payload()) + "\nLet me know."
    plan = PlannerAgent(llm=_upstream(text)).create_plan("florist site with about page", "Bloom")
    assert plan.source == "upstream"
    assert plan.title == "Bloom Florist"
    assert len(plan.steps) == 3


def test_upstream_steps_forced_pending():
    plan = PlannerAgent(llm=_upstream(json.dumps(_payload()))).create_plan("florist site", "Bloom")
    assert all(step.status == StepStatus.PENDING for step in plan.steps)


def test_missing_and_duplicate_ids_normalized():
    plan = PlannerAgent(llm=_upstream(json.dumps(_payload()))).create_plan("florist site", "Bloom")
    ids = [step.id for step in plan.steps]
    assert ids == ["step-1", "step-2", "step-3"]


def test_classifier_mode_wins_over_upstream_mode():
    payload = _payload(mode="full-stack")
    plan = PlannerAgent(llm=_upstream(json.dumps(payload))).create_plan("florist site", "Bloom")
    assert plan.mode == Mode.FLAT_MARKUP


# --- fallback path ---

def test_malformed_json_falls_back():
    plan = PlannerAgent(llm=_upstream('{"title": "x", "steps": [')).create_plan("bakery site", "Crumbs")
    assert plan.source == "fallback"
    assert plan.steps


def test_schema_mismatch_falls_back():
    bad = _payload(estimatedFiles=0)
    plan = PlannerAgent(llm=_upstream(json.dumps(bad))).create_plan("bakery site", "Crumbs")
    assert plan.source == "fallback"


def test_unknown_category_falls_back():
    bad = _payload(steps=[{"label": "x", "category": "deploy", "files": ["a.html"]}])
    plan = PlannerAgent(llm=_upstream(json.dumps(bad))).create_plan("bakery site", "Crumbs")
    assert plan.source == "fallback"


def test_api_error_falls_back():
    plan = PlannerAgent(llm=_failing(_api_error())).create_plan("bakery site", "Crumbs")
    assert plan.source == "fallback"


def test_missing_key_falls_back():
    plan = PlannerAgent(llm=_failing(RuntimeError("ANTHROPIC_API_KEY not set"))).create_plan("bakery", "Crumbs")
    assert plan.source == "fallback"


def test_parse_plan_payload_rejects_prose():
    with pytest.raises(ValueError):
        parse_plan_payload("I cannot help with that.")


@pytest.mark.parametrize("mode", list(Mode))
def test_fallback_always_usable(mode):
    plan = build_fallback_plan("anything at all", "Thing", mode)
    assert len(plan.steps) >= 1
    assert plan.estimated_files > 0
    assert plan.mode == mode
    assert plan.pages
    assert all(step.status == StepStatus.PENDING for step in plan.steps)
    assert len({step.id for step in plan.steps}) == len(plan.steps)


def test_flat_fallback_has_about_and_home_first():
    plan = build_fallback_plan("a photographer portfolio with an about section and contact form",
                               "Lens", Mode.FLAT_MARKUP)
    names = [page.name for page in plan.pages]
    assert names[0] == "Home"
    assert plan.pages[0].file == "index.html"
    assert "About" in names
    page_steps = [s for s in plan.steps if s.category == StepCategory.PAGE]
    assert len(page_steps) == len(plan.pages)


def test_flat_fallback_tech_stack_extras():
    plan = build_fallback_plan("landing page styled with tailwind", "Launch", Mode.FLAT_MARKUP)
    assert plan.tech_stack[:3] == ["HTML5", "CSS3", "Vanilla JS"]
    assert "Tailwind CSS" in plan.tech_stack


# --- page extraction ---

def test_pages_from_numbered_list():
    prompt = "Bakery site.\n1. Home page\n2. About page - our story\n3. Menu page"
    pages = extract_pages(prompt)
    assert [(p.name, p.file) for p in pages] == [
        ("Home", "index.html"), ("About", "about.html"), ("Menu", "menu.html"),
    ]


def test_pages_from_explicit_list():
    pages = extract_pages("A dentist site. Pages: About Us, Contact, Home")
    assert pages[0].file == "index.html"
    assert [p.file for p in pages[1:]] == ["about-us.html", "contact.html"]


def test_home_always_present():
    pages = extract_pages("something with no page words")
    assert [p.name for p in pages] == ["Home"]


# --- amend plans ---

def test_amend_plan_groups_targets():
    plan = build_amend_plan("make it blue", ["style.css", "index.html", "about.html"], "Site", Mode.FLAT_MARKUP)
    assert plan.source == "amend"
    assert [s.category for s in plan.steps] == [StepCategory.STYLE, StepCategory.PAGE]
    assert plan.steps[1].files == ["index.html", "about.html"]
    assert plan.estimated_files == 3


def test_amend_plan_chunks_large_groups():
    targets = [f"page{i}.html" for i in range(6)]
    plan = build_amend_plan("fix typos", targets, "Site", Mode.FLAT_MARKUP)
    assert [len(s.files) for s in plan.steps] == [4, 2]
    assert [s.id for s in plan.steps] == ["step-1", "step-2"]
