"""Keyword-signal build mode classifier.

Single source of truth for build mode: the planner, its fallback path and
the orchestrator all go through detect_mode().
"""

import re

from core.state import Mode

# Keywords that are prefix patterns (match word starts, e.g. "persist" -> "persistence")
_PREFIX_KEYWORDS = {"persist", "authenticat", "authoriz"}

# Database / auth / persistence-layer vocabulary
FULL_STACK_SIGNALS = (
    "next.js", "nextjs", "next js", "full-stack", "fullstack", "full stack",
    "database", "db", "auth", "authenticat", "authoriz", "login", "log in",
    "signup", "sign up", "user accounts", "prisma", "supabase", "postgres",
    "mysql", "mongodb", "sqlite", "api route", "server action", "backend",
    "persist", "saas",
)

# App / interactivity vocabulary
APP_SIGNALS = (
    "react", "vite", "single page app", "single-page", "app", "apps",
    "web app", "webapp", "dashboard", "todo", "to-do", "task manager",
    "kanban", "tracker", "calculator", "interactive", "game", "editor",
    "drag and drop", "state management",
)


def _pattern(keyword):
    if keyword in _PREFIX_KEYWORDS:
        return r"\b" + re.escape(keyword)
    return r"\b" + re.escape(keyword) + r"\b"


def _hits(text, signals):
    return [kw for kw in signals if re.search(_pattern(kw), text)]


def classify(prompt):
    """Scan a prompt for mode signals.

    Returns (mode, scores) where scores maps each mode value to the list of
    signal terms found. Any full-stack term wins; otherwise any app term
    selects the component framework; otherwise flat markup.
    """
    text = (prompt or "").lower()
    full_stack = _hits(text, FULL_STACK_SIGNALS)
    app = _hits(text, APP_SIGNALS)

    if full_stack:
        mode = Mode.FULL_STACK
    elif app:
        mode = Mode.COMPONENT_FRAMEWORK
    else:
        mode = Mode.FLAT_MARKUP

    scores = {
        Mode.FULL_STACK.value: full_stack,
        Mode.COMPONENT_FRAMEWORK.value: app,
        Mode.FLAT_MARKUP.value: [],
    }
    return mode, scores


def detect_mode(prompt) -> Mode:
    """Return the build mode for a prompt. Pure and deterministic."""
    mode, _ = classify(prompt)
    return mode
