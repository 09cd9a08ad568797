"""Follow-up request classifier: amend existing files or start fresh.

Pure keyword heuristics over the instruction and the existing file set.
The decision gates which existing files the generator may overwrite.
"""

import os
import re

from core.state import IterationDecision, IterationMode, Rationale

RESTART_PHRASES = (
    "start over", "from scratch", "rebuild", "start fresh", "fresh start",
    "new project", "completely new", "scrap it", "scrap this", "redo everything",
    "throw it away", "begin again",
)

# topic -> vocabulary
STYLE_WORDS = (
    "color", "colour", "font", "style", "styling", "css", "theme", "dark mode",
    "light mode", "background", "margin", "padding", "spacing", "layout",
    "border", "shadow", "gradient", "bigger", "smaller", "larger", "bold",
    "rounded", "align", "center", "responsive", "animation", "hover",
)
COPY_WORDS = (
    "text", "copy", "wording", "headline", "heading", "title", "tagline",
    "paragraph", "content", "rename", "typo", "spelling", "phone", "email",
    "address", "price", "description", "say", "says", "reword", "rewrite",
)
SCRIPT_WORDS = (
    "click", "script", "javascript", "js", "function", "behavior", "behaviour",
    "toggle", "submit", "validation", "validate", "modal", "popup", "slider",
    "carousel", "menu toggle", "scroll",
)

ELEMENT_WORDS = ("button", "header", "footer", "nav", "navbar", "form", "hero", "menu", "card")

_STYLE_EXTS = (".css", ".scss", ".sass", ".less")
_SCRIPT_EXTS = (".js", ".mjs", ".ts")
_CONTENT_EXTS = (".html", ".htm", ".tsx", ".jsx", ".md", ".mdx")

_QUOTED_RE = re.compile(r"""["“']([^"”']{3,})["”']""")


def _has_word(text, word):
    return re.search(r"\b" + re.escape(word) + r"\b", text) is not None


def _hits(text, words):
    return [w for w in words if _has_word(text, w)]


def _mentioned_files(text, paths):
    """Files the instruction names directly, by path, file name or stem."""
    named = []
    for path in paths:
        base = os.path.basename(path).lower()
        stem = os.path.splitext(base)[0]
        if path.lower() in text or base in text or (len(stem) > 2 and _has_word(text, stem)
                                                    and stem not in ("index", "style", "script", "main", "app")):
            named.append(path)
    return named


def _style_files(existing_files):
    sheets = [p for p in existing_files if p.lower().endswith(_STYLE_EXTS)]
    if sheets:
        return sheets
    return [p for p, c in existing_files.items()
            if "<style" in c.lower() or "style=" in c.lower() or "classname=" in c.lower()]


def _content_files(existing_files, instruction):
    files = [p for p in existing_files if p.lower().endswith(_CONTENT_EXTS)]
    quoted = [q.lower() for q in _QUOTED_RE.findall(instruction)]
    if quoted:
        narrowed = [p for p in files if any(q in existing_files[p].lower() for q in quoted)]
        if narrowed:
            return narrowed
    return files


def _script_files(existing_files):
    scripts = [p for p in existing_files if p.lower().endswith(_SCRIPT_EXTS)]
    if scripts:
        return scripts
    return [p for p, c in existing_files.items() if "<script" in c.lower()]


def _narrow_by_element(candidates, existing_files, elements):
    """Keep the candidates whose content mentions an element word, if any do."""
    if not elements:
        return candidates
    narrowed = [
        p for p in candidates
        if any(re.search(r"<" + e + r"\b|\b" + e + r"\b", existing_files[p].lower()) for e in elements)
    ]
    return narrowed or candidates


def classify_iteration(existing_files, history, instruction) -> IterationDecision:
    """Decide whether a follow-up instruction amends files or regenerates everything.

    `existing_files` maps path -> content. `history` is accepted for parity
    with the build request; the decision rests on the new instruction.
    """
    text = (instruction or "").lower()
    existing_files = existing_files or {}

    restart = _hits(text, RESTART_PHRASES)
    if restart:
        return IterationDecision(IterationMode.FRESH, (), Rationale.EXPLICIT_KEYWORD, tuple(restart))
    if not existing_files:
        return IterationDecision(IterationMode.FRESH, (), Rationale.DEFAULT)

    paths = sorted(existing_files)
    named = _mentioned_files(text, paths)
    if named:
        return IterationDecision(IterationMode.AMEND, tuple(named), Rationale.EXPLICIT_KEYWORD, ("file",))

    topics = []
    targets = set()
    elements = _hits(text, ELEMENT_WORDS)
    if _hits(text, STYLE_WORDS):
        topics.append("style")
        targets.update(_narrow_by_element(_style_files(existing_files), existing_files, elements))
    if _hits(text, COPY_WORDS):
        topics.append("copy")
        targets.update(_narrow_by_element(_content_files(existing_files, instruction or ""),
                                          existing_files, elements))
    if _hits(text, SCRIPT_WORDS):
        topics.append("script")
        targets.update(_narrow_by_element(_script_files(existing_files), existing_files, elements))

    if targets:
        ordered = tuple(p for p in paths if p in targets)
        return IterationDecision(IterationMode.AMEND, ordered, Rationale.EXPLICIT_KEYWORD, tuple(topics))

    # Nothing could be associated with confidence: the whole set is the target
    return IterationDecision(IterationMode.AMEND, tuple(paths), Rationale.DEFAULT, tuple(topics))
