"""Auto-fixer agent -- deterministic structural repairs. Zero LLM calls.

Each repair targets one rule id and leaves everything else alone. Markup is
edited through BeautifulSoup so structure, not text, is what changes;
stylesheets are edited as text at the spans the validator reported.

Guarantees: no repair introduces an error or warning the input did not
have (a repair that would is skipped on its own), and running the fixer on
its own output changes nothing.
"""

import json
import logging
import re

from bs4 import BeautifulSoup, Doctype

from agents.validator import (
    KNOWN_RULES,
    find_color_literals,
    logical_lines,
    root_bodies,
    root_declarations,
    scan_brackets,
    validate,
    is_handler_attribute,
)
from config import rules
from config.defaults import DEFAULTS
from core.quality import AutoFixResult

logger = logging.getLogger(__name__)

BINDINGS_MARKER = "event-bindings"
_WINDOW_TARGETS = {"body", "html", "frameset"}
_JS_TYPES = {"", "text/javascript", "application/javascript"}
_BINDINGS_BODY_RE = re.compile(
    r"function bindInlineHandlers\(\) \{\n(.*?)\n  \}\n", re.DOTALL,
)


# ----------------------------------------------------------------------
# Color hoisting (shared by markup <style> blocks and stylesheets)
# ----------------------------------------------------------------------

def normalize_color(literal):
    """Canonical form for comparing colors: lowercase, long hex, no spaces."""
    value = literal.strip().lower()
    if value.startswith("#"):
        digits = value[1:]
        if len(digits) in (3, 4):
            digits = "".join(ch * 2 for ch in digits)
        return "#" + digits
    return re.sub(r"\s+", "", value)


def color_slug(normalized):
    if normalized.startswith("#"):
        return normalized[1:]
    return re.sub(r"[^a-z0-9]+", "-", normalized).strip("-")


def _is_color(value):
    return bool(rules.COLOR_LITERAL_RE.fullmatch(value.strip()))


def collect_declared(css_sources):
    """Index custom properties already declared in :root across stylesheets.

    Returns (value_to_name, names): normalized color -> first property name
    declaring it, and property name -> normalized value.
    """
    value_to_name = {}
    names = {}
    for css in css_sources:
        for name, value in root_declarations(css):
            norm = normalize_color(value) if _is_color(value) else value
            names.setdefault(name, norm)
            if _is_color(value):
                value_to_name.setdefault(norm, name)
    return value_to_name, names


def hoist_colors(css, value_to_name, names):
    """Move hard-coded colors into :root custom properties.

    An existing property with the same value is reused. New properties are
    named --color-<value>; a name already taken by a different value gets
    -2, -3, ... appended. Both index dicts are updated in place so later
    stylesheets on the same page share the names.

    Returns (new_css, descriptions).
    """
    literals = find_color_literals(css)
    if not literals:
        return css, []

    edits = []
    new_decls = []
    uses = {}
    for start, end, literal in literals:
        norm = normalize_color(literal)
        name = value_to_name.get(norm)
        if name is None:
            base = f"--color-{color_slug(norm)}"
            name = base
            suffix = 2
            while name in names and names[name] != norm:
                name = f"{base}-{suffix}"
                suffix += 1
            value_to_name[norm] = name
            names[name] = norm
            new_decls.append((name, literal))
        uses[name] = uses.get(name, 0) + 1
        edits.append((start, end, f"var({name})"))

    if new_decls:
        declarations = "".join(f"\n  {name}: {literal};" for name, literal in new_decls)
        bodies = root_bodies(css)
        if bodies:
            start, end = bodies[0]
            body = css[start:end]
            trimmed = body.rstrip()
            sep = ";" if trimmed.strip() and not trimmed.endswith(";") else ""
            tail = "" if "\n" in body[len(trimmed):] else "\n"
            pos = start + len(trimmed)
            edits.append((pos, pos, sep + declarations + tail))
        else:
            edits.append((0, 0, ":root {" + declarations + "\n}\n\n"))

    for start, end, replacement in sorted(edits, key=lambda e: e[0], reverse=True):
        css = css[:start] + replacement + css[end:]

    descriptions = []
    hoisted = dict(new_decls)
    for name, count in uses.items():
        if name in hoisted:
            descriptions.append(f"Hoisted {hoisted[name]} into :root as {name} ({count} use(s))")
        else:
            descriptions.append(f"Replaced {count} color literal(s) with var({name})")
    return css, descriptions


# ----------------------------------------------------------------------
# Script splitting
# ----------------------------------------------------------------------

def split_script(code, limit):
    """Split code at top-level line boundaries into blocks of <= limit logical lines.

    Returns the list of blocks, or None when no safe cut exists.
    """
    lines = code.split("\n")
    _, safe = scan_brackets(code)
    chunks = []
    start = 0
    while logical_lines("\n".join(lines[start:])) > limit:
        cut = None
        count = 0
        for i in range(start, len(lines)):
            count += logical_lines(lines[i])
            if count > limit:
                break
            if safe[i]:
                cut = i
        if cut is None or logical_lines("\n".join(lines[start:cut + 1])) == 0:
            return None
        chunks.append("\n".join(lines[start:cut + 1]))
        start = cut + 1
    chunks.append("\n".join(lines[start:]))
    return ["\n" + chunk.strip("\n") + "\n" for chunk in chunks]


# ----------------------------------------------------------------------
# Markup repairs. Each returns a list of fix descriptions.
# ----------------------------------------------------------------------

def _ensure_head(soup):
    if soup.head is not None:
        return soup.head
    head = soup.new_tag("head")
    if soup.html is not None:
        soup.html.insert(0, head)
    else:
        index = 0
        for i, child in enumerate(soup.contents):
            if isinstance(child, Doctype):
                index = i + 1
        soup.insert(index, head)
    return head


def _text(tag):
    return " ".join(tag.get_text(" ", strip=True).split()) if tag is not None else ""


def _fix_headings(soup):
    headings = soup.find_all("h1")
    if len(headings) > 1:
        for heading in headings[1:]:
            heading.name = "h2"
        return [f"Demoted {len(headings) - 1} extra <h1> heading(s) to <h2>"]
    if headings:
        return []

    text = _text(soup.title) or _text(soup.find("h2")) or _text(soup.find("h3")) or "Welcome"
    heading = soup.new_tag("h1")
    heading.string = text
    container = soup.find("main") or soup.body
    if container is not None:
        container.insert(0, heading)
    else:
        (soup.html or soup).append(heading)
    return [f"Added missing <h1> heading: {text}"]


def _description_text(soup):
    for paragraph in soup.find_all("p"):
        text = _text(paragraph)
        if text:
            if len(text) > 155:
                text = text[:152].rsplit(" ", 1)[0] + "..."
            return text
    return "Page description"


def _fix_metadata(soup, wanted):
    fixes = []
    if not wanted:
        return fixes
    head = _ensure_head(soup)

    if rules.MISSING_CHARSET in wanted and head.find("meta", attrs={"charset": True}) is None:
        head.insert(0, soup.new_tag("meta", attrs={"charset": "UTF-8"}))
        fixes.append('Added <meta charset="UTF-8">')

    if rules.MISSING_VIEWPORT in wanted and head.find("meta", attrs={"name": "viewport"}) is None:
        head.append(soup.new_tag("meta", attrs={
            "name": "viewport",
            "content": "width=device-width, initial-scale=1.0",
        }))
        fixes.append("Added viewport meta tag")

    if rules.MISSING_DESCRIPTION in wanted and head.find("meta", attrs={"name": "description"}) is None:
        head.append(soup.new_tag("meta", attrs={
            "name": "description",
            "content": _description_text(soup),
        }))
        fixes.append("Added meta description")

    if rules.MISSING_TITLE in wanted:
        text = _text(soup.find("h1")) or "Untitled Page"
        title = soup.title
        if title is None:
            title = soup.new_tag("title")
            head.append(title)
        if not _text(title):
            title.string = text
            fixes.append(f"Added <title>{text}</title>")
    return fixes


def _handler_code(code):
    code = " ".join((code or "").split())
    code = re.sub(r"\breturn\s+false\b;?", "event.preventDefault(); return;", code)
    if code and not code.endswith((";", "}")):
        code += ";"
    return code


def _bindings_script(lines):
    body = "\n".join(lines)
    return (
        "\n(function () {\n"
        "  function bind(target, type, handler) {\n"
        "    if (target) target.addEventListener(type, handler);\n"
        "  }\n"
        "  function bindInlineHandlers() {\n"
        f"{body}\n"
        "  }\n"
        "  if (document.readyState === \"loading\") {\n"
        "    document.addEventListener(\"DOMContentLoaded\", bindInlineHandlers);\n"
        "  } else {\n"
        "    bindInlineHandlers();\n"
        "  }\n"
        "})();\n"
    )


def _fix_inline_handlers(soup):
    used_ids = {tag.get("id") for tag in soup.find_all(id=True)}
    counter = 0
    lines = []
    for tag in soup.find_all(True):
        handlers = [name for name in list(tag.attrs) if is_handler_attribute(name)]
        if not handlers:
            continue
        if tag.name in _WINDOW_TARGETS:
            target = "window"
        else:
            if not tag.get("id"):
                counter += 1
                while f"autofix-{tag.name}-{counter}" in used_ids:
                    counter += 1
                tag["id"] = f"autofix-{tag.name}-{counter}"
                used_ids.add(tag["id"])
            target = f"document.getElementById({json.dumps(tag['id'])})"
        for name in handlers:
            code = tag[name]
            del tag[name]
            event = name.lower()[2:]
            lines.append(
                f"    bind({target}, {json.dumps(event)}, "
                f"function (event) {{ {_handler_code(code)} }});"
            )

    if not lines:
        return []

    # Each bindings block must itself stay within the inline script limit
    capacity = max(1, DEFAULTS["max_inline_script_lines"] - logical_lines(_bindings_script([])))
    pending = list(lines)
    blocks = soup.find_all("script", attrs={"data-autofix": BINDINGS_MARKER})
    anchor = blocks[-1] if blocks else None
    existing = _BINDINGS_BODY_RE.search(anchor.string or "") if anchor is not None else None
    if existing is not None:
        current = existing.group(1).split("\n")
        room = capacity - len(current)
        if room > 0:
            anchor.string = _bindings_script(current + pending[:room])
            pending = pending[room:]

    while pending:
        script = soup.new_tag("script", attrs={"data-autofix": BINDINGS_MARKER})
        script.string = _bindings_script(pending[:capacity])
        pending = pending[capacity:]
        if anchor is None:
            (soup.body or soup.html or soup).append(script)
        else:
            anchor.insert_after(script)
            anchor.insert_after("\n")
        anchor = script
    return [f"Moved {len(lines)} inline handler(s) to addEventListener bindings"]


def _fix_colors(soup):
    styles = soup.find_all("style")
    value_to_name, names = collect_declared([s.string or "" for s in styles])
    fixes = []
    for style in styles:
        css, descriptions = hoist_colors(style.string or "", value_to_name, names)
        if descriptions:
            style.string = css
            fixes.extend(descriptions)
    return fixes


def _fix_oversized_scripts(soup):
    limit = DEFAULTS["max_inline_script_lines"]
    fixes = []
    for index, script in enumerate(soup.find_all("script"), 1):
        if script.get("src") is not None:
            continue
        code = script.string or ""
        count = logical_lines(code)
        if count <= limit:
            continue

        chunks = None
        if (script.get("type") or "").strip().lower() in _JS_TYPES:
            chunks = split_script(code, limit)
        if chunks and len(chunks) > 1:
            script.string = chunks[0]
            anchor = script
            for chunk in chunks[1:]:
                extra = soup.new_tag("script", attrs=dict(script.attrs))
                extra.string = chunk
                anchor.insert_after(extra)
                anchor.insert_after("\n")
                anchor = extra
            fixes.append(f"Split inline script of {count} lines into {len(chunks)} blocks")
        elif script.get("data-extract") is None:
            target = f"inline-script-{index}.js"
            script["data-extract"] = target
            fixes.append(f"Marked inline script of {count} lines for extraction to {target}")
    return fixes


_METADATA_IDS = {rule_id for rule_id, _, _, _ in rules.METADATA_RULES}


def _fix_html(content, wanted):
    soup = BeautifulSoup(content, "html.parser")
    fixes = []
    if rules.HEADING_COUNT in wanted:
        fixes += _fix_headings(soup)
    fixes += _fix_metadata(soup, wanted & _METADATA_IDS)
    if rules.INLINE_HANDLER in wanted:
        fixes += _fix_inline_handlers(soup)
    if rules.HARDCODED_COLOR in wanted:
        fixes += _fix_colors(soup)
    if rules.OVERSIZED_SCRIPT in wanted:
        fixes += _fix_oversized_scripts(soup)
    if not fixes:
        return content, []
    return str(soup), fixes


def _fix_css(content, wanted):
    if rules.HARDCODED_COLOR not in wanted:
        return content, []
    value_to_name, names = collect_declared([content])
    return hoist_colors(content, value_to_name, names)


FIXERS = {
    "html": _fix_html,
    "css": _fix_css,
}

# Repairs run one group at a time, in this order; a group that would
# introduce a new issue is dropped on its own
REPAIRS = {
    "html": [
        {rules.HEADING_COUNT},
        _METADATA_IDS,
        {rules.INLINE_HANDLER},
        {rules.HARDCODED_COLOR},
        {rules.OVERSIZED_SCRIPT},
    ],
    "css": [
        {rules.HARDCODED_COLOR},
    ],
}


def _issue_rules(report):
    return {f.rule for f in report.issues}


def auto_fix(content, report, kind=None) -> AutoFixResult:
    """Apply every repair the report's findings call for.

    The remaining-issue count is the actionable findings left after a fresh
    validation, plus input findings from rules this engine does not check.
    """
    kind = kind or report.kind
    content = content or ""
    wanted = _issue_rules(report)
    fixed, fixes, after = content, [], validate(content, kind)
    for group in REPAIRS.get(kind, ()):
        targets = wanted & group
        if not targets:
            continue
        candidate, descriptions = FIXERS[kind](fixed, targets)
        if not descriptions:
            continue
        checked = validate(candidate, kind)
        regressed = _issue_rules(checked) - _issue_rules(after)
        if regressed:
            logger.warning("Auto-fix of %s in %s content would introduce %s; skipping it",
                           ", ".join(sorted(targets)), kind, ", ".join(sorted(regressed)))
            continue
        fixed, after = candidate, checked
        fixes += descriptions

    known = KNOWN_RULES.get(kind, set())
    foreign = [f for f in report.issues if f.rule not in known]
    remaining = len(after.issues) + len(foreign)

    if fixes:
        logger.info("Auto-fixed %d issue(s) in %s content, %d remaining", len(fixes), kind, remaining)
    return AutoFixResult(fixed=fixed, fixes=tuple(fixes), remaining_issues=remaining, report=after)


class AutoFixer:
    """Applies deterministic repairs for validator findings."""

    name = "fixer"

    def fix(self, content, report, kind=None) -> AutoFixResult:
        return auto_fix(content, report, kind)
