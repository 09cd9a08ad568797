"""Validator agent -- bounded, pattern-based quality checks. Zero LLM calls.

validate() is pure: same content and kind, same report. It never raises;
content it cannot make sense of simply produces findings.
"""

import os

from config.defaults import DEFAULTS
from config import rules
from core.quality import Finding, ValidationReport

_PAIRS = {"{": "}", "[": "]", "(": ")"}
_CLOSERS = {v: k for k, v in _PAIRS.items()}


# ----------------------------------------------------------------------
# Text helpers shared with the auto-fixer
# ----------------------------------------------------------------------

def kind_for_path(path):
    _, ext = os.path.splitext(path or "")
    return rules.KIND_BY_EXTENSION.get(ext.lower())


def line_of(text, offset):
    return text.count("\n", 0, offset) + 1


def _blank(match):
    """Replace a match with whitespace of the same shape, keeping offsets and line numbers."""
    return "".join("\n" if ch == "\n" else " " for ch in match.group(0))


def strip_comments(html):
    return rules.COMMENT_RE.sub(_blank, html)


def markup_only(html):
    """Blank comments and the bodies of <script>/<style> so only markup remains."""
    text = strip_comments(html)

    def blank_body(match):
        start, end = match.span(match.lastindex)
        whole = match.group(0)
        offset = match.start()
        inner = whole[start - offset:end - offset]
        blanked = "".join("\n" if ch == "\n" else " " for ch in inner)
        return whole[:start - offset] + blanked + whole[end - offset:]

    text = rules.SCRIPT_BLOCK_RE.sub(blank_body, text)
    return rules.STYLE_BLOCK_RE.sub(blank_body, text)


def iter_attributes(attr_text):
    """Yield (name, value) for each attribute in the attribute part of a tag."""
    for match in rules.ATTR_RE.finditer(attr_text or ""):
        value = match.group(2)
        if value and value[0] in "\"'":
            value = value[1:-1]
        yield match.group(1), value


def is_handler_attribute(name):
    return bool(rules.HANDLER_NAME_RE.match(name))


def logical_lines(code):
    """Count non-blank lines that are not pure comment lines."""
    count = 0
    for line in (code or "").splitlines():
        stripped = line.strip()
        if stripped and not stripped.startswith(("//", "/*", "*", "-->", "<!--")):
            count += 1
    return count


def scan_brackets(text, line_comments=True):
    """Walk code tracking bracket nesting outside strings and comments.

    Returns (problem, line_states). `problem` is None or (message, line).
    line_states[i] is True when line i+1 ends at depth zero outside any
    string or comment, i.e. a safe place to cut the code.
    """
    stack = []
    problem = None
    states = []
    line = 1
    mode = None     # None | "line" | "block" | a quote character
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        nxt = text[i + 1] if i + 1 < n else ""
        if ch == "\n":
            if mode in ("line", "'", '"'):
                mode = None
            states.append(not stack and mode is None)
            line += 1
            i += 1
            continue
        if mode == "line":
            i += 1
            continue
        if mode == "block":
            if ch == "*" and nxt == "/":
                mode = None
                i += 2
            else:
                i += 1
            continue
        if mode is not None:
            if ch == "\\":
                if nxt == "\n":
                    states.append(False)
                    line += 1
                i += 2
                continue
            if ch == mode:
                mode = None
            i += 1
            continue
        if ch == "/" and nxt == "/" and line_comments:
            mode = "line"
            i += 2
            continue
        if ch == "/" and nxt == "*":
            mode = "block"
            i += 2
            continue
        # An apostrophe right after a letter is prose ("don't"), not a string
        if ch in "\"`" or (ch == "'" and not (i > 0 and text[i - 1].isalnum())):
            mode = ch
        elif ch in _PAIRS:
            stack.append((ch, line))
        elif ch in _CLOSERS:
            if stack and stack[-1][0] == _CLOSERS[ch]:
                stack.pop()
            elif problem is None:
                problem = (f"Unexpected closing '{ch}'", line)
        i += 1
    states.append(not stack and mode is None)

    if problem is None and stack:
        opener, opened_at = stack[0]
        problem = (f"{len(stack)} unclosed bracket(s); first '{opener}' opened here", opened_at)
    return problem, states


def _css_scan_text(css):
    """Blank comments, quoted strings and url() arguments, keeping offsets."""
    text = rules.CSS_COMMENT_RE.sub(_blank, css or "")
    text = rules.CSS_STRING_RE.sub(_blank, text)
    return rules.CSS_URL_RE.sub(_blank, text)


def find_color_literals(css):
    """Return (start, end, literal) for every color literal outside :root bodies."""
    found = []
    for block in rules.RULE_BODY_RE.finditer(_css_scan_text(css)):
        if rules.ROOT_SELECTOR_RE.search(block.group(1).strip()):
            continue
        base = block.start(2)
        for color in rules.COLOR_LITERAL_RE.finditer(block.group(2)):
            found.append((base + color.start(), base + color.end(), color.group(0)))
    return found


def root_bodies(css):
    """Return (start, end) spans of every :root body in the stylesheet."""
    return [
        block.span(2)
        for block in rules.RULE_BODY_RE.finditer(_css_scan_text(css))
        if rules.ROOT_SELECTOR_RE.search(block.group(1).strip())
    ]


def root_declarations(css):
    """Return [(name, value)] of custom properties declared in :root."""
    declared = []
    for start, end in root_bodies(css):
        for prop in rules.CUSTOM_PROPERTY_RE.finditer(css[start:end]):
            declared.append((prop.group(1), prop.group(2).strip()))
    return declared


# ----------------------------------------------------------------------
# Rule checks per kind
# ----------------------------------------------------------------------

def _check_headings(markup):
    headings = list(rules.H1_RE.finditer(markup))
    message, suggestion = rules.RULE_TEXT[rules.HEADING_COUNT]
    if not headings:
        return [Finding(rules.HEADING_COUNT, "error", f"{message}; found none", None, suggestion)]
    if len(headings) > 1:
        return [Finding(rules.HEADING_COUNT, "error", f"{message}; found {len(headings)}",
                        line_of(markup, headings[1].start()), suggestion)]
    return []


def _check_metadata(markup):
    findings = []
    for rule_id, pattern, message, suggestion in rules.METADATA_RULES:
        if not pattern.search(markup):
            findings.append(Finding(rule_id, "error", message, None, suggestion))
    return findings


def _check_handlers(markup):
    findings = []
    message, suggestion = rules.RULE_TEXT[rules.INLINE_HANDLER]
    for tag in rules.TAG_RE.finditer(markup):
        for name, _value in iter_attributes(tag.group(2)):
            if is_handler_attribute(name):
                findings.append(Finding(
                    rules.INLINE_HANDLER, "error",
                    message.format(attr=name.lower()),
                    line_of(markup, tag.start()), suggestion,
                ))
    return findings


def _check_colors(css, offset=0, source=""):
    findings = []
    message, suggestion = rules.RULE_TEXT[rules.HARDCODED_COLOR]
    text = source or css
    for start, _end, literal in find_color_literals(css):
        findings.append(Finding(
            rules.HARDCODED_COLOR, "warning",
            message.format(value=literal),
            line_of(text, offset + start), suggestion,
        ))
    return findings


def _check_inline_scripts(html):
    findings = []
    limit = DEFAULTS["max_inline_script_lines"]
    message, suggestion = rules.RULE_TEXT[rules.OVERSIZED_SCRIPT]
    for block in rules.SCRIPT_BLOCK_RE.finditer(html):
        attrs = dict((k.lower(), v) for k, v in iter_attributes(block.group(1)))
        if "src" in attrs:
            continue
        count = logical_lines(block.group(2))
        if count > limit:
            findings.append(Finding(
                rules.OVERSIZED_SCRIPT, "warning",
                message.format(count=count, limit=limit),
                line_of(html, block.start()), suggestion,
            ))
    return findings


def _check_brackets(code, line_comments=True):
    problem, _ = scan_brackets(code, line_comments=line_comments)
    if problem is None:
        return []
    detail, line = problem
    message, suggestion = rules.RULE_TEXT[rules.BRACE_BALANCE]
    return [Finding(rules.BRACE_BALANCE, "error", message.format(detail=detail), line, suggestion)]


def _info(rule_id, line=None, **values):
    message, suggestion = rules.RULE_TEXT[rule_id]
    return Finding(rule_id, "info", message.format(**values), line, suggestion)


def _check_document(markup):
    """Advisory accessibility and structure checks. Info only, never scored."""
    findings = []
    if not rules.DOCTYPE_RE.match(markup):
        findings.append(_info(rules.MISSING_DOCTYPE))

    for tag in rules.TAG_RE.finditer(markup):
        name = tag.group(1).lower()
        attrs = {k.lower(): v for k, v in iter_attributes(tag.group(2))}
        line = line_of(markup, tag.start())
        if name == "html" and not attrs.get("lang"):
            findings.append(_info(rules.MISSING_LANG, line))
        elif name == "img" and "alt" not in attrs:
            findings.append(_info(rules.MISSING_ALT, line))
        elif name == "a" and "rel" not in attrs and rules.EXTERNAL_URL_RE.match(attrs.get("href") or ""):
            findings.append(_info(rules.EXTERNAL_LINK_REL, line))

    prev = None
    for heading in rules.HEADING_RE.finditer(markup):
        level = int(heading.group(1))
        if prev is not None and level - prev > 1:
            findings.append(_info(rules.HEADING_SKIP, line_of(markup, heading.start()),
                                  prev=prev, level=level))
            break
        prev = level

    if not rules.MAIN_RE.search(markup):
        findings.append(_info(rules.MISSING_MAIN))
    return findings


def _check_patterns(code, patterns):
    findings = []
    for line_num, line in enumerate(code.split("\n"), 1):
        for rule_id, pattern, severity, message, suggestion in patterns:
            if pattern.search(line):
                findings.append(Finding(rule_id, severity, message, line_num, suggestion))
    return findings


def _validate_html(content):
    markup = markup_only(content)
    findings = []
    findings += _check_headings(markup)
    findings += _check_metadata(markup)
    findings += _check_handlers(markup)
    without_comments = strip_comments(content)
    for block in rules.STYLE_BLOCK_RE.finditer(without_comments):
        findings += _check_colors(block.group(1), offset=block.start(1), source=content)
    findings += _check_inline_scripts(without_comments)
    findings += _check_document(markup)
    return findings


def _validate_css(content):
    return _check_brackets(content, line_comments=False) + _check_colors(content)


def _validate_script(content):
    return _check_brackets(content) + _check_patterns(content, rules.SCRIPT_PATTERNS)


def _validate_component(content):
    return _check_brackets(content) + _check_patterns(content, rules.COMPONENT_PATTERNS)


VALIDATORS = {
    "html": _validate_html,
    "css": _validate_css,
    "script": _validate_script,
    "component": _validate_component,
}

# Rule ids each kind can report; anything else in a report is foreign to this engine
KNOWN_RULES = {
    "html": {rules.HEADING_COUNT, rules.MISSING_CHARSET, rules.MISSING_VIEWPORT,
             rules.MISSING_DESCRIPTION, rules.MISSING_TITLE, rules.INLINE_HANDLER,
             rules.HARDCODED_COLOR, rules.OVERSIZED_SCRIPT,
             rules.MISSING_DOCTYPE, rules.MISSING_LANG, rules.HEADING_SKIP,
             rules.MISSING_ALT, rules.EXTERNAL_LINK_REL, rules.MISSING_MAIN},
    "css": {rules.BRACE_BALANCE, rules.HARDCODED_COLOR},
    "script": {rules.BRACE_BALANCE, rules.UNSAFE_EVAL, rules.DOCUMENT_WRITE},
    "component": {rules.BRACE_BALANCE, rules.UNSAFE_EVAL, rules.RAW_HTML_INJECTION},
}


def validate(content, kind="html") -> ValidationReport:
    """Score `content` of the given file kind against the fixed rule set."""
    check = VALIDATORS.get(kind)
    if check is None:
        return ValidationReport(kind=kind or "unknown")
    return ValidationReport(kind=kind, findings=tuple(check(content or "")))


class ValidatorAgent:
    """Validates every file of an artifact it has rules for."""

    name = "validator"

    def validate(self, content, kind="html") -> ValidationReport:
        return validate(content, kind)

    def validate_file(self, path, content):
        """Return the report for a file, or None if its kind has no rule set."""
        kind = kind_for_path(path)
        if kind is None:
            return None
        return validate(content, kind)
