"""Validation rule tables per file kind."""

import re

# Rule ids the auto-fixer knows how to resolve
HEADING_COUNT = "heading-count"
MISSING_CHARSET = "missing-charset"
MISSING_VIEWPORT = "missing-viewport"
MISSING_DESCRIPTION = "missing-description"
MISSING_TITLE = "missing-title"
INLINE_HANDLER = "inline-handler"
HARDCODED_COLOR = "hardcoded-color"
OVERSIZED_SCRIPT = "oversized-script"

# Rule ids that are reported but never auto-fixed
BRACE_BALANCE = "brace-balance"
UNSAFE_EVAL = "unsafe-eval"
DOCUMENT_WRITE = "document-write"
RAW_HTML_INJECTION = "raw-html-injection"

# Advisory markup checks, reported as info (no score weight)
MISSING_DOCTYPE = "missing-doctype"
MISSING_LANG = "missing-lang"
HEADING_SKIP = "heading-skip"
MISSING_ALT = "missing-alt"
EXTERNAL_LINK_REL = "external-link-rel"
MISSING_MAIN = "missing-main"

# Required <head> metadata. Each entry: (rule_id, presence_regex, message, suggestion)
METADATA_RULES = [
    (
        MISSING_CHARSET,
        re.compile(r"""<meta\b[^>]*\bcharset\s*=""", re.IGNORECASE),
        "Missing character-encoding declaration",
        'Add <meta charset="UTF-8"> as the first element of <head>',
    ),
    (
        MISSING_VIEWPORT,
        re.compile(r"""<meta\b[^>]*\bname\s*=\s*["']?viewport\b""", re.IGNORECASE),
        "Missing viewport meta tag for responsive design",
        'Add <meta name="viewport" content="width=device-width, initial-scale=1.0">',
    ),
    (
        MISSING_DESCRIPTION,
        re.compile(r"""<meta\b[^>]*\bname\s*=\s*["']?description\b""", re.IGNORECASE),
        "Missing meta description",
        'Add <meta name="description" content="..."> summarising the page',
    ),
    (
        MISSING_TITLE,
        re.compile(r"""<title\b[^>]*>\s*[^<\s]""", re.IGNORECASE),
        "Missing or empty <title>",
        "Add a descriptive <title> inside <head>",
    ),
]

H1_RE = re.compile(r"""<h1\b""", re.IGNORECASE)
HEADING_RE = re.compile(r"""<h([1-6])\b""", re.IGNORECASE)
DOCTYPE_RE = re.compile(r"""^\s*<!doctype\s+html\b""", re.IGNORECASE)
MAIN_RE = re.compile(r"""<main\b""", re.IGNORECASE)
EXTERNAL_URL_RE = re.compile(r"""^(?:https?:)?//""", re.IGNORECASE)

# Any opening tag; group 2 holds the attribute text, quoted values kept whole
TAG_RE = re.compile(r"""<([a-zA-Z][\w:-]*)((?:\s+[^\s>=/]+(?:\s*=\s*(?:"[^"]*"|'[^']*'|[^\s>]+))?)*)\s*/?>""")
ATTR_RE = re.compile(r"""\s+([^\s>=/]+)(?:\s*=\s*("[^"]*"|'[^']*'|[^\s>]+))?""")
HANDLER_NAME_RE = re.compile(r"""^on[a-z]{3,}$""", re.IGNORECASE)

STYLE_BLOCK_RE = re.compile(r"""<style\b[^>]*>(.*?)</style\s*>""", re.IGNORECASE | re.DOTALL)
SCRIPT_BLOCK_RE = re.compile(r"""<script\b([^>]*)>(.*?)</script\s*>""", re.IGNORECASE | re.DOTALL)
COMMENT_RE = re.compile(r"""<!--.*?-->""", re.DOTALL)

# Innermost "selector { declarations }" blocks; selectors never appear inside them
RULE_BODY_RE = re.compile(r"""([^{}]*)\{([^{}]*)\}""")
ROOT_SELECTOR_RE = re.compile(r""":root\s*$""")
CSS_COMMENT_RE = re.compile(r"""/\*.*?\*/""", re.DOTALL)
# Spans where "#abc" is a fragment or text, never a color
CSS_STRING_RE = re.compile(r""""(?:\\.|[^"\\\n])*"|'(?:\\.|[^'\\\n])*'""")
CSS_URL_RE = re.compile(r"""\burl\(\s*[^)]*\)""", re.IGNORECASE)
COLOR_LITERAL_RE = re.compile(
    r"""#(?:[0-9a-fA-F]{8}|[0-9a-fA-F]{6}|[0-9a-fA-F]{3,4})\b"""
    r"""|\b(?:rgba?|hsla?)\(\s*[^()]*\)""",
)
CUSTOM_PROPERTY_RE = re.compile(r"""(--[\w-]+)\s*:\s*([^;}]+)""")

RULE_TEXT = {
    HEADING_COUNT: (
        "Exactly one top-level <h1> heading is required",
        "Keep a single <h1> per page and use <h2>-<h6> for sections",
    ),
    INLINE_HANDLER: (
        "Inline {attr} handler violates the content security policy",
        "Remove the attribute and bind the handler with addEventListener once the DOM is ready",
    ),
    HARDCODED_COLOR: (
        "Hard-coded color {value} outside :root",
        "Declare the color as a custom property in :root and reference it with var()",
    ),
    OVERSIZED_SCRIPT: (
        "Inline script block has {count} logical lines (limit {limit})",
        "Move the script into an external file",
    ),
    BRACE_BALANCE: (
        "{detail}",
        "Check the file for truncated or unbalanced blocks",
    ),
    MISSING_DOCTYPE: (
        "Missing <!DOCTYPE html> declaration",
        "Start the document with <!DOCTYPE html>",
    ),
    MISSING_LANG: (
        "Missing lang attribute on <html>",
        'Add lang="en" (or the page language) to <html> for screen readers',
    ),
    HEADING_SKIP: (
        "Skipped heading level: h{prev} to h{level}",
        "Follow the heading hierarchy without skipping levels",
    ),
    MISSING_ALT: (
        "Image without alt attribute",
        'Add descriptive alt text, or alt="" for decorative images',
    ),
    EXTERNAL_LINK_REL: (
        "External link without rel attribute",
        'Add rel="noopener noreferrer" to links to other sites',
    ),
    MISSING_MAIN: (
        "Missing <main> element",
        "Wrap the primary content of the page in <main>",
    ),
}

# Simple single-pattern rules. Each entry: (rule_id, pattern_regex, severity, message, suggestion)
SCRIPT_PATTERNS = [
    (
        UNSAFE_EVAL,
        re.compile(r"""\beval\s*\("""),
        "error",
        "Use of eval() is unsafe",
        "Replace eval() with JSON.parse or explicit function calls",
    ),
    (
        DOCUMENT_WRITE,
        re.compile(r"""\bdocument\.write(?:ln)?\s*\("""),
        "warning",
        "document.write() blocks parsing and is disallowed by strict CSP",
        "Build nodes with document.createElement and append them",
    ),
]

COMPONENT_PATTERNS = [
    (
        UNSAFE_EVAL,
        re.compile(r"""\beval\s*\("""),
        "error",
        "Use of eval() is unsafe",
        "Replace eval() with JSON.parse or explicit function calls",
    ),
    (
        RAW_HTML_INJECTION,
        re.compile(r"""\bdangerouslySetInnerHTML\b"""),
        "warning",
        "dangerouslySetInnerHTML bypasses React escaping (XSS risk)",
        "Render the content as JSX or sanitize it before injecting",
    ),
]

# File extension -> validation kind
KIND_BY_EXTENSION = {
    ".html": "html",
    ".htm": "html",
    ".css": "css",
    ".js": "script",
    ".mjs": "script",
    ".ts": "component",
    ".tsx": "component",
    ".jsx": "component",
}
