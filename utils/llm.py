"""Claude API client for planning and file generation."""

import logging
import os
import re
import time

import anthropic

from config.defaults import DEFAULTS

logger = logging.getLogger(__name__)


def get_client():
    """Return an Anthropic client. Raises if no API key is set."""
    api_key = os.environ.get("ANTHROPIC_API_KEY")
    if not api_key:
        raise RuntimeError(
            "ANTHROPIC_API_KEY environment variable is not set. "
            "Get a key at https://console.anthropic.com/ and run:\n"
            "  export ANTHROPIC_API_KEY='your-key-here'"
        )
    return anthropic.Anthropic(api_key=api_key)


def call_llm(system_prompt, user_message, model=None, max_tokens=None):
    """Call Claude and return the full raw text response.

    API errors are retried once after a short pause, then re-raised.
    """
    return "".join(stream_llm(system_prompt, user_message, model=model, max_tokens=max_tokens))


def stream_llm(system_prompt, user_message, model=None, max_tokens=None):
    """Yield text deltas from Claude as they arrive.

    Closing the generator leaves the SDK stream context, which closes the
    HTTP response. A retry only happens if nothing was yielded yet.
    """
    client = get_client()
    model = model or DEFAULTS["model"]
    max_tokens = max_tokens or DEFAULTS["max_tokens"]

    attempts = DEFAULTS["llm_retries"] + 1
    for attempt in range(attempts):
        yielded = False
        try:
            with client.messages.stream(
                model=model,
                max_tokens=max_tokens,
                system=system_prompt,
                messages=[{"role": "user", "content": user_message}],
            ) as stream:
                for chunk in stream.text_stream:
                    yielded = True
                    yield chunk
                stop_reason = stream.get_final_message().stop_reason

            if stop_reason == "max_tokens":
                logger.warning("Response from %s hit the token limit (%d)", model, max_tokens)
                yield "\n<!-- TRUNCATED: Response hit token limit -->"
            return

        except anthropic.APIError as e:
            if yielded or attempt == attempts - 1:
                raise
            logger.warning("Upstream error from %s (%s), retrying", model, e)
            time.sleep(DEFAULTS["retry_delay"])


def extract_json_object(text):
    """Return the first balanced {...} region of `text`, or None.

    Braces inside JSON strings are ignored. Prose before and after the
    object is tolerated.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start:i + 1]
        # Unbalanced from this brace; try the next one
        start = text.find("{", start + 1)
    return None


def parse_files(response):
    """Extract (filename, content) pairs from fenced code blocks.

    Handles multiple formats Claude may use:
        ```filename.html          (filepath as language tag)
        ```html index.html        (language then filepath)
        ```html                   (language tag, filename in first comment line)
        <!-- index.html -->
        ...
        ```

    Returns list of (relative_path, content) tuples.
    """
    files = []
    pattern = re.compile(
        r"```(\S+?)(?:[ \t]+(\S+?))?\n(.*?)```",
        re.DOTALL,
    )

    # Pattern to detect a filepath in a comment on the first line
    comment_path_re = re.compile(
        r"^(?:#|//|/\*|<!--)\s*(.+?\.\w+)\s*(?:\*/|-->)?\s*\n",
    )

    for match in pattern.finditer(response):
        tag = match.group(1)        # e.g. "index.html" or "html" or "css"
        second = match.group(2)     # e.g. "index.html" after "html" (if present)
        content = match.group(3)

        filename = None

        # Case 1: tag itself is a filepath (contains . and /)
        if "/" in tag and "." in tag:
            filename = tag
        # Case 2: second token is a filepath (```html index.html)
        elif second and "." in second:
            filename = second
        # Case 3: tag is a bare filename with extension (```style.css)
        elif "." in tag and "/" not in tag:
            filename = tag
        # Case 4: tag is just a language, check first line for a filepath comment
        else:
            cm = comment_path_re.match(content)
            if cm:
                filename = cm.group(1).strip()
                content = content[cm.end():]

        if not filename:
            continue

        if content.endswith("\n"):
            content = content[:-1]

        files.append((filename, content))
    return files


def guess_language(filepath):
    """Guess language tag from file extension."""
    ext_map = {
        ".html": "html", ".htm": "html", ".css": "css",
        ".js": "javascript", ".mjs": "javascript", ".jsx": "javascript",
        ".ts": "typescript", ".tsx": "typescript",
        ".json": "json", ".md": "markdown", ".prisma": "prisma",
        ".yml": "yaml", ".yaml": "yaml", ".txt": "text",
    }
    _, ext = os.path.splitext(filepath)
    return ext_map.get(ext.lower(), "text")
