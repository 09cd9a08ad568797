"""Project naming utilities: slugs, display names, unique project ids."""

import os
import re

FILLER_WORDS = {
    "build", "me", "a", "an", "the", "create", "make", "generate",
    "write", "for", "to", "with", "using", "that", "and", "my", "our",
    "website", "site", "page", "web", "please", "can", "you", "i",
    "want", "need", "some", "new", "simple", "modern", "of",
}

MAX_DEDUP = 1000


def slugify(text):
    """Convert text to a URL- and filesystem-safe slug."""
    text = (text or "").lower().strip()
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"[\s_-]+", "-", text)
    return text.strip("-")


def extract_project_name(prompt):
    """Pull a short display name from the prompt text."""
    words = re.sub(r"[^\w\s]", " ", (prompt or "").lower()).split()
    meaningful = [w for w in words if w not in FILLER_WORDS]
    if not meaningful:
        return "My Site"
    return " ".join(meaningful[:3]).title()


def check_containment(root, path):
    """Resolve `path` under `root`; raise ValueError if it escapes."""
    resolved = os.path.realpath(os.path.join(root, path))
    if not resolved.startswith(os.path.realpath(root) + os.sep):
        raise ValueError(f"Path escapes project directory: {path}")
    return resolved


def unique_project_id(name, taken):
    """Slug for `name` not present in `taken`, deduplicated with -2, -3, ..."""
    base = slugify(name) or "project"
    if base not in taken:
        return base
    for counter in range(2, MAX_DEDUP + 2):
        candidate = f"{base}-{counter}"
        if candidate not in taken:
            return candidate
    raise RuntimeError(f"Too many duplicate projects (>{MAX_DEDUP}) for: {base}")
