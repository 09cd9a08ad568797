"""Prompt templates rendered with string.Template."""

import os
from string import Template


def get_prompts_dir():
    """Return the absolute path to the prompts directory."""
    return os.path.join(os.path.dirname(os.path.dirname(__file__)), "agents", "prompts")


def load_prompt(name):
    """Load a prompt file and return its contents as a string."""
    prompts_dir = get_prompts_dir()
    path = os.path.join(prompts_dir, name)
    resolved = os.path.realpath(path)
    if not resolved.startswith(os.path.realpath(prompts_dir) + os.sep):
        raise ValueError(f"Prompt path escapes prompts directory: {name}")
    with open(resolved, "r") as f:
        return f.read()


def render_prompt(name, variables):
    """Load and render a prompt with the given variables.

    Uses string.Template for safe substitution - unknown placeholders
    are left as-is rather than raising errors, so JSON braces in the
    prompt text need no escaping.
    """
    raw = load_prompt(name)
    tmpl = Template(raw)
    return tmpl.safe_substitute(variables)
