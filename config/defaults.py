"""Default pipeline settings."""

import os

DEFAULTS = {
    "model": os.environ.get("SITEFORGE_MODEL", "claude-sonnet-4-5-20250929"),
    "plan_model": os.environ.get("SITEFORGE_PLAN_MODEL", "claude-haiku-4-5-20251001"),
    "max_tokens": 32768,
    "plan_max_tokens": 2000,
    "step_max_tokens": 8000,
    "llm_retries": 1,
    "retry_delay": 2,
    "store_dir": os.environ.get("SITEFORGE_STORE_DIR", "projects"),
    # Validation scoring: any single error must keep a report out of grade A
    "error_weight": 15,
    "warning_weight": 5,
    "info_weight": 0,
    "grade_bands": [(90, "A"), (80, "B"), (70, "C"), (60, "D")],
    "max_inline_script_lines": 50,
}
