"""Validation findings, reports and grading."""

from __future__ import annotations

from dataclasses import dataclass, field

from config.defaults import DEFAULTS

SEVERITIES = ("error", "warning", "info")


@dataclass(frozen=True)
class Finding:
    rule: str           # e.g. "heading-count", "inline-handler"
    severity: str       # "error", "warning", "info"
    message: str
    line: int | None = None
    suggestion: str = ""

    def __post_init__(self):
        if self.severity not in SEVERITIES:
            raise ValueError(f"Unknown severity: {self.severity}")

    def to_dict(self) -> dict:
        return {
            "rule": self.rule,
            "severity": self.severity,
            "message": self.message,
            "line": self.line,
            "suggestion": self.suggestion,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Finding":
        """Build a finding from its dict form. Raises ValueError if malformed."""
        if not isinstance(data, dict):
            raise ValueError(f"Finding must be an object, got {type(data).__name__}")
        line = data.get("line")
        if line is not None and (not isinstance(line, int) or isinstance(line, bool)):
            raise ValueError(f"Finding line must be an integer, got {line!r}")
        return cls(
            rule=str(data.get("rule", "")),
            severity=data.get("severity", "warning"),
            message=str(data.get("message", "")),
            line=line,
            suggestion=str(data.get("suggestion") or ""),
        )


def compute_score(findings) -> int:
    """Start at 100, deduct per finding by severity, floor at 0."""
    weights = {
        "error": DEFAULTS["error_weight"],
        "warning": DEFAULTS["warning_weight"],
        "info": DEFAULTS["info_weight"],
    }
    score = 100 - sum(weights[f.severity] for f in findings)
    return max(0, score)


def grade_for(score: int) -> str:
    for threshold, grade in DEFAULTS["grade_bands"]:
        if score >= threshold:
            return grade
    return "F"


@dataclass(frozen=True)
class ValidationReport:
    kind: str
    findings: tuple[Finding, ...] = field(default_factory=tuple)

    @property
    def score(self) -> int:
        return compute_score(self.findings)

    @property
    def grade(self) -> str:
        return grade_for(self.score)

    @property
    def passed(self) -> bool:
        """Authoritative accept/reject signal: no error-severity findings."""
        return not self.errors

    @property
    def errors(self) -> list[Finding]:
        return [f for f in self.findings if f.severity == "error"]

    @property
    def warnings(self) -> list[Finding]:
        return [f for f in self.findings if f.severity == "warning"]

    @property
    def issues(self) -> list[Finding]:
        """Errors and warnings; info findings are advisory and never acted on."""
        return [f for f in self.findings if f.severity in ("error", "warning")]

    def by_rule(self, rule: str) -> list[Finding]:
        return [f for f in self.findings if f.rule == rule]

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "findings": [f.to_dict() for f in self.findings],
            "score": self.score,
            "grade": self.grade,
            "passed": self.passed,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ValidationReport":
        """Rebuild a report from its dict form. Raises ValueError if malformed."""
        if not isinstance(data, dict):
            raise ValueError("Report must be an object")
        findings = data.get("findings") or []
        if not isinstance(findings, list):
            raise ValueError("Report findings must be a list")
        return cls(
            kind=str(data.get("kind") or "html"),
            findings=tuple(Finding.from_dict(f) for f in findings),
        )


@dataclass(frozen=True)
class AutoFixResult:
    fixed: str
    fixes: tuple[str, ...]
    remaining_issues: int
    report: ValidationReport

    @property
    def changed(self) -> bool:
        return bool(self.fixes)

    def to_dict(self) -> dict:
        return {
            "fixed": self.fixed,
            "fixes": list(self.fixes),
            "remainingIssues": self.remaining_issues,
            "report": self.report.to_dict(),
        }


def quality_gates_pass(reports) -> bool:
    """Every report in the build must pass."""
    return all(r.passed for r in reports)
