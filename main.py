#!/usr/bin/env python3
"""SiteForge - prompt-to-site build pipeline.

Usage:
    python main.py plan --prompt "portfolio site with about and contact pages"
    python main.py build --prompt "bakery site with a menu page"
    python main.py build --project-id bakery-menu --prompt "make the buttons blue"
    python main.py validate index.html
    python main.py fix index.html --write
    python main.py classify-iteration --project-id bakery-menu --prompt "start over"
"""

import argparse
import logging
import os
import sys

from agents.fixer import auto_fix
from agents.validator import kind_for_path, validate
from config.defaults import DEFAULTS
from core.orchestrator import Orchestrator
from core.state import BuildRequest
from core.storage import FileSystemStore
from manager.classifier import classify
from manager.iteration import classify_iteration


def _format_findings(findings):
    """Format findings for CLI display."""
    lines = []
    for finding in findings:
        loc = f"line {finding.line}" if finding.line else "document"
        marker = {"error": "ERROR", "warning": "WARN"}.get(finding.severity, "INFO")
        lines.append(f"  [{marker}] {finding.rule} ({loc}) - {finding.message}")
        if finding.suggestion:
            lines.append(f"           Fix: {finding.suggestion}")
    return "\n".join(lines)


def _read(path):
    with open(path) as f:
        return f.read()


def _kind(args):
    kind = args.kind or kind_for_path(args.file)
    if kind is None:
        print(f"Cannot tell the file kind of {args.file}; pass --kind", file=sys.stderr)
        sys.exit(2)
    return kind


def cmd_plan(args):
    """Plan only: no files are generated."""
    mode, scores = classify(args.prompt)
    plan = Orchestrator().plan(BuildRequest(prompt=args.prompt, project_name=args.name or ""))

    print(f"Mode:     {mode.value}")
    if args.verbose:
        for name, hits in scores.items():
            print(f"  {name:20s} {', '.join(hits) or '-'}")
    print(f"Title:    {plan.title}")
    print(f"Source:   {plan.source}")
    print(f"Estimate: {plan.estimated_files} file(s), ~{plan.estimated_seconds}s")
    print(f"Stack:    {', '.join(plan.tech_stack)}")
    if plan.pages:
        print("\nPages:")
        for page in plan.pages:
            print(f"  {page.name:12s} {page.file}")
    print("\nSteps:")
    for step in plan.steps:
        print(f"  {step.id:8s} [{step.category.value}] {step.label}: {', '.join(step.files)}")


def cmd_build(args):
    """Run the build pipeline and stream progress to the terminal."""
    orchestrator = Orchestrator(store=FileSystemStore(args.out))
    build = BuildRequest(prompt=args.prompt, project_name=args.name or "",
                         project_id=args.project_id or "")

    failed = False
    with orchestrator.run(build) as events:
        for event in events:
            if event.type == "plan":
                print(f"Plan: {event.plan['title']} ({len(event.plan['steps'])} steps, "
                      f"{event.plan['mode']})")
            elif event.type == "status":
                suffix = f" in {event.duration_ms}ms" if event.duration_ms is not None else ""
                print(f"  {event.step_id}: {event.status.value}{suffix}")
                if event.message:
                    print(f"    {event.message}")
            elif event.type == "file":
                print(f"    + {event.path}")
            elif event.type == "validation":
                report = event.report
                print(f"      {event.path}: {report.score} ({report.grade})"
                      f"{'' if report.passed else ' FAILED'}")
                for fix in event.fixes:
                    print(f"        fixed: {fix}")
                if args.verbose and report.findings:
                    print(_format_findings(report.findings))
            elif event.type == "done":
                print(f"\nProject:  {event.project_id} (version {event.version})")
                print(f"Output:   {os.path.join(orchestrator.store.root, event.project_id)}")
                print(f"Quality:  {event.quality_score}")
                print(f"Files:    {len(event.files)}")
            elif event.type == "error":
                print(f"\nBuild failed: {event.message}", file=sys.stderr)
                failed = True

    if failed:
        sys.exit(1)


def cmd_validate(args):
    report = validate(_read(args.file), _kind(args))
    print(f"{args.file}: score {report.score} ({report.grade}) - "
          f"{'passed' if report.passed else 'FAILED'}")
    if report.findings:
        print(_format_findings(report.findings))
    if not report.passed:
        sys.exit(1)


def cmd_fix(args):
    content = _read(args.file)
    kind = _kind(args)
    result = auto_fix(content, validate(content, kind), kind)

    if not result.fixes:
        print("Nothing to fix.")
    for fix in result.fixes:
        print(f"  fixed: {fix}")
    print(f"Remaining issues: {result.remaining_issues}")
    print(f"Score: {result.report.score} ({result.report.grade})")

    if args.write and result.changed:
        with open(args.file, "w") as f:
            f.write(result.fixed)
        print(f"Wrote {args.file}")


def cmd_classify_iteration(args):
    if args.project_id:
        existing = FileSystemStore(args.out).load(args.project_id).files
    else:
        existing = {os.path.basename(p): _read(p) for p in args.files}
    decision = classify_iteration(existing, [], args.prompt)
    print(f"Mode:      {decision.mode.value}")
    print(f"Rationale: {decision.rationale.value}")
    if decision.topics:
        print(f"Topics:    {', '.join(decision.topics)}")
    for path in decision.targets:
        print(f"  {path}")


def main():
    parser = argparse.ArgumentParser(
        prog="siteforge",
        description="Prompt-to-site build pipeline",
    )
    parser.add_argument("--verbose", action="store_true", help="Debug logging and full findings")
    # Also accepted after the command; only overrides the top-level flag when given
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--verbose", action="store_true", default=argparse.SUPPRESS,
                        help="Debug logging and full findings")
    subparsers = parser.add_subparsers(dest="command")

    plan_parser = subparsers.add_parser("plan", parents=[common],
                                        help="Show the build plan without generating")
    plan_parser.add_argument("--prompt", required=True, help="Natural language request")
    plan_parser.add_argument("--name", help="Project display name")

    build_parser = subparsers.add_parser("build", parents=[common], help="Run the build pipeline")
    build_parser.add_argument("--prompt", required=True, help="Request or follow-up instruction")
    build_parser.add_argument("--name", help="Project display name")
    build_parser.add_argument("--project-id", help="Existing project to iterate on")
    build_parser.add_argument("--out", default=DEFAULTS["store_dir"],
                              help=f"Project store directory (default: {DEFAULTS['store_dir']})")

    validate_parser = subparsers.add_parser("validate", parents=[common], help="Validate a file")
    validate_parser.add_argument("file")
    validate_parser.add_argument("--kind", choices=["html", "css", "script", "component"])

    fix_parser = subparsers.add_parser("fix", parents=[common], help="Auto-fix a file")
    fix_parser.add_argument("file")
    fix_parser.add_argument("--kind", choices=["html", "css", "script", "component"])
    fix_parser.add_argument("--write", action="store_true", help="Write the fixed content back")

    iter_parser = subparsers.add_parser("classify-iteration", parents=[common],
                                        help="Show how a follow-up instruction would be applied")
    iter_parser.add_argument("--prompt", required=True, help="Follow-up instruction")
    iter_parser.add_argument("--project-id", help="Stored project to classify against")
    iter_parser.add_argument("--out", default=DEFAULTS["store_dir"], help="Project store directory")
    iter_parser.add_argument("files", nargs="*", help="Existing files (instead of --project-id)")

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    commands = {
        "plan": cmd_plan,
        "build": cmd_build,
        "validate": cmd_validate,
        "fix": cmd_fix,
        "classify-iteration": cmd_classify_iteration,
    }
    if args.command not in commands:
        parser.print_help()
        sys.exit(1)
    commands[args.command](args)


if __name__ == "__main__":
    main()
