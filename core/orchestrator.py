"""Build pipeline orchestrator: load -> classify -> plan -> generate -> store."""

import dataclasses
import logging
from contextlib import closing

from agents.generator import GeneratorAgent
from agents.planner import PlannerAgent, build_amend_plan
from core.events import DoneEvent, ErrorEvent, EventStream, PlanEvent, ValidationEvent
from core.state import GeneratedArtifact, IterationDecision, IterationMode, Rationale
from core.storage import InMemoryStore, VersionConflict
from manager.classifier import detect_mode
from manager.iteration import classify_iteration
from utils.folder_naming import extract_project_name, unique_project_id
from utils.llm import guess_language

logger = logging.getLogger(__name__)


class Orchestrator:
    """Runs one BuildRequest end to end as a single event stream.

    The store is read once at the start (existing files for a follow-up) and
    written once at the end. Exactly one terminal event closes every stream.
    """

    def __init__(self, store=None, planner=None, generator=None):
        self.store = store if store is not None else InMemoryStore()
        self.planner = planner or PlannerAgent()
        self.generator = generator or GeneratorAgent()

    def resolve(self, request):
        """Fill in project id, name and existing files; return (request, stored version)."""
        name = request.project_name or extract_project_name(request.prompt)
        if request.project_id:
            stored = self.store.load(request.project_id)
            existing = request.existing_files or stored.files
            request = dataclasses.replace(request, project_name=name, existing_files=dict(existing))
            return request, stored.version
        project_id = unique_project_id(name, set(self.store.project_ids()))
        return dataclasses.replace(request, project_name=name, project_id=project_id), 0

    def decide(self, request) -> IterationDecision:
        if not request.existing_files:
            return IterationDecision(IterationMode.FRESH, (), Rationale.DEFAULT)
        return classify_iteration(request.existing_files, request.history, request.prompt)

    def plan(self, request, decision=None):
        """Dry run: the plan this request would execute, with no generation."""
        decision = decision or self.decide(request)
        # Mode is recomputed per request; follow-ups include the earlier prompts
        context = " ".join([turn.prompt for turn in request.history] + [request.prompt])
        mode = detect_mode(context)
        name = request.project_name or extract_project_name(request.prompt)
        if decision.mode == IterationMode.AMEND:
            return build_amend_plan(request.prompt, list(decision.targets), name, mode)
        return self.planner.create_plan(request.prompt, name, mode)

    def run(self, request) -> EventStream:
        return EventStream(self._events(request))

    def _events(self, request):
        try:
            request, version = self.resolve(request)
            decision = self.decide(request)
            logger.info("Build %s: %s (%s)", request.project_id, decision.mode.value, decision.rationale.value)

            plan = self.plan(request, decision)
            yield PlanEvent(plan.to_dict())

            amend = decision.mode == IterationMode.AMEND
            artifact = GeneratedArtifact()
            reports = {}
            events = self.generator.execute(plan, request, artifact,
                                            targets=decision.targets if amend else None)
            with closing(events):
                for event in events:
                    if isinstance(event, ValidationEvent):
                        reports[event.path] = event.report
                    yield event

            if not len(artifact):
                yield ErrorEvent("No step produced any files")
                return

            files = dict(request.existing_files) if amend else {}
            files.update(artifact.contents())
            new_version = self.store.store(request.project_id, files, expected_version=version)

            scores = [reports[p].score for p in artifact.paths() if p in reports]
            quality = round(sum(scores) / len(scores)) if scores else 100
            yield DoneEvent(
                files={path: {"content": content, "language": guess_language(path)}
                       for path, content in files.items()},
                plan=plan.to_dict(),
                quality_score=quality,
                project_id=request.project_id,
                version=new_version,
            )
        except VersionConflict as e:
            yield ErrorEvent(str(e))
        except Exception as e:
            logger.exception("Build failed")
            yield ErrorEvent(f"Build failed: {e}")
