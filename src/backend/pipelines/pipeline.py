from __future__ import annotations

import dataclasses
import logging
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional, Sequence

from adapters.output.base import PipelineWriter
from common.rule_pipeline.context import Baseline, PipelineContext
from common.rule_pipeline.errors import PipelineUsageError, RuleFailedError
from common.rule_pipeline.models import (
    BoundTarget,
    InvokeResult,
    RuleHelpInfo,
    RuleInfo,
    RuleOutcome,
    RuleRecord,
    TargetObject,
    id_equals,
)

from .engine import RuleEngine
from .reader import PipelineReader

logger = logging.getLogger(__name__)

BASELINE_NOT_FOUND = "The baseline '{0}' was not found."


class PipelineState(str, Enum):
    CREATED = "Created"
    RUNNING = "Running"
    ENDED = "Ended"
    DISPOSED = "Disposed"


class PipelineBase:
    """Built pipeline: begin, process each object, end, then close.

    ``process`` drains the reader after every call so output order follows
    call order.
    """

    def __init__(
        self,
        context: PipelineContext,
        reader: PipelineReader,
        writer: PipelineWriter,
        engine: RuleEngine,
    ) -> None:
        self.context = context
        self.reader = reader
        self.writer = writer
        self.engine = engine
        self.state = PipelineState.CREATED

    def begin(self) -> None:
        if self.state == PipelineState.DISPOSED:
            raise PipelineUsageError("The pipeline has been closed.")
        if self.state == PipelineState.RUNNING:
            return
        self._resolve_baselines()
        self.writer.begin()
        self.state = PipelineState.RUNNING
        logger.debug("Pipeline %s started (%s)", type(self).__name__, self.context.run_id)

    def _resolve_baselines(self) -> None:
        if not self.context.unresolved:
            return
        baselines = self.engine.get_baselines(self.context)

        def lookup(baseline_id: str) -> Optional[Baseline]:
            for baseline in baselines:
                if id_equals(baseline.id, baseline_id):
                    return baseline
            return None

        option_context = self.context.option_context.resolve(lookup)
        for ref in option_context.unresolved:
            self.writer.write_warning(BASELINE_NOT_FOUND.format(ref.id))
        self.context = dataclasses.replace(self.context, option_context=option_context)

    def process(self, obj: Any) -> None:
        if self.state != PipelineState.RUNNING:
            raise PipelineUsageError(f"Cannot process objects while the pipeline is {self.state.value}.")
        self.reader.enqueue(obj)
        self._drain()

    def _drain(self) -> None:
        target = self.reader.try_dequeue()
        while target is not None:
            self.process_target(target)
            target = self.reader.try_dequeue()

    def process_target(self, target: TargetObject) -> None:
        """Handle one queued target; pipelines that take no input ignore it."""

    def end(self) -> None:
        if self.state == PipelineState.CREATED:
            raise PipelineUsageError("Cannot end a pipeline that has not begun.")
        if self.state != PipelineState.RUNNING:
            return
        self._drain()
        self.complete()
        self.state = PipelineState.ENDED
        self.writer.end()
        self.after_end()

    def complete(self) -> None:
        """Write anything produced once all input has been processed."""

    def after_end(self) -> None:
        pass

    def close(self) -> None:
        if self.state == PipelineState.DISPOSED:
            return
        self.state = PipelineState.DISPOSED
        self.writer.close()

    def __enter__(self) -> "PipelineBase":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class RulePipeline(PipelineBase):
    """Base for pipelines that bind identity and evaluate rules per target."""

    def _bind(self, target: TargetObject) -> Optional[BoundTarget]:
        bound = self.context.bind(target)
        if not self.context.accepts_type(bound.target_type):
            logger.debug("Skipping %s of type %s", bound.target_name, bound.target_type)
            return None
        return bound

    def _invoke(self, target: TargetObject) -> Optional[InvokeResult]:
        bound = self._bind(target)
        if bound is None:
            return None
        result = self.engine.invoke(self.context, bound)
        if not result.records:
            self.writer.warn_target_not_processed(bound.target_name)
        return result


def _outcome_filter(records: Sequence[RuleRecord], outcome: RuleOutcome) -> List[RuleRecord]:
    if outcome == RuleOutcome.ALL:
        return list(records)
    return [r for r in records if r.outcome & outcome]


class InvokeRulePipeline(RulePipeline):
    def process_target(self, target: TargetObject) -> None:
        result = self._invoke(target)
        if result is None:
            return
        outcome = self.context.option.output.outcome
        if outcome is None:
            outcome = RuleOutcome.PROCESSED
        records = _outcome_filter(result.records, outcome)
        if records:
            self.writer.write_object(records, True)


class AssertPipeline(RulePipeline):
    """Invoke with human readable output; fails at ``end`` when any rule failed."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.failed = 0
        self.errors = 0

    def process_target(self, target: TargetObject) -> None:
        result = self._invoke(target)
        if result is None:
            return
        for record in result.records:
            if record.outcome == RuleOutcome.FAIL:
                self.failed += 1
            elif record.outcome == RuleOutcome.ERROR:
                self.errors += 1
        self.writer.write_object(result, False)

    def after_end(self) -> None:
        if self.failed or self.errors:
            raise RuleFailedError(
                f"One or more rules reported failure (failed: {self.failed}, errors: {self.errors}).",
                failed=self.failed,
                errors=self.errors,
            )


class TestPipeline(RulePipeline):
    """Writes one boolean per target: True when every rule passed."""

    __test__ = False

    def process_target(self, target: TargetObject) -> None:
        result = self._invoke(target)
        if result is None:
            return
        self.writer.write_object(result.is_success(), False)


class GetTargetPipeline(RulePipeline):
    def process_target(self, target: TargetObject) -> None:
        self.writer.write_object(target.value, False)


class GetRulePipeline(PipelineBase):
    def __init__(self, *args, include_dependencies: bool = False, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.include_dependencies = include_dependencies

    def _rules(self) -> List[RuleInfo]:
        rules = self.engine.get_rules(self.context, self.include_dependencies)
        option_context = self.context.option_context
        selected = []
        for rule in rules:
            rule_filter = option_context.rule_filter(rule.module_name)
            if rule_filter.match(rule.name, rule.tags, local=rule.module_name is None):
                selected.append(rule)
        return selected

    def complete(self) -> None:
        rules = self._rules()
        if rules:
            self.writer.write_object(rules, True)


class GetRuleHelpPipeline(GetRulePipeline):
    """Writes each rule with its help, reading ``<culture>/<name>.md`` beside the rule file when needed."""

    def _find_help(self, rule: RuleInfo) -> Optional[RuleHelpInfo]:
        if not rule.source_path:
            return None
        root = Path(rule.source_path).parent
        for folder in (*(root / culture for culture in self.context.culture), root):
            path = folder / f"{rule.name}.md"
            if path.is_file():
                logger.debug("Using help %s for rule %s", path, rule.rule_id)
                return RuleHelpInfo(synopsis=rule.synopsis, description=path.read_text(encoding="utf-8").strip())
        return None

    def complete(self) -> None:
        for rule in self._rules():
            if rule.help is None:
                found = self._find_help(rule)
                if found is None:
                    logger.debug("Rule %s has no help", rule.rule_id)
                    continue
                rule = rule.model_copy(update={"help": found})
            self.writer.write_object(rule, False)


class GetBaselinePipeline(PipelineBase):
    def __init__(self, *args, names: Optional[Sequence[str]] = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.names = tuple(names or ())

    def _baselines(self) -> List[Baseline]:
        baselines = self.engine.get_baselines(self.context)
        if not self.names:
            return list(baselines)
        return [b for b in baselines if any(id_equals(b.id, name) for name in self.names)]

    def complete(self) -> None:
        baselines = self._baselines()
        if baselines:
            self.writer.write_object(baselines, True)


class ExportBaselinePipeline(GetBaselinePipeline):
    """Writes baseline definitions in a form that can be read back as option files."""

    def complete(self) -> None:
        exported = [
            {
                "apiVersion": "rule-pipeline/v1",
                "kind": "Baseline",
                "metadata": {"name": b.id},
                "spec": b.model_dump(mode="json", exclude={"id", "module"}, exclude_none=True),
            }
            for b in self._baselines()
        ]
        if exported:
            self.writer.write_object(exported, True)
