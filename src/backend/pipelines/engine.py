from __future__ import annotations

from typing import List, Protocol

from common.rule_pipeline.context import Baseline, PipelineContext
from common.rule_pipeline.models import BoundTarget, InvokeResult, RuleInfo


class RuleEngine(Protocol):
    def invoke(self, context: PipelineContext, target: BoundTarget) -> InvokeResult:
        """Evaluate every matching rule against one bound target."""
        ...

    def get_rules(self, context: PipelineContext, include_dependencies: bool = False) -> List[RuleInfo]:
        """Return rules discovered in ``context.source``."""
        ...

    def get_baselines(self, context: PipelineContext) -> List[Baseline]:
        """Return baselines discovered in ``context.source``."""
        ...


class NullRuleEngine:
    """Engine with no rules; every target is reported as not processed."""

    def invoke(self, context: PipelineContext, target: BoundTarget) -> InvokeResult:
        return InvokeResult(target_name=target.target_name, target_type=target.target_type)

    def get_rules(self, context: PipelineContext, include_dependencies: bool = False) -> List[RuleInfo]:
        return []

    def get_baselines(self, context: PipelineContext) -> List[Baseline]:
        return []
