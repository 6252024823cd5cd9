import os
import sys


# Ensure `src/backend` is on sys.path so imports like `import common...` work,
# even when pytest's rootdir is the repository root.
BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

from typing import Callable, Dict, List, Optional

import pytest

from common.rule_pipeline.config import PipelineOption
from common.rule_pipeline.context import Baseline, PipelineContext
from common.rule_pipeline.models import (
    BoundTarget,
    InvokeResult,
    ModuleInfo,
    RuleInfo,
    RuleOutcome,
    RuleRecord,
    Source,
    SourceFile,
)
from pipelines.host import RecordingHostContext
from pipelines.repository import StaticRepositoryInfoProvider


class FakeRuleEngine:
    """Evaluates plain predicates keyed by rule name."""

    def __init__(
        self,
        rules: Optional[Dict[str, Callable[[object], bool]]] = None,
        baselines: Optional[List[Baseline]] = None,
        tags: Optional[Dict[str, Dict[str, str]]] = None,
        source_path: Optional[str] = None,
    ):
        self.rules = rules or {}
        self.source_path = source_path
        self.baselines = baselines or []
        self.tags = tags or {}
        self.invoked: List[BoundTarget] = []

    def invoke(self, context: PipelineContext, target: BoundTarget) -> InvokeResult:
        self.invoked.append(target)
        rule_filter = context.option_context.rule_filter()
        records = []
        for name, predicate in self.rules.items():
            if not rule_filter.match(name, self.tags.get(name)):
                continue
            try:
                outcome = RuleOutcome.PASS if predicate(target.value) else RuleOutcome.FAIL
                reason = [] if outcome == RuleOutcome.PASS else [f"{name} did not pass."]
            except Exception as exc:  # noqa: BLE001
                outcome = RuleOutcome.ERROR
                reason = [str(exc)]
            records.append(
                RuleRecord(
                    rule_id=f".\\{name}",
                    rule_name=name,
                    target_name=target.target_name,
                    target_type=target.target_type,
                    outcome=outcome,
                    reason=reason,
                    synopsis=f"Checks {name}.",
                    tags=self.tags.get(name, {}),
                )
            )
        return InvokeResult(target_name=target.target_name, target_type=target.target_type, records=records)

    def get_rules(self, context: PipelineContext, include_dependencies: bool = False) -> List[RuleInfo]:
        return [
            RuleInfo(
                rule_id=f".\\{name}",
                name=name,
                synopsis=f"Checks {name}.",
                tags=self.tags.get(name, {}),
                source_path=self.source_path,
            )
            for name in self.rules
        ]

    def get_baselines(self, context: PipelineContext) -> List[Baseline]:
        return list(self.baselines)


@pytest.fixture
def host() -> RecordingHostContext:
    return RecordingHostContext()


@pytest.fixture
def make_option():
    def _make(**sections) -> PipelineOption:
        return PipelineOption.model_validate(sections)

    return _make


@pytest.fixture
def make_source(tmp_path):
    def _make(
        name: Optional[str] = None,
        version: str = "1.0.0",
        baseline: Optional[str] = None,
        files: tuple = ("Example.Rule.yaml",),
    ) -> Source:
        root = tmp_path / (name or "rules")
        root.mkdir(parents=True, exist_ok=True)
        source_files = []
        for file_name in files:
            path = root / file_name
            path.write_text("# rules\n", encoding="utf-8")
            source_files.append(SourceFile(path=str(path), module_name=name))
        module = ModuleInfo(name=name, version=version, baseline=baseline) if name else None
        return Source(path=str(root), files=tuple(source_files), module=module)

    return _make


@pytest.fixture
def make_engine():
    def _make(**kwargs) -> FakeRuleEngine:
        return FakeRuleEngine(**kwargs)

    return _make


@pytest.fixture
def make_builder(host, tmp_path):
    def _make(builder_cls, source=(), option=None, *, engine=None, url=None, **kwargs):
        builder = builder_cls(
            source,
            host,
            engine=engine,
            repository_provider=StaticRepositoryInfoProvider(url),
            base_path=tmp_path,
            **kwargs,
        )
        if option is not None:
            builder.configure(option)
        return builder

    return _make
