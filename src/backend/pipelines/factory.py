from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Sequence

from common.rule_pipeline.config import PipelineOption
from common.rule_pipeline.models import Source

from .builder import (
    AssertPipelineBuilder,
    ExportBaselinePipelineBuilder,
    GetBaselinePipelineBuilder,
    GetRuleHelpPipelineBuilder,
    GetRulePipelineBuilder,
    GetTargetPipelineBuilder,
    InvokeRulePipelineBuilder,
    PipelineBuilderBase,
    TestPipelineBuilder,
)
from .host import HostContext
from .source import SourcePipelineBuilder


def _configured(builder: PipelineBuilderBase, option: Optional[PipelineOption]) -> PipelineBuilderBase:
    builder.configure(option)
    return builder


def invoke(source: Sequence[Source], option=None, host_context=None, **kwargs) -> PipelineBuilderBase:
    return _configured(InvokeRulePipelineBuilder(source, host_context, **kwargs), option)


def assert_(source: Sequence[Source], option=None, host_context=None, **kwargs) -> PipelineBuilderBase:
    return _configured(AssertPipelineBuilder(source, host_context, **kwargs), option)


def test(source: Sequence[Source], option=None, host_context=None, **kwargs) -> PipelineBuilderBase:
    return _configured(TestPipelineBuilder(source, host_context, **kwargs), option)


def get(source: Sequence[Source], option=None, host_context=None, **kwargs) -> PipelineBuilderBase:
    return _configured(GetRulePipelineBuilder(source, host_context, **kwargs), option)


def get_help(source: Sequence[Source], option=None, host_context=None, **kwargs) -> PipelineBuilderBase:
    return _configured(GetRuleHelpPipelineBuilder(source, host_context, **kwargs), option)


def get_baseline(source: Sequence[Source], option=None, host_context=None, **kwargs) -> PipelineBuilderBase:
    return _configured(GetBaselinePipelineBuilder(source, host_context, **kwargs), option)


def export_baseline(source: Sequence[Source], option=None, host_context=None, **kwargs) -> PipelineBuilderBase:
    return _configured(ExportBaselinePipelineBuilder(source, host_context, **kwargs), option)


def get_target(source: Sequence[Source] = (), option=None, host_context=None, **kwargs) -> PipelineBuilderBase:
    return _configured(GetTargetPipelineBuilder(source, host_context, **kwargs), option)


def source(option: Optional[PipelineOption] = None, host_context: Optional[HostContext] = None) -> SourcePipelineBuilder:
    return SourcePipelineBuilder(host_context, option)


COMMANDS: Dict[str, Callable[..., PipelineBuilderBase]] = {
    "assert": assert_,
    "invoke": invoke,
    "run": invoke,
    "test": test,
    "get": get,
    "get-help": get_help,
    "get-baseline": get_baseline,
    "export-baseline": export_baseline,
    "get-target": get_target,
}


def create_builder(
    command: str,
    source: Sequence[Source] = (),
    option: Optional[PipelineOption] = None,
    host_context: Optional[HostContext] = None,
    **kwargs: Any,
) -> PipelineBuilderBase:
    """Resolve a pipeline builder by command name (assert|invoke|run|test|get|...)."""
    key = (command or "").strip().lower().replace(" ", "-")
    factory = COMMANDS.get(key)
    if factory is None:
        expected = ", ".join(sorted(COMMANDS))
        raise ValueError(f"Unknown command '{command}' (expected one of: {expected}).")
    return factory(source, option, host_context, **kwargs)
