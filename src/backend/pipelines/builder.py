from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from adapters.output import (
    AssertOutputWriter,
    HostPipelineWriter,
    PipelineWriter,
    get_output,
    select_writer,
)
from common.rule_pipeline import ENGINE_MODULE_NAME, __version__
from common.rule_pipeline.binding import (
    BinderChain,
    DefaultFieldBinder,
    DefaultTargetNameBinder,
    DefaultTargetTypeBinder,
)
from common.rule_pipeline.config import DEFAULT_OPTION, BindTargetFunc, PipelineOption, merge_option, with_section
from common.rule_pipeline.context import (
    Baseline,
    BaselineSelection,
    OptionContextBuilder,
    PipelineContext,
    collect_baseline_refs,
)
from common.rule_pipeline.errors import CONSTRAINED_TARGET_BINDING, PipelineConfigurationError
from common.rule_pipeline.models import InputFormat, LanguageMode, OutputFormat, Source
from common.rule_pipeline.path_filter import PathFilter, PathFilterBuilder
from common.rule_pipeline.versioning import satisfies

from .engine import NullRuleEngine, RuleEngine
from .host import HostContext
from .pipeline import (
    AssertPipeline,
    ExportBaselinePipeline,
    GetBaselinePipeline,
    GetRuleHelpPipeline,
    GetRulePipeline,
    GetTargetPipeline,
    InvokeRulePipeline,
    PipelineBase,
    TestPipeline,
)
from .reader import PipelineReader
from .repository import GitRepositoryInfoProvider, RepositoryInfoProvider

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class PipelineBuilderBase(ABC):
    """Assembles a configured pipeline from sources, options and a host.

    Call ``configure`` any number of times, then ``build``. Precondition
    failures are written through the pipeline writer and ``build`` returns
    None; configuration errors raise.
    """

    requires_sources = True

    def __init__(
        self,
        source: Sequence[Source] = (),
        host_context: Optional[HostContext] = None,
        *,
        engine: Optional[RuleEngine] = None,
        repository_provider: Optional[RepositoryInfoProvider] = None,
        base_path: Optional[PathLike] = None,
    ) -> None:
        self.source = tuple(source)
        self.host_context = host_context
        self.engine = engine or NullRuleEngine()
        self.base_path = os.path.abspath(os.fspath(base_path)) if base_path is not None else os.getcwd()
        self._repository = repository_provider or GitRepositoryInfoProvider(Path(self.base_path))
        self.option: PipelineOption = DEFAULT_OPTION
        self._include: Optional[List[str]] = None
        self._tag: Optional[Dict[str, Any]] = None
        self._convention: Optional[List[str]] = None
        self._baseline: Optional[BaselineSelection] = None
        self._writer: Optional[PipelineWriter] = None
        self._input_filter: Optional[PathFilter] = None
        self.bind_target_name = BinderChain(DefaultTargetNameBinder())
        self.bind_target_type = BinderChain(DefaultTargetTypeBinder())
        self.bind_field = BinderChain(DefaultFieldBinder())

    # Configuration

    def configure(self, option: Optional[PipelineOption]) -> "PipelineBuilderBase":
        if option is None:
            return self
        merged = merge_option(option, self.option)
        if not merged.repository.url:
            url = self._repository.get_repository_url()
            if url:
                merged = with_section(merged, repository=merged.repository.model_copy(update={"url": url}))
        self.option = merged
        self._input_filter = None
        self.configure_binding(option)
        return self

    def configure_binding(self, option: PipelineOption) -> None:
        """Only pipelines that bind input objects accept binding hooks."""

    def name(self, *names: str) -> "PipelineBuilderBase":
        if names:
            self._include = list(names)
        return self

    def tag(self, tag: Optional[Mapping[str, Any]]) -> "PipelineBuilderBase":
        if tag:
            self._tag = dict(tag)
        return self

    def convention(self, *names: str) -> "PipelineBuilderBase":
        if names:
            self._convention = list(names)
        return self

    def use_baseline(self, baseline: Optional[BaselineSelection]) -> "PipelineBuilderBase":
        self._baseline = baseline
        return self

    # Preconditions

    def require_sources(self) -> bool:
        if self.source:
            return True
        self.get_writer().warn_rule_path_not_found()
        self._abort()
        return False

    def require_modules(self) -> bool:
        requires = {name.casefold(): constraint for name, constraint in (self.option.requires or {}).items()}
        writer = self.get_writer()
        ok = True

        engine_constraint = requires.get(ENGINE_MODULE_NAME.casefold())
        if engine_constraint and not satisfies(__version__, engine_constraint):
            writer.error_required_version_mismatch(ENGINE_MODULE_NAME, __version__, engine_constraint)
            ok = False

        checked = set()
        for source in self.source:
            module = source.module
            if module is None or module.name.casefold() in checked:
                continue
            checked.add(module.name.casefold())
            constraint = requires.get(module.name.casefold())
            if constraint and not satisfies(module.version, constraint):
                writer.error_required_version_mismatch(module.name, module.version, constraint)
                ok = False

        if not ok:
            self._abort()
        return ok

    # Assembly

    def get_writer(self) -> PipelineWriter:
        if self._writer is None:
            self._writer = self.prepare_writer()
        return self._writer

    def _abort(self) -> None:
        writer, self._writer = self._writer, None
        if writer is None:
            return
        try:
            writer.end()
        finally:
            writer.close()

    def _host_writer(self) -> HostPipelineWriter:
        return HostPipelineWriter(self.host_context, self.option)

    def prepare_writer(self) -> PipelineWriter:
        host = self._host_writer()
        output = get_output(host, self.option, host.should_process)
        return select_writer(output, self.option, self.source)

    def get_input_filter(self) -> PathFilter:
        if self._input_filter is None:
            input_option = self.option.input
            builder = PathFilterBuilder.create(
                self.base_path,
                input_option.path_ignore,
                ignore_git_path=input_option.ignore_git_path is not False,
                ignore_repository_common=input_option.ignore_repository_common is not False,
            )
            if input_option.format == InputFormat.FILE:
                builder.use_git_ignore()
            self._input_filter = builder.build()
        return self._input_filter

    def _explicit_baseline_id(self) -> Optional[str]:
        if isinstance(self._baseline, Baseline):
            return None
        return self._baseline

    def prepare_context(self) -> PipelineContext:
        writer = self.get_writer()
        refs = collect_baseline_refs(
            self._explicit_baseline_id(),
            self.source,
            on_module_baseline=writer.warn_module_manifest_baseline,
        )
        explicit = self._baseline if isinstance(self._baseline, Baseline) else None
        option_context = OptionContextBuilder(
            self.option,
            include=self._include,
            tag=self._tag,
            convention=self._convention,
        ).build(unresolved=refs, explicit=explicit)
        return PipelineContext(
            option=self.option,
            option_context=option_context,
            bind_target_name=self.bind_target_name.freeze(),
            bind_target_type=self.bind_target_type.freeze(),
            bind_field=self.bind_field.freeze(),
            source=self.source,
            culture=self.option.output.get_culture(),
        )

    def prepare_reader(self) -> PipelineReader:
        return PipelineReader(
            input_format=self.option.input.format or InputFormat.DETECT,
            object_path=self.option.input.object_path,
            base_path=self.base_path,
        )

    @abstractmethod
    def create_pipeline(
        self, context: PipelineContext, reader: PipelineReader, writer: PipelineWriter
    ) -> PipelineBase:  # pragma: no cover
        raise NotImplementedError

    def build(self, writer: Optional[PipelineWriter] = None) -> Optional[PipelineBase]:
        """Build the pipeline, or return None when a precondition fails.

        ``writer`` replaces the writer prepared from the options and host, and
        receives every diagnostic and result.
        """
        if writer is not None:
            self._writer = writer
        if self.requires_sources and not self.require_sources():
            return None
        if not self.require_modules():
            return None
        try:
            context = self.prepare_context()
            reader = self.prepare_reader()
            writer = self.get_writer()
            pipeline = self.create_pipeline(context, reader, writer)
        except Exception:
            self._abort()
            raise
        # The pipeline owns the writer from here.
        self._writer = None
        logger.debug("Built %s with %d source(s)", type(pipeline).__name__, len(self.source))
        return pipeline


def _add_hooks(chain: BinderChain, funcs: Sequence[BindTargetFunc]) -> None:
    # Configuring again with the same hook does not add it twice.
    for func in funcs:
        if not chain.has_function(func):
            chain.add_function(func)


class InvokePipelineBuilderBase(PipelineBuilderBase):
    """Builders for pipelines that read input objects and bind their identity."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._input_paths: List[str] = []

    def input_path(self, *paths: PathLike) -> "InvokePipelineBuilderBase":
        self._input_paths.extend(os.fspath(p) for p in paths)
        return self

    def configure_binding(self, option: PipelineOption) -> None:
        hooks = option.hooks
        constrained = self.option.execution.language_mode == LanguageMode.CONSTRAINED_LANGUAGE
        if hooks.bind_target_name:
            if constrained:
                raise PipelineConfigurationError("BindTargetName", CONSTRAINED_TARGET_BINDING)
            _add_hooks(self.bind_target_name, hooks.bind_target_name)
        if hooks.bind_target_type:
            if constrained:
                raise PipelineConfigurationError("BindTargetType", CONSTRAINED_TARGET_BINDING)
            _add_hooks(self.bind_target_type, hooks.bind_target_type)

    def _object_source_filter(self) -> Optional[PathFilter]:
        # Objects passed to process() are only checked against the input filter on request.
        if self.option.input.ignore_object_source:
            return self.get_input_filter()
        return None

    def prepare_reader(self) -> PipelineReader:
        reader = PipelineReader(
            input_format=self.option.input.format or InputFormat.DETECT,
            object_path=self.option.input.object_path,
            input_filter=self.get_input_filter() if self._input_paths else None,
            object_source_filter=self._object_source_filter(),
            base_path=self.base_path,
        )
        for path in self._input_paths:
            reader.add_path(path)
        return reader


class InvokeRulePipelineBuilder(InvokePipelineBuilderBase):
    def create_pipeline(self, context, reader, writer) -> PipelineBase:
        return InvokeRulePipeline(context, reader, writer, self.engine)


class AssertPipelineBuilder(InvokePipelineBuilderBase):
    def prepare_writer(self) -> PipelineWriter:
        host = self._host_writer()
        next_writer = None
        if self.option.output.path and self.option.output.format not in (None, OutputFormat.NONE):
            next_writer = select_writer(get_output(None, self.option, host.should_process), self.option, self.source)
        return AssertOutputWriter(host, self.option, source=self.source, next_writer=next_writer)

    def create_pipeline(self, context, reader, writer) -> PipelineBase:
        return AssertPipeline(context, reader, writer, self.engine)


class TestPipelineBuilder(InvokePipelineBuilderBase):
    __test__ = False

    def create_pipeline(self, context, reader, writer) -> PipelineBase:
        return TestPipeline(context, reader, writer, self.engine)


class GetTargetPipelineBuilder(InvokePipelineBuilderBase):
    requires_sources = False

    def create_pipeline(self, context, reader, writer) -> PipelineBase:
        return GetTargetPipeline(context, reader, writer, self.engine)


class GetRulePipelineBuilder(PipelineBuilderBase):
    def __init__(self, *args, include_dependencies: bool = False, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.include_dependencies = include_dependencies

    def create_pipeline(self, context, reader, writer) -> PipelineBase:
        return GetRulePipeline(
            context, reader, writer, self.engine, include_dependencies=self.include_dependencies
        )


class GetRuleHelpPipelineBuilder(GetRulePipelineBuilder):
    def create_pipeline(self, context, reader, writer) -> PipelineBase:
        return GetRuleHelpPipeline(
            context, reader, writer, self.engine, include_dependencies=self.include_dependencies
        )


class GetBaselinePipelineBuilder(PipelineBuilderBase):
    def create_pipeline(self, context, reader, writer) -> PipelineBase:
        return GetBaselinePipeline(context, reader, writer, self.engine, names=self._include)


class ExportBaselinePipelineBuilder(GetBaselinePipelineBuilder):
    """Exports baselines as YAML unless another format is configured."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._default_format()

    def _default_format(self) -> None:
        if self.option.output.format in (None, OutputFormat.NONE):
            output = self.option.output.model_copy(update={"format": OutputFormat.YAML})
            self.option = with_section(self.option, output=output)

    def configure(self, option: Optional[PipelineOption]) -> "PipelineBuilderBase":
        super().configure(option)
        self._default_format()
        return self

    def create_pipeline(self, context, reader, writer) -> PipelineBase:
        return ExportBaselinePipeline(context, reader, writer, self.engine, names=self._include)
