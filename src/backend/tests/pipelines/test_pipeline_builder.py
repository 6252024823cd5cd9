import pytest

from adapters.output import AssertOutputWriter, FileOutputWriter, PipelineWriter
from adapters.output.formats import JsonOutputWriter, YamlOutputWriter
from common.rule_pipeline import __version__
from common.rule_pipeline.errors import PipelineConfigurationError, PipelineUsageError
from common.rule_pipeline.models import BaselineRef, OutputFormat, RuleOutcome, ScopeType
from pipelines.builder import (
    AssertPipelineBuilder,
    ExportBaselinePipelineBuilder,
    GetRulePipelineBuilder,
    GetTargetPipelineBuilder,
    InvokeRulePipelineBuilder,
    PipelineBuilderBase,
)
from pipelines.pipeline import AssertPipeline, InvokeRulePipeline


class SpyWriter(PipelineWriter):
    def __init__(self, option):
        super().__init__(None, option)
        self.calls = []
        self.objects = []
        self.warnings = []

    def write_object(self, obj, enumerate_collection=False):
        self.objects.extend(obj if enumerate_collection else [obj])

    def write_warning(self, message):
        self.warnings.append(message)

    def begin(self):
        self.calls.append("begin")

    def end(self):
        self.calls.append("end")

    def close(self):
        self.calls.append("close")


def test_empty_sources_warn_and_build_nothing(make_builder, host):
    builder = make_builder(InvokeRulePipelineBuilder)

    assert builder.require_sources() is False
    assert host.warnings == ["Rule path not found. Specify a path or module containing rules."]

    host.warnings.clear()
    assert builder.build() is None
    assert host.warnings == ["Rule path not found. Specify a path or module containing rules."]


def test_module_version_mismatch_aborts_build(make_builder, make_option, make_source, host):
    source = make_source("Contoso.Rules", version="1.0.0")
    option = make_option(requires={"Contoso.Rules": "2.x"})

    pipeline = make_builder(InvokeRulePipelineBuilder, [source], option).build()

    assert pipeline is None
    assert host.errors == ["The version of 'Contoso.Rules' is '1.0.0', however the required version is '2.x'."]


def test_all_version_mismatches_are_reported_once(make_builder, make_option, make_source, host):
    sources = [
        make_source("Contoso.Rules", version="1.0.0"),
        make_source("Fabrikam.Rules", version="0.9.0"),
        make_source("Satisfied.Rules", version="3.1.0"),
    ]
    option = make_option(
        requires={
            "contoso.rules": "2.x",
            "Fabrikam.Rules": ">=1.0.0",
            "Satisfied.Rules": "^3.0.0",
            "rule-pipeline": ">=999.0.0",
        }
    )
    builder = make_builder(InvokeRulePipelineBuilder, sources, option)
    spy = SpyWriter(builder.option)

    assert builder.build(spy) is None
    assert spy.had_errors
    assert spy.calls == ["end", "close"]

    host_builder = make_builder(InvokeRulePipelineBuilder, sources, option)
    assert host_builder.build() is None
    assert host.errors == [
        f"The version of 'rule-pipeline' is '{__version__}', however the required version is '>=999.0.0'.",
        "The version of 'Contoso.Rules' is '1.0.0', however the required version is '2.x'.",
        "The version of 'Fabrikam.Rules' is '0.9.0', however the required version is '>=1.0.0'.",
    ]


def test_satisfied_requirements_build_a_pipeline(make_builder, make_option, make_source):
    source = make_source("Contoso.Rules", version="2.3.0")
    option = make_option(requires={"Contoso.Rules": "2.x", "rule-pipeline": ">=0.1.0"})

    pipeline = make_builder(InvokeRulePipelineBuilder, [source], option).build()

    assert isinstance(pipeline, InvokeRulePipeline)


def test_constrained_language_rejects_custom_target_name_binding(make_builder, make_option, make_source):
    option = make_option(
        execution={"languageMode": "ConstrainedLanguage"},
        hooks={"bindTargetName": [lambda value: "custom"]},
    )
    with pytest.raises(PipelineConfigurationError) as excinfo:
        make_builder(InvokeRulePipelineBuilder, [make_source()], option)

    assert excinfo.value.option_name == "BindTargetName"
    assert "BindTargetName" in str(excinfo.value)


def test_constrained_language_rejects_custom_target_type_binding(make_builder, make_option, make_source):
    builder = make_builder(InvokeRulePipelineBuilder, [make_source()])
    builder.configure(make_option(execution={"languageMode": "ConstrainedLanguage"}))
    with pytest.raises(PipelineConfigurationError) as excinfo:
        builder.configure(make_option(hooks={"bindTargetType": [lambda value: "custom"]}))
    assert excinfo.value.option_name == "BindTargetType"


def test_custom_binding_hooks_run_before_defaults(make_builder, make_option, make_source, make_engine):
    engine = make_engine(rules={"Rule.A": lambda value: True})
    option = make_option(
        hooks={
            "bindTargetName": [lambda value: value.get("id")],
            "bindTargetType": [lambda value: value.get("kind")],
        }
    )
    builder = make_builder(InvokeRulePipelineBuilder, [make_source()], option, engine=engine)
    pipeline = builder.build()

    with pipeline:
        pipeline.begin()
        pipeline.process({"id": "vm-1", "kind": "VirtualMachine", "name": "ignored"})
        pipeline.process({"name": "fallback"})
        pipeline.end()

    assert [(t.target_name, t.target_type) for t in engine.invoked] == [
        ("vm-1", "VirtualMachine"),
        ("fallback", "dict"),
    ]
    assert builder.bind_target_name.frozen
    with pytest.raises(PipelineUsageError):
        builder.bind_target_name.add_function(lambda value: "late")


def test_json_indent_is_clamped_on_the_built_writer(make_builder, make_option, make_source):
    option = make_option(output={"format": "Json", "jsonIndent": 9})
    pipeline = make_builder(InvokeRulePipelineBuilder, [make_source()], option).build()

    assert isinstance(pipeline.writer, JsonOutputWriter)
    assert pipeline.writer.indent == 4


def test_output_path_redirects_to_a_file_writer(make_builder, make_option, make_source, tmp_path):
    option = make_option(output={"format": "Json", "path": str(tmp_path / "out.json")})
    pipeline = make_builder(InvokeRulePipelineBuilder, [make_source()], option).build()

    assert isinstance(pipeline.writer, JsonOutputWriter)
    assert isinstance(pipeline.writer.inner, FileOutputWriter)

    option = make_option(output={"path": str(tmp_path / "out.txt")})
    pipeline = make_builder(InvokeRulePipelineBuilder, [make_source()], option).build()
    assert isinstance(pipeline.writer, FileOutputWriter)


def test_configure_merges_over_current_state(make_builder, make_option, make_source):
    builder = make_builder(InvokeRulePipelineBuilder, [make_source()])
    builder.configure(make_option(output={"format": "Json"}, requires={"A": "1.x"}))
    builder.configure(make_option(output={"outcome": "Fail"}, requires={"B": "2.x"}))

    assert builder.option.output.format == OutputFormat.JSON
    assert builder.option.output.outcome == RuleOutcome.FAIL
    assert builder.option.requires == {"A": "1.x", "B": "2.x"}


def test_repository_url_is_detected_only_when_unset(make_builder, make_option, make_source):
    builder = make_builder(InvokeRulePipelineBuilder, [make_source()], make_option(), url="https://example.test/repo")
    assert builder.option.repository.url == "https://example.test/repo"

    builder = make_builder(
        InvokeRulePipelineBuilder,
        [make_source()],
        make_option(repository={"url": "https://explicit.test/repo"}),
        url="https://example.test/repo",
    )
    assert builder.option.repository.url == "https://explicit.test/repo"


def test_module_baselines_are_collected_after_the_explicit_one(make_builder, make_source, host):
    sources = [
        make_source("Contoso.Rules", baseline="Contoso.Default"),
        make_source("Fabrikam.Rules", baseline="Fabrikam.Default"),
    ]
    builder = make_builder(InvokeRulePipelineBuilder, sources).use_baseline("Main")

    pipeline = builder.build()

    assert pipeline.context.unresolved == (
        BaselineRef("Main", ScopeType.EXPLICIT),
        BaselineRef("Contoso.Default", ScopeType.MODULE),
        BaselineRef("Fabrikam.Default", ScopeType.MODULE),
    )
    assert len(host.warnings) == 2
    assert "'Contoso.Rules'" in host.warnings[0]
    assert "'Fabrikam.Rules'" in host.warnings[1]


def test_building_twice_gives_the_same_option_context(make_builder, make_option, make_source):
    sources = [make_source("Contoso.Rules", baseline="Contoso.Default")]
    option = make_option(rule={"include": ["Rule.*"]}, configuration={"level": 2})

    first = make_builder(InvokeRulePipelineBuilder, sources, option).name("Rule.A").build()
    second = make_builder(InvokeRulePipelineBuilder, sources, option).name("Rule.A").build()

    assert first.context.option_context == second.context.option_context
    assert first.context.option_context.scope_types() == (ScopeType.PARAMETER, ScopeType.WORKSPACE)


def test_build_errors_finalize_the_writer(make_builder, make_source):
    builder = make_builder(InvokeRulePipelineBuilder, [make_source()])
    spy = SpyWriter(builder.option)

    def fail():
        raise OSError("input unavailable")

    builder.prepare_reader = fail
    with pytest.raises(OSError):
        builder.build(spy)
    assert spy.calls == ["end", "close"]


def test_input_filter_is_built_once_and_reads_git_ignore_for_files(make_builder, make_option, make_source, tmp_path):
    (tmp_path / ".gitignore").write_text("*.tmp\n", encoding="utf-8")
    builder = make_builder(InvokeRulePipelineBuilder, [make_source()], make_option(input={"format": "File"}))

    input_filter = builder.get_input_filter()

    assert builder.get_input_filter() is input_filter
    assert input_filter.is_excluded("scratch.tmp", is_dir=False)

    builder = make_builder(InvokeRulePipelineBuilder, [make_source()], make_option(input={"format": "Yaml"}))
    assert not builder.get_input_filter().is_excluded("scratch.tmp", is_dir=False)


def test_assert_builder_uses_assert_writer(make_builder, make_source):
    pipeline = make_builder(AssertPipelineBuilder, [make_source()]).build()
    assert isinstance(pipeline, AssertPipeline)
    assert isinstance(pipeline.writer, AssertOutputWriter)


def test_get_target_does_not_need_sources(make_builder):
    assert make_builder(GetTargetPipelineBuilder).build() is not None


def test_get_rule_ignores_binding_hooks(make_builder, make_option, make_source):
    option = make_option(
        execution={"languageMode": "ConstrainedLanguage"},
        hooks={"bindTargetName": [lambda value: "custom"]},
    )
    builder = make_builder(GetRulePipelineBuilder, [make_source()], option)
    assert len(builder.bind_target_name) == 1


def test_export_baseline_defaults_to_yaml(make_builder, make_option, make_source):
    pipeline = make_builder(ExportBaselinePipelineBuilder, [make_source()]).build()
    assert isinstance(pipeline.writer, YamlOutputWriter)

    builder = make_builder(ExportBaselinePipelineBuilder, [make_source()], make_option(output={"format": "Json"}))
    assert builder.option.output.format == OutputFormat.JSON


def test_given_writer_receives_diagnostics_and_results(make_builder, make_source, make_engine, host):
    builder = make_builder(InvokeRulePipelineBuilder)
    spy = SpyWriter(builder.option)

    assert builder.build(spy) is None
    assert spy.warnings == ["Rule path not found. Specify a path or module containing rules."]
    assert host.warnings == []

    engine = make_engine(rules={"Rule.A": lambda value: True})
    builder = make_builder(InvokeRulePipelineBuilder, [make_source()], engine=engine)
    spy = SpyWriter(builder.option)
    pipeline = builder.build(spy)

    assert pipeline.writer is spy
    with pipeline:
        pipeline.begin()
        pipeline.process({"name": "store1"})
        pipeline.end()
    assert [r.rule_name for r in spy.objects] == ["Rule.A"]
    assert host.objects == []


def test_configuring_the_same_hooks_twice_adds_them_once(make_builder, make_option, make_source):
    option = make_option(
        hooks={
            "bindTargetName": [lambda value: value.get("id")],
            "bindTargetType": [lambda value: value.get("kind")],
        }
    )
    builder = make_builder(InvokeRulePipelineBuilder, [make_source()], option)
    builder.configure(option)

    assert len(builder.bind_target_name) == 2
    assert len(builder.bind_target_type) == 2


def test_builder_base_cannot_be_instantiated(host):
    with pytest.raises(TypeError):
        PipelineBuilderBase((), host)


def test_output_culture_is_resolved_into_the_context(make_builder, make_option, make_source):
    option = make_option(output={"culture": ["en-us", "fr-CA"]})
    pipeline = make_builder(GetRulePipelineBuilder, [make_source()], option).build()

    assert pipeline.context.culture == ("en-US", "fr-CA", "en", "fr")
