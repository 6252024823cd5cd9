from common.rule_pipeline.config import PipelineOption, merge_option
from common.rule_pipeline.context import (
    Baseline,
    OptionContextBuilder,
    RuleFilter,
    collect_baseline_refs,
)
from common.rule_pipeline.models import BaselineRef, ModuleInfo, ScopeType, Source


def _module_source(name, baseline=None):
    return Source(path=f"/modules/{name}", module=ModuleInfo(name=name, version="1.0.0", baseline=baseline))


def test_explicit_then_module_refs_in_discovery_order_without_duplicates():
    warned = []
    sources = [
        _module_source("Contoso.Rules", "Contoso.Default"),
        Source(path="/local"),
        _module_source("Fabrikam.Rules", "Fabrikam.Default"),
        _module_source("Contoso.Extra", "contoso.default"),
        _module_source("Explicit.Rules", "Module\\Main"),
    ]

    refs = collect_baseline_refs("Main", sources, warned.append)

    assert refs == (
        BaselineRef("Main", ScopeType.EXPLICIT),
        BaselineRef("Contoso.Default", ScopeType.MODULE),
        BaselineRef("Fabrikam.Default", ScopeType.MODULE),
    )
    assert warned == ["Contoso.Rules", "Fabrikam.Rules"]


def test_context_scopes_are_ordered_by_precedence():
    option = merge_option(PipelineOption.model_validate({"rule": {"include": ["Workspace.*"]}}))
    context = OptionContextBuilder(option, include=["Param.Rule"]).build(
        explicit=Baseline(id="Inline", rule={"include": ["Explicit.*"]}),
    )
    assert context.scope_types() == (ScopeType.PARAMETER, ScopeType.EXPLICIT, ScopeType.WORKSPACE)
    assert context.rule_filter().include == ("Param.Rule",)


def test_no_parameter_scope_without_caller_filters():
    context = OptionContextBuilder(merge_option(None)).build()
    assert context.scope_types() == (ScopeType.WORKSPACE,)


def test_building_twice_yields_identical_contexts():
    option = merge_option(PipelineOption.model_validate({"configuration": {"threshold": 3}}))
    sources = [_module_source("Contoso.Rules", "Contoso.Default")]
    refs = collect_baseline_refs("Main", sources)

    first = OptionContextBuilder(option, tag={"env": "prod"}).build(unresolved=refs)
    second = OptionContextBuilder(option, tag={"env": "prod"}).build(unresolved=refs)

    assert first == second
    assert first.unresolved == refs


def test_resolve_inserts_baselines_at_their_precedence():
    option = merge_option(
        PipelineOption.model_validate({"configuration": {"level": "workspace", "onlyWorkspace": True}})
    )
    refs = (BaselineRef("Main", ScopeType.EXPLICIT), BaselineRef("Contoso.Default", ScopeType.MODULE), BaselineRef("Gone", ScopeType.MODULE))
    context = OptionContextBuilder(option).build(unresolved=refs)
    baselines = {
        "main": Baseline(id="Main", configuration={"level": "explicit"}),
        "contoso.default": Baseline(
            id="Contoso.Default",
            module="Contoso.Rules",
            rule={"exclude": ["Contoso.Slow"]},
            configuration={"level": "module", "onlyModule": 1},
        ),
    }

    resolved = context.resolve(lambda baseline_id: baselines.get(baseline_id.lower()))

    assert resolved.scope_types() == (ScopeType.EXPLICIT, ScopeType.MODULE, ScopeType.WORKSPACE)
    assert resolved.unresolved == (BaselineRef("Gone", ScopeType.MODULE),)
    assert context.unresolved == refs
    assert resolved.configuration("Contoso.Rules") == {"level": "explicit", "onlyWorkspace": True, "onlyModule": 1}
    # Module baselines do not configure rules from other modules.
    assert resolved.configuration("Fabrikam.Rules") == {"level": "explicit", "onlyWorkspace": True}
    assert resolved.rule_filter("Contoso.Rules").exclude == ("Contoso.Slow",)
    assert resolved.rule_filter("Fabrikam.Rules").exclude is None


def test_convention_include_uses_highest_scope():
    option = merge_option(PipelineOption.model_validate({"convention": {"include": ["Workspace.Convention"]}}))
    assert OptionContextBuilder(option).build().convention_include() == ("Workspace.Convention",)
    assert OptionContextBuilder(option, convention=["Param.Convention"]).build().convention_include() == (
        "Param.Convention",
    )


def test_rule_filter_matching():
    rule_filter = RuleFilter(include=("Azure.*",), exclude=("Azure.Slow",), tag={"release": ["GA", "preview"]})
    assert rule_filter.match("azure.storage", {"Release": "ga"})
    assert not rule_filter.match("Azure.Slow", {"release": "GA"})
    assert not rule_filter.match("Other.Rule", {"release": "GA"})
    assert not rule_filter.match("Azure.Storage", {"release": "deprecated"})
    assert not rule_filter.match("Azure.Storage", {})

    assert RuleFilter().match("Anything")
    assert RuleFilter(include=("X",), include_local=True).match("Local.Rule", local=True)
