from __future__ import annotations

import fnmatch
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from .binding import BinderChain, BindingRequest
from .config import PipelineOption, RuleFilterOption
from .models import (
    SCOPE_PRECEDENCE,
    BaselineRef,
    BoundTarget,
    ScopeType,
    Source,
    TargetObject,
    id_equals,
)


class Baseline(BaseModel):
    """A named bundle of rule selection and configuration overrides."""

    model_config = ConfigDict(frozen=True)

    id: str
    module: Optional[str] = None
    synopsis: str = ""
    rule: RuleFilterOption = Field(default_factory=RuleFilterOption)
    configuration: Dict[str, Any] = Field(default_factory=dict)
    convention: Optional[List[str]] = None


def _tuple(values: Optional[Iterable[str]]) -> Optional[Tuple[str, ...]]:
    if values is None:
        return None
    return tuple(values)


def _wildcard_match(name: str, patterns: Sequence[str]) -> bool:
    folded = name.casefold()
    return any(fnmatch.fnmatchcase(folded, p.casefold()) for p in patterns)


@dataclass(frozen=True)
class RuleFilter:
    include: Optional[Tuple[str, ...]] = None
    exclude: Optional[Tuple[str, ...]] = None
    tag: Optional[Mapping[str, Any]] = None
    include_local: bool = False

    def _match_tags(self, tags: Optional[Mapping[str, str]]) -> bool:
        actual = {k.casefold(): v for k, v in (tags or {}).items()}
        for key, expected in (self.tag or {}).items():
            value = actual.get(key.casefold())
            if value is None:
                return False
            candidates = expected if isinstance(expected, (list, tuple)) else [expected]
            if "*" in candidates:
                continue
            if not any(str(c).casefold() == str(value).casefold() for c in candidates):
                return False
        return True

    def match(self, name: str, tags: Optional[Mapping[str, str]] = None, *, local: bool = False) -> bool:
        if self.exclude and _wildcard_match(name, self.exclude):
            return False
        if local and self.include_local:
            return True
        if self.include and not _wildcard_match(name, self.include):
            return False
        return self._match_tags(tags)


@dataclass(frozen=True)
class OptionScope:
    type: ScopeType
    module_name: Optional[str] = None
    baseline_id: Optional[str] = None
    include: Optional[Tuple[str, ...]] = None
    exclude: Optional[Tuple[str, ...]] = None
    tag: Optional[Mapping[str, Any]] = None
    include_local: Optional[bool] = None
    configuration: Mapping[str, Any] = field(default_factory=dict)
    convention: Optional[Tuple[str, ...]] = None

    @property
    def precedence(self) -> int:
        return SCOPE_PRECEDENCE[self.type]

    def applies_to(self, module_name: Optional[str]) -> bool:
        # Module baselines only configure rules shipped by that module.
        if self.type != ScopeType.MODULE or self.module_name is None or module_name is None:
            return True
        return self.module_name.casefold() == module_name.casefold()

    @classmethod
    def from_baseline(cls, baseline: Baseline, scope: ScopeType) -> "OptionScope":
        return cls(
            type=scope,
            module_name=baseline.module if scope == ScopeType.MODULE else None,
            baseline_id=baseline.id,
            include=_tuple(baseline.rule.include),
            exclude=_tuple(baseline.rule.exclude),
            tag=dict(baseline.rule.tag) if baseline.rule.tag else None,
            include_local=baseline.rule.include_local,
            configuration=dict(baseline.configuration),
            convention=_tuple(baseline.convention),
        )


def _ordered_scopes(scopes: Iterable[OptionScope]) -> Tuple[OptionScope, ...]:
    # Stable: equal scopes keep discovery order.
    return tuple(sorted(scopes, key=lambda s: -SCOPE_PRECEDENCE[s.type]))


def _ordered_refs(refs: Iterable[BaselineRef]) -> Tuple[BaselineRef, ...]:
    return tuple(sorted(refs, key=lambda r: -SCOPE_PRECEDENCE[r.scope]))


@dataclass(frozen=True)
class OptionContext:
    """Resolved settings ordered from the highest scope to the lowest.

    ``unresolved`` holds baseline references still waiting for the rule engine
    to look them up, ordered explicit first then module references in the order
    they were discovered.
    """

    scopes: Tuple[OptionScope, ...] = ()
    unresolved: Tuple[BaselineRef, ...] = ()

    def scope_types(self) -> Tuple[ScopeType, ...]:
        return tuple(s.type for s in self.scopes)

    def _applicable(self, module_name: Optional[str]) -> List[OptionScope]:
        return [s for s in self.scopes if s.applies_to(module_name)]

    def _first(self, attr: str, module_name: Optional[str]) -> Any:
        for scope in self._applicable(module_name):
            value = getattr(scope, attr)
            if value is not None:
                return value
        return None

    def rule_filter(self, module_name: Optional[str] = None) -> RuleFilter:
        return RuleFilter(
            include=self._first("include", module_name),
            exclude=self._first("exclude", module_name),
            tag=self._first("tag", module_name),
            include_local=bool(self._first("include_local", module_name)),
        )

    def configuration(self, module_name: Optional[str] = None) -> Dict[str, Any]:
        merged: Dict[str, Any] = {}
        for scope in reversed(self._applicable(module_name)):
            merged.update(scope.configuration)
        return merged

    def convention_include(self) -> Tuple[str, ...]:
        return self._first("convention", None) or ()

    def resolve(self, lookup: Callable[[str], Optional[Baseline]]) -> "OptionContext":
        """Return a new context with every baseline ``lookup`` can find turned into a scope."""
        scopes = list(self.scopes)
        remaining: List[BaselineRef] = []
        for ref in self.unresolved:
            baseline = lookup(ref.id)
            if baseline is None:
                remaining.append(ref)
                continue
            scopes.append(OptionScope.from_baseline(baseline, ref.scope))
        return OptionContext(scopes=_ordered_scopes(scopes), unresolved=tuple(remaining))


def collect_baseline_refs(
    explicit: Optional[str],
    sources: Sequence[Source],
    on_module_baseline: Optional[Callable[[str], None]] = None,
) -> Tuple[BaselineRef, ...]:
    """Explicit baseline first, then one reference per module manifest baseline not already present."""
    refs: List[BaselineRef] = []
    if explicit:
        refs.append(BaselineRef(explicit, ScopeType.EXPLICIT))
    for source in sources:
        module = source.module
        if module is None or not module.baseline:
            continue
        if any(id_equals(ref.id, module.baseline) for ref in refs):
            continue
        refs.append(BaselineRef(module.baseline, ScopeType.MODULE))
        if on_module_baseline is not None:
            on_module_baseline(module.name)
    return tuple(refs)


class OptionContextBuilder:
    def __init__(
        self,
        option: PipelineOption,
        include: Optional[Sequence[str]] = None,
        tag: Optional[Mapping[str, Any]] = None,
        convention: Optional[Sequence[str]] = None,
    ):
        self._option = option
        self._include = _tuple(include) if include else None
        self._tag = dict(tag) if tag else None
        self._convention = _tuple(convention) if convention else None

    def _parameter_scope(self) -> Optional[OptionScope]:
        if not (self._include or self._tag or self._convention):
            return None
        return OptionScope(
            type=ScopeType.PARAMETER,
            include=self._include,
            tag=self._tag,
            convention=self._convention,
        )

    def _workspace_scope(self) -> OptionScope:
        rule = self._option.rule
        return OptionScope(
            type=ScopeType.WORKSPACE,
            include=_tuple(rule.include) if rule.include else None,
            exclude=_tuple(rule.exclude) if rule.exclude else None,
            tag=dict(rule.tag) if rule.tag else None,
            include_local=rule.include_local,
            configuration=dict(self._option.configuration or {}),
            convention=_tuple(self._option.convention.include) if self._option.convention.include else None,
        )

    def build(
        self,
        unresolved: Sequence[BaselineRef] = (),
        explicit: Optional[Baseline] = None,
    ) -> OptionContext:
        scopes: List[OptionScope] = []
        parameter = self._parameter_scope()
        if parameter is not None:
            scopes.append(parameter)
        if explicit is not None:
            scopes.append(OptionScope.from_baseline(explicit, ScopeType.EXPLICIT))
        scopes.append(self._workspace_scope())
        return OptionContext(scopes=_ordered_scopes(scopes), unresolved=_ordered_refs(unresolved))


BaselineSelection = Union[str, Baseline]


@dataclass(frozen=True)
class PipelineContext:
    """Everything a pipeline needs to evaluate objects; immutable once built."""

    option: PipelineOption
    option_context: OptionContext
    bind_target_name: BinderChain
    bind_target_type: BinderChain
    bind_field: BinderChain
    source: Tuple[Source, ...] = ()
    culture: Tuple[str, ...] = ()
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def unresolved(self) -> Tuple[BaselineRef, ...]:
        return self.option_context.unresolved

    def accepts_type(self, target_type: str) -> bool:
        allowed = self.option.input.target_type
        if not allowed:
            return True
        return any(target_type.casefold() == t.casefold() for t in allowed)

    def bind(self, target: TargetObject) -> BoundTarget:
        binding = self.option.binding
        case_sensitive = binding.ignore_case is False
        prefer_target_info = bool(binding.prefer_target_info)
        name = self.bind_target_name.resolve(
            target,
            BindingRequest(_tuple(binding.target_name), case_sensitive, prefer_target_info),
        )
        type_ = self.bind_target_type.resolve(
            target,
            BindingRequest(_tuple(binding.target_type), case_sensitive, prefer_target_info),
        )
        fields: Dict[str, Any] = {}
        for field_name, property_names in (binding.field or {}).items():
            result = self.bind_field.resolve(target, BindingRequest(tuple(property_names), case_sensitive, False))
            if result is not None:
                fields[field_name] = result.value

        target_name = str(name.value) if name is not None else ""
        target_type = str(type_.value) if type_ is not None else ""
        if binding.use_qualified_name:
            target_name = f"{target_type}{binding.name_separator or '/'}{target_name}"
        return BoundTarget(
            target=target,
            target_name=target_name,
            target_name_path=name.path if name is not None else None,
            target_type=target_type,
            target_type_path=type_.path if type_ is not None else None,
            fields=fields,
        )
