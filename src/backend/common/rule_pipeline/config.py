from __future__ import annotations

import copy
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .models import (
    BannerFlags,
    BannerFormat,
    InputFormat,
    LanguageMode,
    OutputEncoding,
    OutcomeFlags,
    OutputFormat,
    RuleOutcome,
)

BindTargetFunc = Callable[[Any], Optional[str]]


class OptionModel(BaseModel):
    # Option sections are immutable once built; merging produces new instances.
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class BindingOption(OptionModel):
    field: Optional[Dict[str, List[str]]] = None
    ignore_case: Optional[bool] = None
    name_separator: Optional[str] = None
    prefer_target_info: Optional[bool] = None
    target_name: Optional[List[str]] = None
    target_type: Optional[List[str]] = None
    use_qualified_name: Optional[bool] = None


class ConventionOption(OptionModel):
    include: Optional[List[str]] = None


class ExecutionOption(OptionModel):
    language_mode: Optional[LanguageMode] = None
    not_processed_warning: Optional[bool] = None


class InputOption(OptionModel):
    format: Optional[InputFormat] = None
    ignore_git_path: Optional[bool] = None
    ignore_object_source: Optional[bool] = None
    ignore_repository_common: Optional[bool] = None
    object_path: Optional[str] = None
    path_ignore: Optional[List[str]] = None
    target_type: Optional[List[str]] = None


_ENCODINGS = {
    OutputEncoding.DEFAULT: "utf-8",
    OutputEncoding.UTF8: "utf-8-sig",
    OutputEncoding.UTF7: "utf-7",
    OutputEncoding.UNICODE: "utf-16",
    OutputEncoding.UTF32: "utf-32",
    OutputEncoding.ASCII: "ascii",
}


class OutputOption(OptionModel):
    banner: Optional[BannerFlags] = None
    culture: Optional[List[str]] = None
    encoding: Optional[OutputEncoding] = None
    format: Optional[OutputFormat] = None
    json_indent: Optional[int] = None
    outcome: Optional[OutcomeFlags] = None
    path: Optional[str] = None

    def get_encoding(self) -> str:
        """Python codec name for the configured output encoding."""
        return _ENCODINGS[self.encoding or OutputEncoding.DEFAULT]

    def get_culture(self) -> Tuple[str, ...]:
        return resolve_culture(self.culture)


def normalize_culture(name: str) -> str:
    """Canonical casing for a culture tag: ``en-us`` -> ``en-US``, ``zh_hans_cn`` -> ``zh-Hans-CN``."""
    parts = [p for p in name.strip().replace("_", "-").split("-") if p]
    if not parts:
        return ""
    normalized = [parts[0].lower()]
    for part in parts[1:]:
        if len(part) == 4 and part.isalpha():
            normalized.append(part.title())
        elif len(part) in (2, 3):
            normalized.append(part.upper())
        else:
            normalized.append(part)
    return "-".join(normalized)


def resolve_culture(cultures: Optional[Sequence[str]]) -> Tuple[str, ...]:
    """Requested cultures in order, followed by their parent cultures, without duplicates.

    ``["en-US", "fr-CA"]`` resolves to ``("en-US", "fr-CA", "en", "fr")``.
    """
    result: List[str] = []
    parents: List[str] = []
    seen = set()
    for culture in cultures or ():
        name = normalize_culture(culture)
        if not name:
            continue
        if name.lower() not in seen:
            result.append(name)
            seen.add(name.lower())
        parts = name.split("-")
        for end in range(len(parts) - 1, 0, -1):
            parent = "-".join(parts[:end])
            if parent.lower() not in seen:
                parents.append(parent)
                seen.add(parent.lower())
    return tuple(result + parents)


class RepositoryOption(OptionModel):
    base_ref: Optional[str] = None
    url: Optional[str] = None


class RuleFilterOption(OptionModel):
    include: Optional[List[str]] = None
    exclude: Optional[List[str]] = None
    include_local: Optional[bool] = None
    tag: Optional[Dict[str, Union[str, List[str]]]] = None


class HookOption(OptionModel):
    bind_target_name: Optional[List[BindTargetFunc]] = None
    bind_target_type: Optional[List[BindTargetFunc]] = None


class PipelineOption(OptionModel):
    binding: BindingOption = Field(default_factory=BindingOption)
    configuration: Optional[Dict[str, Any]] = None
    convention: ConventionOption = Field(default_factory=ConventionOption)
    execution: ExecutionOption = Field(default_factory=ExecutionOption)
    # Executable hooks never appear in serialized configuration.
    hooks: HookOption = Field(default_factory=HookOption, exclude=True)
    input: InputOption = Field(default_factory=InputOption)
    output: OutputOption = Field(default_factory=OutputOption)
    repository: RepositoryOption = Field(default_factory=RepositoryOption)
    requires: Optional[Dict[str, str]] = None
    rule: RuleFilterOption = Field(default_factory=RuleFilterOption)


DEFAULT_OPTION = PipelineOption(
    binding=BindingOption(
        field={},
        ignore_case=True,
        name_separator="/",
        prefer_target_info=False,
        use_qualified_name=False,
    ),
    configuration={},
    convention=ConventionOption(include=[]),
    execution=ExecutionOption(
        language_mode=LanguageMode.FULL_LANGUAGE,
        not_processed_warning=True,
    ),
    input=InputOption(
        format=InputFormat.DETECT,
        ignore_git_path=True,
        ignore_object_source=False,
        ignore_repository_common=True,
        path_ignore=[],
    ),
    output=OutputOption(
        banner=BannerFormat.DEFAULT,
        encoding=OutputEncoding.DEFAULT,
        format=OutputFormat.NONE,
        json_indent=0,
        outcome=RuleOutcome.PROCESSED,
    ),
    requires={},
    rule=RuleFilterOption(include_local=False),
)


def _detach(value: Any) -> Any:
    # Merged options never share containers with their inputs or the defaults.
    if isinstance(value, BaseModel):
        return type(value).model_construct(
            **{name: _detach(getattr(value, name)) for name in type(value).model_fields}
        )
    if isinstance(value, (dict, list)):
        return copy.deepcopy(value)
    return value


def _merge(value: Any, fallback: Any) -> Any:
    if value is None:
        return _detach(fallback)
    if fallback is None:
        return _detach(value)
    if isinstance(value, BaseModel) and isinstance(fallback, BaseModel):
        update = {
            name: _merge(getattr(value, name), getattr(fallback, name))
            for name in type(value).model_fields
        }
        return type(value).model_construct(**update)
    if isinstance(value, dict) and isinstance(fallback, dict):
        merged = copy.deepcopy(fallback)
        merged.update(copy.deepcopy(value))
        return merged
    return _detach(value)


def merge_option(option: Optional[PipelineOption], defaults: PipelineOption = DEFAULT_OPTION) -> PipelineOption:
    """Overlay ``option`` onto ``defaults`` and return a new option.

    Unset (``None``) fields fall back to ``defaults``; mappings are merged key by
    key with the caller winning; lists and scalars from the caller replace the
    default. Neither input is modified.
    """
    if option is None:
        return _detach(defaults)
    return _merge(option, defaults)


def with_section(option: PipelineOption, **sections: Any) -> PipelineOption:
    return option.model_copy(update=sections)
