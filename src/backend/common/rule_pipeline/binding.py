"""Identity binding for input objects.

Each identity facet (target name, target type, field) is resolved by a
``BinderChain``: custom binders are tried newest-first and the built-in
default binder is always the last link. A binder defers by returning ``None``
(or an empty value) and answers by returning a ``BindingResult``.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Protocol, Tuple

from .errors import PipelineUsageError
from .models import TargetObject

DEFAULT_TARGET_NAME_PROPERTIES = ("TargetName", "Name")


@dataclass(frozen=True)
class BindingRequest:
    property_names: Optional[Tuple[str, ...]] = None
    case_sensitive: bool = False
    prefer_target_info: bool = False


@dataclass(frozen=True)
class BindingResult:
    value: Any
    path: Optional[str] = None


class TargetBinder(Protocol):
    def try_bind(self, target: TargetObject, request: BindingRequest) -> Optional[BindingResult]:
        ...


_MISSING = object()


def _get_member(value: Any, name: str, case_sensitive: bool) -> Any:
    if isinstance(value, Mapping):
        if name in value:
            return value[name]
        if not case_sensitive:
            wanted = name.casefold()
            for key in value:
                if isinstance(key, str) and key.casefold() == wanted:
                    return value[key]
        return _MISSING
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        if name.isdigit() and int(name) < len(value):
            return value[int(name)]
        return _MISSING
    if hasattr(value, name):
        return getattr(value, name)
    if not case_sensitive:
        wanted = name.casefold()
        for attr in dir(value):
            if not attr.startswith("_") and attr.casefold() == wanted:
                return getattr(value, attr)
    return _MISSING


def get_property(value: Any, path: str, *, case_sensitive: bool = False) -> Tuple[bool, Any]:
    """Read a dotted property path (``metadata.name``) from dicts, sequences or objects."""
    current = value
    for part in path.split("."):
        if current is None:
            return False, None
        current = _get_member(current, part, case_sensitive)
        if current is _MISSING:
            return False, None
    return True, current


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _first_property(target: TargetObject, names: Sequence[str], case_sensitive: bool) -> Optional[BindingResult]:
    for name in names:
        found, value = get_property(target.value, name, case_sensitive=case_sensitive)
        if found and not _is_empty(value):
            return BindingResult(value=value, path=name)
    return None


def hash_target(value: Any) -> str:
    """Stable name for objects without an identity: SHA-1 of their canonical JSON."""
    payload = json.dumps(value, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha1(payload.encode("utf-8")).hexdigest()


def type_name(value: Any) -> str:
    cls = type(value)
    if cls.__module__ == "builtins":
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"


class DefaultTargetNameBinder:
    def try_bind(self, target: TargetObject, request: BindingRequest) -> Optional[BindingResult]:
        if request.prefer_target_info and target.target_name:
            return BindingResult(value=target.target_name)
        if request.property_names:
            result = _first_property(target, request.property_names, request.case_sensitive)
            if result is not None:
                return BindingResult(value=str(result.value), path=result.path)
        if target.target_name:
            return BindingResult(value=target.target_name)
        result = _first_property(target, DEFAULT_TARGET_NAME_PROPERTIES, False)
        if result is not None:
            return BindingResult(value=str(result.value), path=result.path)
        return BindingResult(value=hash_target(target.value))


class DefaultTargetTypeBinder:
    def try_bind(self, target: TargetObject, request: BindingRequest) -> Optional[BindingResult]:
        if request.prefer_target_info and target.target_type:
            return BindingResult(value=target.target_type)
        if request.property_names:
            result = _first_property(target, request.property_names, request.case_sensitive)
            if result is not None:
                return BindingResult(value=str(result.value), path=result.path)
        if target.target_type:
            return BindingResult(value=target.target_type)
        return BindingResult(value=type_name(target.value))


class DefaultFieldBinder:
    def try_bind(self, target: TargetObject, request: BindingRequest) -> Optional[BindingResult]:
        if not request.property_names:
            return None
        return _first_property(target, request.property_names, request.case_sensitive)


class FunctionBinder:
    """Adapts a user callable ``func(value) -> str | None`` to a chain link."""

    def __init__(self, func: Callable[[Any], Optional[str]]):
        self.func = func

    def try_bind(self, target: TargetObject, request: BindingRequest) -> Optional[BindingResult]:
        value = self.func(target.value)
        if _is_empty(value):
            return None
        return BindingResult(value=str(value))

    def __repr__(self) -> str:
        return f"FunctionBinder({getattr(self.func, '__name__', self.func)!r})"


class BinderChain:
    def __init__(self, default: TargetBinder):
        self._default = default
        self._custom: List[TargetBinder] = []
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def default(self) -> TargetBinder:
        return self._default

    def add(self, binder: TargetBinder) -> "BinderChain":
        if self._frozen:
            raise PipelineUsageError("Binding hooks cannot be changed after the pipeline is built.")
        self._custom.append(binder)
        return self

    def add_function(self, func: Callable[[Any], Optional[str]]) -> "BinderChain":
        return self.add(FunctionBinder(func))

    def has_function(self, func: Callable[[Any], Optional[str]]) -> bool:
        return any(isinstance(b, FunctionBinder) and b.func is func for b in self._custom)

    def freeze(self) -> "BinderChain":
        self._frozen = True
        return self

    def links(self) -> Tuple[TargetBinder, ...]:
        """Chain links in evaluation order."""
        return (*reversed(self._custom), self._default)

    def resolve(self, target: TargetObject, request: BindingRequest) -> Optional[BindingResult]:
        for binder in self.links():
            result = binder.try_bind(target, request)
            if result is not None and not _is_empty(result.value):
                return result
        return None

    def __len__(self) -> int:
        return len(self._custom) + 1
