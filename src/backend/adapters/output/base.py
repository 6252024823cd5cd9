from __future__ import annotations

import dataclasses
from abc import ABC, abstractmethod
from typing import Any, Iterable, Iterator, Optional

from pydantic import BaseModel

from common.rule_pipeline.config import PipelineOption
from common.rule_pipeline.models import InvokeResult, RuleRecord

RULE_PATH_NOT_FOUND = "Rule path not found. Specify a path or module containing rules."
REQUIRED_VERSION_MISMATCH = "The version of '{0}' is '{1}', however the required version is '{2}'."
MODULE_MANIFEST_BASELINE = (
    "The module '{0}' configures a baseline in its manifest. The baseline is applied implicitly; "
    "use an explicit baseline to override it."
)
TARGET_NOT_PROCESSED = "Target object '{0}' has not been processed because no matching rules were found."


def to_plain(obj: Any) -> Any:
    """Convert models and dataclasses into JSON/YAML friendly values."""
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {k: to_plain(v) for k, v in dataclasses.asdict(obj).items()}
    if isinstance(obj, dict):
        return {str(k): to_plain(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_plain(v) for v in obj]
    return obj


def iter_records(objects: Iterable[Any]) -> Iterator[RuleRecord]:
    """Yield rule records, flattening invoke results."""
    for obj in objects:
        if isinstance(obj, InvokeResult):
            yield from obj.records
        elif isinstance(obj, RuleRecord):
            yield obj


class PipelineWriter:
    """A link in the output chain.

    Writers forward to ``inner`` unless they handle a call themselves, so format
    and destination concerns can be stacked independently.
    """

    def __init__(self, inner: Optional["PipelineWriter"], option: PipelineOption):
        self._inner = inner
        self.option = option
        self._had_errors = False
        self._had_failures = False

    @property
    def inner(self) -> Optional["PipelineWriter"]:
        return self._inner

    @property
    def had_errors(self) -> bool:
        return self._had_errors or (self._inner is not None and self._inner.had_errors)

    @property
    def had_failures(self) -> bool:
        return self._had_failures or (self._inner is not None and self._inner.had_failures)

    def mark_failure(self) -> None:
        self._had_failures = True

    def begin(self) -> None:
        if self._inner is not None:
            self._inner.begin()

    def write_object(self, obj: Any, enumerate_collection: bool = False) -> None:
        if self._inner is not None:
            self._inner.write_object(obj, enumerate_collection)

    def write_warning(self, message: str) -> None:
        if self._inner is not None:
            self._inner.write_warning(message)

    def write_error(self, message: str) -> None:
        self._had_errors = True
        if self._inner is not None:
            self._inner.write_error(message)

    def write_information(self, message: str) -> None:
        if self._inner is not None:
            self._inner.write_information(message)

    def write_verbose(self, message: str) -> None:
        if self._inner is not None:
            self._inner.write_verbose(message)

    def write_debug(self, message: str) -> None:
        if self._inner is not None:
            self._inner.write_debug(message)

    def end(self) -> None:
        if self._inner is not None:
            self._inner.end()

    def close(self) -> None:
        if self._inner is not None:
            self._inner.close()

    def __enter__(self) -> "PipelineWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # Build and run diagnostics, formatted the same way whatever the output format.

    def warn_rule_path_not_found(self) -> None:
        self.write_warning(RULE_PATH_NOT_FOUND)

    def error_required_version_mismatch(self, module_name: str, version: str, required: str) -> None:
        self.write_error(REQUIRED_VERSION_MISMATCH.format(module_name, version, required))

    def warn_module_manifest_baseline(self, module_name: str) -> None:
        self.write_warning(MODULE_MANIFEST_BASELINE.format(module_name))

    def warn_target_not_processed(self, target_name: str) -> None:
        if self.option.execution.not_processed_warning is False:
            return
        self.write_warning(TARGET_NOT_PROCESSED.format(target_name))


class SerializationOutputWriter(PipelineWriter, ABC):
    """Collects objects and writes them to ``inner`` as one serialized document on ``end``."""

    def __init__(self, inner: Optional[PipelineWriter], option: PipelineOption):
        super().__init__(inner, option)
        self._result: list[Any] = []

    def write_object(self, obj: Any, enumerate_collection: bool = False) -> None:
        if enumerate_collection and isinstance(obj, (list, tuple)):
            self._result.extend(obj)
        else:
            self._result.append(obj)

    @abstractmethod
    def serialize(self, objects: list[Any]) -> str:  # pragma: no cover
        raise NotImplementedError

    def end(self) -> None:
        if self._inner is not None:
            self._inner.write_object(self.serialize(self._result), False)
        self._result = []
        super().end()
