from __future__ import annotations

import json
import logging
import os
from collections import deque
from pathlib import Path
from typing import Any, Callable, Deque, Iterable, List, Optional, Union

import yaml

from common.rule_pipeline.binding import get_property
from common.rule_pipeline.models import InputFormat, TargetObject, TargetSourceInfo

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
PathPredicate = Callable[[str], bool]

_YAML_EXTENSIONS = (".yaml", ".yml")
_JSON_EXTENSIONS = (".json", ".jsonc")
_MARKDOWN_EXTENSIONS = (".md", ".markdown")


def detect_format(path: str) -> InputFormat:
    lower = path.lower()
    if lower.endswith(_YAML_EXTENSIONS):
        return InputFormat.YAML
    if lower.endswith(_JSON_EXTENSIONS):
        return InputFormat.JSON
    if lower.endswith(_MARKDOWN_EXTENSIONS):
        return InputFormat.MARKDOWN
    return InputFormat.NONE


def _read_front_matter(text: str) -> List[Any]:
    lines = text.splitlines()
    if not lines or lines[0].strip() != "---":
        return []
    for index, line in enumerate(lines[1:], start=1):
        if line.strip() == "---":
            data = yaml.safe_load("\n".join(lines[1:index]))
            return [data] if data is not None else []
    return []


def _file_info(path: str, base_path: str) -> dict:
    name = os.path.basename(path)
    return {
        "FullName": os.path.abspath(path),
        "Name": name,
        "BaseName": os.path.splitext(name)[0],
        "Extension": os.path.splitext(name)[1],
        "DirectoryName": os.path.dirname(os.path.abspath(path)),
        "RelativePath": os.path.relpath(path, base_path).replace(os.sep, "/"),
    }


class PipelineReader:
    """Queue of target objects, filled from host objects or input paths.

    ``input_filter`` decides which discovered files are read; it returns True
    for paths to exclude. ``object_source_filter`` drops enqueued objects whose
    source file is excluded.
    """

    def __init__(
        self,
        *,
        input_format: InputFormat = InputFormat.DETECT,
        object_path: Optional[str] = None,
        input_filter: Optional[PathPredicate] = None,
        object_source_filter: Optional[PathPredicate] = None,
        base_path: Optional[PathLike] = None,
    ) -> None:
        self.input_format = input_format
        self.object_path = object_path
        self._input_filter = input_filter
        self._object_source_filter = object_source_filter
        self._base_path = os.path.abspath(os.fspath(base_path)) if base_path is not None else os.getcwd()
        self._queue: Deque[TargetObject] = deque()

    def __len__(self) -> int:
        return len(self._queue)

    def _expand(self, value: Any) -> Iterable[Any]:
        if not self.object_path:
            return [value]
        found, nested = get_property(value, self.object_path)
        if not found or nested is None:
            return []
        if isinstance(nested, list):
            return nested
        return [nested]

    def _source_excluded(self, target: TargetObject) -> bool:
        if self._object_source_filter is None:
            return False
        return any(info.file and self._object_source_filter(info.file) for info in target.source)

    def enqueue(self, value: Any, *, skip_expansion: bool = False) -> None:
        if isinstance(value, TargetObject):
            targets = [value]
        else:
            values = [value] if skip_expansion else self._expand(value)
            targets = [TargetObject(value=v) for v in values]
        for target in targets:
            if self._source_excluded(target):
                logger.debug("Skipping object from excluded source %s", target.source)
                continue
            self._queue.append(target)

    def try_dequeue(self) -> Optional[TargetObject]:
        if not self._queue:
            return None
        return self._queue.popleft()

    def _files(self, path: str) -> Iterable[str]:
        if os.path.isfile(path):
            yield path
            return
        for root, dirs, files in os.walk(path):
            if self._input_filter is not None:
                dirs[:] = [d for d in dirs if not self._input_filter(os.path.join(root, d))]
            for name in sorted(files):
                yield os.path.join(root, name)

    def add_path(self, path: PathLike) -> None:
        """Read every file under ``path`` that passes the input filter."""
        for file_path in self._files(os.fspath(path)):
            if self._input_filter is not None and self._input_filter(file_path):
                continue
            self._read_file(file_path)

    def _read_file(self, file_path: str) -> None:
        fmt = self.input_format
        if fmt == InputFormat.DETECT:
            fmt = detect_format(file_path)
        if fmt == InputFormat.FILE:
            info = TargetSourceInfo(file=file_path, type="File")
            self._queue.append(
                TargetObject(value=_file_info(file_path, self._base_path), source=(info,), target_type="File")
            )
            return
        if fmt == InputFormat.NONE:
            return
        with open(file_path, "r", encoding="utf-8") as handle:
            text = handle.read()
        if fmt == InputFormat.YAML:
            documents = [d for d in yaml.safe_load_all(text) if d is not None]
        elif fmt == InputFormat.JSON:
            data = json.loads(text)
            documents = data if isinstance(data, list) else [data]
        else:
            documents = _read_front_matter(text)
        info = TargetSourceInfo(file=file_path, type=fmt.value)
        for document in documents:
            for value in self._expand(document):
                self._queue.append(TargetObject(value=value, source=(info,)))
