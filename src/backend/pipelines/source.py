from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import List, Optional, Union

import yaml

from adapters.output import HostPipelineWriter
from common.rule_pipeline.config import DEFAULT_OPTION, PipelineOption, merge_option
from common.rule_pipeline.models import ModuleInfo, Source, SourceFile, SourceType

from .host import HostContext

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

MODULE_MANIFEST_NAMES = ("module.yaml", "module.yml")
RULE_FILE_PATTERN = re.compile(r"\.rule\.(yaml|yml|json|jsonc)$", re.IGNORECASE)
SOURCE_PATH_NOT_FOUND = "The source path '{0}' does not exist."

_SOURCE_TYPES = {
    "yaml": SourceType.YAML,
    "yml": SourceType.YAML,
    "json": SourceType.JSON,
    "jsonc": SourceType.JSON,
}


def read_module_manifest(path: PathLike) -> Optional[ModuleInfo]:
    """Read ``module.yaml`` (name, version, baseline) from a module directory."""
    for name in MODULE_MANIFEST_NAMES:
        manifest = Path(path) / name
        if manifest.is_file():
            with manifest.open("r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle) or {}
            if not isinstance(data, dict) or not data.get("name"):
                raise ValueError(f"Module manifest {manifest} must define a name.")
            return ModuleInfo(
                name=str(data["name"]),
                version=str(data.get("version") or ""),
                baseline=data.get("baseline"),
            )
    return None


class SourcePipelineBuilder:
    """Discovers rule files from directories and modules.

    Unlike the other builders this returns the discovered ``Source`` list,
    which then feeds any pipeline builder.
    """

    def __init__(self, host_context: Optional[HostContext] = None, option: Optional[PipelineOption] = None) -> None:
        self.option = merge_option(option, DEFAULT_OPTION)
        self._writer = HostPipelineWriter(host_context, self.option)
        self._sources: List[Source] = []

    def _discover(self, path: str, module_name: Optional[str]) -> List[SourceFile]:
        if os.path.isfile(path):
            candidates = [path]
        else:
            candidates = []
            for root, dirs, files in os.walk(path):
                dirs[:] = sorted(d for d in dirs if not d.startswith("."))
                candidates.extend(os.path.join(root, name) for name in sorted(files))
        found = []
        for candidate in candidates:
            match = RULE_FILE_PATTERN.search(candidate)
            if match is None:
                continue
            found.append(
                SourceFile(
                    path=os.path.abspath(candidate),
                    module_name=module_name,
                    type=_SOURCE_TYPES[match.group(1).lower()],
                    help_path=os.path.dirname(os.path.abspath(candidate)),
                )
            )
        return found

    def directory(self, path: PathLike) -> "SourcePipelineBuilder":
        path = os.fspath(path)
        if not os.path.exists(path):
            self._writer.write_warning(SOURCE_PATH_NOT_FOUND.format(path))
            return self
        files = self._discover(path, None)
        if files:
            self._sources.append(Source(path=os.path.abspath(path), files=tuple(files)))
        logger.debug("Found %d rule file(s) in %s", len(files), path)
        return self

    def module(self, path: PathLike, module: Optional[ModuleInfo] = None) -> "SourcePipelineBuilder":
        """Add a module directory; its manifest supplies the identity unless ``module`` is given."""
        path = os.fspath(path)
        if not os.path.isdir(path):
            self._writer.write_warning(SOURCE_PATH_NOT_FOUND.format(path))
            return self
        info = module or read_module_manifest(path)
        if info is None:
            info = ModuleInfo(name=os.path.basename(os.path.abspath(path)))
        files = self._discover(path, info.name)
        self._sources.append(Source(path=os.path.abspath(path), files=tuple(files), module=info))
        return self

    def build(self) -> List[Source]:
        return list(self._sources)
