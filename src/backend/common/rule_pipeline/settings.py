from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml
from dotenv import load_dotenv

from .config import PipelineOption

OPTION_FILE_NAMES = ("rule-pipeline.yaml", "rule-pipeline.yml")
ENV_PREFIX = "RULE_PIPELINE_"

_LIST = "list"
_BOOL = "bool"
_INT = "int"
_STR = "str"

# Environment variable suffix -> (section alias, field alias, kind)
_ENV_KEYS: Dict[str, Tuple[str, str, str]] = {
    "BINDING_IGNORECASE": ("binding", "ignoreCase", _BOOL),
    "BINDING_NAMESEPARATOR": ("binding", "nameSeparator", _STR),
    "BINDING_PREFERTARGETINFO": ("binding", "preferTargetInfo", _BOOL),
    "BINDING_TARGETNAME": ("binding", "targetName", _LIST),
    "BINDING_TARGETTYPE": ("binding", "targetType", _LIST),
    "BINDING_USEQUALIFIEDNAME": ("binding", "useQualifiedName", _BOOL),
    "CONVENTION_INCLUDE": ("convention", "include", _LIST),
    "EXECUTION_LANGUAGEMODE": ("execution", "languageMode", _STR),
    "EXECUTION_NOTPROCESSEDWARNING": ("execution", "notProcessedWarning", _BOOL),
    "INPUT_FORMAT": ("input", "format", _STR),
    "INPUT_IGNOREGITPATH": ("input", "ignoreGitPath", _BOOL),
    "INPUT_IGNOREOBJECTSOURCE": ("input", "ignoreObjectSource", _BOOL),
    "INPUT_IGNOREREPOSITORYCOMMON": ("input", "ignoreRepositoryCommon", _BOOL),
    "INPUT_OBJECTPATH": ("input", "objectPath", _STR),
    "INPUT_PATHIGNORE": ("input", "pathIgnore", _LIST),
    "INPUT_TARGETTYPE": ("input", "targetType", _LIST),
    "OUTPUT_BANNER": ("output", "banner", _STR),
    "OUTPUT_CULTURE": ("output", "culture", _LIST),
    "OUTPUT_ENCODING": ("output", "encoding", _STR),
    "OUTPUT_FORMAT": ("output", "format", _STR),
    "OUTPUT_JSONINDENT": ("output", "jsonIndent", _INT),
    "OUTPUT_OUTCOME": ("output", "outcome", _STR),
    "OUTPUT_PATH": ("output", "path", _STR),
    "REPOSITORY_BASEREF": ("repository", "baseRef", _STR),
    "REPOSITORY_URL": ("repository", "url", _STR),
    "RULE_EXCLUDE": ("rule", "exclude", _LIST),
    "RULE_INCLUDE": ("rule", "include", _LIST),
    "RULE_INCLUDELOCAL": ("rule", "includeLocal", _BOOL),
}


def _convert(raw: str, kind: str) -> Any:
    value = raw.strip()
    if kind == _BOOL:
        return value.lower() in ("1", "true", "yes", "on")
    if kind == _INT:
        return int(value)
    if kind == _LIST:
        return [part.strip() for part in value.split(";" if ";" in value else ",") if part.strip()]
    return value


def find_option_file(base_path: Path) -> Optional[Path]:
    for name in OPTION_FILE_NAMES:
        candidate = base_path / name
        if candidate.is_file():
            return candidate
    return None


def _load_file(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle)
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"Options file must contain a mapping: {path}")
    return raw


def _apply_env(data: Dict[str, Any], environ: Mapping[str, str]) -> Dict[str, Any]:
    for name, raw in environ.items():
        if not name.startswith(ENV_PREFIX):
            continue
        suffix = name[len(ENV_PREFIX):].upper()
        if suffix.startswith("REQUIRES_"):
            module_name = name[len(ENV_PREFIX) + len("REQUIRES_"):].replace("__", ".")
            data.setdefault("requires", {})[module_name] = raw.strip()
            continue
        if suffix.startswith("CONFIGURATION_"):
            data.setdefault("configuration", {})[name[len(ENV_PREFIX) + len("CONFIGURATION_"):]] = raw
            continue
        entry = _ENV_KEYS.get(suffix)
        if entry is None:
            continue
        section, field_alias, kind = entry
        data.setdefault(section, {})[field_alias] = _convert(raw, kind)
    return data


def load_option(
    path: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
    use_dotenv: bool = True,
) -> PipelineOption:
    """
    Load options from a YAML options file and ``RULE_PIPELINE_*`` environment variables.

    Environment variables win over the file. Module requirements can be set with
    ``RULE_PIPELINE_REQUIRES_<MODULE>`` where ``__`` stands for ``.`` in the module name.
    The result is an unmerged option; builders merge it over defaults.
    """
    if use_dotenv and environ is None:
        load_dotenv()
    data: Dict[str, Any] = _load_file(path) if path is not None else {}
    data = _apply_env(data, os.environ if environ is None else environ)
    return PipelineOption.model_validate(data)
