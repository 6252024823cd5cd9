"""Ignore-pattern filtering for input and source paths.

Patterns use ``.gitignore`` semantics: the last matching pattern decides, ``!``
re-includes, a leading ``/`` (or any inner ``/``) anchors to the base path, a
trailing ``/`` only matches directories and ``**`` spans directories.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Iterable, List, Optional, Pattern, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

GIT_PATH_PATTERN = "/.git/"
GIT_IGNORE_FILE = ".gitignore"

REPOSITORY_COMMON_PATTERNS: Tuple[str, ...] = (
    "/README.md",
    "/.DS_Store",
    "/.gitignore",
    "/.gitattributes",
    "/.gitmodules",
    "/LICENSE",
    "/LICENSE.txt",
    "/CODE_OF_CONDUCT.md",
    "/CONTRIBUTING.md",
    "/SECURITY.md",
    "/SUPPORT.md",
    "/CHANGELOG.md",
    "/.vscode/*.json",
    "/.vscode/*.code-snippets",
    "/.github/**/*.md",
    "/.github/CODEOWNERS",
    "/.pipelines/**/*.yml",
    "/.pipelines/**/*.yaml",
    "/.azure-pipelines/**/*.yml",
    "/.azure-pipelines/**/*.yaml",
    "/.azuredevops/*.md",
)

PathLike = Union[str, os.PathLike]


@dataclass(frozen=True)
class IgnoreRule:
    pattern: str
    regex: Pattern[str]
    negate: bool
    directory_only: bool

    def matches(self, relative: str, is_dir: bool) -> bool:
        match = self.regex.match(relative)
        if match is None:
            return False
        if not self.directory_only:
            return True
        # The directory itself, or anything beneath it.
        return is_dir or match.group("rest") is not None


def _translate(body: str) -> str:
    out: List[str] = []
    i = 0
    n = len(body)
    while i < n:
        if body.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
        elif body.startswith("**", i) and i + 2 == n:
            out.append(".*")
            i += 2
        elif body[i] == "*":
            out.append("[^/]*")
            i += 1
        elif body[i] == "?":
            out.append("[^/]")
            i += 1
        elif body[i] == "[":
            end = body.find("]", i + 1)
            if end == -1:
                out.append(re.escape(body[i]))
                i += 1
                continue
            content = body[i + 1:end]
            if content.startswith("!"):
                content = "^" + content[1:]
            out.append(f"[{content}]")
            i = end + 1
        elif body[i] == "\\" and i + 1 < n:
            out.append(re.escape(body[i + 1]))
            i += 2
        else:
            out.append(re.escape(body[i]))
            i += 1
    return "".join(out)


def compile_pattern(pattern: str) -> Optional[IgnoreRule]:
    text = pattern.rstrip("\r\n")
    if not text.endswith("\\ "):
        text = text.rstrip()
    if not text or text.startswith("#"):
        return None
    negate = text.startswith("!")
    if negate:
        text = text[1:]
    elif text.startswith("\\!") or text.startswith("\\#"):
        text = text[1:]
    directory_only = text.endswith("/")
    text = text.rstrip("/")
    if not text:
        return None
    anchored = "/" in text
    text = text.lstrip("/")
    prefix = "^" if anchored else "^(?:.*/)?"
    regex = re.compile(f"{prefix}{_translate(text)}(?P<rest>/.*)?$")
    return IgnoreRule(pattern=pattern, regex=regex, negate=negate, directory_only=directory_only)


@dataclass(frozen=True)
class PathFilter:
    """Compiled ignore rules relative to ``base_path``."""

    base_path: str
    rules: Tuple[IgnoreRule, ...] = ()

    def _relative(self, path: PathLike) -> Optional[str]:
        candidate = os.path.abspath(os.path.join(self.base_path, os.fspath(path)))
        try:
            relative = os.path.relpath(candidate, self.base_path)
        except ValueError:
            return None
        relative = PurePosixPath(*Path(relative).parts).as_posix()
        if relative == "." or relative.startswith(".."):
            return None
        return relative

    def is_excluded(self, path: PathLike, *, is_dir: Optional[bool] = None) -> bool:
        relative = self._relative(path)
        if relative is None:
            return False
        if is_dir is None:
            is_dir = os.path.isdir(os.path.join(self.base_path, relative))
        excluded = False
        for rule in self.rules:
            if rule.matches(relative, is_dir):
                excluded = not rule.negate
        return excluded

    def match(self, path: PathLike) -> bool:
        """True when ``path`` should be kept."""
        return not self.is_excluded(path)

    def __call__(self, path: PathLike) -> bool:
        return self.is_excluded(path)


class PathFilterBuilder:
    def __init__(
        self,
        base_path: PathLike,
        expressions: Optional[Sequence[str]] = None,
        ignore_git_path: bool = True,
        ignore_repository_common: bool = True,
    ):
        self._base_path = os.path.abspath(os.fspath(base_path))
        self._builtin: List[str] = []
        self._git_ignore: List[str] = []
        self._expressions = list(expressions or [])
        if ignore_git_path:
            self._builtin.append(GIT_PATH_PATTERN)
        if ignore_repository_common:
            self._builtin.extend(REPOSITORY_COMMON_PATTERNS)

    @classmethod
    def create(
        cls,
        base_path: PathLike,
        expressions: Optional[Sequence[str]] = None,
        ignore_git_path: bool = True,
        ignore_repository_common: bool = True,
    ) -> "PathFilterBuilder":
        return cls(base_path, expressions, ignore_git_path, ignore_repository_common)

    def use_git_ignore(self, base_path: Optional[PathLike] = None) -> "PathFilterBuilder":
        root = os.path.abspath(os.fspath(base_path)) if base_path is not None else self._base_path
        ignore_file = os.path.join(root, GIT_IGNORE_FILE)
        if not os.path.isfile(ignore_file):
            return self
        with open(ignore_file, "r", encoding="utf-8") as handle:
            self._git_ignore.extend(handle.read().splitlines())
        logger.debug("Loaded ignore patterns from %s", ignore_file)
        return self

    def add(self, expressions: Iterable[str]) -> "PathFilterBuilder":
        self._expressions.extend(expressions)
        return self

    def build(self) -> PathFilter:
        # Explicit expressions go last so they win over built-in and .gitignore rules.
        patterns = [*self._builtin, *self._git_ignore, *self._expressions]
        rules = tuple(rule for rule in (compile_pattern(p) for p in patterns) if rule is not None)
        return PathFilter(base_path=self._base_path, rules=rules)
