from __future__ import annotations

import configparser
import logging
import os
from pathlib import Path
from typing import Mapping, Optional, Protocol

logger = logging.getLogger(__name__)

# CI systems that expose the repository url directly.
REPOSITORY_URL_ENV = (
    "BUILD_REPOSITORY_URI",
    "GITHUB_REPOSITORY_URL",
    "CI_REPOSITORY_URL",
)


class RepositoryInfoProvider(Protocol):
    def get_repository_url(self) -> Optional[str]:
        ...


class StaticRepositoryInfoProvider:
    def __init__(self, url: Optional[str] = None) -> None:
        self._url = url

    def get_repository_url(self) -> Optional[str]:
        return self._url


class GitRepositoryInfoProvider:
    """Reads the repository url from CI variables or the local ``.git/config``."""

    def __init__(self, base_path: Optional[Path] = None, *, environ: Optional[Mapping[str, str]] = None) -> None:
        self._base_path = Path(base_path) if base_path is not None else Path.cwd()
        self._environ = environ

    def _from_environment(self) -> Optional[str]:
        environ = os.environ if self._environ is None else self._environ
        for name in REPOSITORY_URL_ENV:
            value = (environ.get(name) or "").strip()
            if value:
                return value
        server = (environ.get("GITHUB_SERVER_URL") or "").strip()
        repository = (environ.get("GITHUB_REPOSITORY") or "").strip()
        if server and repository:
            return f"{server.rstrip('/')}/{repository}"
        return None

    def _find_git_config(self) -> Optional[Path]:
        current = self._base_path.resolve()
        for candidate in (current, *current.parents):
            config = candidate / ".git" / "config"
            if config.is_file():
                return config
        return None

    def _from_git_config(self) -> Optional[str]:
        config_path = self._find_git_config()
        if config_path is None:
            return None
        parser = configparser.ConfigParser(strict=False, interpolation=None)
        try:
            parser.read(config_path, encoding="utf-8")
        except configparser.Error as exc:
            logger.debug("Could not read %s: %s", config_path, exc)
            return None
        section = 'remote "origin"'
        if not parser.has_section(section):
            return None
        url = parser.get(section, "url", fallback="").strip()
        return _normalize_url(url) or None

    def get_repository_url(self) -> Optional[str]:
        return self._from_environment() or self._from_git_config()


def _normalize_url(url: str) -> str:
    if url.endswith(".git"):
        url = url[: -len(".git")]
    # scp-like ssh remotes: git@host:owner/repo
    if "://" not in url and "@" in url and ":" in url:
        user_host, _, path = url.partition(":")
        host = user_host.split("@", 1)[1]
        return f"https://{host}/{path}"
    return url
