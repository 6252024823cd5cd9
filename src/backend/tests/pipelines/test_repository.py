import pytest

from pipelines.repository import GitRepositoryInfoProvider, StaticRepositoryInfoProvider


def _git_config(root, url):
    git_dir = root / ".git"
    git_dir.mkdir(parents=True)
    (git_dir / "config").write_text(
        "[core]\n\tbare = false\n"
        f'[remote "origin"]\n\turl = {url}\n\tfetch = +refs/heads/*:refs/remotes/origin/*\n',
        encoding="utf-8",
    )


def test_static_provider():
    assert StaticRepositoryInfoProvider("https://example.test/r").get_repository_url() == "https://example.test/r"
    assert StaticRepositoryInfoProvider().get_repository_url() is None


def test_ci_variable_wins_over_git_config(tmp_path):
    _git_config(tmp_path, "https://github.com/contoso/local.git")
    provider = GitRepositoryInfoProvider(tmp_path, environ={"BUILD_REPOSITORY_URI": "https://dev.azure.com/contoso/_git/rules"})
    assert provider.get_repository_url() == "https://dev.azure.com/contoso/_git/rules"


def test_github_server_and_repository_are_joined(tmp_path):
    environ = {"GITHUB_SERVER_URL": "https://github.com/", "GITHUB_REPOSITORY": "contoso/rules"}
    assert GitRepositoryInfoProvider(tmp_path, environ=environ).get_repository_url() == "https://github.com/contoso/rules"


@pytest.mark.parametrize(
    "remote, expected",
    [
        ("https://github.com/contoso/rules.git", "https://github.com/contoso/rules"),
        ("git@github.com:contoso/rules.git", "https://github.com/contoso/rules"),
        ("https://example.test/rules", "https://example.test/rules"),
    ],
)
def test_origin_remote_is_read_from_parent_directories(tmp_path, remote, expected):
    _git_config(tmp_path, remote)
    nested = tmp_path / "src" / "app"
    nested.mkdir(parents=True)
    assert GitRepositoryInfoProvider(nested, environ={}).get_repository_url() == expected


def test_no_repository_information(tmp_path):
    assert GitRepositoryInfoProvider(tmp_path, environ={}).get_repository_url() is None
