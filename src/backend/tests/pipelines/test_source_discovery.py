import pytest

from common.rule_pipeline.models import ModuleInfo, SourceType
from pipelines.source import SourcePipelineBuilder, read_module_manifest


def _touch(path, text="# rules\n"):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def test_directory_finds_rule_files(tmp_path, host):
    rules = tmp_path / "rules"
    _touch(rules / "Storage.Rule.yaml")
    _touch(rules / "nested" / "Network.rule.jsonc")
    _touch(rules / "notes.md")
    _touch(rules / ".hidden" / "Skipped.Rule.yaml")

    (source,) = SourcePipelineBuilder(host).directory(rules).build()

    assert source.module is None
    assert [f.path.rsplit("/", 1)[-1] for f in source.files] == ["Storage.Rule.yaml", "Network.rule.jsonc"]
    assert [f.type for f in source.files] == [SourceType.YAML, SourceType.JSON]
    assert host.warnings == []


def test_directory_without_rule_files_adds_nothing(tmp_path, host):
    _touch(tmp_path / "empty" / "notes.md")
    assert SourcePipelineBuilder(host).directory(tmp_path / "empty").build() == []


def test_missing_paths_are_reported(tmp_path, host):
    missing = tmp_path / "missing"
    builder = SourcePipelineBuilder(host).directory(missing).module(missing)
    assert builder.build() == []
    assert host.warnings == [f"The source path '{missing}' does not exist."] * 2


def test_module_identity_comes_from_manifest(tmp_path, host):
    module_dir = tmp_path / "contoso"
    _touch(module_dir / "module.yaml", "name: Contoso.Rules\nversion: 1.2.0\nbaseline: Contoso.Default\n")
    _touch(module_dir / "rules" / "Storage.Rule.yaml")

    (source,) = SourcePipelineBuilder(host).module(module_dir).build()

    assert source.module == ModuleInfo(name="Contoso.Rules", version="1.2.0", baseline="Contoso.Default")
    assert source.files[0].module_name == "Contoso.Rules"


def test_module_without_manifest_uses_directory_name(tmp_path, host):
    module_dir = tmp_path / "Fabrikam.Rules"
    _touch(module_dir / "Network.Rule.yml")

    (source,) = SourcePipelineBuilder(host).module(module_dir).build()

    assert source.module.name == "Fabrikam.Rules"
    assert source.module.version == ""


def test_explicit_module_info_wins(tmp_path, host):
    module_dir = tmp_path / "contoso"
    _touch(module_dir / "module.yaml", "name: Contoso.Rules\nversion: 1.2.0\n")
    info = ModuleInfo(name="Override", version="9.0.0")

    (source,) = SourcePipelineBuilder(host).module(module_dir, info).build()

    assert source.module is info
    assert source.files == ()


def test_manifest_requires_a_name(tmp_path):
    _touch(tmp_path / "module.yml", "version: 1.0.0\n")
    with pytest.raises(ValueError):
        read_module_manifest(tmp_path)
    assert read_module_manifest(tmp_path / "nowhere") is None
