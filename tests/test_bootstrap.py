import pytest

from genxai.bootstrap import loader
from genxai.bootstrap.loader import CommandTable, get_command, import_all, import_module
from genxai.bootstrap.manifests import MANIFESTS, ModuleManifest
from genxai.bootstrap.platform import PlatformInfo, PlatformRequirement, ensure_supported, windows_release_number
from genxai.core.similarity import get_vector_similarity
from genxai.errors import ModuleLoadError, UnsupportedPlatformError

WIN11 = PlatformInfo(system="Windows", release="10", version="10.0.22631", python=(3, 12))
LINUX = PlatformInfo(system="Linux", release="6.8.0", version="#1 SMP", python=(3, 11))


@pytest.mark.parametrize("release", ["7", "8", "8.1", "Vista", "XP"])
def test_old_windows_is_unsupported(release):
    info = PlatformInfo(system="Windows", release=release, version="", python=(3, 12))
    with pytest.raises(UnsupportedPlatformError) as exc:
        ensure_supported("GenXdev.AI", PlatformRequirement(), info)
    assert "GenXdev.AI" in str(exc.value)
    assert f"Windows {release}" in str(exc.value)


def test_unknown_system_and_old_python_are_unsupported():
    with pytest.raises(UnsupportedPlatformError, match="operating system"):
        ensure_supported("m", PlatformRequirement(), PlatformInfo("AIX", "7", "", (3, 12)))
    with pytest.raises(UnsupportedPlatformError, match="Python"):
        ensure_supported("m", PlatformRequirement(), PlatformInfo("Linux", "6", "", (3, 8)))


def test_supported_platforms_pass():
    assert ensure_supported("m", PlatformRequirement(), WIN11) is WIN11
    assert ensure_supported("m", PlatformRequirement(), LINUX) is LINUX
    server = PlatformInfo(system="Windows", release="2019Server", version="", python=(3, 12))
    assert ensure_supported("m", PlatformRequirement(), server) is server


def test_manifest_aliases_must_target_exported_commands():
    with pytest.raises(ModuleLoadError):
        ModuleManifest(name="x", version="1", description="", commands={"A": "m:a"}, aliases={"b": "B"})
    with pytest.raises(ModuleLoadError):
        ModuleManifest(name="x", version="1", description="", commands={"A": "no-colon"})


def test_import_all_loads_every_listed_command():
    loaded = import_all(info=LINUX)
    assert [module.manifest.name for module in loaded] == [m.name for m in MANIFESTS]
    for module in loaded:
        assert set(module.commands) == set(module.manifest.commands)
    assert get_command("Get-VectorSimilarity") is get_vector_similarity
    assert get_command("get-vectorsimilarity") is get_vector_similarity
    assert get_command("llm") is get_command("Invoke-LLMQuery")
    assert get_command("findimages") is get_command("Find-Image")


def test_import_is_guarded_by_platform():
    info = PlatformInfo(system="Windows", release="8.1", version="", python=(3, 12))
    with pytest.raises(UnsupportedPlatformError):
        import_module("GenXdev.AI.LMStudio", info=info)
    with pytest.raises(ModuleLoadError):
        get_command("Get-LMStudioPaths")


def test_reimport_is_idempotent():
    import_module("GenXdev.AI", info=LINUX)
    import_module("GenXdev.AI", info=LINUX)
    assert get_command("Get-CpuCore")


def test_rebinding_a_name_is_rejected():
    table = CommandTable()
    table.register("Get-Thing", len, "first")
    with pytest.raises(ModuleLoadError, match="already bound"):
        table.register("get-thing", max, "second")
    table.register_alias("thing", "Get-Thing", "first")
    with pytest.raises(ModuleLoadError):
        table.register_alias("thing", "Other", "second")


def test_failed_target_names_the_command_and_registers_nothing(monkeypatch):
    broken = ModuleManifest(
        name="GenXdev.AI",
        version="1",
        description="",
        commands={
            "Get-VectorSimilarity": "genxai.core.similarity:get_vector_similarity",
            "Get-Missing": "genxai.core.similarity:does_not_exist",
        },
        aliases={"vsim": "Get-VectorSimilarity"},
    )
    monkeypatch.setattr(loader, "get_manifest", lambda name: broken)
    table = CommandTable()
    with pytest.raises(ModuleLoadError, match="Get-Missing"):
        import_module("GenXdev.AI", info=LINUX, table=table)
    assert table.names() == []
    assert table.aliases() == {}


def test_conflicting_module_leaves_table_unchanged():
    table = CommandTable()
    table.register("Get-Thing", len, "first")
    with pytest.raises(ModuleLoadError):
        table.register_module({"Get-Other": min, "get-thing": max}, {"other": "Get-Other"}, "second")
    assert table.names() == ["Get-Thing"]
    assert table.aliases() == {}


@pytest.mark.parametrize(
    "release, expected",
    [("2008ServerR2", 7.0), ("2012ServerR2", 8.1), ("2016Server", 10.0), ("2022Server", 10.0), ("8.1", 8.1), ("10", 10.0)],
)
def test_windows_server_releases_map_to_client_versions(release, expected):
    assert windows_release_number(release) == expected


def test_old_windows_server_is_unsupported():
    info = PlatformInfo(system="Windows", release="2008ServerR2", version="6.1.7601", python=(3, 12))
    with pytest.raises(UnsupportedPlatformError, match="too old"):
        ensure_supported("m", PlatformRequirement(), info)


def test_unknown_module_name():
    with pytest.raises(ModuleLoadError):
        import_module("GenXdev.Nope", info=LINUX)
