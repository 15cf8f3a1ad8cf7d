import json
import os
import shutil
from pathlib import Path

import pytest

from modelconverter.config_service import ConversionOptions
from modelconverter.engine import ModelConverterEngine, bare_file_name, is_up_to_date
from modelconverter.errors import UnsupportedExtensionError
from modelconverter.io.provisioning_text import read_model

FIXTURES = Path(__file__).resolve().parent / "fixtures"


def copy_fixture(tmp_path: Path, name: str) -> Path:
    """Copy a fixture into a scratch input directory."""
    inbox = tmp_path / "in"
    inbox.mkdir(exist_ok=True)
    target = inbox / name
    shutil.copyfile(FIXTURES / name, target)
    return target


def set_mtime(path: Path, mtime: float) -> None:
    os.utime(path, (mtime, mtime))


def test_bare_file_name() -> None:
    assert bare_file_name(Path("boot.txt")) == "boot"
    assert bare_file_name(Path("a.b.json")) == "a.b"
    assert bare_file_name(Path(".hidden")) == ".hidden"
    assert bare_file_name(Path("plain")) == "plain"


def test_to_feature_writes_one_file_per_feature(tmp_path):
    source = tmp_path / "boot.txt"
    source.write_text(
        "[feature name=:boot]\n"
        "[artifacts]\n"
        "  org.apache.felix/org.apache.felix.framework/6.0.1\n"
        "\n"
        "[feature name=main]\n"
        "[artifacts startLevel=5]\n"
        "  org.example/api/1.0.0\n",
        encoding="utf-8",
    )
    out = tmp_path / "out"
    engine = ModelConverterEngine()
    report = engine.run("to-feature", [source], out)

    assert report["files_processed"] == 1
    assert report["files_written"] == 2
    names = sorted(p.name for p in out.iterdir())
    assert names == ["boot_boot.json", "boot_main.json"]
    boot = json.loads((out / "boot_boot.json").read_text(encoding="utf-8"))
    assert boot["id"] == "generated:boot:1.0.0"
    assert boot["variables"] == {"provisioning.model.name": ":boot"}
    main = json.loads((out / "boot_main.json").read_text(encoding="utf-8"))
    assert main["id"] == "generated:boot_main:1.0.0"
    assert main["variables"] == {"provisioning.model.name": "main"}
    assert main["bundles"] == [{"id": "org.example:api:1.0.0", "start-order": "5"}]


def test_no_provisioning_model_name_option(tmp_path):
    source = tmp_path / "boot.txt"
    source.write_text("[feature name=:boot]\n[artifacts]\n  org.example/api/1.0.0\n", encoding="utf-8")
    engine = ModelConverterEngine(options=ConversionOptions(no_provisioning_model_name=True))
    outputs = engine.convert_provisioning_file(source, tmp_path / "out")

    assert [p.name for p in outputs] == ["boot_boot.json"]
    data = json.loads(outputs[0].read_text(encoding="utf-8"))
    assert "variables" not in data


def test_up_to_date_outputs_are_skipped(tmp_path):
    source = copy_fixture(tmp_path, "simple.txt")
    out = tmp_path / "out"
    engine = ModelConverterEngine()
    first = engine.run("to-feature", [source], out)
    assert first["files_written"] == 1

    target = out / "simple_simple.json"
    set_mtime(source, 1_000_000)
    set_mtime(target, 2_000_000)
    assert is_up_to_date(target, source)
    second = engine.run("to-feature", [source], out)
    assert second["files_written"] == 0
    assert second["files_skipped"] == 1

    # an older output is regenerated
    set_mtime(target, 500_000)
    third = engine.run("to-feature", [source], out)
    assert third["files_written"] == 1


def test_to_provisioning_single_file(tmp_path):
    source = copy_fixture(tmp_path, "launchpad.json")
    target = tmp_path / "launchpad.txt"
    engine = ModelConverterEngine()
    report = engine.run("to-provisioning", [source], target)

    assert report["outputs"] == [{"source": str(source), "dest": str(target), "written": True}]
    model = read_model(target)
    assert [feature.name for feature in model] == ["launchpad", ":launchpad", ":boot"]

    assert engine.convert_feature_file(source, target) is False


def test_to_provisioning_directory(tmp_path):
    sources = [copy_fixture(tmp_path, "launchpad.json"), copy_fixture(tmp_path, "repoinit.json")]
    out = tmp_path / "out"
    out.mkdir()
    report = ModelConverterEngine().run("to-provisioning", sources, out)

    assert report["files_written"] == 2
    assert sorted(p.name for p in out.iterdir()) == ["launchpad.txt", "repoinit.txt"]
    repoinit = read_model(out / "repoinit.txt").features[0]
    cfg = repoinit.get_run_mode(["author"]).get_configuration(
        "repoinit", "org.apache.sling.jcr.repoinit.RepositoryInitializer"
    )
    assert cfg is not None


def test_failed_conversion_writes_nothing(tmp_path):
    source = tmp_path / "in.json"
    source.write_text(
        json.dumps({"id": "generated:main:1.0.0", "api-regions:JSON|required": []}), encoding="utf-8"
    )
    target = tmp_path / "out.txt"
    with pytest.raises(UnsupportedExtensionError):
        ModelConverterEngine().run("to-provisioning", [source], target)
    assert not target.exists()


def test_unknown_command(tmp_path):
    with pytest.raises(ValueError):
        ModelConverterEngine().run("to-yaml", [], tmp_path)
