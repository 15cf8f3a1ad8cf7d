from __future__ import annotations

import json
from pathlib import Path

from modelconverter import cli
from modelconverter.io.feature_json import read_feature
from modelconverter.io.provisioning_text import read_model

FIXTURES = Path(__file__).resolve().parent / "fixtures"


def test_to_feature_with_flags(tmp_path: Path, capsys) -> None:
    out = tmp_path / "out"
    code = cli.main([
        "to-feature",
        str(FIXTURES / "oak.txt"),
        str(out),
        "-g", "org.example",
        "-v", "2.0.0",
        "-r", "oak_tar",
        "-a", "oak:org.osgi.framework.bootdelegation=sun.*",
    ])
    assert code == 0
    report = json.loads(capsys.readouterr().out)
    assert report["command"] == "to-feature"
    assert report["files_written"] == 1

    feature = read_feature(out / "oak_oak.json")
    assert str(feature.id) == "org.example:oak:2.0.0"
    assert {bundle.id.artifact_id for bundle in feature.bundles} == {"oak-core", "oak-segment-tar"}
    assert feature.framework_properties == {"org.osgi.framework.bootdelegation": "sun.*"}


def test_options_file_is_merged_with_flags(tmp_path: Path, capsys) -> None:
    options = tmp_path / "pm2fm.json"
    options.write_text(json.dumps({"group_id": "org.options", "name": "sling"}), encoding="utf-8")
    out = tmp_path / "out"
    code = cli.main(["to-feature", str(FIXTURES / "simple.txt"), str(out), "--options", str(options), "-V"])
    assert code == 0
    capsys.readouterr()

    feature = read_feature(out / "simple_simple.json")
    assert str(feature.id) == "org.options:sling:slingfeature:simple:1.0.0"


def test_to_provisioning_directory_input(tmp_path: Path, capsys) -> None:
    out = tmp_path / "out"
    code = cli.main(["to-provisioning", str(FIXTURES), str(out)])
    assert code == 0
    report = json.loads(capsys.readouterr().out)
    # only the JSON fixtures are picked up
    assert report["files_processed"] == 2
    assert [feature.name for feature in read_model(out / "launchpad.txt")] == ["launchpad", ":launchpad", ":boot"]


def test_missing_input(tmp_path: Path, capsys) -> None:
    code = cli.main(["to-feature", str(tmp_path / "missing.txt"), str(tmp_path / "out")])
    assert code == 1
    assert "does not exist" in capsys.readouterr().out


def test_conversion_error_exit_status(tmp_path: Path, capsys) -> None:
    source = tmp_path / "broken.json"
    source.write_text(json.dumps({"id": "generated:main:1.0.0", "api-regions:JSON|required": []}), encoding="utf-8")
    code = cli.main(["to-provisioning", str(source), str(tmp_path / "broken.txt")])
    assert code == 1
    assert "api-regions" in capsys.readouterr().out
    assert not (tmp_path / "broken.txt").exists()


def test_invalid_options_file(tmp_path: Path, capsys) -> None:
    options = tmp_path / "pm2fm.json"
    options.write_text(json.dumps({"group_id": 42}), encoding="utf-8")
    code = cli.main(["to-feature", str(FIXTURES / "simple.txt"), str(tmp_path / "out"), "--options", str(options)])
    assert code == 1
    assert "Invalid conversion options" in capsys.readouterr().out


def test_variable_resolution_flag(tmp_path: Path, capsys) -> None:
    source = tmp_path / "vars.txt"
    source.write_text(
        "[feature name=vars]\n"
        "[variables]\n"
        "  ws.version=1.0.2\n"
        "[settings]\n"
        "  sling.home=${sling.dir}/home\n"
        "[artifacts startLevel=5]\n"
        "  org.example/ws/${ws.version}\n",
        encoding="utf-8",
    )
    out = tmp_path / "out"
    code = cli.main(["to-feature", str(source), str(out), "--variables", "strict"])
    assert code == 1
    assert "sling.dir" in capsys.readouterr().out
    assert not (out / "vars_vars.json").exists()

    code = cli.main(["to-feature", str(source), str(out), "--variables", "feature"])
    assert code == 0
    capsys.readouterr()
    feature = read_feature(out / "vars_vars.json")
    assert feature.framework_properties == {"sling.home": "${sling.dir}/home"}
    assert str(feature.bundles[0].id) == "org.example:ws:1.0.2"
