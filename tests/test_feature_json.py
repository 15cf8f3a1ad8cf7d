from __future__ import annotations

import json
from pathlib import Path

import pytest

from modelconverter.errors import ModelFormatError
from modelconverter.feature import ArtifactId, ExtensionType
from modelconverter.io.feature_json import (
    feature_to_dict,
    read_feature,
    read_feature_text,
    write_feature,
)

FIXTURES = Path(__file__).resolve().parent / "fixtures"


@pytest.mark.parametrize(
    "text, expected",
    [
        ("org.example:api:1.0.0", ArtifactId("org.example", "api", "1.0.0")),
        ("org.example:content:zip:1.0.0", ArtifactId("org.example", "content", "1.0.0", None, "zip")),
        ("org.example:api:jar:tests:1.0.0", ArtifactId("org.example", "api", "1.0.0", "tests", "jar")),
        ("mvn:org.example/content/1.0.0/zip", ArtifactId("org.example", "content", "1.0.0", None, "zip")),
        ("org.example/api/1.0.0/jar/tests", ArtifactId("org.example", "api", "1.0.0", "tests", "jar")),
    ],
)
def test_artifact_id_notations(text, expected) -> None:
    assert ArtifactId.parse(text) == expected


def test_artifact_id_formatting() -> None:
    artifact_id = ArtifactId("org.example", "api", "1.0.0", "tests", "jar")
    assert artifact_id.to_mvn_id() == "org.example:api:jar:tests:1.0.0"
    assert artifact_id.to_mvn_url() == "mvn:org.example/api/1.0.0/jar/tests"
    assert str(ArtifactId("org.example", "api", "1.0.0")) == "org.example:api:1.0.0"


def test_invalid_artifact_id() -> None:
    with pytest.raises(ValueError):
        ArtifactId.parse("just-a-name")


def test_read_feature_fixture() -> None:
    feature = read_feature(FIXTURES / "launchpad.json")
    assert feature.id == ArtifactId("generated", "launchpad", "1.0.0")
    assert [bundle.metadata for bundle in feature.bundles] == [
        {"start-level": ":launchpad"},
        {"start-level": ":boot"},
        {"start-order": "5"},
    ]
    assert feature.framework_properties == {"org.osgi.framework.startlevel.beginning": "30"}
    assert feature.location.endswith("launchpad.json")


def test_extensions_are_parsed_by_key() -> None:
    feature = read_feature_text(json.dumps({
        "id": "generated:main:1.0.0",
        "repoinit:TEXT|required": ["create path /a", "create path /b"],
        "api-regions:JSON|optional": [{"name": "global"}],
        "content-packages:ARTIFACTS|required": [{"id": "org.example:content:zip:1.0.0", "runmodes": "author"}],
    }))
    repoinit = feature.get_extension("repoinit")
    assert repoinit.type is ExtensionType.TEXT
    assert repoinit.text == "create path /a\ncreate path /b"
    regions = feature.get_extension("api-regions")
    assert not regions.required
    assert json.loads(regions.json) == [{"name": "global"}]
    packages = feature.get_extension("content-packages")
    assert packages.artifacts[0].metadata == {"runmodes": "author"}


@pytest.mark.parametrize(
    "document",
    [
        {"id": "generated:main:1.0.0", "repoinit": "create path /a"},
        {"id": "generated:main:1.0.0", "repoinit:YAML": "create path /a"},
        {"id": "generated:main:1.0.0", "repoinit:TEXT|sometimes": "create path /a"},
        {"id": "not an id"},
        {"bundles": []},
    ],
)
def test_invalid_documents(document) -> None:
    with pytest.raises(ModelFormatError):
        read_feature_text(json.dumps(document))


def test_invalid_json_reports_line() -> None:
    with pytest.raises(ModelFormatError) as excinfo:
        read_feature_text('{\n  "id": \n}', "broken.json")
    assert excinfo.value.location == "broken.json"
    assert excinfo.value.line == 3


def test_write_and_read_back(tmp_path: Path) -> None:
    feature = read_feature(FIXTURES / "repoinit.json")
    target = tmp_path / "out" / "repoinit.json"
    write_feature(feature, target)

    assert read_feature(target) == feature
    data = json.loads(target.read_text(encoding="utf-8"))
    assert data["bundles"] == [{"id": "org.apache.sling:org.apache.sling.jcr.repoinit:1.1.8", "start-order": "20"}]
    assert "repoinit:JSON|required" in data


def test_bundles_without_metadata_are_plain_ids() -> None:
    feature = read_feature_text('{"id": "generated:main:1.0.0", "bundles": ["org.example:api:1.0.0"]}')
    assert feature_to_dict(feature)["bundles"] == ["org.example:api:1.0.0"]


def test_prototype_is_rejected() -> None:
    text = json.dumps({
        "id": "generated:child:1.0.0",
        "prototype": {"id": "generated:parent:1.0.0"},
        "bundles": ["org.example:api:1.0.0"],
    })
    with pytest.raises(ModelFormatError, match="prototype") as excinfo:
        read_feature_text(text, "child.json")
    assert excinfo.value.location == "child.json"
