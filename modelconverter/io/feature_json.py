"""Reading and writing feature model JSON documents.

A feature document looks like this::

    {
      "id": "generated:simple:1.0.0",
      "variables": {"ws.version": "1.0.2"},
      "framework-properties": {"foo.runmodes:author": "bar"},
      "bundles": [
        {"id": "org.apache.sling:org.apache.sling.api:2.16.4", "start-order": "5"}
      ],
      "configurations": {
        "org.example.Service.runmodes.author": {"enabled": true}
      },
      "content-packages:ARTIFACTS|required": [
        "org.example:content:zip:1.0.0"
      ],
      "repoinit:TEXT|required": "create path /content"
    }

Every top level key that is not one of the reserved keys is an
extension written as ``<name>:<TYPE>[|required|optional|transient]``.
``TEXT`` payloads may be a string or an array of lines, ``JSON``
payloads any JSON value and ``ARTIFACTS`` payloads an array of
artifacts in the same notation as ``bundles``.

The document structure is validated with ``jsonschema`` (see
:meth:`modelconverter.config_service.ConfigService.validate_feature`)
before it is turned into a :class:`~modelconverter.feature.Feature`.

A feature that still references a ``prototype`` is rejected with a
:class:`~modelconverter.errors.ModelFormatError`; it has to be
assembled into a complete feature first.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ..config_service import ConfigService
from ..errors import ModelFormatError
from ..feature import Artifact, ArtifactId, Configuration, Extension, ExtensionType, Feature

RESERVED_KEYS = {
    "id",
    "variables",
    "framework-properties",
    "bundles",
    "configurations",
    "model-version",
    "title",
    "description",
    "vendor",
    "license",
    "complete",
    "final",
    "prototype",
    "requirements",
    "capabilities",
}


def _stringify(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _parse_artifact(entry: Union[str, Dict[str, Any]], location: Optional[str]) -> Artifact:
    if isinstance(entry, str):
        text, metadata = entry, {}
    elif isinstance(entry, dict) and isinstance(entry.get("id"), str):
        text = entry["id"]
        metadata = {k: _stringify(v) for k, v in entry.items() if k != "id"}
    else:
        raise ModelFormatError(f"Invalid artifact entry: {entry!r}", location)
    try:
        artifact_id = ArtifactId.parse(text)
    except ValueError as exc:
        raise ModelFormatError(str(exc), location)
    return Artifact(artifact_id, metadata)


def _parse_extension(key: str, value: Any, location: Optional[str]) -> Extension:
    name, _, rest = key.partition(":")
    type_name, _, state = rest.partition("|")
    if not name or not type_name:
        raise ModelFormatError(f"Extension {key!r} must be written as <name>:<TYPE>", location)
    try:
        ext_type = ExtensionType(type_name.upper())
    except ValueError:
        raise ModelFormatError(f"Unknown extension type {type_name!r} for {name}", location)
    state = state.lower()
    if state not in ("", "required", "optional", "transient", "true", "false"):
        raise ModelFormatError(f"Unknown extension state {state!r} for {name}", location)
    required = state in ("", "required", "true")
    extension = Extension(ext_type, name, required)
    if ext_type is ExtensionType.TEXT:
        if isinstance(value, list):
            extension.text = "\n".join(str(line) for line in value)
        elif isinstance(value, str):
            extension.text = value
        else:
            raise ModelFormatError(f"TEXT extension {name} must be a string or an array", location)
    elif ext_type is ExtensionType.JSON:
        extension.json = json.dumps(value)
    else:
        if not isinstance(value, list):
            raise ModelFormatError(f"ARTIFACTS extension {name} must be an array", location)
        extension.artifacts = [_parse_artifact(entry, location) for entry in value]
    return extension


def feature_from_dict(data: Any, location: Optional[str] = None,
                      config_service: Optional[ConfigService] = None) -> Feature:
    """Build a :class:`Feature` from a decoded JSON document."""
    service = config_service or ConfigService()
    try:
        service.validate_feature(data)
    except ValueError as exc:
        raise ModelFormatError(str(exc), location)
    try:
        feature_id = ArtifactId.parse(data["id"])
    except ValueError as exc:
        raise ModelFormatError(str(exc), location)
    if data.get("prototype") is not None:
        # prototypes are not assembled here
        raise ModelFormatError(
            f"Feature {feature_id} declares a prototype; assemble it into a complete feature before converting",
            location,
        )

    feature = Feature(feature_id, location=location)
    feature.variables = {k: _stringify(v) for k, v in (data.get("variables") or {}).items()}
    feature.framework_properties = {
        k: _stringify(v) for k, v in (data.get("framework-properties") or {}).items()
    }
    feature.bundles = [_parse_artifact(entry, location) for entry in data.get("bundles") or []]
    feature.configurations = [
        Configuration(pid, dict(properties)) for pid, properties in (data.get("configurations") or {}).items()
    ]
    for key, value in data.items():
        if key in RESERVED_KEYS:
            continue
        feature.extensions.append(_parse_extension(key, value, location))
    return feature


def read_feature_text(text: str, location: Optional[str] = None) -> Feature:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ModelFormatError(f"Invalid JSON: {exc.msg}", location, exc.lineno)
    return feature_from_dict(data, location)


def read_feature(path: Path) -> Feature:
    """Read a feature JSON file."""
    path = Path(path)
    return read_feature_text(path.read_text(encoding="utf-8"), str(path))


def _artifact_to_json(artifact: Artifact) -> Union[str, Dict[str, Any]]:
    if not artifact.metadata:
        return artifact.id.to_mvn_id()
    entry: Dict[str, Any] = {"id": artifact.id.to_mvn_id()}
    entry.update(artifact.metadata)
    return entry


def _extension_key(extension: Extension) -> str:
    state = "required" if extension.required else "optional"
    return f"{extension.name}:{extension.type.value}|{state}"


def feature_to_dict(feature: Feature) -> Dict[str, Any]:
    data: Dict[str, Any] = {"id": feature.id.to_mvn_id()}
    if feature.variables:
        data["variables"] = dict(feature.variables)
    if feature.framework_properties:
        data["framework-properties"] = dict(feature.framework_properties)
    if feature.bundles:
        data["bundles"] = [_artifact_to_json(bundle) for bundle in feature.bundles]
    if feature.configurations:
        configurations: Dict[str, Any] = {}
        for cfg in feature.configurations:
            configurations[cfg.pid] = dict(cfg.properties)
        data["configurations"] = configurations
    for extension in feature.extensions:
        key = _extension_key(extension)
        if extension.type is ExtensionType.TEXT:
            data[key] = extension.text or ""
        elif extension.type is ExtensionType.JSON:
            data[key] = json.loads(extension.json) if extension.json else None
        else:
            data[key] = [_artifact_to_json(artifact) for artifact in extension.artifacts]
    return data


def write_feature_text(feature: Feature) -> str:
    return json.dumps(feature_to_dict(feature), indent=2) + "\n"


def write_feature(feature: Feature, path: Path) -> None:
    """Write ``feature`` as JSON to ``path``, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(write_feature_text(feature), encoding="utf-8")
