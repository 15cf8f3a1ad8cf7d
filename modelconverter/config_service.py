"""Conversion options and their JSON persistence.

The behaviour of a provisioning → feature conversion is steered by a
small set of options (output group id and version, a global name,
variables to drop, bundles to exclude, framework properties to inject
and the active run modes).  They are collected in
:class:`ConversionOptions`, which the command‑line interface fills
from its arguments and which :class:`ConfigService` can read from or
write to a JSON file such as ``pm2fm.json``::

    {
      "group_id": "org.example",
      "version": "2.0.0",
      "drop_variables": ["sling.home"],
      "run_modes": ["author"],
      "add_framework_properties": {"boot": {"org.osgi.framework.startlevel.beginning": "30"}}
    }

Option files are validated against the packaged JSON schema
``schemas/options.schema.json`` using ``jsonschema``; a file that does
not validate raises ``ValueError`` with an explanation.  The same
service validates the structure of feature JSON documents against
``schemas/feature.schema.json``.

Example usage::

    from modelconverter.config_service import ConfigService

    config_service = ConfigService()
    options = config_service.load_options(Path("pm2fm.json"))
    options.version = "3.0.0"
    config_service.save_options(options, Path("pm2fm.json"))
"""

from __future__ import annotations

import json
import re
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import jsonschema

SCHEMA_DIR = Path(__file__).resolve().parent / "schemas"

_FRAMEWORK_PROPERTY = re.compile(r"^(.*?):(.*?)=(.*?)$")


def _load_json(file_path: Path) -> Any:
    if not file_path.exists():
        return None
    with file_path.open("r", encoding="utf-8") as f:
        return json.load(f)


def _save_json(data: Any, file_path: Path) -> None:
    file_path.parent.mkdir(parents=True, exist_ok=True)
    with file_path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def _validate_json(data: Any, schema_path: Path, what: str = "configuration") -> None:
    """Validate JSON against a schema file; raise ``ValueError`` when invalid."""
    schema = _load_json(schema_path)
    if not schema:
        return
    try:
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.ValidationError as exc:
        raise ValueError(f"Invalid {what}: {exc.message}")


@dataclass
class ConversionOptions:
    """Options of a provisioning → feature conversion."""

    group_id: str = "generated"
    version: str = "1.0.0"
    use_provided_version: bool = False
    name: Optional[str] = None
    drop_variables: List[str] = field(default_factory=list)
    exclude_bundles: List[str] = field(default_factory=list)
    add_framework_properties: Dict[str, Dict[str, str]] = field(default_factory=dict)
    run_modes: List[str] = field(default_factory=list)
    no_provisioning_model_name: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversionOptions":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def merged(self, overrides: Dict[str, Any]) -> "ConversionOptions":
        """Return a copy with every truthy value of ``overrides`` applied."""
        data = self.to_dict()
        for key, value in overrides.items():
            if key in data and value:
                data[key] = value
        return ConversionOptions.from_dict(data)


def parse_framework_property(spec: str) -> Optional[Tuple[str, str, str]]:
    """Parse ``<model>:<property>=<value>``; return ``None`` if malformed.

    >>> parse_framework_property("boot:org.osgi.framework.bootdelegation=sun.*")
    ('boot', 'org.osgi.framework.bootdelegation', 'sun.*')
    """
    match = _FRAMEWORK_PROPERTY.match(spec)
    if not match:
        return None
    return match.group(1), match.group(2), match.group(3)


def collect_framework_properties(specs: List[str]) -> Dict[str, Dict[str, str]]:
    """Group ``<model>:<property>=<value>`` entries per model name."""
    result: Dict[str, Dict[str, str]] = {}
    for spec in specs:
        parsed = parse_framework_property(spec)
        if parsed is None:
            continue
        model_name, prop_name, prop_value = parsed
        result.setdefault(model_name, {})[prop_name] = prop_value
    return result


@dataclass
class ConfigService:
    """Load, save and validate conversion options and feature documents."""

    schema_dir: Path = SCHEMA_DIR
    options_schema: str = "options.schema.json"
    feature_schema: str = "feature.schema.json"

    def get_schema_path(self, schema_name: str) -> Path:
        return self.schema_dir / schema_name

    def load_options(self, path: Path) -> ConversionOptions:
        """Load options from ``path``; a missing file yields the defaults."""
        data = _load_json(path)
        if data is None:
            return ConversionOptions()
        _validate_json(data, self.get_schema_path(self.options_schema), "conversion options")
        return ConversionOptions.from_dict(data)

    def save_options(self, options: ConversionOptions, path: Path) -> None:
        """Write options to disk, validating against the schema first."""
        data = options.to_dict()
        _validate_json(data, self.get_schema_path(self.options_schema), "conversion options")
        _save_json(data, path)

    def validate_feature(self, data: Any) -> None:
        _validate_json(data, self.get_schema_path(self.feature_schema), "feature")
