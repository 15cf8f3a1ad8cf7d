"""Reading and writing the provisioning model text format.

The format is line oriented.  Section headers start in the first
column and may carry ``key=value`` attributes; content lines are
indented::

    [feature name=:launchpad version=1.0.0]

    [variables]
      ws.version=1.0.2

    [artifacts startLevel=5 runModes=oak_tar]
      org.apache.sling/org.apache.sling.jcr.oak.server/1.1.0 [foo=bar]
      org.example/content/1.0.0/zip

    [configurations runModes=oak_tar]
      org.apache.jackrabbit.oak.segment.SegmentNodeStoreService
        name="Default NodeStore"
        cache.size=I"256"
      org.apache.sling.jcr.repoinit.RepositoryInitializer-example
        scripts=["create path /content"]

    [settings runModes=oak_tar]
      sling.run.mode.install.options=oak_tar,oak_mongo

    [:repoinit]
    create path /conf

Configuration properties use the typed notation of ``.config``
files: ``"text"``, ``I"1"``, ``B"true"``, ``D"1.5"`` and arrays such
as ``I["1","2"]``.  A pid line of the form ``factoryPid-name``
declares a factory configuration.  ``#`` starts a comment line
everywhere except inside free‑text sections, whose lines are kept
verbatim.

Variables (``${name}``) are left untouched unless a resolver is
passed; the resolver decides whether a reference is kept, substituted
or rejected (see :func:`keep_variables`, :func:`feature_variables`
and :func:`strict_variables`).
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..errors import ModelFormatError
from ..feature import ArtifactId
from ..provisioning import Artifact, Configuration, Feature, Model, RunMode, Section

VariableResolver = Callable[[Feature, str], str]

_HEADER = re.compile(r"^\[(\S+?)(\s+[^\]]*)?\]\s*$")
_ARTIFACT = re.compile(r"^(\S+)(?:\s+\[(.*)\])?$")
_VARIABLE = re.compile(r"\$\{([^}]+)\}")

_INT_TYPES = "ILSXilsx"
_FLOAT_TYPES = "DFdf"
_BOOL_TYPES = "Bb"
_STRING_TYPES = "TCc"
_TYPE_CODES = _INT_TYPES + _FLOAT_TYPES + _BOOL_TYPES + _STRING_TYPES

_ESCAPES = {"n": "\n", "r": "\r", "t": "\t"}


# Variable resolution strategies


def keep_variables(feature: Feature, name: str) -> str:
    """Leave ``${name}`` references as they are."""
    return "${" + name + "}"


def feature_variables(feature: Feature, name: str) -> str:
    """Substitute from the feature's variables, keeping unknown references."""
    value = feature.variables.get(name)
    if value is None:
        return keep_variables(feature, name)
    return value


def strict_variables(feature: Feature, name: str) -> str:
    """Substitute from the feature's variables; unknown references are an error."""
    value = feature.variables.get(name)
    if value is None:
        raise ModelFormatError(f"Undefined variable ${{{name}}} in feature {feature.name}")
    return value


def _substitute(text: Any, feature: Feature, resolver: VariableResolver) -> Any:
    if not isinstance(text, str):
        return text
    return _VARIABLE.sub(lambda m: resolver(feature, m.group(1)), text)


def resolve_variables(model: Model, resolver: VariableResolver) -> Model:
    """Apply ``resolver`` to artifact coordinates, settings and configuration values."""
    for feature in model.features:
        for run_mode in feature.run_modes:
            for group in run_mode.iter_artifact_groups():
                for artifact in group:
                    artifact.group_id = _substitute(artifact.group_id, feature, resolver)
                    artifact.artifact_id = _substitute(artifact.artifact_id, feature, resolver)
                    artifact.version = _substitute(artifact.version, feature, resolver)
                    artifact.classifier = _substitute(artifact.classifier, feature, resolver)
            for key, value in run_mode.settings.items():
                run_mode.settings[key] = _substitute(value, feature, resolver)
            for cfg in run_mode.configurations:
                for key, value in cfg.properties.items():
                    if isinstance(value, list):
                        cfg.properties[key] = [_substitute(v, feature, resolver) for v in value]
                    else:
                        cfg.properties[key] = _substitute(value, feature, resolver)
    return model


# Property values


def _read_quoted(text: str, pos: int, location: Optional[str], line: int) -> Tuple[str, int]:
    """Read a quoted string starting at ``text[pos] == '"'``; return value and next position."""
    chars: List[str] = []
    pos += 1
    while pos < len(text):
        char = text[pos]
        if char == "\\" and pos + 1 < len(text):
            nxt = text[pos + 1]
            chars.append(_ESCAPES.get(nxt, nxt))
            pos += 2
            continue
        if char == '"':
            return "".join(chars), pos + 1
        chars.append(char)
        pos += 1
    raise ModelFormatError("Unterminated string value", location, line)


def _convert(value: str, type_code: Optional[str]) -> Any:
    if type_code is None or type_code in _STRING_TYPES:
        return value
    if type_code in _INT_TYPES:
        return int(value)
    if type_code in _FLOAT_TYPES:
        return float(value)
    return value.strip().lower() == "true"


def parse_property_value(text: str, location: Optional[str] = None, line: int = 0) -> Any:
    """Parse one property value in ``.config`` notation."""
    text = text.strip()
    type_code = None
    if len(text) > 1 and text[0] in _TYPE_CODES and text[1] in '"[(':
        type_code, text = text[0], text[1:]
    if not text or text[0] not in '"[(':
        return text
    try:
        if text[0] == '"':
            value, end = _read_quoted(text, 0, location, line)
            if text[end:].strip():
                raise ModelFormatError(f"Unexpected text after value: {text[end:]!r}", location, line)
            return _convert(value, type_code)
        closing = "]" if text[0] == "[" else ")"
        items: List[Any] = []
        pos = 1
        while True:
            while pos < len(text) and text[pos] in " \t,":
                pos += 1
            if pos >= len(text):
                raise ModelFormatError("Unterminated array value", location, line)
            if text[pos] == closing:
                break
            if text[pos] != '"':
                raise ModelFormatError(f"Array items must be quoted: {text!r}", location, line)
            item, pos = _read_quoted(text, pos, location, line)
            items.append(_convert(item, type_code))
        return items
    except ValueError as exc:
        if isinstance(exc, ModelFormatError):
            raise
        raise ModelFormatError(f"Invalid typed value {text!r}: {exc}", location, line)


def _escape(value: str) -> str:
    return (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )


def _type_code(value: Any) -> str:
    if isinstance(value, bool):
        return "B"
    if isinstance(value, int):
        return "I" if -2 ** 31 <= value < 2 ** 31 else "L"
    if isinstance(value, float):
        return "D"
    return ""


def format_property_value(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        codes = {_type_code(item) for item in value}
        code = codes.pop() if len(codes) == 1 else ""
        if code == "I" and any(_type_code(item) == "L" for item in value):
            code = "L"
        items = ",".join('"' + _escape(_scalar_text(item)) + '"' for item in value)
        return f"{code}[{items}]"
    return _type_code(value) + '"' + _escape(_scalar_text(value)) + '"'


def _scalar_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


# Reader


def _parse_attributes(text: Optional[str], location: Optional[str], line: int) -> Dict[str, str]:
    attributes: Dict[str, str] = {}
    for token in (text or "").split():
        key, sep, value = token.partition("=")
        if not sep or not key:
            raise ModelFormatError(f"Invalid attribute {token!r}", location, line)
        attributes[key] = value
    return attributes


def _split_key_value(text: str, location: Optional[str], line: int) -> Tuple[str, str]:
    key, sep, value = text.partition("=")
    if not sep or not key.strip():
        raise ModelFormatError(f"Expected key=value but found {text!r}", location, line)
    return key.strip(), value.strip()


def _run_mode_names(attributes: Dict[str, str]) -> Optional[List[str]]:
    value = attributes.get("runModes")
    if not value:
        return None
    return [name.strip() for name in value.split(",") if name.strip()]


class _ModelReader:
    def __init__(self, text: str, location: Optional[str]) -> None:
        self.lines = text.splitlines()
        self.location = location
        self.model = Model(location=location)
        self.feature: Optional[Feature] = None
        self.section: Optional[str] = None
        self.run_mode: Optional[RunMode] = None
        self.start_level = 0
        self.configuration: Optional[Configuration] = None
        self.pid_indent = 0
        self.text_section: Optional[Section] = None
        self.text_lines: List[str] = []

    def error(self, message: str, line: int) -> ModelFormatError:
        return ModelFormatError(message, self.location, line)

    def read(self) -> Model:
        for number, line in enumerate(self.lines, start=1):
            is_header = line.startswith("[") and _HEADER.match(line.rstrip())
            if self.text_section is not None and not is_header:
                self.text_lines.append(line.rstrip())
                continue
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if is_header:
                self._finish_text_section()
                self._header(line.rstrip(), number)
            else:
                self._content(line, stripped, number)
        self._finish_text_section()
        return self.model

    def _finish_text_section(self) -> None:
        if self.text_section is None:
            return
        while self.text_lines and not self.text_lines[-1].strip():
            self.text_lines.pop()
        while self.text_lines and not self.text_lines[0].strip():
            self.text_lines.pop(0)
        self.text_section.contents = "\n".join(self.text_lines)
        self.text_section = None
        self.text_lines = []

    def _header(self, line: str, number: int) -> None:
        match = _HEADER.match(line)
        name = match.group(1)
        attributes = _parse_attributes(match.group(2), self.location, number)
        self.section = name
        self.configuration = None
        if name == "feature":
            feature_name = attributes.get("name")
            if not feature_name:
                raise self.error("Feature section requires a name", number)
            if self.model.get_feature(feature_name) is not None:
                raise self.error(f"Duplicate feature {feature_name}", number)
            self.feature = Feature(feature_name, attributes.get("version"))
            self.model.features.append(self.feature)
            return
        if self.feature is None:
            raise self.error(f"Section [{name}] outside of a feature", number)
        if name == "variables":
            return
        if name in ("settings", "artifacts", "configurations"):
            self.run_mode = self.feature.get_or_create_run_mode(_run_mode_names(attributes))
            if name == "artifacts":
                try:
                    self.start_level = int(attributes.get("startLevel", "0"))
                except ValueError:
                    raise self.error(f"Invalid startLevel {attributes['startLevel']!r}", number)
            return
        if name.startswith(":") and len(name) > 1:
            self.text_section = Section(name[1:], "", attributes)
            self.feature.additional_sections.append(self.text_section)
            return
        raise self.error(f"Unknown section [{name}]", number)

    def _content(self, line: str, stripped: str, number: int) -> None:
        if self.section is None or self.section == "feature":
            raise self.error(f"Unexpected content {stripped!r}", number)
        if self.section == "variables":
            key, value = _split_key_value(stripped, self.location, number)
            self.feature.variables[key] = value
        elif self.section == "settings":
            key, value = _split_key_value(stripped, self.location, number)
            self.run_mode.settings[key] = value
        elif self.section == "artifacts":
            self.run_mode.get_or_create_artifact_group(self.start_level).add(self._artifact(stripped, number))
        else:
            self._configuration_line(line, stripped, number)

    def _artifact(self, text: str, number: int) -> Artifact:
        match = _ARTIFACT.match(text)
        if not match:
            raise self.error(f"Invalid artifact {text!r}", number)
        try:
            artifact_id = ArtifactId.from_mvn_url(match.group(1))
        except ValueError as exc:
            raise self.error(str(exc), number)
        metadata: Dict[str, str] = {}
        for entry in (match.group(2) or "").split(","):
            if entry.strip():
                key, value = _split_key_value(entry, self.location, number)
                metadata[key] = value
        return Artifact.from_artifact_id(artifact_id, metadata)

    def _configuration_line(self, line: str, stripped: str, number: int) -> None:
        indent = len(line) - len(line.lstrip())
        if self.configuration is None or indent <= self.pid_indent:
            pid = stripped.split()[0]
            factory_pid = None
            dash = pid.find("-")
            if dash > 0:
                factory_pid, pid = pid[:dash], pid[dash + 1:]
            self.configuration = Configuration(pid, factory_pid)
            self.run_mode.configurations.append(self.configuration)
            self.pid_indent = indent
            return
        key, value = _split_key_value(stripped, self.location, number)
        self.configuration.properties[key] = parse_property_value(value, self.location, number)


def read_model_text(text: str, location: Optional[str] = None,
                    variable_resolver: Optional[VariableResolver] = None) -> Model:
    model = _ModelReader(text, location).read()
    if variable_resolver is not None:
        resolve_variables(model, variable_resolver)
    return model


def read_model(path: Path, variable_resolver: Optional[VariableResolver] = None) -> Model:
    """Read a provisioning model file."""
    path = Path(path)
    return read_model_text(path.read_text(encoding="utf-8"), str(path), variable_resolver)


# Writer


def _header_line(name: str, attributes: Dict[str, Optional[str]]) -> str:
    parts = [name] + [f"{k}={v}" for k, v in attributes.items() if v not in (None, "")]
    return "[" + " ".join(parts) + "]"


def _run_mode_attribute(run_mode: RunMode) -> Optional[str]:
    return ",".join(run_mode.names) if run_mode.names else None


def _artifact_line(artifact: Artifact) -> str:
    text = artifact.to_mvn_url()[len("mvn:"):]
    if artifact.metadata:
        text += " [" + ", ".join(f"{k}={v}" for k, v in artifact.metadata.items()) + "]"
    return "  " + text


def _write_feature(feature: Feature, out: List[str]) -> None:
    out.append(_header_line("feature", {"name": feature.name, "version": feature.version}))
    if feature.variables:
        out += ["", "[variables]"]
        out += [f"  {k}={'' if v is None else v}" for k, v in feature.variables.items()]
    for run_mode in feature.run_modes:
        run_modes = _run_mode_attribute(run_mode)
        for group in run_mode.iter_artifact_groups():
            if not len(group):
                continue
            start_level = str(group.start_level) if group.start_level else None
            out += ["", _header_line("artifacts", {"startLevel": start_level, "runModes": run_modes})]
            out += [_artifact_line(artifact) for artifact in group]
        if run_mode.configurations:
            out += ["", _header_line("configurations", {"runModes": run_modes})]
            for cfg in run_mode.configurations:
                pid = f"{cfg.factory_pid}-{cfg.pid}" if cfg.factory_pid else cfg.pid
                out.append(f"  {pid}")
                out += [f"    {k}={format_property_value(v)}" for k, v in cfg.properties.items()]
        if run_mode.settings:
            out += ["", _header_line("settings", {"runModes": run_modes})]
            out += [f"  {k}={v}" for k, v in run_mode.settings.items()]
    for section in feature.additional_sections:
        out += ["", _header_line(":" + section.name, dict(section.attributes))]
        if section.contents:
            out.append(section.contents.rstrip("\n"))


def write_model_text(model: Model) -> str:
    out: List[str] = []
    for index, feature in enumerate(model.features):
        if index:
            out.append("")
        _write_feature(feature, out)
    return "\n".join(out) + "\n"


def write_model(model: Model, path: Path) -> None:
    """Write ``model`` to ``path``, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(write_model_text(model), encoding="utf-8")
