"""In‑memory graph of the feature model.

A feature model instance describes exactly one feature, identified
by a Maven coordinate (:class:`ArtifactId`).  It has no run‑mode
dimension: bundles, configurations, framework properties, extensions
and variables all apply unconditionally.  Run‑mode information from
the provisioning model is therefore pushed into string encodings
(see :mod:`modelconverter.runmodes`).

Artifact ids can be written in two notations:

* the Maven id ``groupId:artifactId[:type[:classifier]]:version``
* the Maven URL ``mvn:groupId/artifactId/version[/type[/classifier]]``
  (the ``mvn:`` prefix is optional)

:meth:`ArtifactId.parse` accepts both.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

EXTENSION_NAME_CONTENT_PACKAGES = "content-packages"
EXTENSION_NAME_REPOINIT = "repoinit"
DEFAULT_TYPE = "jar"
FACTORY_SEPARATOR = "~"


class ExtensionType(str, Enum):
    TEXT = "TEXT"
    JSON = "JSON"
    ARTIFACTS = "ARTIFACTS"


@dataclass(frozen=True)
class ArtifactId:
    group_id: str
    artifact_id: str
    version: str
    classifier: Optional[str] = None
    type: str = DEFAULT_TYPE

    @classmethod
    def parse(cls, text: str) -> "ArtifactId":
        """Parse a Maven id or Maven URL.

        Raises ``ValueError`` if ``text`` is in neither notation.
        """
        text = text.strip()
        if text.startswith("mvn:"):
            return cls.from_mvn_url(text)
        if ":" in text:
            return cls.from_mvn_id(text)
        if "/" in text:
            return cls.from_mvn_url(text)
        raise ValueError(f"Invalid artifact id: {text!r}")

    @classmethod
    def from_mvn_id(cls, text: str) -> "ArtifactId":
        parts = text.split(":")
        if len(parts) == 3:
            group, artifact, version = parts
            return cls(group, artifact, version)
        if len(parts) == 4:
            group, artifact, type_, version = parts
            return cls(group, artifact, version, None, type_ or DEFAULT_TYPE)
        if len(parts) == 5:
            group, artifact, type_, classifier, version = parts
            return cls(group, artifact, version, classifier or None, type_ or DEFAULT_TYPE)
        raise ValueError(f"Invalid Maven id: {text!r}")

    @classmethod
    def from_mvn_url(cls, text: str) -> "ArtifactId":
        if text.startswith("mvn:"):
            text = text[len("mvn:"):]
        parts = text.split("/")
        if not 3 <= len(parts) <= 5 or not all(parts[:3]):
            raise ValueError(f"Invalid Maven URL: {text!r}")
        group, artifact, version = parts[:3]
        type_ = parts[3] if len(parts) > 3 and parts[3] else DEFAULT_TYPE
        classifier = parts[4] if len(parts) > 4 and parts[4] else None
        return cls(group, artifact, version, classifier, type_)

    def to_mvn_id(self) -> str:
        parts = [self.group_id, self.artifact_id]
        if self.classifier or self.type != DEFAULT_TYPE:
            parts.append(self.type)
            if self.classifier:
                parts.append(self.classifier)
        parts.append(self.version)
        return ":".join(parts)

    def to_mvn_url(self) -> str:
        url = f"mvn:{self.group_id}/{self.artifact_id}/{self.version}"
        if self.classifier or self.type != DEFAULT_TYPE:
            url += f"/{self.type}"
        if self.classifier:
            url += f"/{self.classifier}"
        return url

    def __str__(self) -> str:
        return self.to_mvn_id()


@dataclass
class Artifact:
    """An artifact (bundle or content package) with string metadata."""

    id: ArtifactId
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def start_order(self) -> int:
        value = self.metadata.get("start-order")
        if value is None or str(value).strip() == "":
            return 0
        return int(str(value).strip())


@dataclass
class Configuration:
    """A configuration keyed by pid; factory configurations use ``factoryPid~name``."""

    pid: str
    properties: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Extension:
    """A typed side channel on a feature.

    Depending on ``type`` the payload lives in ``text`` (raw text),
    ``json`` (raw JSON text) or ``artifacts``.
    """

    type: ExtensionType
    name: str
    required: bool = True
    text: Optional[str] = None
    json: Optional[str] = None
    artifacts: List[Artifact] = field(default_factory=list)


@dataclass
class Feature:
    id: ArtifactId
    bundles: List[Artifact] = field(default_factory=list)
    configurations: List[Configuration] = field(default_factory=list)
    framework_properties: Dict[str, str] = field(default_factory=dict)
    extensions: List[Extension] = field(default_factory=list)
    variables: Dict[str, Optional[str]] = field(default_factory=dict)
    location: Optional[str] = field(default=None, compare=False)

    def get_extension(self, name: str) -> Optional[Extension]:
        for extension in self.extensions:
            if extension.name == name:
                return extension
        return None

    def get_configuration(self, pid: str) -> Optional[Configuration]:
        for cfg in self.configurations:
            if cfg.pid == pid:
                return cfg
        return None
