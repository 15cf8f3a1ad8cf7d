"""In‑memory graph of the provisioning model.

A provisioning :class:`Model` holds an ordered list of named
:class:`Feature` objects.  Each feature is split into
:class:`RunMode` groups keyed by a *set* of run‑mode names (``None``
for the default group).  A run mode holds start‑level buckets of
artifacts, a list of configurations and a settings map.  Additional
free‑text sections (for example ``[:repoinit]``) hang directly off
the feature.

The classes are plain dataclasses.  Lookups that would otherwise be
spread over the transcoder (``get_or_create_run_mode``,
``get_or_create_artifact_group``) live here so that the uniqueness
invariants of the model are enforced in one place:

* run‑mode name‑sets are unique per feature and compared
  independently of order;
* an artifact identity (group, artifact id, classifier, type) is
  unique per start‑level bucket; adding an equal artifact replaces
  the earlier entry.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

FEATURE_BOOT = ":boot"
DEFAULT_TYPE = "jar"

RunModeNames = Optional[Tuple[str, ...]]


def normalize_run_mode_names(names: Optional[Iterable[str]]) -> RunModeNames:
    """Return ``names`` as a tuple, or ``None`` for the default run mode."""
    if names is None:
        return None
    result = tuple(name for name in names if name)
    return result or None


@dataclass
class Artifact:
    """A Maven coordinate plus free‑form metadata."""

    group_id: str
    artifact_id: str
    version: str
    classifier: Optional[str] = None
    type: str = DEFAULT_TYPE
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def identity(self) -> Tuple[str, str, Optional[str], str]:
        return (self.group_id, self.artifact_id, self.classifier, self.type)

    def to_mvn_url(self) -> str:
        url = f"mvn:{self.group_id}/{self.artifact_id}/{self.version}"
        if self.classifier or self.type != DEFAULT_TYPE:
            url += f"/{self.type}"
        if self.classifier:
            url += f"/{self.classifier}"
        return url

    @classmethod
    def from_artifact_id(cls, source: Any, metadata: Optional[Dict[str, str]] = None,
                         skip: Sequence[str] = ()) -> "Artifact":
        """Build an artifact from a feature‑side id, dropping ``skip`` metadata keys."""
        copied = {k: v for k, v in (metadata or {}).items() if k not in skip}
        return cls(
            source.group_id,
            source.artifact_id,
            source.version,
            source.classifier,
            source.type,
            copied,
        )


@dataclass
class ArtifactGroup:
    """Ordered artifacts sharing one start level."""

    start_level: int = 0
    artifacts: List[Artifact] = field(default_factory=list)

    def add(self, artifact: Artifact) -> None:
        for index, existing in enumerate(self.artifacts):
            if existing.identity == artifact.identity:
                self.artifacts[index] = artifact
                return
        self.artifacts.append(artifact)

    def __iter__(self) -> Iterator[Artifact]:
        return iter(self.artifacts)

    def __len__(self) -> int:
        return len(self.artifacts)


@dataclass
class Configuration:
    """An OSGi configuration.

    For factory configurations ``pid`` holds the configuration name
    (alias) and ``factory_pid`` the factory pid.
    """

    pid: str
    factory_pid: Optional[str] = None
    properties: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Section:
    """A named free‑text section such as ``[:repoinit]``."""

    name: str
    contents: str = ""
    attributes: Dict[str, str] = field(default_factory=dict)


@dataclass
class RunMode:
    names: RunModeNames = None
    artifact_groups: Dict[int, ArtifactGroup] = field(default_factory=dict)
    configurations: List[Configuration] = field(default_factory=list)
    settings: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.names = normalize_run_mode_names(self.names)

    def matches(self, names: Optional[Iterable[str]]) -> bool:
        """Return ``True`` if this run mode has exactly the given name‑set."""
        other = normalize_run_mode_names(names)
        if self.names is None or other is None:
            return self.names is None and other is None
        return set(self.names) == set(other)

    def get_artifact_group(self, start_level: int) -> Optional[ArtifactGroup]:
        return self.artifact_groups.get(start_level)

    def get_or_create_artifact_group(self, start_level: int) -> ArtifactGroup:
        group = self.artifact_groups.get(start_level)
        if group is None:
            group = ArtifactGroup(start_level)
            self.artifact_groups[start_level] = group
        return group

    def iter_artifact_groups(self) -> List[ArtifactGroup]:
        """Return the artifact groups ordered by start level."""
        return [self.artifact_groups[level] for level in sorted(self.artifact_groups)]

    def get_configuration(self, pid: str, factory_pid: Optional[str] = None) -> Optional[Configuration]:
        for cfg in self.configurations:
            if cfg.pid == pid and cfg.factory_pid == factory_pid:
                return cfg
        return None


@dataclass
class Feature:
    name: str
    version: Optional[str] = None
    run_modes: List[RunMode] = field(default_factory=list)
    additional_sections: List[Section] = field(default_factory=list)
    variables: Dict[str, str] = field(default_factory=dict)

    def get_run_mode(self, names: Optional[Iterable[str]] = None) -> Optional[RunMode]:
        for run_mode in self.run_modes:
            if run_mode.matches(names):
                return run_mode
        return None

    def get_or_create_run_mode(self, names: Optional[Iterable[str]] = None) -> RunMode:
        run_mode = self.get_run_mode(names)
        if run_mode is None:
            run_mode = RunMode(normalize_run_mode_names(names))
            self.run_modes.append(run_mode)
        return run_mode

    def get_additional_sections(self, name: str) -> List[Section]:
        return [section for section in self.additional_sections if section.name == name]


@dataclass
class Model:
    features: List[Feature] = field(default_factory=list)
    location: Optional[str] = field(default=None, compare=False)

    def get_feature(self, name: str) -> Optional[Feature]:
        for feature in self.features:
            if feature.name == name:
                return feature
        return None

    def __iter__(self) -> Iterator[Feature]:
        return iter(self.features)
