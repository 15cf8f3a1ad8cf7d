"""Start‑level placement of bundles.

The provisioning model groups artifacts into integer start‑level
buckets; a feature stores the level per bundle in its ``start-order``
metadata.  Hand written features may also carry a ``start-level``
entry, which is either numeric or a *sentinel* such as ``:boot`` or
``:launchpad``.  Sentinel bundles do not belong to the main feature;
they are collected into an auxiliary provisioning feature named after
the sentinel, at start level 0.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional, Sequence

from . import provisioning
from .errors import EncodingConflictError, ModelFormatError
from .feature import Artifact

logger = logging.getLogger(__name__)

START_LEVEL = "start-level"
START_ORDER = "start-order"


def is_sentinel(value: Optional[str]) -> bool:
    return value is not None and value.startswith(":")


@dataclass(frozen=True)
class Placement:
    """Where a feature bundle goes in the provisioning model."""

    start_level: int
    sentinel: Optional[str] = None


@dataclass
class StartLevelPolicy:
    default_start_level: int = 20
    boot_start_level: int = 1
    boot_feature: str = provisioning.FEATURE_BOOT

    def to_start_order(self, feature_name: Optional[str], start_level: int) -> int:
        """Map a provisioning start level to a feature ``start-order``.

        Level 0 means "no explicit level": it becomes 1 in the boot
        feature and the default level everywhere else.
        """
        if start_level != 0:
            return start_level
        if feature_name == self.boot_feature:
            return self.boot_start_level
        return self.default_start_level

    def place(self, bundle: Artifact, run_modes: Optional[Sequence[str]],
              feature_name: Optional[str] = None) -> Placement:
        """Return the provisioning placement of a feature bundle.

        Raises :class:`EncodingConflictError` for a sentinel bundle that
        is also restricted to run modes.
        """
        value = bundle.metadata.get(START_LEVEL)
        if value is not None:
            value = str(value).strip()
        if is_sentinel(value):
            if run_modes is not None:
                raise EncodingConflictError(
                    f"Unable to convert feature {feature_name}. Run modes must not be defined "
                    f"for bundle {bundle.id} with start-level {value}"
                )
            return Placement(0, value)
        if value:
            try:
                return Placement(int(value))
            except ValueError:
                raise ModelFormatError(f"Invalid start-level {value!r} for bundle {bundle.id}")
        try:
            start_order = bundle.start_order
        except ValueError:
            raise ModelFormatError(f"Invalid start-order for bundle {bundle.id}")
        if start_order != 0:
            return Placement(start_order)
        return Placement(self.default_start_level)


@dataclass
class SentinelFeatures:
    """Auxiliary provisioning features keyed by sentinel, in first‑seen order."""

    features: Dict[str, provisioning.Feature] = field(default_factory=dict)

    def get_or_create(self, sentinel: str) -> provisioning.Feature:
        feature = self.features.get(sentinel)
        if feature is None:
            logger.debug("Creating auxiliary feature %s", sentinel)
            feature = provisioning.Feature(sentinel)
            self.features[sentinel] = feature
        return feature

    def add(self, sentinel: str, artifact: provisioning.Artifact) -> None:
        run_mode = self.get_or_create(sentinel).get_or_create_run_mode(None)
        run_mode.get_or_create_artifact_group(0).add(artifact)

    def __iter__(self) -> Iterator[provisioning.Feature]:
        return iter(self.features.values())

    def __len__(self) -> int:
        return len(self.features)
