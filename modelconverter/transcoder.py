"""Translation between provisioning features and feature model features.

:class:`ModelTranscoder` is a pure function of its input model graph
and its :class:`~modelconverter.config_service.ConversionOptions`:
it performs no I/O, keeps no state between calls and either returns
a complete output graph or raises a
:class:`~modelconverter.errors.ConversionError`.

Provisioning → feature
    Each provisioning feature becomes one feature.  Its run‑mode
    groups are folded away: bundles get a ``run-modes`` metadata
    entry, configuration pids a ``.runmodes.`` suffix, settings a
    ``.runmodes:`` key suffix and content packages a ``runmodes``
    metadata entry.  When the options name active run modes, groups
    matching one of them are emitted *without* any encoding, groups
    that match none are skipped, and the default group is always
    kept.  Two groups that emit the same configuration pid or
    settings key raise :class:`~modelconverter.errors.DuplicateEntryError`.

Feature → provisioning
    A feature becomes one provisioning feature plus one auxiliary
    feature per sentinel start level.  The encodings above are
    decoded again, unless the feature carries the
    ``provisioning.runmodes`` variable, which then overrides every
    per‑item encoding.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Set

from . import feature as fm
from . import provisioning as pm
from . import runmodes
from .config_service import ConversionOptions
from .errors import DuplicateEntryError
from .extensions import REPOINIT_SECTION, ExtensionTranscoder
from .start_levels import START_LEVEL, START_ORDER, SentinelFeatures, StartLevelPolicy

logger = logging.getLogger(__name__)

PROVISIONING_MODEL_NAME_VARIABLE = "provisioning.model.name"
PROVISIONING_RUNMODES_VARIABLE = "provisioning.runmodes"
FEATURE_TYPE = "slingfeature"
DEFAULT_FEATURE_NAME = "feature"
CONTENT_PACKAGE_TYPE = "zip"


class RunModeSelection(Enum):
    """How a run‑mode group takes part in a provisioning → feature conversion."""

    ENCODED = "encoded"
    SELECTED = "selected"
    EXCLUDED = "excluded"


def select_run_mode(names: Optional[Sequence[str]], active: Sequence[str]) -> RunModeSelection:
    if not active or not names:
        return RunModeSelection.ENCODED
    if any(name in active for name in names):
        return RunModeSelection.SELECTED
    return RunModeSelection.EXCLUDED


def resolve_version(version: str, variables: Dict[str, Optional[str]]) -> str:
    """Substitute a ``${name}`` version with the variable's value, if set."""
    if version.startswith("${") and version.endswith("}"):
        value = variables.get(version[2:-1])
        if value:
            return value
    return version


@dataclass
class ModelTranscoder:
    options: ConversionOptions = field(default_factory=ConversionOptions)
    start_levels: StartLevelPolicy = field(default_factory=StartLevelPolicy)
    extensions: ExtensionTranscoder = field(default_factory=ExtensionTranscoder)

    # provisioning -> feature

    def to_features(self, model: pm.Model, bare_file_name: Optional[str] = None) -> List[fm.Feature]:
        """Convert every feature of ``model``."""
        return [self.to_feature(feature, bare_file_name) for feature in model.features]

    def feature_id(self, feature: pm.Feature, bare_file_name: Optional[str] = None) -> fm.ArtifactId:
        opts = self.options
        name = (feature.name or DEFAULT_FEATURE_NAME).replace(":", "")
        if bare_file_name and name not in (DEFAULT_FEATURE_NAME, bare_file_name):
            name = f"{bare_file_name}_{name}"
        version = opts.version
        if feature.version is not None and not opts.use_provided_version:
            version = feature.version
        if opts.name:
            # a classifier requires a type
            return fm.ArtifactId(opts.group_id, opts.name, version, name, FEATURE_TYPE)
        return fm.ArtifactId(opts.group_id, name, version)

    def to_feature(self, feature: pm.Feature, bare_file_name: Optional[str] = None) -> fm.Feature:
        opts = self.options
        result = fm.Feature(self.feature_id(feature, bare_file_name))

        for key, value in feature.variables.items():
            if key not in opts.drop_variables:
                result.variables[key] = value

        simple_name = (feature.name or "").replace(":", "")
        result.framework_properties.update(opts.add_framework_properties.get(simple_name) or {})

        settings_keys: Set[str] = set()
        for run_mode in feature.run_modes:
            selection = select_run_mode(run_mode.names, opts.run_modes)
            if selection is RunModeSelection.EXCLUDED:
                logger.debug("Skipping run mode %s of feature %s", ",".join(run_mode.names or ()), feature.name)
                continue
            encoded = run_mode.names if selection is RunModeSelection.ENCODED else None
            self._artifacts_to_feature(feature, run_mode, encoded, result)
            self._configurations_to_feature(run_mode, encoded, result)
            self._settings_to_feature(run_mode, encoded, result, settings_keys)

        sections = feature.get_additional_sections(REPOINIT_SECTION)
        repoinit = self.extensions.repoinit_text(sections)
        if repoinit:
            self.extensions.add_repoinit(result.extensions, repoinit)

        if result.id.artifact_id != feature.name:
            result.variables[PROVISIONING_MODEL_NAME_VARIABLE] = feature.name
        return result

    def _artifacts_to_feature(self, feature: pm.Feature, run_mode: pm.RunMode,
                              encoded: Optional[Sequence[str]], result: fm.Feature) -> None:
        for group in run_mode.iter_artifact_groups():
            for artifact in group:
                if artifact.artifact_id in self.options.exclude_bundles:
                    logger.debug("Excluding artifact %s", artifact.to_mvn_url())
                    continue
                artifact_id = fm.ArtifactId(
                    artifact.group_id,
                    artifact.artifact_id,
                    resolve_version(artifact.version, result.variables),
                    artifact.classifier,
                    artifact.type,
                )
                converted = fm.Artifact(artifact_id, dict(artifact.metadata))
                if artifact_id.type == CONTENT_PACKAGE_TYPE:
                    if encoded:
                        converted.metadata[runmodes.CONTENT_PACKAGE_RUN_MODES] = runmodes.join_run_modes(encoded)
                    self.extensions.add_content_package(result.extensions, converted)
                    continue
                start_order = self.start_levels.to_start_order(feature.name, group.start_level)
                converted.metadata[START_ORDER] = str(start_order)
                if encoded:
                    converted.metadata[runmodes.BUNDLE_RUN_MODES] = runmodes.encode_bundle_run_modes(encoded)
                result.bundles.append(converted)

    def _configurations_to_feature(self, run_mode: pm.RunMode, encoded: Optional[Sequence[str]],
                                   result: fm.Feature) -> None:
        excluded = self.options.exclude_bundles
        for cfg in run_mode.configurations:
            if cfg.pid in excluded or runmodes.escape_pid(cfg.pid) in excluded:
                logger.debug("Excluding configuration %s", cfg.pid)
                continue
            pid = runmodes.encode_configuration_pid(cfg.pid, cfg.factory_pid, encoded)
            if result.get_configuration(pid) is not None:
                raise DuplicateEntryError(
                    f"Configuration {pid} is defined by more than one selected run mode"
                )
            properties = {runmodes.encode_property_key(key): value for key, value in cfg.properties.items()}
            result.configurations.append(fm.Configuration(pid, properties))

    def _settings_to_feature(self, run_mode: pm.RunMode, encoded: Optional[Sequence[str]],
                             result: fm.Feature, seen: Set[str]) -> None:
        # injected framework properties may be overwritten, settings may not collide
        for key, value in run_mode.settings.items():
            key = runmodes.encode_framework_property_key(key, encoded)
            if key in seen:
                raise DuplicateEntryError(
                    f"Framework property {key} is defined by more than one selected run mode"
                )
            seen.add(key)
            result.framework_properties[key] = value

    # feature -> provisioning

    def to_provisioning(self, feature: fm.Feature, feature_file_name: Optional[str] = None) -> pm.Model:
        """Convert ``feature`` into a provisioning model.

        The first feature of the returned model is the converted
        feature; auxiliary sentinel features follow in first‑seen
        order.  ``feature_file_name`` names the repoinit configuration
        when run modes are overridden; it defaults to the artifact id.
        """
        variables = dict(feature.variables)
        name = variables.pop(PROVISIONING_MODEL_NAME_VARIABLE, None)
        if not isinstance(name, str) or not name:
            name = feature.id.artifact_id
        override = runmodes.split_run_modes(variables.pop(PROVISIONING_RUNMODES_VARIABLE, None))

        result = pm.Feature(name)
        result.variables.update(variables)
        sentinels = SentinelFeatures()

        for bundle in feature.bundles:
            self._bundle_to_provisioning(bundle, override, result, sentinels)

        for cfg in feature.configurations:
            pid, factory_pid, encoded = runmodes.decode_configuration_pid(cfg.pid)
            properties = {runmodes.decode_property_key(key): value for key, value in cfg.properties.items()}
            run_mode = result.get_or_create_run_mode(runmodes.effective_run_modes(override, encoded))
            run_mode.configurations.append(pm.Configuration(pid, factory_pid, properties))

        for key, value in feature.framework_properties.items():
            key, encoded = runmodes.decode_framework_property_key(key)
            run_mode = result.get_or_create_run_mode(runmodes.effective_run_modes(override, encoded))
            run_mode.settings[key] = value

        if feature_file_name is None:
            feature_file_name = feature.id.artifact_id
        for extension in feature.extensions:
            self.extensions.to_provisioning(extension, result, override, feature_file_name)

        return pm.Model([result, *sentinels], location=feature.location)

    def _bundle_to_provisioning(self, bundle: fm.Artifact, override: Optional[Sequence[str]],
                                result: pm.Feature, sentinels: SentinelFeatures) -> None:
        artifact = pm.Artifact.from_artifact_id(
            bundle.id, bundle.metadata, skip=(START_LEVEL, START_ORDER, runmodes.BUNDLE_RUN_MODES)
        )
        encoded = runmodes.decode_bundle_run_modes(bundle.metadata.get(runmodes.BUNDLE_RUN_MODES))
        bundle_run_modes = runmodes.effective_run_modes(override, encoded)
        placement = self.start_levels.place(bundle, bundle_run_modes, result.name)
        if placement.sentinel is not None:
            sentinels.add(placement.sentinel, artifact)
            return
        run_mode = result.get_or_create_run_mode(bundle_run_modes)
        run_mode.get_or_create_artifact_group(placement.start_level).add(artifact)
