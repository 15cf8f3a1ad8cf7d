"""Mapping of feature extensions to and from the provisioning model.

Only two extensions have a provisioning counterpart:

``content-packages``
    An ``ARTIFACTS`` extension.  On the provisioning side content
    packages are ordinary ``zip`` artifacts at start level 20; their
    run modes travel in the ``runmodes`` metadata entry.

``repoinit``
    A ``TEXT`` (or ``JSON`` array of lines) extension.  On the
    provisioning side it becomes a ``[:repoinit]`` section, or, when
    the conversion is restricted to explicit run modes, a factory
    configuration of the repository initializer holding the script.

Every other extension is dropped if optional.  A required one cannot
be represented and aborts the conversion.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from . import provisioning, runmodes
from .errors import DuplicateRepoinitError, UnsupportedExtensionError
from .feature import (
    EXTENSION_NAME_CONTENT_PACKAGES,
    EXTENSION_NAME_REPOINIT,
    Artifact,
    Extension,
    ExtensionType,
)

logger = logging.getLogger(__name__)

REPOINIT_FACTORY_PID = "org.apache.sling.jcr.repoinit.RepositoryInitializer"
REPOINIT_SCRIPTS = "scripts"
REPOINIT_SECTION = "repoinit"


def repoinit_configuration_name(feature_file_name: str) -> str:
    """Derive a configuration name from a feature file name.

    >>> repoinit_configuration_name("my-feature.json")
    'my_feature'
    """
    last_dot = feature_file_name.rfind(".")
    name = feature_file_name if last_dot == -1 else feature_file_name[:last_dot]
    return name.replace("-", "_")


@dataclass
class ExtensionTranscoder:
    content_package_start_level: int = 20

    # provisioning -> feature

    def add_content_package(self, extensions: List[Extension], artifact: Artifact) -> Extension:
        """Append ``artifact`` to the content-packages extension, creating it if needed."""
        extension = _find(extensions, EXTENSION_NAME_CONTENT_PACKAGES)
        if extension is None:
            extension = Extension(ExtensionType.ARTIFACTS, EXTENSION_NAME_CONTENT_PACKAGES, required=True)
            extensions.append(extension)
        extension.artifacts.append(artifact)
        return extension

    def repoinit_text(self, sections: Iterable[provisioning.Section]) -> str:
        """Concatenate repoinit sections, each followed by a newline."""
        return "".join(section.contents + "\n" for section in sections)

    def add_repoinit(self, extensions: List[Extension], text: str) -> Extension:
        """Materialize the repoinit extension; a second one is an error."""
        if _find(extensions, EXTENSION_NAME_REPOINIT) is not None:
            raise DuplicateRepoinitError("Repoinit sections already processed")
        extension = Extension(ExtensionType.TEXT, EXTENSION_NAME_REPOINIT, required=True, text=text)
        extensions.append(extension)
        return extension

    # feature -> provisioning

    def to_provisioning(self, extension: Extension, feature: provisioning.Feature,
                        run_modes: Optional[Sequence[str]] = None,
                        feature_file_name: str = "") -> None:
        """Apply ``extension`` to the provisioning ``feature``.

        ``run_modes`` is the explicit run‑mode override of the
        conversion, or ``None``.
        """
        if extension.name == EXTENSION_NAME_CONTENT_PACKAGES:
            self._content_packages_to_provisioning(extension, feature, run_modes)
        elif extension.name == EXTENSION_NAME_REPOINIT:
            self._repoinit_to_provisioning(extension, feature, run_modes, feature_file_name)
        elif extension.required:
            raise UnsupportedExtensionError(f"Unable to convert required extension {extension.name}")
        else:
            logger.debug("Dropping optional extension %s", extension.name)

    def _content_packages_to_provisioning(self, extension: Extension, feature: provisioning.Feature,
                                          run_modes: Optional[Sequence[str]]) -> None:
        if extension.type is not ExtensionType.ARTIFACTS:
            raise UnsupportedExtensionError(
                f"Unable to convert {extension.name} extension of type {extension.type.value}"
            )
        for content_package in extension.artifacts:
            encoded = runmodes.split_run_modes(content_package.metadata.get(runmodes.CONTENT_PACKAGE_RUN_MODES))
            package_run_modes = runmodes.effective_run_modes(run_modes, encoded)
            artifact = provisioning.Artifact.from_artifact_id(
                content_package.id, content_package.metadata, skip=(runmodes.CONTENT_PACKAGE_RUN_MODES,)
            )
            run_mode = feature.get_or_create_run_mode(package_run_modes)
            run_mode.get_or_create_artifact_group(self.content_package_start_level).add(artifact)

    def repoinit_script(self, extension: Extension) -> str:
        """Return the repoinit script text of a TEXT or JSON extension."""
        if extension.type is ExtensionType.TEXT:
            return extension.text or ""
        if extension.type is ExtensionType.JSON:
            try:
                lines = json.loads(extension.json or "[]")
            except json.JSONDecodeError as exc:
                raise UnsupportedExtensionError(f"Invalid repoinit JSON: {exc.msg}")
            if not isinstance(lines, list):
                raise UnsupportedExtensionError("Repoinit JSON must be an array of strings")
            return "".join(line + "\n" for line in lines if isinstance(line, str))
        raise UnsupportedExtensionError("Unable to convert repoinit extension with artifacts")

    def _repoinit_to_provisioning(self, extension: Extension, feature: provisioning.Feature,
                                  run_modes: Optional[Sequence[str]], feature_file_name: str) -> None:
        script = self.repoinit_script(extension)
        if run_modes is None:
            feature.additional_sections.append(provisioning.Section(REPOINIT_SECTION, script))
            return
        cfg = provisioning.Configuration(
            repoinit_configuration_name(feature_file_name),
            REPOINIT_FACTORY_PID,
            {REPOINIT_SCRIPTS: script},
        )
        feature.get_or_create_run_mode(run_modes).configurations.append(cfg)


def _find(extensions: List[Extension], name: str) -> Optional[Extension]:
    for extension in extensions:
        if extension.name == name:
            return extension
    return None
