"""File level driver for the model converter.

The :class:`ModelConverterEngine` reads model files, hands the
in‑memory graphs to :class:`~modelconverter.transcoder.ModelTranscoder`
and writes the results.  It is the only part of the package that
touches the file system, and it owns the staleness rule: an output
file whose modification time is not older than its input is left
alone.

A provisioning file may contain several features; each becomes one
JSON file named ``<input base name>_<feature>.json`` in the output
directory.  A feature file becomes exactly one provisioning file
holding the converted feature and any auxiliary sentinel features.

The engine is shared by the command‑line interface and by library
users::

    engine = ModelConverterEngine(options=ConversionOptions(group_id="org.example"))
    report = engine.run("to-feature", [Path("models/boot.txt")], Path("out"))

``variable_resolver`` is handed to
:func:`~modelconverter.io.provisioning_text.read_model`; the command
line selects it with ``--variables``.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .config_service import ConversionOptions
from .io.feature_json import read_feature, write_feature
from .io.provisioning_text import VariableResolver, read_model, write_model
from .transcoder import PROVISIONING_MODEL_NAME_VARIABLE, ModelTranscoder

logger = logging.getLogger(__name__)

COMMANDS = ("to-feature", "to-provisioning")


def bare_file_name(path: Path) -> str:
    """Return the file name without its last extension."""
    name = path.name
    index = name.rfind(".")
    return name[:index] if index > 0 else name


def is_up_to_date(output: Path, source: Path) -> bool:
    """Return ``True`` if ``output`` exists and is not older than ``source``."""
    if not output.exists():
        return False
    # the output may carry the same timestamp when it was just copied
    return output.stat().st_mtime >= source.stat().st_mtime


@dataclass
class ModelConverterEngine:
    options: ConversionOptions = field(default_factory=ConversionOptions)
    variable_resolver: Optional[VariableResolver] = None

    @property
    def transcoder(self) -> ModelTranscoder:
        return ModelTranscoder(self.options)

    def _provisioning_to_features(self, input_file: Path, output_dir: Path) -> List[Tuple[Path, bool]]:
        model = read_model(input_file, self.variable_resolver)
        bare = bare_file_name(input_file)
        features = self.transcoder.to_features(model, bare)

        results: List[Tuple[Path, bool]] = []
        for feature in features:
            ident = feature.variables.get(PROVISIONING_MODEL_NAME_VARIABLE) or feature.id.artifact_id
            ident = f"{bare}_{ident.replace(':', '')}"
            if self.options.no_provisioning_model_name:
                # the name clashes when several provisioning files declare it
                feature.variables.pop(PROVISIONING_MODEL_NAME_VARIABLE, None)
            out_file = output_dir / f"{ident}.json"
            if is_up_to_date(out_file, input_file):
                logger.debug("Skipping the generation of %s as this file already exists and is not older.", out_file)
                results.append((out_file, False))
                continue
            logger.info("Writing feature %s to %s", feature.id, out_file)
            write_feature(feature, out_file)
            results.append((out_file, True))
        return results

    def convert_provisioning_file(self, input_file: Path, output_dir: Path) -> List[Path]:
        """Convert one provisioning file; return the feature files it maps to."""
        return [path for path, _ in self._provisioning_to_features(Path(input_file), Path(output_dir))]

    def convert_feature_file(self, input_file: Path, output_file: Path) -> bool:
        """Convert one feature file; return ``False`` if the output was up to date."""
        input_file, output_file = Path(input_file), Path(output_file)
        if is_up_to_date(output_file, input_file):
            logger.debug("Skipping the generation of %s as this file already exists and is not older.", output_file)
            return False
        feature = read_feature(input_file)
        model = self.transcoder.to_provisioning(feature, input_file.name)
        logger.info("Writing provisioning model %s to %s", model.features[0].name, output_file)
        write_model(model, output_file)
        return True

    def run(self, command: str, inputs: List[Path], output: Path) -> Dict[str, Any]:
        """Convert every input and return a report dictionary.

        ``to-feature`` writes into the ``output`` directory.
        ``to-provisioning`` writes to ``output`` as a file for a single
        input, otherwise as a directory receiving ``<name>.txt`` files.
        Any :class:`~modelconverter.errors.ConversionError` propagates.
        """
        if command not in COMMANDS:
            raise ValueError(f"Unknown command {command!r}")
        report: Dict[str, Any] = {
            "command": command,
            "timestamp": datetime.datetime.now().isoformat(),
            "files_processed": 0,
            "files_written": 0,
            "files_skipped": 0,
            "outputs": [],
        }
        output = Path(output)
        for input_file in inputs:
            input_file = Path(input_file)
            logger.info("Handle file %s", input_file)
            if command == "to-feature":
                results = self._provisioning_to_features(input_file, output)
            else:
                if len(inputs) == 1 and output.suffix:
                    out_file = output
                else:
                    out_file = output / f"{bare_file_name(input_file)}.txt"
                results = [(out_file, self.convert_feature_file(input_file, out_file))]
            report["files_processed"] += 1
            for path, written in results:
                report["files_written" if written else "files_skipped"] += 1
                report["outputs"].append({"source": str(input_file), "dest": str(path), "written": written})
        return report
