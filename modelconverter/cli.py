"""Command‑line interface for the model converter.

Two subcommands mirror the two conversion directions.  Each delegates
to the :class:`modelconverter.engine.ModelConverterEngine` and prints
a JSON report.  Run ``python -m modelconverter.cli --help`` (or the
``pm2fm`` console script) for usage.

A failed conversion prints the error and exits with status 1; no
partial output of that input is considered valid.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config_service import ConfigService, ConversionOptions, collect_framework_properties
from .engine import COMMANDS, ModelConverterEngine
from .errors import ConversionError
from .io.provisioning_text import feature_variables, keep_variables, strict_variables

VARIABLE_RESOLVERS = {
    "keep": keep_variables,
    "feature": feature_variables,
    "strict": strict_variables,
}


def _parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="pm2fm",
        description="Provisioning Model to Feature Model converter",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("command", choices=COMMANDS, help="Conversion direction")
    parser.add_argument("input", help="Input file or directory")
    parser.add_argument("output", help="Output directory (to-feature) or file/directory (to-provisioning)")
    parser.add_argument("--options", help="JSON file with conversion options")
    parser.add_argument("-g", "--group-id", help="Overwrite the group id of the feature ids")
    parser.add_argument("-v", "--version", dest="feature_version", help="Overwrite the version of the feature ids")
    parser.add_argument("-V", "--use-provided-version", action="store_true",
                        help="The provided version overrides any version from the provisioning model")
    parser.add_argument("-n", "--name", help="General name for all converted models; the feature name becomes the classifier")
    parser.add_argument("-d", "--drop-variable", action="append", default=[],
                        help="Variable to drop from the features (repeat for more)")
    parser.add_argument("-a", "--add-framework-property", action="append", default=[],
                        help="Framework property to add, as <model name>:<property>=<value> (repeat for more)")
    parser.add_argument("-D", "--no-provisioning-model-name", action="store_true",
                        help="Do not add the provisioning model name variable")
    parser.add_argument("-e", "--exclude-bundle", action="append", default=[],
                        help="Bundle or configuration to exclude (repeat for more)")
    parser.add_argument("-r", "--run-mode", action="append", default=[],
                        help="Run mode to include; groups without run modes are always included (repeat for more)")
    parser.add_argument("--variables", choices=sorted(VARIABLE_RESOLVERS), default="keep",
                        help="Resolution of ${name} references in provisioning files; "
                             "strict fails on variables the feature does not define")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def _build_options(args: argparse.Namespace) -> ConversionOptions:
    base = ConversionOptions()
    if args.options:
        base = ConfigService().load_options(Path(args.options))
    return base.merged({
        "group_id": args.group_id,
        "version": args.feature_version,
        "use_provided_version": args.use_provided_version,
        "name": args.name,
        "drop_variables": args.drop_variable,
        "exclude_bundles": args.exclude_bundle,
        "add_framework_properties": collect_framework_properties(args.add_framework_property),
        "run_modes": args.run_mode,
        "no_provisioning_model_name": args.no_provisioning_model_name,
    })


def _collect_inputs(input_path: Path, command: str) -> List[Path]:
    if input_path.is_dir():
        suffix = ".json" if command == "to-provisioning" else None
        return sorted(p for p in input_path.iterdir()
                      if p.is_file() and (suffix is None or p.suffix == suffix))
    return [input_path]


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_arguments(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    input_path = Path(args.input).expanduser().resolve()
    output_path = Path(args.output).expanduser().resolve()
    if not input_path.exists():
        print(f"Error: input {input_path} does not exist")
        return 1
    try:
        options = _build_options(args)
    except ValueError as exc:
        print(f"Error: {exc}")
        return 1
    if args.command == "to-feature":
        output_path.mkdir(parents=True, exist_ok=True)
    inputs = _collect_inputs(input_path, args.command)
    if args.command == "to-provisioning" and len(inputs) > 1:
        output_path.mkdir(parents=True, exist_ok=True)
    engine = ModelConverterEngine(options=options, variable_resolver=VARIABLE_RESOLVERS[args.variables])
    try:
        report = engine.run(args.command, inputs, output_path)
    except ConversionError as exc:
        logging.getLogger(__name__).error("Failed to convert: %s", exc)
        print(f"Error: {exc}")
        return 1
    print(json.dumps(report, indent=2))
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
