"""Top‑level package for the provisioning/feature model converter.

This package translates OSGi deployment descriptions between the
run‑mode dimensioned **provisioning model** (a structured text
format) and the flat **feature model** (one JSON document per
feature).  Conversion is lossless in both directions for every
construct the two formats share.  Run‑mode information, which the
feature model cannot express natively, is folded into string
conventions on the way to the feature model and unfolded again on
the way back.

The public API surface consists of the following key classes and
functions:

* :class:`modelconverter.transcoder.ModelTranscoder` – the pure,
  in‑memory conversion in both directions.
* :mod:`modelconverter.runmodes` – the three run‑mode encodings
  (bundle metadata, configuration pid suffix, framework property key
  suffix).
* :class:`modelconverter.start_levels.StartLevelPolicy` and
  :class:`modelconverter.extensions.ExtensionTranscoder` – start
  level placement and the content-packages/repoinit extensions.
* :class:`modelconverter.config_service.ConversionOptions` and
  :class:`modelconverter.config_service.ConfigService` – conversion
  options and their JSON persistence.
* :class:`modelconverter.engine.ModelConverterEngine` – reads and
  writes model files and skips outputs that are up to date.
* :mod:`modelconverter.cli` – the ``pm2fm`` command‑line interface.

Every fatal condition is raised as a
:class:`modelconverter.errors.ConversionError`; deciding whether to
abort the process is left to the caller.
"""

from .config_service import ConfigService, ConversionOptions  # noqa: F401
from .engine import ModelConverterEngine  # noqa: F401
from .errors import (  # noqa: F401
    ConversionError,
    DuplicateEntryError,
    DuplicateRepoinitError,
    EncodingConflictError,
    ModelFormatError,
    UnsupportedExtensionError,
)
from .transcoder import ModelTranscoder  # noqa: F401
