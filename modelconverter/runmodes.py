"""Run‑mode encodings used when folding a provisioning model into features.

A feature has no run‑mode dimension, so the set of run‑mode names a
provisioning construct belongs to is written into a string instead.
Each feature construct has its own escaping constraints, which is why
there are three separate conventions rather than one:

* **Bundles** carry the names comma‑joined in the ``run-modes``
  metadata entry (content packages use the ``runmodes`` entry with the
  same list format).
* **Configuration pids** get ``.runmodes.<a>.<b>`` appended.  Colons
  are rewritten to ``..`` so that the dot based suffix stays
  unambiguous; decoding turns ``..<word>`` back into ``:<word>``
  *before* stripping the suffix.
* **Framework property keys** get ``.runmodes:<a>,<b>`` appended.

Configuration property keys starting with ``:`` (internal
properties) are escaped to ``..`` as well, since the configurator does
not accept colons in keys.

The order of names is the caller's insertion order in every
direction.  ``None`` always means "no run‑mode restriction".
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional, Sequence, Tuple

from .feature import FACTORY_SEPARATOR

BUNDLE_RUN_MODES = "run-modes"
CONTENT_PACKAGE_RUN_MODES = "runmodes"
PID_RUN_MODES = ".runmodes."
PROPERTY_RUN_MODES = ".runmodes:"
ESCAPED_COLON = ".."

_ESCAPED_COLON_WORD = re.compile(r"\.\.(\w+)", re.ASCII)


def split_run_modes(value: Optional[str]) -> Optional[List[str]]:
    """Split a comma list of run modes; absent or empty gives ``None``."""
    if value is None or value == "":
        return None
    return value.split(",")


def join_run_modes(run_modes: Optional[Iterable[str]]) -> Optional[str]:
    if not run_modes:
        return None
    return ",".join(run_modes)


def effective_run_modes(override: Optional[Sequence[str]],
                        encoded: Optional[Sequence[str]]) -> Optional[List[str]]:
    """An explicit override always wins over a per‑item encoding."""
    if override is not None:
        return list(override)
    if encoded is None:
        return None
    return list(encoded)


# Bundles


def encode_bundle_run_modes(run_modes: Optional[Iterable[str]]) -> Optional[str]:
    """Return the ``run-modes`` metadata value, or ``None`` when unrestricted."""
    return join_run_modes(run_modes)


def decode_bundle_run_modes(value: Optional[str]) -> Optional[List[str]]:
    return split_run_modes(value)


# Configuration pids


def escape_pid(pid: str) -> str:
    """Replace a leading ``:`` with ``..``."""
    if pid.startswith(":"):
        return ESCAPED_COLON + pid[1:]
    return pid


def encode_pid(pid: str, run_modes: Optional[Iterable[str]] = None) -> str:
    """Encode ``pid`` with an optional run‑mode suffix.

    >>> encode_pid("my:pid", ["x"])
    'my..pid.runmodes.x'
    """
    pid = escape_pid(pid)
    names = list(run_modes) if run_modes else []
    if names:
        pid = pid + PID_RUN_MODES + ".".join(names)
        pid = pid.replace(":", ESCAPED_COLON)
    return pid


def decode_pid(encoded: str) -> Tuple[str, Optional[List[str]]]:
    """Return the original pid and its run modes (``None`` if unrestricted).

    Colons are restored first, then the run‑mode suffix is stripped.
    """
    pid = _ESCAPED_COLON_WORD.sub(r":\1", encoded)
    index = pid.find(PID_RUN_MODES)
    if index > 0:
        run_modes = pid[index + len(PID_RUN_MODES):].split(".")
        return pid[:index], run_modes
    return pid, None


def encode_configuration_pid(pid: str, factory_pid: Optional[str] = None,
                             run_modes: Optional[Iterable[str]] = None) -> str:
    """Encode a (factory) configuration pid for the feature side.

    For factory configurations only the name goes through
    :func:`encode_pid`; the result is ``factoryPid~encodedName``.
    """
    encoded = encode_pid(pid, run_modes)
    if factory_pid is not None:
        return f"{factory_pid}{FACTORY_SEPARATOR}{encoded}"
    return encoded


def decode_configuration_pid(value: str) -> Tuple[str, Optional[str], Optional[List[str]]]:
    """Return ``(pid_or_name, factory_pid, run_modes)``."""
    if FACTORY_SEPARATOR in value:
        factory_pid, name = value.split(FACTORY_SEPARATOR, 1)
        name, run_modes = decode_pid(name)
        return name, factory_pid, run_modes
    pid, run_modes = decode_pid(value)
    return pid, None, run_modes


# Internal configuration property keys


def encode_property_key(key: str) -> str:
    if key.startswith(":"):
        return ESCAPED_COLON + key[1:]
    return key


def decode_property_key(key: str) -> str:
    if key.startswith(ESCAPED_COLON):
        return ":" + key[2:]
    return key


# Framework properties


def encode_framework_property_key(key: str, run_modes: Optional[Iterable[str]] = None) -> str:
    """
    >>> encode_framework_property_key("foo", ["a", "b"])
    'foo.runmodes:a,b'
    """
    names = list(run_modes) if run_modes else []
    if not names:
        return key
    return key + PROPERTY_RUN_MODES + ",".join(names)


def decode_framework_property_key(key: str) -> Tuple[str, Optional[List[str]]]:
    index = key.find(PROPERTY_RUN_MODES)
    if index > 0:
        return key[:index], key[index + len(PROPERTY_RUN_MODES):].split(",")
    return key, None
