"""Exception types raised by the model converter.

Every fatal condition detected while converting aborts the whole
conversion of the current input.  Callers must treat a conversion
that raised any :class:`ConversionError` as having produced no usable
output; the command‑line interface maps these exceptions to a
non‑zero exit status.
"""

from __future__ import annotations

from typing import Optional


class ConversionError(ValueError):
    """Base class for all fatal conversion failures."""


class EncodingConflictError(ConversionError):
    """A bundle uses a sentinel start level and also carries run modes."""


class UnsupportedExtensionError(ConversionError):
    """A required extension cannot be represented on the target side."""


class DuplicateRepoinitError(ConversionError):
    """More than one repoinit extension was materialized for one feature."""


class DuplicateEntryError(ConversionError):
    """Two run-mode groups emit the same configuration pid or framework property key."""


class ModelFormatError(ConversionError):
    """Input text or JSON does not follow the expected model format."""

    def __init__(self, message: str, location: Optional[str] = None, line: Optional[int] = None) -> None:
        self.location = location
        self.line = line
        where = ""
        if location:
            where = f"{location}"
            if line is not None:
                where += f":{line}"
            where += ": "
        elif line is not None:
            where = f"line {line}: "
        super().__init__(f"{where}{message}")
