"""Readers and writers for the two on‑disk model formats."""

from .feature_json import read_feature, write_feature  # noqa: F401
from .provisioning_text import read_model, write_model  # noqa: F401
