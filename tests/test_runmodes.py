from __future__ import annotations

import pytest

from modelconverter import runmodes


@pytest.mark.parametrize(
    "pid, names, expected",
    [
        ("my.pid", ["a", "b"], "my.pid.runmodes.a.b"),
        ("my:pid", ["x"], "my..pid.runmodes.x"),
        (":internal", None, "..internal"),
        ("my:pid", None, "my:pid"),
        ("plain", [], "plain"),
    ],
)
def test_encode_pid(pid, names, expected) -> None:
    assert runmodes.encode_pid(pid, names) == expected


def test_decode_pid_restores_colons_before_stripping_suffix() -> None:
    assert runmodes.decode_pid("my..pid.runmodes.x") == ("my:pid", ["x"])
    assert runmodes.decode_pid("my.pid.runmodes.a.b") == ("my.pid", ["a", "b"])
    assert runmodes.decode_pid("..internal") == (":internal", None)
    assert runmodes.decode_pid("my.pid") == ("my.pid", None)


def test_decode_pid_ignores_suffix_at_start() -> None:
    # an empty pid in front of the marker is not a run-mode suffix
    assert runmodes.decode_pid(".runmodes.a") == (".runmodes.a", None)


def test_factory_configuration_pid() -> None:
    encoded = runmodes.encode_configuration_pid("custom", "org.example.Factory", ["author"])
    assert encoded == "org.example.Factory~custom.runmodes.author"
    assert runmodes.decode_configuration_pid(encoded) == ("custom", "org.example.Factory", ["author"])
    assert runmodes.decode_configuration_pid("org.example.Service") == ("org.example.Service", None, None)


def test_bundle_run_modes() -> None:
    assert runmodes.encode_bundle_run_modes(["a", "b"]) == "a,b"
    assert runmodes.encode_bundle_run_modes(None) is None
    assert runmodes.encode_bundle_run_modes([]) is None
    assert runmodes.decode_bundle_run_modes("a,b") == ["a", "b"]
    assert runmodes.decode_bundle_run_modes("") is None
    assert runmodes.decode_bundle_run_modes(None) is None


def test_framework_property_keys() -> None:
    assert runmodes.encode_framework_property_key("foo", ["a", "b"]) == "foo.runmodes:a,b"
    assert runmodes.encode_framework_property_key("foo") == "foo"
    assert runmodes.decode_framework_property_key("foo.runmodes:a,b") == ("foo", ["a", "b"])
    assert runmodes.decode_framework_property_key("foo") == ("foo", None)


def test_internal_property_keys() -> None:
    assert runmodes.encode_property_key(":configurator:policy") == "..configurator:policy"
    assert runmodes.decode_property_key("..configurator:policy") == ":configurator:policy"
    assert runmodes.encode_property_key("plain") == "plain"
    assert runmodes.decode_property_key("plain") == "plain"


def test_override_wins_over_encoding() -> None:
    assert runmodes.effective_run_modes(["author"], ["publish"]) == ["author"]
    assert runmodes.effective_run_modes(None, ["publish"]) == ["publish"]
    assert runmodes.effective_run_modes(None, None) is None
