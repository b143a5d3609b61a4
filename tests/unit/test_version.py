"""Tests for machine versions."""

from __future__ import annotations

import pytest

from fomodkit.core.errors import FormatError
from fomodkit.core.version import DEFAULT_MIN_TOOL_VERSION, DEFAULT_VERSION, MachineVersion


def test_parse_and_str_round_trip() -> None:
    assert str(MachineVersion.parse("0.9.2.0")) == "0.9.2.0"
    assert MachineVersion.parse(" 1.2 ").parts == (1, 2)


@pytest.mark.parametrize("text", ["", "1", "1.2.3.4.5", "1.x", "1.-2"])
def test_parse_rejects_malformed(text: str) -> None:
    with pytest.raises(FormatError):
        MachineVersion.parse(text)


def test_ordering() -> None:
    assert MachineVersion.parse("0.9.0.0") < MachineVersion.parse("0.10.0.0")
    assert MachineVersion.parse("1.0") < MachineVersion.parse("1.0.0")
    assert MachineVersion.parse("1.0.1") > MachineVersion.parse("1.0.0.5")
    assert DEFAULT_MIN_TOOL_VERSION < DEFAULT_VERSION


def test_hashable_and_equal() -> None:
    assert {MachineVersion.parse("0.5.0.0"): "x"}[MachineVersion((0, 5, 0, 0))] == "x"
