# tests/unit/test_guards.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import pytest

from fsmc.core.guards import TransitGuard, constant_guard


def test_from_bool():
    assert TransitGuard.from_bool(True) is TransitGuard.TRANSIT
    assert TransitGuard.from_bool(False) is TransitGuard.REMAIN


def test_coerce_accepts_guards_and_bools():
    assert TransitGuard.coerce(TransitGuard.REMAIN) is TransitGuard.REMAIN
    assert TransitGuard.coerce(True) is TransitGuard.TRANSIT


@pytest.mark.parametrize("value", [None, 1, "transit", 0.0])
def test_coerce_rejects_other_values(value):
    with pytest.raises(TypeError, match="TransitGuard or bool"):
        TransitGuard.coerce(value)


def test_constant_guard_ignores_state():
    guard = constant_guard(False)
    assert guard(object()) is TransitGuard.REMAIN
    assert constant_guard(TransitGuard.TRANSIT)(None) is TransitGuard.TRANSIT
