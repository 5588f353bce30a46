# fsmc/core/guards.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from enum import Enum
from typing import Any, Callable, Union


class TransitGuard(Enum):
    """
    Result of a transition guard: stay in the current state or take the
    transition.
    """

    REMAIN = "remain"
    TRANSIT = "transit"

    @classmethod
    def from_bool(cls, transit: bool) -> "TransitGuard":
        return cls.TRANSIT if transit else cls.REMAIN

    @classmethod
    def coerce(cls, value: Union["TransitGuard", bool]) -> "TransitGuard":
        """
        Accept either a TransitGuard or a plain bool returned by a guard.

        :raises TypeError: For any other value.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            return cls.from_bool(value)
        raise TypeError(f"Guard must return a TransitGuard or bool, got {value!r}")


GuardFunction = Callable[[Any], Union[TransitGuard, bool]]


def constant_guard(result: Union[TransitGuard, bool]) -> GuardFunction:
    """
    Build a guard that ignores the state data and always returns ``result``.
    """
    result = TransitGuard.coerce(result)

    def _guard(_state: Any) -> TransitGuard:
        return result

    return _guard
