# fsmc/core/states.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Optional base classes for state data. Any class can be bound as a state; the
generator only looks for the lifecycle method names of the machine's mode and
treats a missing method as a no-op. Subclassing these documents the contract.
"""


class State:
    """
    Lifecycle hooks of a state in a non-fallible machine.
    """

    def entry(self) -> None:
        """Called once every time the state becomes active."""

    def execute(self) -> None:
        """Called on every step while the state is active."""

    def exit(self) -> None:
        """Called once every time the state stops being active."""


class TryState:
    """
    Lifecycle hooks of a state in a fallible machine. A hook signals a domain
    failure by raising an instance of the machine's error type.
    """

    def try_entry(self) -> None:
        pass

    def try_execute(self) -> None:
        pass

    def try_exit(self) -> None:
        pass


class TryErrorState(TryState):
    """
    The error state of a fallible machine receives every intercepted failure
    through consume_error before its entry hook runs.
    """

    def consume_error(self, error: Exception) -> None:
        raise NotImplementedError(f"{type(self).__name__} must implement consume_error")
