# fsmc/core/trace.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Tracing side channel. A single string sink can be registered for the whole
process; compiled machines call it with formatted lines at three
granularities (lifecycle, steps, messages) selected per machine. Every line is
also logged at DEBUG level on the ``fsmc.core.trace`` logger.
"""

import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

TraceSink = Callable[[str], None]

_sink: Optional[TraceSink] = None


def trace_sink(fn: TraceSink) -> TraceSink:
    """
    Decorator registering ``fn`` as the trace sink.

    :raises ValueError: If a different sink is already registered.
    """
    global _sink
    if _sink is not None and _sink is not fn:
        raise ValueError(f"A trace sink is already registered: {_sink!r}")
    _sink = fn
    return fn


def clear_trace_sink() -> None:
    global _sink
    _sink = None


def get_trace_sink() -> Optional[TraceSink]:
    return _sink


def format_log(machine_name: str, action: str, detail: str = "") -> str:
    """
    Format a trace line: ``"Rocket: Enter - Launch"`` or ``"Rocket: Stop"``.
    """
    if detail:
        return f"{machine_name}: {action} - {detail}"
    return f"{machine_name}: {action}"


class Tracer:
    """
    Per-machine emitter. The flags mirror the three granularities: ``trace``
    covers start, stop, enter, exit and transit; ``steps`` adds one line per
    executed state; ``messages`` covers push and poll.
    """

    def __init__(self, machine_name: str, trace: bool = False, steps: bool = False, messages: bool = False) -> None:
        self.machine_name = machine_name
        self._trace = trace
        self._steps = steps
        self._messages = messages

    def trace(self, action: str, detail: str = "") -> None:
        self._emit(self._trace, action, detail)

    def step(self, action: str, detail: str = "") -> None:
        self._emit(self._steps, action, detail)

    def message(self, action: str, detail: str = "") -> None:
        self._emit(self._messages, action, detail)

    def _emit(self, enabled: bool, action: str, detail: str) -> None:
        sink = _sink if enabled else None
        if sink is None and not logger.isEnabledFor(logging.DEBUG):
            return
        line = format_log(self.machine_name, action, detail)
        logger.debug(line)
        if sink is not None:
            sink(line)
