# tests/unit/test_trace.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import logging

import pytest

from fsmc.compiler import CompilerOptions, compile_machine
from fsmc.core.trace import Tracer, clear_trace_sink, format_log, get_trace_sink, trace_sink


def test_format_log():
    assert format_log("Rocket", "Enter", "Launch") == "Rocket: Enter - Launch"
    assert format_log("Rocket", "Stop") == "Rocket: Stop"


def test_single_sink_per_process():
    @trace_sink
    def first(line):
        pass

    assert get_trace_sink() is first
    # Registering the same function again is harmless.
    trace_sink(first)
    with pytest.raises(ValueError, match="already registered"):

        @trace_sink
        def second(line):
            pass

    clear_trace_sink()
    assert get_trace_sink() is None


def test_tracer_granularities(trace_lines):
    tracer = Tracer("M", trace=True, steps=False, messages=True)
    tracer.trace("Start", "A")
    tracer.step("Execute", "A")
    tracer.message("Push", "P to A")
    assert trace_lines == ["M: Start - A", "M: Push - P to A"]


def test_tracer_without_sink_logs_debug(caplog):
    tracer = Tracer("M", trace=True)
    with caplog.at_level(logging.DEBUG, logger="fsmc.core.trace"):
        tracer.trace("Stop")
    assert "M: Stop" in caplog.text


def test_machine_lifecycle_trace(ab_bindings, ab_types, trace_lines):
    A, _ = ab_types
    AB = compile_machine("AB, A, [A, B], [A => B, B => A]", ab_bindings, CompilerOptions(trace=True))
    machine = AB()
    machine.start(A(ready=True))
    machine.step()
    machine.stop()
    assert trace_lines == [
        "AB: Start - A",
        "AB: Exit - A",
        "AB: Transit - From A to B",
        "AB: Enter - B",
        "AB: Stop",
        "AB: Exit - B",
    ]


def test_pre_seeded_machine_traces_entry_on_first_step(ab_bindings, ab_types, trace_lines):
    A, _ = ab_types
    AB = compile_machine("AB, A, [A, B], [A => B, B => A]", ab_bindings, CompilerOptions(trace=True))
    machine = AB(A())
    machine.step()
    assert trace_lines == ["AB: Enter - A"]


def test_step_trace(ab_bindings, ab_types, trace_lines):
    A, _ = ab_types
    AB = compile_machine("AB, A, [A, B], [A => B, B => A]", ab_bindings, CompilerOptions(trace_steps=True))
    machine = AB()
    machine.start(A())
    machine.step()
    machine.step()
    assert trace_lines == ["AB: Execute - A", "AB: Execute - A"]


def test_error_state_trace(trace_lines):
    from fsmc.core.hooks import Bindings
    from fsmc.core.states import TryErrorState, TryState

    class Failure(Exception):
        pass

    class Work(TryState):
        def try_execute(self):
            raise Failure()

    class Recover(TryErrorState):
        def consume_error(self, error):
            self.error = error

    from fsmc.compiler import compile_fallible_machine

    bindings = Bindings(namespace={"Work": Work, "Recover": Recover, "Failure": Failure})
    bindings.into_any("Recover")(lambda state: Recover())
    Job = compile_fallible_machine(
        "Job, Work, [Work, Recover], [], Failure, Recover", bindings, CompilerOptions(trace=True)
    )
    machine = Job()
    machine.start(Work())
    machine.step()
    assert trace_lines[-1] == "Job: Enter error state"
