# tests/conftest.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import pytest

from fsmc.core.hooks import Bindings, derive_into
from fsmc.core.states import State
from fsmc.core.trace import clear_trace_sink, trace_sink

AB_MACHINE = "AB, A, [A, B], [A => B, B => A]"


@pytest.fixture(autouse=True)
def _reset_trace_sink():
    """The trace sink is process wide; never leak one between tests."""
    clear_trace_sink()
    yield
    clear_trace_sink()


@pytest.fixture
def trace_lines():
    """Register a collecting trace sink and return the collected lines."""
    lines = []

    @trace_sink
    def _collect(line):
        lines.append(line)

    return lines


@pytest.fixture
def journal():
    """Ordered record of hook invocations."""
    return []


@pytest.fixture
def ab_types(journal):
    """Two recording states; A moves to B once ``ready`` is set."""

    class A(State):
        def __init__(self, ready=False):
            self.ready = ready

        def entry(self):
            journal.append("A.entry")

        def execute(self):
            journal.append("A.execute")

        def exit(self):
            journal.append("A.exit")

    class B(State):
        def entry(self):
            journal.append("B.entry")

        def execute(self):
            journal.append("B.execute")

        def exit(self):
            journal.append("B.exit")

    return A, B


@pytest.fixture
def ab_bindings(ab_types, journal):
    A, B = ab_types
    bindings = Bindings()
    bindings.add_type("A", A)
    bindings.add_type("B", B)
    bindings.add_transition(
        "A",
        "B",
        guard=lambda a: a.ready,
        into=derive_into(B),
        action=lambda a: journal.append("A=>B.action"),
    )
    bindings.add_transition("B", "A", guard=False, into=derive_into(A))
    return bindings


@pytest.fixture
def ab_machine(ab_bindings):
    """Compiled machine class for ``A => B, B => A``."""
    from fsmc.compiler import compile_machine

    return compile_machine(AB_MACHINE, ab_bindings)
