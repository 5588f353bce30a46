# tests/integration/test_hierarchical_machines.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""A compiled machine used as the state data of another machine."""

import pytest

from fsmc import Bindings, State, compile_machine, derive_into

pytestmark = pytest.mark.integration

entries = []


class Offline(State):
    def entry(self):
        entries.append("Offline")


class Standby(State):
    def entry(self):
        entries.append("Standby")


class Requesting(State):
    def entry(self):
        entries.append("Requesting")


class Observing(State):
    def entry(self):
        entries.append("Observing")


class Reporting(State):
    def entry(self):
        entries.append("Reporting")


@pytest.fixture
def forward_observer():
    entries.clear()
    inner = Bindings(namespace=globals())
    for source, destination in [
        ("Standby", Requesting),
        ("Requesting", Observing),
        ("Observing", Reporting),
        ("Reporting", Standby),
    ]:
        inner.add_transition(source, destination.__name__, guard=True, into=derive_into(destination))
    OnlineBase = compile_machine(
        """
        Online, Standby,
        [Standby, Requesting, Observing, Reporting],
        [
            Standby => Requesting,
            Requesting => Observing,
            Observing => Reporting,
            Reporting => Standby,
        ]
        """,
        inner,
    )

    class Online(OnlineBase):
        def execute(self):
            self.step()

    def bring_online(offline):
        online = Online()
        online.start(Standby())
        return online

    outer = Bindings(namespace=globals())
    outer.add_type("Online", Online)
    outer.add_transition("Offline", "Online", guard=True, into=bring_online)
    outer.add_transition("Online", "Offline", guard=False, into=derive_into(Offline))
    ForwardObserver = compile_machine(
        "ForwardObserver, Offline, [Offline, Online], [Offline => Online, Online => Offline]", outer
    )
    return ForwardObserver, Online


def test_inner_machine_steps_with_outer(forward_observer):
    ForwardObserver, Online = forward_observer
    observer = ForwardObserver()
    observer.start(Offline())
    assert observer.is_state(Offline)

    observer.step()
    assert observer.is_state(Online)
    online = observer.peek_state().data
    assert online.is_state(Standby)

    for expected in (Requesting, Observing, Reporting, Standby):
        observer.step()
        assert observer.is_state(Online)
        assert online.is_state(expected)

    assert entries == ["Offline", "Standby", "Requesting", "Observing", "Reporting", "Standby"]


def test_outer_stop_returns_running_inner_machine(forward_observer):
    ForwardObserver, Online = forward_observer
    observer = ForwardObserver()
    observer.start(Offline())
    observer.step()
    observer.step()

    final = observer.stop()
    assert final.state_type is Online
    assert final.data.running
    assert final.data.is_state(Requesting)
    inner = final.data.stop()
    assert inner.is_state(Requesting)
