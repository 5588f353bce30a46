# tests/unit/test_messages.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from unittest.mock import MagicMock

import pytest

from fsmc.compiler import Compiler, compile_machine, compile_messages
from fsmc.core.errors import BindingError, ChannelNotDeclaredError, StateIsNotActiveError, ValidationError
from fsmc.core.hooks import Bindings, derive_into
from fsmc.core.messages import Channel
from fsmc.core.states import State

MACHINE = "Sensor, Idle, [Idle, Measuring], [Idle => Measuring, Measuring => Idle]"


class Command:
    def __init__(self, start):
        self.start = start


class Urgent(Command):
    pass


class Reading:
    def __init__(self, value):
        self.value = value


class Idle(State):
    def __init__(self):
        self.start = False

    def receive_message(self, message):
        self.start = message.start


class Measuring(State):
    def __init__(self):
        self.value = None

    def execute(self):
        self.value = 42

    def return_message(self, payload_type):
        if self.value is None:
            return None
        return payload_type(self.value)


def sensor_bindings():
    bindings = Bindings(namespace=globals())
    bindings.add_transition("Idle", "Measuring", guard=lambda idle: idle.start, into=derive_into(Measuring))
    bindings.add_transition("Measuring", "Idle", guard=False, into=derive_into(Idle))
    return bindings


@pytest.fixture
def sensor():
    bindings = sensor_bindings()
    Sensor = compile_machine(MACHINE, bindings)
    return compile_messages("Sensor, [Command -> Idle, Reading <- Measuring]", Sensor, bindings)


def test_push_delivers_into_active_state(sensor):
    machine = sensor()
    machine.start(Idle())
    machine.push_message(Idle, Command(start=True))
    assert machine.peek_state().data.start is True
    machine.step()
    assert machine.is_state(Measuring)


def test_push_accepts_payload_subclasses(sensor):
    machine = sensor()
    machine.start(Idle())
    machine.push_message("Idle", Urgent(start=True))
    assert machine.peek_state().data.start is True


def test_push_to_inactive_state_returns_payload(sensor):
    machine = sensor()
    machine.start(Idle())
    machine.push_message(Idle, Command(start=True))
    machine.step()

    rejected = Command(start=False)
    with pytest.raises(StateIsNotActiveError) as exc_info:
        machine.push_message(Idle, rejected)
    assert exc_info.value.payload is rejected
    assert exc_info.value.state == "Idle"
    # The machine keeps running.
    machine.step()
    assert machine.is_state(Measuring)


def test_push_to_stopped_machine(sensor):
    with pytest.raises(StateIsNotActiveError):
        sensor().push_message(Idle, Command(start=True))


def test_poll_returns_message_or_none(sensor):
    machine = sensor()
    machine.start(Idle())
    machine.push_message(Idle, Command(start=True))
    machine.step()

    assert machine.poll_message(Measuring, Reading) is None
    machine.step()
    reading = machine.poll_message(Measuring, "Reading")
    assert isinstance(reading, Reading)
    assert reading.value == 42


def test_poll_inactive_state(sensor):
    machine = sensor()
    machine.start(Idle())
    with pytest.raises(StateIsNotActiveError) as exc_info:
        machine.poll_message(Measuring, Reading)
    assert exc_info.value.payload is None


def test_undeclared_channels(sensor):
    machine = sensor()
    machine.start(Idle())
    with pytest.raises(ChannelNotDeclaredError):
        machine.push_message(Idle, Reading(1))
    with pytest.raises(ChannelNotDeclaredError):
        machine.poll_message(Idle, Reading)
    with pytest.raises(ChannelNotDeclaredError):
        machine.push_message("Nowhere", Command(start=True))


def test_machine_without_messages():
    Plain = compile_machine(MACHINE, sensor_bindings())
    machine = Plain()
    machine.start(Idle())
    with pytest.raises(ChannelNotDeclaredError, match="has no messages declared"):
        machine.push_message(Idle, Command(start=True))


def test_registered_callbacks_win_over_methods():
    bindings = sensor_bindings()
    receiver = MagicMock()
    producer = MagicMock(return_value="report")
    bindings.receiver("Idle", "Command")(receiver)
    bindings.producer("Measuring", "Reading")(producer)

    compiler = Compiler(bindings)
    compiler.compile_machine(MACHINE)
    Sensor = compiler.compile_messages("Sensor, [Command -> Idle, Reading <- Measuring]")

    machine = Sensor()
    idle = Idle()
    machine.start(idle)
    command = Command(start=True)
    machine.push_message(Idle, command)
    receiver.assert_called_once_with(idle, command)
    assert idle.start is False

    machine.push_message(Idle, Command(start=False))
    idle.start = True
    machine.step()
    assert machine.poll_message(Measuring, Reading) == "report"


def test_state_without_message_capability():
    bindings = sensor_bindings()
    Sensor = compile_machine(MACHINE, bindings)
    with pytest.raises(BindingError, match="needs a receive_message method"):
        compile_messages("Sensor, [Command -> Measuring]", Sensor, bindings)


def test_messages_declared_once():
    bindings = sensor_bindings()
    compiler = Compiler(bindings)
    compiler.compile_machine(MACHINE)
    Sensor = compiler.compile_messages("Sensor, [Command -> Idle]")
    assert [channel.payload_type for channel in Sensor._channels.channels] == [Command]
    assert all(isinstance(channel, Channel) for channel in Sensor._channels.channels)
    with pytest.raises(ValidationError, match="already declared"):
        compiler.compile_messages("Sensor, [Reading <- Measuring]")


def test_messages_for_unknown_machine():
    with pytest.raises(ValidationError, match="not a compiled state machine"):
        Compiler(sensor_bindings()).compile_messages("Sensor, [Command -> Idle]")


def test_trace_messages(trace_lines):
    from fsmc.compiler import CompilerOptions

    bindings = sensor_bindings()
    compiler = Compiler(bindings, CompilerOptions(trace_messages=True))
    compiler.compile_machine(MACHINE)
    Sensor = compiler.compile_messages("Sensor, [Command -> Idle, Reading <- Measuring]")
    machine = Sensor()
    machine.start(Idle())
    machine.push_message(Idle, Command(start=True))
    machine.step()
    machine.poll_message(Measuring, Reading)
    machine.step()
    machine.poll_message(Measuring, Reading)
    assert trace_lines == ["Sensor: Push - Command to Idle", "Sensor: Poll - Reading from Measuring"]


def test_pre_seeded_machine_enters_before_delivery():
    class Watchful(Idle):
        def __init__(self):
            super().__init__()
            self.entered = False
            self.seen = []

        def entry(self):
            self.entered = True

        def receive_message(self, message):
            self.seen.append(self.entered)
            super().receive_message(message)

    bindings = sensor_bindings()
    bindings.add_type("Idle", Watchful)
    Sensor = compile_messages("Sensor, [Command -> Idle]", compile_machine(MACHINE, bindings), bindings)

    watchful = Watchful()
    machine = Sensor(watchful)
    machine.push_message("Idle", Command(start=True))
    assert watchful.seen == [True]

    machine.step()
    assert machine.is_state(Measuring)


def test_pre_seeded_machine_poll_runs_entry_once():
    class Counting(Idle):
        entries = 0

        def entry(self):
            type(self).entries += 1

        def return_message(self, payload_type):
            return payload_type(type(self).entries)

    bindings = sensor_bindings()
    bindings.add_type("Idle", Counting)
    Sensor = compile_messages("Sensor, [Reading <- Idle]", compile_machine(MACHINE, bindings), bindings)

    machine = Sensor(Counting())
    assert machine.poll_message("Idle", Reading).value == 1
    assert machine.poll_message("Idle", Reading).value == 1


def test_payloads_resolving_to_one_class_conflict():
    bindings = sensor_bindings()
    bindings.add_type("Order", Command)
    Sensor = compile_machine(MACHINE, bindings)
    with pytest.raises(BindingError, match="Command and Order both bind to Command"):
        compile_messages("Sensor, [Command -> Idle, Order -> Idle]", Sensor, bindings)
