# fsmc/compiler.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Entry points turning specification text into machine classes.

Example::

    bindings = Bindings(namespace=globals())
    bindings.add_transition("Idle", "Running", guard=True, into=derive_into(Running))

    Motor = compile_machine("Motor, Idle, [Idle, Running], [Idle => Running]", bindings)
    motor = Motor()
    motor.start(Idle())
    motor.step()
    assert motor.is_state(Running)
"""

import logging
import sys
from dataclasses import dataclass
from typing import Dict, Optional, Type

from fsmc.core.errors import ValidationError
from fsmc.core.generator import generate
from fsmc.core.grammar import MachineDef, MessagesDef
from fsmc.core.hooks import Bindings
from fsmc.core.messages import build_channels
from fsmc.core.parser import Document, Parser
from fsmc.core.trace import Tracer
from fsmc.core.validation import Validator
from fsmc.runtime.machine import StateMachine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompilerOptions:
    """
    Compiler configuration.

    :param trace: Send start, stop, enter, exit and transit lines to the
        trace sink.
    :param trace_steps: Also send one line per executed state.
    :param trace_messages: Send push and poll lines to the trace sink.
    :param warn_unreachable: Log a warning for unreachable states.
    :param check_types: Verify converted data is an instance of the
        destination state's class.
    """

    trace: bool = False
    trace_steps: bool = False
    trace_messages: bool = False
    warn_unreachable: bool = True
    check_types: bool = True


class Compiler:
    """
    Compiles specifications against one Bindings registry and remembers the
    machines it produced by name, so that messages declarations can refer to
    them later.
    """

    def __init__(self, bindings: Optional[Bindings] = None, options: Optional[CompilerOptions] = None) -> None:
        """
        :param bindings: Name-to-class registry used for every compilation.
        :param options: Compiler configuration; defaults apply if omitted.
        """
        self.bindings = bindings or Bindings()
        self.options = options or CompilerOptions()
        self._validator = Validator(warn_unreachable=self.options.warn_unreachable)
        self._machines: Dict[str, Type[StateMachine]] = {}

    def get_machine(self, name: str) -> Type[StateMachine]:
        """
        :raises KeyError: If no machine of that name was compiled.
        """
        return self._machines[name]

    def compile_machine(self, text: str, module: Optional[str] = None) -> Type[StateMachine]:
        """
        Compile ``Name, Init, [States], [Transitions]``.

        :raises ParseError: On malformed text.
        :raises ValidationError: On dangling references.
        :raises BindingError: If a class or capability is missing.
        """
        syntax = Parser(text).parse_machine()
        return self.build(self._validator.validate_machine(syntax), module or _caller_module())

    def compile_fallible_machine(self, text: str, module: Optional[str] = None) -> Type[StateMachine]:
        """
        Compile ``Name, Init, [States], [Transitions], ErrorType, ErrorState``.
        """
        syntax = Parser(text).parse_machine(fallible=True)
        return self.build(self._validator.validate_machine(syntax), module or _caller_module())

    def compile_messages(self, text: str) -> Type[StateMachine]:
        """
        Compile ``Name, [Payload -> State, Payload <- State]`` and attach the
        channels to the machine named ``Name``.

        :raises ValidationError: If no machine of that name was compiled.
        """
        syntax = Parser(text).parse_messages()
        machine_cls = self._machines.get(syntax.name)
        if machine_cls is None:
            raise ValidationError(f"Messages refer to {syntax.name}, which is not a compiled state machine")
        messages = self._validator.validate_messages(syntax, machine_cls._dispatch.machine)
        return self.attach_messages(machine_cls, messages)

    def compile_document(self, text: str, module: Optional[str] = None) -> Dict[str, Type[StateMachine]]:
        """
        Compile every declaration of a document; returns the machine classes
        by name.
        """
        module = module or _caller_module()
        document: Document = Parser(text).parse_document(self._validator)
        compiled = {machine.name: self.build(machine, module) for machine in document.machines}
        for messages in document.messages:
            self.attach_messages(compiled[messages.name], messages)
        return compiled

    def build(self, machine: MachineDef, module: Optional[str] = None) -> Type[StateMachine]:
        """
        Generate the dispatch table of a validated machine and synthesise its
        class.
        """
        if machine.name in self._machines:
            raise ValidationError(f"State machine {machine.name} is already compiled")
        options = self.options
        tracer = Tracer(
            machine.name,
            trace=options.trace,
            steps=options.trace_steps,
            messages=options.trace_messages,
        )
        table = generate(machine, self.bindings, tracer, check_types=options.check_types)
        machine_cls = type(
            machine.name,
            (StateMachine,),
            {
                "_dispatch": table,
                "__module__": module or _caller_module(),
                "__doc__": f"State machine {machine.name} starting in {machine.initial.type_name}.",
            },
        )
        self._machines[machine.name] = machine_cls
        logger.info(
            "Compiled %s machine %s with %d states",
            "fallible" if machine.is_fallible else "non-fallible",
            machine.name,
            len(machine.states),
        )
        return machine_cls

    def attach_messages(self, machine_cls: Type[StateMachine], messages: MessagesDef) -> Type[StateMachine]:
        if machine_cls._channels is not None:
            raise ValidationError(f"Messages for {messages.name} are already declared")
        machine_cls._channels = build_channels(messages, machine_cls._dispatch, self.bindings)
        logger.info("Attached %d message channels to %s", len(messages.messages), messages.name)
        return machine_cls


def _caller_module(depth: int = 2) -> str:
    # Default depth is the caller of the function asking.
    frame = sys._getframe(depth)
    return frame.f_globals.get("__name__", __name__)


def compile_machine(
    text: str, bindings: Optional[Bindings] = None, options: Optional[CompilerOptions] = None
) -> Type[StateMachine]:
    """Compile a non-fallible machine with a throwaway Compiler."""
    return Compiler(bindings, options).compile_machine(text, module=_caller_module(2))


def compile_fallible_machine(
    text: str, bindings: Optional[Bindings] = None, options: Optional[CompilerOptions] = None
) -> Type[StateMachine]:
    """Compile a fallible machine with a throwaway Compiler."""
    return Compiler(bindings, options).compile_fallible_machine(text, module=_caller_module(2))


def compile_messages(
    text: str,
    machine_cls: Type[StateMachine],
    bindings: Optional[Bindings] = None,
    options: Optional[CompilerOptions] = None,
) -> Type[StateMachine]:
    """
    Attach message channels to an already compiled machine class.

    :raises ValidationError: If the declaration names a different machine.
    """
    compiler = Compiler(bindings, options)
    syntax = Parser(text).parse_messages()
    messages = compiler._validator.validate_messages(syntax, machine_cls._dispatch.machine)
    return compiler.attach_messages(machine_cls, messages)


def compile_document(
    text: str, bindings: Optional[Bindings] = None, options: Optional[CompilerOptions] = None
) -> Dict[str, Type[StateMachine]]:
    """Compile every declaration of a document with a throwaway Compiler."""
    return Compiler(bindings, options).compile_document(text, module=_caller_module(2))