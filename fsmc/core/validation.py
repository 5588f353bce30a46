# fsmc/core/validation.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, List, Set

from fsmc.core.errors import ValidationError
from fsmc.core.grammar import MachineDef, MessagesDef, Mode, StateDef, StateRef, TransitionDef

if TYPE_CHECKING:
    from fsmc.core.parser import MachineSyntax, MessagesSyntax

logger = logging.getLogger(__name__)


class Validator:
    """
    Performs the referential-integrity checks on a parsed specification and
    enriches every state with its ordered list of outgoing transitions.
    """

    def __init__(self, warn_unreachable: bool = True) -> None:
        """
        :param warn_unreachable: Log a warning for states that cannot be
            reached from the initial state.
        """
        self._rules_engine = _ValidationRulesEngine(warn_unreachable)

    def validate_machine(self, syntax: "MachineSyntax") -> MachineDef:
        """
        Check a parsed machine and build its MachineDef.

        :param syntax: Parser output for a (fallible) machine declaration.
        :raises ValidationError: If validation fails.
        """
        return self._rules_engine.build_machine(syntax)

    def validate_messages(self, syntax: "MessagesSyntax", machine: MachineDef) -> MessagesDef:
        """
        Check a parsed messages declaration against the machine it extends.

        :raises ValidationError: If validation fails.
        """
        return self._rules_engine.build_messages(syntax, machine)


class _ValidationRulesEngine:
    """
    Internal engine applying the default rules in order and assembling the
    validated definitions.
    """

    def __init__(self, warn_unreachable: bool) -> None:
        self._default_rules = _DefaultValidationRules
        self._warn_unreachable = warn_unreachable

    def build_machine(self, syntax: "MachineSyntax") -> MachineDef:
        rules = self._default_rules
        rules.validate_unique_states(syntax.name, syntax.states)
        declared = {state.tag: state for state in syntax.states}
        rules.validate_transitions(syntax.name, syntax.transitions, declared)

        states = tuple(
            StateDef(
                ref=state,
                transits=tuple(t.destination for t in syntax.transitions if t.source.tag == state.tag),
            )
            for state in syntax.states
        )
        by_tag = {state.tag: state for state in states}

        initial = rules.find_declared(syntax.name, syntax.initial, by_tag, "init state")
        error_state = None
        mode = Mode.NON_FALLIBLE
        if syntax.error_state is not None:
            error_state = rules.find_declared(syntax.name, syntax.error_state, by_tag, "error state")
            mode = Mode.FALLIBLE

        machine = MachineDef(
            name=syntax.name,
            initial=initial,
            states=states,
            transitions=tuple(syntax.transitions),
            mode=mode,
            error_type=syntax.error_type,
            error_state=error_state,
        )
        if self._warn_unreachable:
            unreachable = rules.unreachable_states(machine)
            if unreachable:
                logger.warning(
                    "%s: states %s are not reachable from initial state %s",
                    machine.name,
                    [state.type_name for state in unreachable],
                    initial.type_name,
                )
        return machine

    def build_messages(self, syntax: "MessagesSyntax", machine: MachineDef) -> MessagesDef:
        rules = self._default_rules
        if syntax.name != machine.name:
            raise ValidationError(
                f"Messages are declared for {syntax.name} but the state machine is {machine.name}"
            )
        rules.validate_message_targets(machine, syntax.messages)
        return MessagesDef(name=syntax.name, messages=tuple(syntax.messages))


class _DefaultValidationRules:
    """
    Built-in rules ensuring a specification describes a closed, statically
    known graph.
    """

    @staticmethod
    def validate_unique_states(machine_name: str, states: List[StateRef]) -> None:
        """
        No two declared states may share a dispatch tag.
        """
        seen: Dict[str, StateRef] = {}
        for state in states:
            other = seen.get(state.tag)
            if other is not None:
                raise ValidationError(
                    f"{machine_name}: states {other.type_name} and {state.type_name} "
                    f"map to the same dispatch tag {state.tag}"
                )
            seen[state.tag] = state

    @staticmethod
    def validate_transitions(
        machine_name: str, transitions: List[TransitionDef], declared: Dict[str, StateRef]
    ) -> None:
        """
        Every transition endpoint must be a declared state and every edge may
        appear only once.
        """
        edges: Set[tuple] = set()
        for transition in transitions:
            for endpoint in (transition.source, transition.destination):
                if endpoint.tag not in declared:
                    raise ValidationError(
                        f"{machine_name}: state {endpoint.type_name} is referenced in transition "
                        f"{transition} but not declared in the list of states"
                    )
            edge = (transition.source.tag, transition.destination.tag)
            if edge in edges:
                raise ValidationError(f"{machine_name}: transition {transition} is declared more than once")
            edges.add(edge)

    @staticmethod
    def find_declared(machine_name: str, ref: StateRef, by_tag: Dict[str, StateDef], role: str) -> StateDef:
        """
        Locate the initial or error state in the declared state list.
        """
        state = by_tag.get(ref.tag)
        if state is None:
            raise ValidationError(
                f"{machine_name}: expected to find the {role} {ref.type_name} in the list of states"
            )
        return state

    @staticmethod
    def validate_message_targets(machine: MachineDef, messages: list) -> None:
        """
        Message targets must be states of the machine and each channel may be
        declared once.
        """
        channels: Set[tuple] = set()
        for message in messages:
            if not machine.has_state(message.state.tag):
                raise ValidationError(
                    f"{machine.name}: message {message} targets {message.state.type_name}, "
                    f"which is not a state of the machine"
                )
            channel = (message.state.tag, message.payload.type_name, message.direction)
            if channel in channels:
                raise ValidationError(f"{machine.name}: message {message} is declared more than once")
            channels.add(channel)

    @staticmethod
    def unreachable_states(machine: MachineDef) -> List[StateDef]:
        """
        Return the states not reachable from the initial state. In fallible
        mode the error state is reachable from every state.
        """
        reachable = {machine.initial.tag}
        if machine.error_state is not None:
            reachable.add(machine.error_state.tag)
        frontier = list(reachable)
        while frontier:
            state = machine.get_state(frontier.pop())
            for target in state.transits:
                if target.tag not in reachable:
                    reachable.add(target.tag)
                    frontier.append(target.tag)
        return [state for state in machine.states if state.tag not in reachable]
