# fsmc/core/generator.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Dispatch engine generation. A validated MachineDef plus its Bindings are
compiled into a DispatchTable: one StateBlock per dispatch tag holding the
state's hooks and its outgoing transitions in priority order. The runtime
machine only ever looks up the block of the active tag and calls into it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from fsmc.core.errors import BindingError, TransitionError
from fsmc.core.fallible import FallibleInvoker, HookInvoker, SlotEntry
from fsmc.core.grammar import MachineDef, StateDef
from fsmc.core.guards import TransitGuard
from fsmc.core.hooks import Bindings, StateHooks, TransitionHooks
from fsmc.core.parser import parse_state
from fsmc.core.states import TryErrorState
from fsmc.core.trace import Tracer

logger = logging.getLogger(__name__)


class StateBlock:
    """
    Execution logic of one state: entry, the step sequence (execute, guards
    in declared order, transition) and the exit sequence shared by transitions
    and stop.
    """

    def __init__(
        self,
        state: StateDef,
        hooks: StateHooks,
        transitions: Tuple[TransitionHooks, ...],
        table: "DispatchTable",
    ) -> None:
        self.state = state
        self.hooks = hooks
        self.transitions = transitions
        self._table = table

    @property
    def tag(self) -> str:
        return self.state.tag

    def enter(self, data: Any, traced: bool = True) -> SlotEntry:
        """
        Run the entry hook on freshly activated data. ``traced=False`` is used
        by start, which reports its own Start line instead of Enter.
        """
        redirect = self._table.invoker.call(self.hooks.entry, data, self.state)
        if redirect is not None:
            return redirect
        if traced:
            self._table.tracer.trace("Enter", self.state.type_name)
        return SlotEntry(self.tag, data)

    def run(self, data: Any) -> SlotEntry:
        """
        One step of the active state. At most one transition is taken; the
        first guard reporting TRANSIT wins and later guards are not evaluated.
        """
        table = self._table
        table.tracer.step("Execute", self.state.type_name)
        redirect = table.invoker.call(self.hooks.execute, data, self.state)
        if redirect is not None:
            return redirect
        for transition in self.transitions:
            if TransitGuard.coerce(transition.guard(data)) is TransitGuard.TRANSIT:
                return self._transit(transition, data)
        return SlotEntry(self.tag, data)

    def exit(self, data: Any) -> Optional[SlotEntry]:
        """
        State exit hook followed by the action hook of every outgoing
        transition, in declared order.
        """
        invoker = self._table.invoker
        redirect = invoker.call(self.hooks.exit, data, self.state)
        if redirect is not None:
            return redirect
        for transition in self.transitions:
            redirect = invoker.call(transition.action, data, self.state)
            if redirect is not None:
                return redirect
        return None

    def stop(self, data: Any) -> SlotEntry:
        redirect = self.exit(data)
        if redirect is not None:
            return redirect
        self._table.tracer.trace("Exit", self.state.type_name)
        return SlotEntry(self.tag, data)

    def _transit(self, transition: TransitionHooks, data: Any) -> SlotEntry:
        table = self._table
        redirect = self.exit(data)
        if redirect is not None:
            return redirect
        table.tracer.trace("Exit", self.state.type_name)
        table.tracer.trace("Transit", f"From {transition.source.type_name} to {transition.destination.type_name}")

        target = table.blocks[transition.destination.tag]
        converted = transition.into(data)
        table.check_type(converted, target)
        return target.enter(converted)


@dataclass
class DispatchTable:
    """
    Everything a compiled machine needs at runtime, indexed by dispatch tag.
    """

    machine: MachineDef
    tracer: Tracer
    invoker: HookInvoker = field(default_factory=HookInvoker)
    blocks: Dict[str, StateBlock] = field(default_factory=dict)
    check_types: bool = True

    @property
    def name(self) -> str:
        return self.machine.name

    @property
    def initial(self) -> StateBlock:
        return self.blocks[self.machine.initial.tag]

    def state_type(self, tag: str) -> type:
        return self.blocks[tag].hooks.state_type

    def check_type(self, data: Any, block: StateBlock) -> None:
        """
        :raises TransitionError: If ``data`` is not an instance of the
            block's state class.
        """
        if self.check_types and not isinstance(data, block.hooks.state_type):
            raise TransitionError(
                f"{self.name}: conversion into {block.state.type_name} returned {type(data).__name__}, "
                f"expected {block.hooks.state_type.__name__}"
            )

    def tags_for(self, target: Any) -> List[str]:
        """
        Resolve a dispatch tag, a declared type text (``"Foo<Up>"``) or a bound
        class to the matching tags. A class bound to several instantiations of
        a generic shape matches all of them.

        :raises BindingError: If nothing in the machine matches.
        """
        if isinstance(target, type):
            tags = [tag for tag, block in self.blocks.items() if block.hooks.state_type is target]
        elif target in self.blocks:
            tags = [target]
        else:
            tag = parse_state(target).tag
            tags = [tag] if tag in self.blocks else []
        if not tags:
            raise BindingError(f"{target!r} is not a state of {self.name}")
        return tags


def generate(machine: MachineDef, bindings: Bindings, tracer: Tracer, check_types: bool = True) -> DispatchTable:
    """
    Compile a validated machine into its dispatch table.

    :raises BindingError: If a state class, guard or conversion is missing.
    """
    table = DispatchTable(machine=machine, tracer=tracer, check_types=check_types)
    names = machine.hook_names
    # State classes first, so an unbound state is reported before its edges.
    state_hooks = {state.tag: bindings.state_hooks(state.ref, names) for state in machine.states}
    for state in machine.states:
        transitions = tuple(bindings.transition_hooks(machine.name, state, target) for target in state.transits)
        table.blocks[state.tag] = StateBlock(state, state_hooks[state.tag], transitions, table)
        logger.debug(
            "%s: compiled %s with transitions %s",
            machine.name,
            state.type_name,
            [target.type_name for target in state.transits],
        )

    if machine.is_fallible:
        table.invoker = _fallible_invoker(machine, bindings, table)
    return table


def _fallible_invoker(machine: MachineDef, bindings: Bindings, table: DispatchTable) -> FallibleInvoker:
    error_state = machine.error_state
    error_type = bindings.resolve_error_type(machine.error_type)
    error_hooks = table.blocks[error_state.tag].hooks
    consume_error = getattr(error_hooks.state_type, "consume_error", None)
    if not callable(consume_error) or consume_error is TryErrorState.consume_error:
        raise BindingError(
            f"{machine.name}: error state {error_state.type_name} must define consume_error(error)"
        )
    # Every other state must convert into the error state.
    converters = {
        state.tag: bindings.converter(machine.name, state.ref, error_state.ref)
        for state in machine.states
        if state.tag != error_state.tag
    }
    return FallibleInvoker(
        error_type=error_type,
        error_state=error_state,
        error_hooks=error_hooks,
        converters=converters,
        tracer=table.tracer,
        check_types=table.check_types,
    )
