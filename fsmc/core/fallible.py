# fsmc/core/fallible.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Hook invocation strategies. The generated blocks never call a hook directly;
they go through an invoker so that fallible machines can reroute failures
into the error state without the blocks knowing about it.
"""

from typing import Any, Dict, NamedTuple, Optional

from fsmc.core.errors import CustomError, TransitionError
from fsmc.core.grammar import StateDef
from fsmc.core.hooks import HookFunction, IntoFunction, StateHooks
from fsmc.core.trace import Tracer


class SlotEntry(NamedTuple):
    """Content of the machine's storage slot: the active tag and its data."""

    tag: str
    data: Any


class HookInvoker:
    """
    Plain invocation used by non-fallible machines: the hook runs and any
    exception propagates to the caller.
    """

    def call(self, hook: HookFunction, state: Any, owner: StateDef) -> Optional[SlotEntry]:
        """
        Run ``hook`` on ``state`` (the data of ``owner``).

        :return: None to continue normally, or the slot entry the current
            operation must finish with instead.
        """
        hook(state)
        return None


class FallibleInvoker(HookInvoker):
    """
    Intercepts domain failures (instances of the machine's error type) raised
    by hooks of any state other than the error state. The failing state's
    data is converted into error state data, the error is handed over through
    ``consume_error`` and the error state is entered. Failures of the error
    state itself are raised as CustomError.
    """

    def __init__(
        self,
        error_type: type,
        error_state: StateDef,
        error_hooks: StateHooks,
        converters: Dict[str, IntoFunction],
        tracer: Tracer,
        check_types: bool = True,
    ) -> None:
        """
        :param error_type: Exception class signalling a domain failure.
        :param error_state: The designated error state.
        :param error_hooks: Lifecycle hooks of the error state.
        :param converters: Conversion into the error state, keyed by the tag of
            every other state.
        :param tracer: Trace emitter of the machine.
        :param check_types: Verify the converted data is an error state instance.
        """
        self.error_type = error_type
        self.error_state = error_state
        self._error_hooks = error_hooks
        self._converters = converters
        self._tracer = tracer
        self._check_types = check_types

    def call(self, hook: HookFunction, state: Any, owner: StateDef) -> Optional[SlotEntry]:
        try:
            hook(state)
        except self.error_type as err:
            if owner.tag == self.error_state.tag:
                raise CustomError(err) from err
            return self.redirect(err, state, owner)
        return None

    def redirect(self, error: Exception, state: Any, owner: StateDef) -> SlotEntry:
        """
        Move ``state`` into the error state and enter it.

        :raises CustomError: If the error state's entry hook fails.
        """
        self._tracer.trace("Enter error state")
        error_data = self._converters[owner.tag](state)
        if self._check_types and not isinstance(error_data, self._error_hooks.state_type):
            raise TransitionError(
                f"Conversion from {owner.type_name} into error state {self.error_state.type_name} "
                f"returned {type(error_data).__name__}"
            )
        error_data.consume_error(error)
        self.call(self._error_hooks.entry, error_data, self.error_state)
        return SlotEntry(self.error_state.tag, error_data)

