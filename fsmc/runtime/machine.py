# fsmc/runtime/machine.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar, Optional, Union

from fsmc.core.errors import ChannelNotDeclaredError, InternalError

if TYPE_CHECKING:
    from fsmc.core.generator import DispatchTable
    from fsmc.core.messages import ChannelTable


@dataclass(frozen=True)
class ActiveState:
    """
    Read-only view of the storage slot: which state is active and its data.
    ``data`` is None before start and after stop.
    """

    tag: str
    state_type: type
    data: Any = None

    def is_state(self, target: Union[str, type]) -> bool:
        if isinstance(target, type):
            return self.state_type is target
        return self.tag == target


class StateMachine:
    """
    Base class of every compiled machine. Instances own exactly one state's
    data at a time; the class attribute ``_dispatch`` holds the dispatch table
    produced by the generator and ``_channels`` the optional message channels.

    Operations run to completion and are not reentrant: a hook must not call
    step on the machine that is running it.
    """

    _dispatch: ClassVar["DispatchTable"]
    _channels: ClassVar[Optional["ChannelTable"]] = None

    def __init__(self, initial_data: Any = None) -> None:
        """
        :param initial_data: Optional data of the initial state. When given,
            the machine is running right away and the initial state's entry
            hook runs at the first step; otherwise call start.
        """
        table = self._dispatch
        self._tag: str = table.machine.initial.tag
        self._data: Any = None
        self._running = False
        self._needs_entry = False
        if initial_data is not None:
            self._check_initial(initial_data)
            self._data = initial_data
            self._running = True
            self._needs_entry = True

    @property
    def name(self) -> str:
        return self._dispatch.name

    @property
    def running(self) -> bool:
        return self._running

    def start(self, initial_data: Any) -> None:
        """
        Store ``initial_data`` as the active state and run its entry hook.

        :raises InternalError: If the machine is already running.
        :raises TypeError: If the data is not an instance of the initial
            state's class.
        :raises CustomError: If the initial state is the error state of a
            fallible machine and its entry hook fails.
        """
        if self._running:
            raise InternalError(f"{self.name} is already running")
        self._check_initial(initial_data)
        table = self._dispatch
        self._running = True
        self._needs_entry = False
        self._tag = table.machine.initial.tag
        self._tag, self._data = table.initial.enter(initial_data, traced=False)
        table.tracer.trace("Start", table.machine.initial.type_name)

    def step(self) -> None:
        """
        Execute the active state and take at most one transition.

        :raises InternalError: If the machine is not running or a previous
            failure left the slot empty.
        :raises CustomError: If a hook of the error state fails.
        """
        if self._enter_pending():
            return
        data = self._take()
        self._tag, self._data = self._dispatch.blocks[self._tag].run(data)

    def stop(self) -> ActiveState:
        """
        Run the exit sequence of the active state and hand its data back. The
        machine can be started again afterwards. A pre-seeded machine that has
        not stepped yet runs its pending entry first.

        :raises InternalError: If the machine is not running or a previous
            failure left the slot empty. In the latter case the machine is
            reset.
        """
        table = self._dispatch
        self._enter_pending()
        try:
            data = self._take()
        except InternalError:
            if self._running:
                self.reset()
            raise
        table.tracer.trace("Stop")
        tag, data = table.blocks[self._tag].stop(data)
        self.reset()
        return ActiveState(tag, table.state_type(tag), data)

    def reset(self) -> None:
        """
        Drop any held data without running hooks and return to the state
        before start.
        """
        self._tag = self._dispatch.machine.initial.tag
        self._data = None
        self._running = False
        self._needs_entry = False

    def peek_state(self) -> ActiveState:
        return ActiveState(self._tag, self._dispatch.state_type(self._tag), self._data)

    def is_state(self, target: Union[str, type]) -> bool:
        """
        Whether ``target`` is the active state. ``target`` is a dispatch tag,
        the declared type text (``"Foo<Up>"``) or the bound class.

        :raises BindingError: If ``target`` is not a state of this machine.
        """
        return self._tag in self._dispatch.tags_for(target)

    def push_message(self, target: Union[str, type], message: Any) -> None:
        """
        Deliver ``message`` into ``target``.

        :raises StateIsNotActiveError: With the message as ``payload`` if
            ``target`` is not active.
        """
        channels = self._require_channels()
        self._enter_pending()
        channels.push(self, target, message)

    def poll_message(self, target: Union[str, type], payload: Union[str, type]) -> Any:
        """
        Retrieve a ``payload`` from ``target``; None if it has nothing yet.

        :raises StateIsNotActiveError: If ``target`` is not active.
        """
        channels = self._require_channels()
        self._enter_pending()
        return channels.poll(self, target, payload)

    def _enter_pending(self) -> bool:
        """Run the deferred entry of a pre-seeded machine; True if it redirected."""
        if not self._needs_entry:
            return False
        self._needs_entry = False
        block = self._dispatch.blocks[self._tag]
        self._tag, self._data = block.enter(self._take())
        return self._tag != block.tag

    def _take(self) -> Any:
        if not self._running or self._data is None:
            raise InternalError(f"{self.name} has no active state data; start it first")
        data, self._data = self._data, None
        return data

    def _check_initial(self, data: Any) -> None:
        initial = self._dispatch.initial
        if not isinstance(data, initial.hooks.state_type):
            raise TypeError(
                f"{self.name} must start in {initial.state.type_name} "
                f"({initial.hooks.state_type.__name__}), got {type(data).__name__}"
            )

    def _require_channels(self) -> "ChannelTable":
        if self._channels is None:
            raise ChannelNotDeclaredError(f"{self.name} has no messages declared")
        return self._channels

    def __repr__(self) -> str:
        state = self._dispatch.blocks[self._tag].state.type_name
        status = "running" if self._running else "stopped"
        return f"<{type(self).__name__} {state} ({status})>"
