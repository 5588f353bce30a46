# fsmc/core/messages.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Typed message channels. A messages declaration produces one channel per
(target state, payload, direction). Channels are only usable while their
target state is active; there is no queueing.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple, Union

from fsmc.core.errors import BindingError, ChannelNotDeclaredError, StateIsNotActiveError
from fsmc.core.grammar import MessageDirection, MessagesDef, StateMessage
from fsmc.core.hooks import Bindings

if TYPE_CHECKING:
    from fsmc.core.generator import DispatchTable
    from fsmc.runtime.machine import StateMachine


def _receive_message(state: Any, message: Any) -> None:
    state.receive_message(message)


def _return_message_for(payload_type: type) -> Callable[[Any], Any]:
    def _return(state: Any) -> Any:
        return state.return_message(payload_type)

    return _return


@dataclass(frozen=True)
class Channel:
    """One declared push or poll channel."""

    declaration: StateMessage
    state_tag: str
    payload_type: type
    callback: Callable

    @property
    def direction(self) -> MessageDirection:
        return self.declaration.direction


class ChannelTable:
    """
    Push and poll channels of one machine class, keyed by
    (state tag, payload class).
    """

    def __init__(self, table: "DispatchTable") -> None:
        self._table = table
        self._push: Dict[Tuple[str, type], Channel] = {}
        self._poll: Dict[Tuple[str, type], Channel] = {}

    def add(self, channel: Channel) -> None:
        """
        :raises BindingError: If another channel of the same direction and
            state already resolves to the same payload class.
        """
        channels = self._push if channel.direction is MessageDirection.PUSH else self._poll
        key = (channel.state_tag, channel.payload_type)
        existing = channels.get(key)
        if existing is not None:
            raise BindingError(
                f"{self._table.name}: {existing.declaration.payload.type_name} and "
                f"{channel.declaration.payload.type_name} both bind to {channel.payload_type.__name__} "
                f"for {channel.declaration.state.type_name}"
            )
        channels[key] = channel

    @property
    def channels(self) -> List[Channel]:
        return [*self._push.values(), *self._poll.values()]

    def push(self, machine: "StateMachine", target: Any, message: Any) -> None:
        """
        Deliver ``message`` to ``target`` if it is the active state.

        :raises StateIsNotActiveError: Carrying ``message`` back, if the target
            is not active.
        :raises ChannelNotDeclaredError: If no push channel matches.
        """
        candidates = self._select(self._push, target, type(message), "push")
        active = machine.peek_state()
        channel = candidates.get(active.tag)
        if channel is None or active.data is None:
            raise StateIsNotActiveError(self._describe(target), payload=message)
        self._table.tracer.message(
            "Push", f"{channel.declaration.payload.type_name} to {channel.declaration.state.type_name}"
        )
        channel.callback(active.data, message)

    def poll(self, machine: "StateMachine", target: Any, payload: Union[type, str]) -> Optional[Any]:
        """
        Ask ``target`` for a ``payload`` if it is the active state. None means
        the state has nothing to report yet.

        :raises StateIsNotActiveError: With no payload, if the target is not
            active.
        :raises ChannelNotDeclaredError: If no poll channel matches.
        """
        candidates = self._select(self._poll, target, payload, "poll")
        active = machine.peek_state()
        channel = candidates.get(active.tag)
        if channel is None or active.data is None:
            raise StateIsNotActiveError(self._describe(target))
        message = channel.callback(active.data)
        if message is not None:
            self._table.tracer.message(
                "Poll", f"{channel.declaration.payload.type_name} from {channel.declaration.state.type_name}"
            )
        return message

    def _select(
        self, channels: Dict[Tuple[str, type], Channel], target: Any, payload: Union[type, str], verb: str
    ) -> Dict[str, Channel]:
        try:
            tags = self._table.tags_for(target)
        except BindingError as err:
            raise ChannelNotDeclaredError(str(err)) from err
        found: Dict[str, Channel] = {}
        for tag in tags:
            channel = self._find(channels, tag, payload)
            if channel is not None:
                found[tag] = channel
        if not found:
            raise ChannelNotDeclaredError(
                f"{self._table.name}: no {verb} channel for {_payload_name(payload)} and {self._describe(target)}"
            )
        return found

    @staticmethod
    def _find(channels: Dict[Tuple[str, type], Channel], tag: str, payload: Union[type, str]) -> Optional[Channel]:
        if isinstance(payload, str):
            for (channel_tag, _), channel in channels.items():
                if channel_tag == tag and channel.declaration.payload.type_name == payload:
                    return channel
            return None
        for cls in payload.__mro__:
            channel = channels.get((tag, cls))
            if channel is not None:
                return channel
        return None

    @staticmethod
    def _describe(target: Any) -> str:
        return target.__name__ if isinstance(target, type) else str(target)


def _payload_name(payload: Union[type, str]) -> str:
    return payload.__name__ if isinstance(payload, type) else payload


def build_channels(messages: MessagesDef, table: "DispatchTable", bindings: Bindings) -> ChannelTable:
    """
    Resolve every declared message against the bindings and build the channel
    table. An explicit receiver or producer binding wins over the
    ``receive_message`` / ``return_message`` methods of the state class.

    :raises BindingError: If a payload class cannot be resolved or the state
        class offers no way to receive or produce the payload.
    """
    channels = ChannelTable(table)
    for message in messages.messages:
        payload_type = bindings.resolve_payload(message.payload)
        state_type = table.state_type(message.state.tag)
        callback = bindings.message_callback(message.state, message.payload, message.direction)
        if callback is None:
            method = "receive_message" if message.direction is MessageDirection.PUSH else "return_message"
            if not callable(getattr(state_type, method, None)):
                raise BindingError(
                    f"{messages.name}: {message.state.type_name} needs a {method} method or a registered "
                    f"callback for {message.payload.type_name}"
                )
            if message.direction is MessageDirection.PUSH:
                callback = _receive_message
            else:
                callback = _return_message_for(payload_type)
        channels.add(
            Channel(declaration=message, state_tag=message.state.tag, payload_type=payload_type, callback=callback)
        )
    return channels
