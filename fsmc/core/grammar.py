# fsmc/core/grammar.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Abstract syntax of the specification language. These types describe the
structure of a machine, never runtime data, and are immutable once the
validator has enriched them.
"""

import re
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional, Tuple

from fsmc.core.lexer import Span

_PUNCTUATION = re.compile(r"[<>,&'\[\]().:;\s]+")
_WORD_BOUNDARY = re.compile(r"[A-Z]+(?![a-z])|[A-Z]?[a-z]+|[0-9]+")


def _pascal_case(text: str) -> str:
    words = []
    for chunk in _PUNCTUATION.split(text):
        words.extend(_WORD_BOUNDARY.findall(chunk))
    return "".join(word[:1].upper() + word[1:].lower() for word in words)


def state_tag(name: str, type_args: Tuple[str, ...] = ()) -> str:
    """
    Derive the dispatch tag of a state. Type arguments are folded into the tag
    so that two instantiations of the same generic shape stay distinct:
    ``Foo<Up>`` -> ``FooUpState``, ``Foo<Down>`` -> ``FooDownState``.
    """
    return f"{name}{_pascal_case(' '.join(type_args))}State"


def format_type(name: str, type_args: Tuple[str, ...] = ()) -> str:
    """Canonical text of a (possibly generic) type reference."""
    if not type_args:
        return name
    return f"{name}<{', '.join(type_args)}>"


@dataclass(frozen=True)
class StateRef:
    """
    A reference to a state as written in the specification: a name plus the
    optional type-argument list.
    """

    name: str
    type_args: Tuple[str, ...] = ()
    span: Optional[Span] = field(default=None, compare=False, hash=False)

    @property
    def tag(self) -> str:
        """Dispatch tag distinguishing this state within its machine."""
        return state_tag(self.name, self.type_args)

    @property
    def type_name(self) -> str:
        """Canonical text, e.g. ``Foo<Up>``."""
        return format_type(self.name, self.type_args)

    def __str__(self) -> str:
        return self.type_name


@dataclass(frozen=True)
class TypeRef:
    """A reference to a non-state type: the error type or a message payload."""

    name: str
    type_args: Tuple[str, ...] = ()
    span: Optional[Span] = field(default=None, compare=False, hash=False)

    @property
    def type_name(self) -> str:
        return format_type(self.name, self.type_args)

    def __str__(self) -> str:
        return self.type_name


@dataclass(frozen=True)
class TransitionDef:
    """A directed edge of the transition graph."""

    source: StateRef
    destination: StateRef
    span: Optional[Span] = field(default=None, compare=False, hash=False)

    def __str__(self) -> str:
        return f"{self.source} => {self.destination}"


@dataclass(frozen=True)
class StateDef:
    """
    A declared state enriched with its outgoing transitions. The order of
    ``transits`` is the declaration order of the edges and therefore the guard
    evaluation priority.
    """

    ref: StateRef
    transits: Tuple[StateRef, ...] = ()

    @property
    def name(self) -> str:
        return self.ref.name

    @property
    def tag(self) -> str:
        return self.ref.tag

    @property
    def type_name(self) -> str:
        return self.ref.type_name


class Mode(Enum):
    """Operating mode of a machine."""

    NON_FALLIBLE = auto()
    FALLIBLE = auto()


@dataclass(frozen=True)
class HookNames:
    """Lifecycle method names looked up on state classes for a given mode."""

    entry: str
    execute: str
    exit: str

    @classmethod
    def for_mode(cls, mode: Mode) -> "HookNames":
        if mode is Mode.FALLIBLE:
            return cls(entry="try_entry", execute="try_execute", exit="try_exit")
        return cls(entry="entry", execute="execute", exit="exit")


@dataclass(frozen=True)
class MachineDef:
    """
    A validated machine: every transition endpoint is a declared state and
    every state knows its outgoing transitions.
    """

    name: str
    initial: StateDef
    states: Tuple[StateDef, ...]
    transitions: Tuple[TransitionDef, ...] = ()
    mode: Mode = Mode.NON_FALLIBLE
    error_type: Optional[TypeRef] = None
    error_state: Optional[StateDef] = None

    @property
    def hook_names(self) -> HookNames:
        return HookNames.for_mode(self.mode)

    @property
    def is_fallible(self) -> bool:
        return self.mode is Mode.FALLIBLE

    def get_state(self, tag: str) -> StateDef:
        """
        Return the state with the given dispatch tag.

        :raises KeyError: If no such state is declared.
        """
        for state in self.states:
            if state.tag == tag:
                return state
        raise KeyError(tag)

    def has_state(self, tag: str) -> bool:
        return any(state.tag == tag for state in self.states)


class MessageDirection(Enum):
    """PUSH delivers a payload into a state, POLL extracts one from it."""

    PUSH = "->"
    POLL = "<-"


@dataclass(frozen=True)
class StateMessage:
    """A single message channel: payload, direction and target state."""

    payload: TypeRef
    direction: MessageDirection
    state: StateRef
    span: Optional[Span] = field(default=None, compare=False, hash=False)

    def __str__(self) -> str:
        return f"{self.payload} {self.direction.value} {self.state}"


@dataclass(frozen=True)
class MessagesDef:
    """All message channels declared for one machine."""

    name: str
    messages: Tuple[StateMessage, ...] = ()
