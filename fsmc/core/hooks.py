# fsmc/core/hooks.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Capability tables. Every state gets a StateHooks record (entry, execute, exit)
and every edge a TransitionHooks record (guard, action, conversion). Both are
assembled once, when a machine is compiled, from the classes and callables
registered in a Bindings object.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from fsmc.core.errors import BindingError
from fsmc.core.grammar import HookNames, MessageDirection, StateDef, StateRef, TypeRef, format_type
from fsmc.core.guards import GuardFunction, TransitGuard, constant_guard
from fsmc.core.parser import parse_state

HookFunction = Callable[[Any], None]
IntoFunction = Callable[[Any], Any]


def _noop(_state: Any) -> None:
    return None


def _method_caller(name: str) -> HookFunction:
    # Looked up on the instance; data lacking the hook skips it.
    def _call(state: Any) -> None:
        method = getattr(state, name, None)
        if method is not None:
            method()

    _call.__name__ = name
    return _call


def derive_into(destination: type) -> IntoFunction:
    """
    Conversion that drops the source data and builds the destination with
    its no-argument constructor.
    """

    def _into(_state: Any) -> Any:
        return destination()

    _into.__name__ = f"into_{destination.__name__}"
    return _into


@dataclass(frozen=True)
class StateHooks:
    """Lifecycle callables of one state; absent hooks are no-ops."""

    state_type: type
    entry: HookFunction = _noop
    execute: HookFunction = _noop
    exit: HookFunction = _noop

    @classmethod
    def from_class(cls, state_type: type, names: HookNames) -> "StateHooks":
        def _lookup(name: str) -> HookFunction:
            if callable(getattr(state_type, name, None)):
                return _method_caller(name)
            return _noop

        return cls(
            state_type=state_type,
            entry=_lookup(names.entry),
            execute=_lookup(names.execute),
            exit=_lookup(names.exit),
        )


@dataclass(frozen=True)
class TransitionHooks:
    """Capabilities of one edge, keyed by (source tag, destination tag)."""

    source: StateRef
    destination: StateRef
    guard: GuardFunction
    into: IntoFunction
    action: HookFunction = _noop


StateKey = Union[str, StateRef]


class Bindings:
    """
    Registry binding the names used in a specification to Python objects.

    Types (states, payloads, the error type) are registered by their
    specification text, e.g. ``"Foo<Up>"``; a registration for the bare name
    ``"Foo"`` also serves every instantiation ``Foo<...>``. Names that are not
    registered are looked up in ``namespace`` (dotted names are resolved
    attribute by attribute).

    Example::

        bindings = Bindings(namespace=globals())

        @bindings.guard("Idle", "Running")
        def should_run(idle):
            return idle.requested

        bindings.add_transition("Running", "Idle", guard=False, into=derive_into(Idle))
    """

    def __init__(self, namespace: Optional[Mapping[str, Any]] = None) -> None:
        """
        :param namespace: Fallback mapping for names that are not registered,
            typically ``globals()`` of the module defining the state classes.
        """
        self._namespace: Mapping[str, Any] = namespace if namespace is not None else {}
        self._types: Dict[str, Any] = {}
        self._guards: Dict[Tuple[str, str], GuardFunction] = {}
        self._actions: Dict[Tuple[str, str], HookFunction] = {}
        self._converters: Dict[Tuple[str, str], IntoFunction] = {}
        self._fallback_converters: Dict[str, IntoFunction] = {}
        self._receivers: Dict[Tuple[str, str], Callable[[Any, Any], None]] = {}
        self._producers: Dict[Tuple[str, str], Callable[[Any], Any]] = {}

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def add_type(self, name: str, obj: Any) -> Any:
        """
        Bind a specification name (state, payload or error type) to a class.

        :raises BindingError: If the name is already bound to another object.
        """
        key = parse_state(name).type_name
        existing = self._types.get(key)
        if existing is not None and existing is not obj:
            raise BindingError(f"{key} is already bound to {existing!r}")
        self._types[key] = obj
        return obj

    def state(self, name: Optional[str] = None) -> Callable[[type], type]:
        """
        Class decorator form of add_type. Without a name the class name is used.
        """

        def _register(cls: type) -> type:
            return self.add_type(name or cls.__name__, cls)

        return _register

    def add_transition(
        self,
        source: StateKey,
        destination: StateKey,
        guard: Union[GuardFunction, TransitGuard, bool, None] = None,
        into: Optional[IntoFunction] = None,
        action: Optional[HookFunction] = None,
    ) -> None:
        """
        Register the capabilities of the edge ``source => destination``.

        :param guard: Callable receiving the source data and returning a
            TransitGuard or bool, or a constant TransitGuard/bool.
        :param into: Conversion consuming the source data and returning the
            destination data.
        :param action: Hook run on the source data whenever the source state
            is exited, whichever transition is taken.
        """
        edge = self._edge(source, destination)
        if guard is not None:
            if isinstance(guard, (TransitGuard, bool)):
                guard = constant_guard(guard)
            self._guards[edge] = guard
        if into is not None:
            self._converters[edge] = into
        if action is not None:
            self._actions[edge] = action

    def guard(self, source: StateKey, destination: StateKey) -> Callable[[GuardFunction], GuardFunction]:
        def _register(fn: GuardFunction) -> GuardFunction:
            self._guards[self._edge(source, destination)] = fn
            return fn

        return _register

    def into(self, source: StateKey, destination: StateKey) -> Callable[[IntoFunction], IntoFunction]:
        def _register(fn: IntoFunction) -> IntoFunction:
            self._converters[self._edge(source, destination)] = fn
            return fn

        return _register

    def action(self, source: StateKey, destination: StateKey) -> Callable[[HookFunction], HookFunction]:
        def _register(fn: HookFunction) -> HookFunction:
            self._actions[self._edge(source, destination)] = fn
            return fn

        return _register

    def into_any(self, destination: StateKey) -> Callable[[IntoFunction], IntoFunction]:
        """
        Register a conversion from any state into ``destination``. Used for
        the error state of a fallible machine; an edge-specific conversion
        takes precedence.
        """

        def _register(fn: IntoFunction) -> IntoFunction:
            self._fallback_converters[_tag(destination)] = fn
            return fn

        return _register

    def receiver(self, state: StateKey, payload: str) -> Callable:
        """Register the callback delivering a pushed ``payload`` into ``state``."""

        def _register(fn: Callable[[Any, Any], None]) -> Callable[[Any, Any], None]:
            self._receivers[(_tag(state), parse_state(payload).type_name)] = fn
            return fn

        return _register

    def producer(self, state: StateKey, payload: str) -> Callable:
        """Register the callback producing a polled ``payload`` from ``state``."""

        def _register(fn: Callable[[Any], Any]) -> Callable[[Any], Any]:
            self._producers[(_tag(state), parse_state(payload).type_name)] = fn
            return fn

        return _register

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve_type(self, name: str, type_args: Tuple[str, ...] = ()) -> Any:
        """
        Resolve a specification type reference to the bound object.

        :raises BindingError: If the name is bound nowhere.
        """
        full_name = format_type(name, type_args)
        for key in (full_name, name):
            if key in self._types:
                return self._types[key]
        obj = self._lookup_namespace(name)
        if obj is None:
            raise BindingError(f"No class is bound to {full_name}")
        return obj

    def resolve_state(self, ref: StateRef) -> type:
        obj = self.resolve_type(ref.name, ref.type_args)
        if not isinstance(obj, type):
            raise BindingError(f"State {ref.type_name} must be bound to a class, got {obj!r}")
        return obj

    def resolve_payload(self, ref: TypeRef) -> type:
        obj = self.resolve_type(ref.name, ref.type_args)
        if not isinstance(obj, type):
            raise BindingError(f"Message {ref.type_name} must be bound to a class, got {obj!r}")
        return obj

    def resolve_error_type(self, ref: TypeRef) -> type:
        obj = self.resolve_type(ref.name, ref.type_args)
        if not (isinstance(obj, type) and issubclass(obj, Exception)):
            raise BindingError(f"Error type {ref.type_name} must be bound to an Exception subclass, got {obj!r}")
        return obj

    def state_hooks(self, ref: StateRef, names: HookNames) -> StateHooks:
        return StateHooks.from_class(self.resolve_state(ref), names)

    def transition_hooks(self, machine_name: str, source: StateDef, destination: StateRef) -> TransitionHooks:
        """
        Assemble the capability record of one declared edge.

        :raises BindingError: If the guard or the conversion is missing.
        """
        edge = (source.tag, destination.tag)
        guard = self._guards.get(edge)
        if guard is None:
            raise BindingError(f"{machine_name}: no guard registered for {source.type_name} => {destination.type_name}")
        return TransitionHooks(
            source=source.ref,
            destination=destination,
            guard=guard,
            into=self.converter(machine_name, source.ref, destination),
            action=self._actions.get(edge, _noop),
        )

    def converter(self, machine_name: str, source: StateRef, destination: StateRef) -> IntoFunction:
        """
        Return the conversion from ``source`` data into ``destination`` data.

        :raises BindingError: If none is registered.
        """
        into = self._converters.get((source.tag, destination.tag))
        if into is None:
            into = self._fallback_converters.get(destination.tag)
        if into is None:
            raise BindingError(
                f"{machine_name}: no conversion registered from {source.type_name} into {destination.type_name}"
            )
        return into

    def message_callback(self, state: StateRef, payload: TypeRef, direction: MessageDirection) -> Optional[Callable]:
        key = (state.tag, payload.type_name)
        if direction is MessageDirection.PUSH:
            return self._receivers.get(key)
        return self._producers.get(key)

    def _edge(self, source: StateKey, destination: StateKey) -> Tuple[str, str]:
        return _tag(source), _tag(destination)

    def _lookup_namespace(self, name: str) -> Any:
        head, *rest = name.replace("::", ".").split(".")
        obj = self._namespace.get(head)
        for attribute in rest:
            if obj is None:
                return None
            obj = getattr(obj, attribute, None)
        return obj


def _tag(state: StateKey) -> str:
    if isinstance(state, StateRef):
        return state.tag
    return parse_state(state).tag
