# fsmc/core/errors.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from fsmc.core.lexer import Span


class FsmcError(Exception):
    """
    Base exception class for errors raised by the state machine compiler and
    the machines it produces.
    """


class ParseError(FsmcError):
    """
    Raised when specification text does not follow the machine, messages or
    document grammar. Carries the span of the offending token.
    """

    def __init__(self, message: str, span: Optional["Span"] = None) -> None:
        self.message = message
        self.span = span
        if span is not None:
            message = f"{message} (line {span.line}, column {span.column})"
        super().__init__(message)


class ValidationError(FsmcError):
    """
    Raised when a parsed graph violates referential integrity, e.g. the
    initial state is not among the declared states.
    """


class BindingError(FsmcError):
    """
    Raised when a declared name cannot be bound to a Python class or a
    transition lacks a required capability (guard or conversion).
    """


class ChannelNotDeclaredError(BindingError):
    """
    Raised when push_message or poll_message is used for a (state, payload,
    direction) combination that no messages declaration introduced.
    """


class MachineError(FsmcError):
    """
    Base class for errors surfaced by start, step and stop.
    """


class InternalError(MachineError):
    """
    Raised when the storage slot is empty where data is expected: stepping or
    stopping a machine that is not running, or starting one twice.
    """


class CustomError(MachineError):
    """
    Raised when a hook of the error state fails in a fallible machine. The
    domain error is available as ``error``.
    """

    def __init__(self, error: BaseException) -> None:
        self.error = error
        super().__init__(f"Error state failed: {error!r}")


class TransitionError(MachineError):
    """
    Raised when a conversion produces data that is not an instance of the
    destination state's class.
    """


class MessageError(FsmcError):
    """
    Base class for message routing errors.
    """


class StateIsNotActiveError(MessageError):
    """
    Raised when a message targets a state that is not currently active. For a
    push the rejected payload is returned in ``payload``; for a poll it is None.
    """

    def __init__(self, state: str, payload: Any = None) -> None:
        self.state = state
        self.payload = payload
        super().__init__(f"State {state} is not active")
