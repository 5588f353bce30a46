"""fsmc: compiler for declarative finite state machine specifications

A specification names the initial state, the list of states and the list of
transitions. The compiler validates it against Python classes registered in a
Bindings object and produces a machine class that owns exactly one state's
data at a time.

Responsibilities:
    - Parsing machine, fallible machine and messages declarations
    - Validating state and transition references
    - Generating the per-state dispatch logic
    - Routing hook failures into an error state
    - Typed push and poll message channels

Cross-cutting Concerns:
    Error Handling:
        - ParseError and ValidationError at compile time
        - MachineError and MessageError at run time

    Logging:
        - Every module logs through the standard logging module
        - Optional trace lines forwarded to a user supplied sink
"""

from fsmc.compiler import (
    Compiler,
    CompilerOptions,
    compile_document,
    compile_fallible_machine,
    compile_machine,
    compile_messages,
)
from fsmc.core.errors import (
    BindingError,
    ChannelNotDeclaredError,
    CustomError,
    FsmcError,
    InternalError,
    MachineError,
    MessageError,
    ParseError,
    StateIsNotActiveError,
    TransitionError,
    ValidationError,
)
from fsmc.core.guards import TransitGuard
from fsmc.core.hooks import Bindings, derive_into
from fsmc.core.states import State, TryErrorState, TryState
from fsmc.core.trace import clear_trace_sink, trace_sink
from fsmc.runtime.machine import ActiveState, StateMachine

__version__ = "0.1.0"

__all__ = [
    "ActiveState",
    "BindingError",
    "Bindings",
    "ChannelNotDeclaredError",
    "Compiler",
    "CompilerOptions",
    "CustomError",
    "FsmcError",
    "InternalError",
    "MachineError",
    "MessageError",
    "ParseError",
    "State",
    "StateIsNotActiveError",
    "StateMachine",
    "TransitGuard",
    "TransitionError",
    "TryErrorState",
    "TryState",
    "ValidationError",
    "clear_trace_sink",
    "compile_document",
    "compile_fallible_machine",
    "compile_machine",
    "compile_messages",
    "derive_into",
    "trace_sink",
]
