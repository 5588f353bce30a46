# fsmc/core/parser.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Recursive-descent parser for the specification language.

Machine:          Name, Init, [State, ...], [Src => Dst, ...]
Fallible machine: Name, Init, [State, ...], [Src => Dst, ...], ErrorType, ErrorState
Messages:         Name, [Payload -> State, Payload <- State, ...]

A document holds several declarations::

    machine(Name, Init, [...], [...]);
    fallible_machine(Name, Init, [...], [...], ErrorType, ErrorState);
    messages(Name, [...]);

Parsing only checks token structure. Cross references (initial state,
transition endpoints, error state, message targets) are checked afterwards by
:mod:`fsmc.core.validation` once the complete state list is known.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from fsmc.core.errors import ParseError, ValidationError
from fsmc.core.grammar import (
    MachineDef,
    MessageDirection,
    MessagesDef,
    StateMessage,
    StateRef,
    TransitionDef,
    TypeRef,
)
from fsmc.core.lexer import Span, Token, TokenKind, tokenize
from fsmc.core.validation import Validator


@dataclass
class MachineSyntax:
    """Unvalidated result of parsing a machine declaration."""

    name: str
    initial: StateRef
    states: List[StateRef]
    transitions: List[TransitionDef]
    error_type: Optional[TypeRef] = None
    error_state: Optional[StateRef] = None
    span: Optional[Span] = None

    @property
    def is_fallible(self) -> bool:
        return self.error_state is not None


@dataclass
class MessagesSyntax:
    """Unvalidated result of parsing a messages declaration."""

    name: str
    messages: List[StateMessage]
    span: Optional[Span] = None


@dataclass(frozen=True)
class Document:
    """All declarations found in a specification document, in source order."""

    machines: Tuple[MachineDef, ...] = ()
    messages: Tuple[MessagesDef, ...] = ()

    def get_machine(self, name: str) -> MachineDef:
        for machine in self.machines:
            if machine.name == name:
                return machine
        raise KeyError(name)


@dataclass
class _DocumentBuilder:
    validator: Validator
    machines: Dict[str, MachineDef] = field(default_factory=dict)
    messages: List[MessagesDef] = field(default_factory=list)


class Parser:
    """
    Walks the token list produced by the lexer. Each ``parse_*`` method
    consumes exactly the tokens of its production.
    """

    def __init__(self, text: str) -> None:
        """
        :param text: Specification source.
        :raises ParseError: If the text contains characters the lexer rejects.
        """
        self._tokens: List[Token] = tokenize(text)
        self._index = 0

    # ------------------------------------------------------------------
    # Token helpers
    # ------------------------------------------------------------------

    @property
    def current(self) -> Token:
        return self._tokens[self._index]

    def peek(self, kind: TokenKind, offset: int = 0) -> bool:
        index = min(self._index + offset, len(self._tokens) - 1)
        return self._tokens[index].kind is kind

    def advance(self) -> Token:
        token = self._tokens[self._index]
        if token.kind is not TokenKind.EOF:
            self._index += 1
        return token

    def expect(self, kind: TokenKind, what: str) -> Token:
        if not self.peek(kind):
            self.fail(f"Expected {what}")
        return self.advance()

    def accept(self, kind: TokenKind) -> bool:
        if self.peek(kind):
            self.advance()
            return True
        return False

    def fail(self, message: str) -> None:
        token = self.current
        found = "end of input" if token.kind is TokenKind.EOF else repr(token.text)
        raise ParseError(f"{message} but got {found}", token.span)

    def expect_end(self, end: TokenKind) -> None:
        if not self.peek(end):
            self.fail("Expected end of declaration")

    # ------------------------------------------------------------------
    # Productions
    # ------------------------------------------------------------------

    def parse_type_args(self) -> Tuple[str, ...]:
        """
        Parse ``'<' TypeArg (',' TypeArg)* ','? '>'`` and return the canonical
        text of each argument.
        """
        self.expect(TokenKind.LT, "'<'")
        args: List[str] = []
        while not self.peek(TokenKind.GT):
            args.append(self.parse_type_arg())
            if not self.accept(TokenKind.COMMA):
                break
        if not args:
            self.fail("Expected at least one type argument")
        self.expect(TokenKind.GT, "'>' to close the type argument list")
        return tuple(args)

    def parse_type_arg(self) -> str:
        if self.accept(TokenKind.AMP):
            prefix = "&"
            if self.peek(TokenKind.LIFETIME):
                prefix += self.advance().text + " "
            return prefix + self.parse_type_arg()
        if self.peek(TokenKind.LIFETIME):
            return self.advance().text
        if self.accept(TokenKind.LBRACKET):
            inner = self.parse_type_arg()
            self.expect(TokenKind.RBRACKET, "']'")
            return f"[{inner}]"
        name = self.expect(TokenKind.IDENT, "a type name").text
        if self.peek(TokenKind.LT):
            nested = self.parse_type_args()
            return f"{name}<{', '.join(nested)}>"
        return name

    def parse_state(self) -> StateRef:
        """Parse ``Identifier ('<' TypeArgs '>')?``."""
        token = self.expect(TokenKind.IDENT, "a state name")
        type_args: Tuple[str, ...] = ()
        if self.peek(TokenKind.LT):
            type_args = self.parse_type_args()
        return StateRef(token.text, type_args, span=token.span)

    def parse_type_ref(self, what: str) -> TypeRef:
        token = self.expect(TokenKind.IDENT, what)
        type_args: Tuple[str, ...] = ()
        # '<' directly followed by '-' is the poll arrow, which the lexer
        # already folded into a single token.
        if self.peek(TokenKind.LT):
            type_args = self.parse_type_args()
        return TypeRef(token.text, type_args, span=token.span)

    def parse_transition(self) -> TransitionDef:
        """Parse ``State '=>' State``."""
        span = self.current.span
        source = self.parse_state()
        self.expect(TokenKind.FAT_ARROW, "'=>'")
        destination = self.parse_state()
        return TransitionDef(source, destination, span=span)

    def parse_state_message(self) -> StateMessage:
        """Parse ``Payload '->' State`` or ``Payload '<-' State``."""
        span = self.current.span
        payload = self.parse_type_ref("a message type")
        if self.accept(TokenKind.PUSH_ARROW):
            direction = MessageDirection.PUSH
        elif self.accept(TokenKind.POLL_ARROW):
            direction = MessageDirection.POLL
        else:
            self.fail("A direction must be specified with either '->' or '<-'")
        state = self.parse_state()
        return StateMessage(payload, direction, state, span=span)

    def parse_list(self, item: Callable[[], object]) -> list:
        """Parse ``'[' (Item (',' Item)* ','?)? ']'``."""
        self.expect(TokenKind.LBRACKET, "'['")
        items = []
        while not self.peek(TokenKind.RBRACKET):
            items.append(item())
            if not self.accept(TokenKind.COMMA):
                break
        self.expect(TokenKind.RBRACKET, "',' or ']'")
        return items

    def parse_machine(self, fallible: bool = False, end: TokenKind = TokenKind.EOF) -> MachineSyntax:
        """
        Parse a machine declaration body, optionally with the fallible
        extension (error type and error state).
        """
        name_token = self.expect(TokenKind.IDENT, "the state machine name")
        self.expect(TokenKind.COMMA, "','")
        initial = self.parse_state()
        self.expect(TokenKind.COMMA, "','")
        states = self.parse_list(self.parse_state)
        self.expect(TokenKind.COMMA, "','")
        transitions = self.parse_list(self.parse_transition)

        error_type = None
        error_state = None
        if fallible:
            self.expect(TokenKind.COMMA, "',' followed by the error type")
            error_type = self.parse_type_ref("an error type")
            self.expect(TokenKind.COMMA, "',' followed by the error state")
            error_state = self.parse_state()

        self.accept(TokenKind.COMMA)
        self.expect_end(end)
        return MachineSyntax(
            name=name_token.text,
            initial=initial,
            states=states,
            transitions=transitions,
            error_type=error_type,
            error_state=error_state,
            span=name_token.span,
        )

    def parse_messages(self, end: TokenKind = TokenKind.EOF) -> MessagesSyntax:
        """Parse a messages declaration body."""
        name_token = self.expect(TokenKind.IDENT, "the state machine name")
        self.expect(TokenKind.COMMA, "','")
        messages = self.parse_list(self.parse_state_message)
        self.accept(TokenKind.COMMA)
        self.expect_end(end)
        return MessagesSyntax(name=name_token.text, messages=messages, span=name_token.span)

    def parse_document(self, validator: Validator) -> Document:
        """
        Parse a sequence of ``machine(...)``, ``fallible_machine(...)`` and
        ``messages(...)`` declarations. Messages may only refer to machines
        declared earlier in the same document.
        """
        builder = _DocumentBuilder(validator=validator)
        while not self.peek(TokenKind.EOF):
            keyword = self.expect(TokenKind.IDENT, "'machine', 'fallible_machine' or 'messages'")
            self.expect(TokenKind.LPAREN, "'('")
            if keyword.text in ("machine", "fallible_machine"):
                syntax = self.parse_machine(fallible=keyword.text == "fallible_machine", end=TokenKind.RPAREN)
                if syntax.name in builder.machines:
                    raise ValidationError(f"State machine {syntax.name} is declared more than once")
                builder.machines[syntax.name] = validator.validate_machine(syntax)
            elif keyword.text == "messages":
                syntax = self.parse_messages(end=TokenKind.RPAREN)
                machine = builder.machines.get(syntax.name)
                if machine is None:
                    raise ValidationError(
                        f"Messages refer to {syntax.name}, which is not a state machine declared before them"
                    )
                builder.messages.append(validator.validate_messages(syntax, machine))
            else:
                raise ParseError(f"Unknown declaration {keyword.text!r}", keyword.span)
            self.expect(TokenKind.RPAREN, "')'")
            self.accept(TokenKind.SEMICOLON)
        return Document(machines=tuple(builder.machines.values()), messages=tuple(builder.messages))


def parse_state(text: str) -> StateRef:
    """Parse a single state reference such as ``Foo`` or ``Foo<Up>``."""
    parser = Parser(text)
    state = parser.parse_state()
    parser.expect_end(TokenKind.EOF)
    return state


def parse_machine(text: str, validator: Optional[Validator] = None) -> MachineDef:
    """
    Parse and validate a non-fallible machine declaration.

    :raises ParseError: On malformed input.
    :raises ValidationError: On dangling references.
    """
    syntax = Parser(text).parse_machine()
    return (validator or Validator()).validate_machine(syntax)


def parse_fallible_machine(text: str, validator: Optional[Validator] = None) -> MachineDef:
    """Parse and validate a fallible machine declaration."""
    syntax = Parser(text).parse_machine(fallible=True)
    return (validator or Validator()).validate_machine(syntax)


def parse_messages(text: str, machine: MachineDef, validator: Optional[Validator] = None) -> MessagesDef:
    """
    Parse and validate a messages declaration against ``machine``.

    :raises ValidationError: If the name does not match the machine or a
        target state is not declared.
    """
    syntax = Parser(text).parse_messages()
    return (validator or Validator()).validate_messages(syntax, machine)


def parse_document(text: str, validator: Optional[Validator] = None) -> Document:
    """Parse and validate every declaration of a specification document."""
    return Parser(text).parse_document(validator or Validator())
