import dataclasses
import enum
import logging
import pathlib
import typing

from . import builder
from .automaton import Accept, Automaton, Error, Reduce, Shift
from .errors import (
    InternalConsistencyError,
    MissingGoto,
    ParseSyntaxError,
    ShiftPastEnd,
    StackUnderflow,
)
from .grammar import Terminal
from .stack import ParseStack
from .tokens import Token, TokenStream, placeholder
from .trace import TraceSink, TraceStep, emit

action_log = logging.getLogger("lrexpr.action")

# How many tokens of upcoming input to show in each trace step, counting the
# lookahead itself.
PREVIEW_TOKENS = 5


class TokenSource(typing.Protocol):
    def has_next(self) -> bool:
        """True until the lookahead is the end of input."""
        ...

    def peek(self) -> Token | None:
        """The lookahead, without consuming it. Calling this twice in a row
        gives the same token."""
        ...

    def next(self) -> Token | None:
        """Consume the lookahead and return it."""
        ...


class ParseState(enum.Enum):
    RUNNING = "running"
    ACCEPTED = "accepted"
    FAILED = "failed"


@dataclasses.dataclass(frozen=True)
class ParseError:
    message: str
    line: int
    position: int = 0
    lexeme: str | None = None

    # True when the tables are broken, as opposed to the input.
    internal: bool = False


@dataclasses.dataclass(frozen=True)
class ParseOutcome:
    success: bool
    steps_taken: int
    error: ParseError | None = None


def _preview(source: TokenSource) -> str:
    preview = getattr(source, "preview", None)
    if preview is not None:
        tokens = preview(PREVIEW_TOKENS)
    else:
        token = source.peek()
        tokens = [] if token is None else [token]

    if len(tokens) == 0:
        return "End of Input"
    return " ".join(token.format() for token in tokens)


def _internal_error(operation: str, token: Token, e: InternalConsistencyError) -> ParseError:
    return ParseError(
        message=(
            f"{operation} operation failed at line {token.line}, position {token.position} "
            f"on token '{token.lexeme}': {e}"
        ),
        line=token.line,
        position=token.position,
        lexeme=token.lexeme,
        internal=True,
    )


class Parser:
    """The driver loop. Give it a token source and it runs the automaton
    over it until it either accepts or hits an error.

    A Parser holds nothing but the (read-only) automaton, so one Parser can
    run any number of parses, including at the same time on different
    threads.
    """

    automaton: Automaton

    def __init__(self, automaton: Automaton | None = None):
        if automaton is None:
            automaton = builder.build_automaton()
        self.automaton = automaton

    def parse_text(self, text: str, sink: TraceSink | None = None) -> ParseOutcome:
        return self.parse(TokenStream.from_text(text), sink)

    def parse_file(self, path: str | pathlib.Path, sink: TraceSink | None = None) -> ParseOutcome:
        """Parse the contents of a file. Raises SourceUnavailable if the file
        can't be read; nothing is parsed in that case."""
        return self.parse(TokenStream.from_file(path), sink)

    def parse(self, source: TokenSource, sink: TraceSink | None = None) -> ParseOutcome:
        # The bottom of the stack is a sentinel which is never popped: a
        # reduction can only ever pop what earlier shifts and gotos pushed.
        stack = ParseStack()
        stack.push(0, Token(Terminal.EOF, "$", 0, 0))

        automaton = self.automaton
        state = ParseState.RUNNING
        error: ParseError | None = None
        step = 0

        al = action_log
        while state == ParseState.RUNNING:
            current_token = source.peek()
            if current_token is None:
                # The source ran dry without ever giving us an EOF.
                error = ParseError(message="Unexpected end of input without accept", line=0)
                state = ParseState.FAILED
                break

            current_state = stack.peek().state
            if isinstance(current_token.kind, Terminal):
                terminal = current_token.kind
            else:
                terminal = Terminal.INVALID

            action = automaton.lookup_action(current_state, terminal)
            step += 1
            if al.isEnabledFor(logging.INFO):
                al.info(
                    "{stack: <30} {input: <15} {action: <5}".format(
                        stack=repr(stack.states()[-5:]),
                        input=terminal.name,
                        action=repr(action),
                    )
                )

            match action:
                case Shift(state=next_state):
                    self._trace(sink, step, current_state, stack, source, "SHIFT", action)
                    if current_token.kind == Terminal.EOF:
                        # The source never moves past EOF, so shifting it
                        # would loop forever.
                        e = ShiftPastEnd()
                        al.error("Shift failed in state %d: %s", current_state, e)
                        error = _internal_error("Shift", current_token, e)
                        state = ParseState.FAILED
                    else:
                        stack.push(next_state, current_token)
                        source.next()

                case Reduce(production=index):
                    self._trace(sink, step, current_state, stack, source, "REDUCE", action)
                    try:
                        self._reduce(stack, index)
                    except InternalConsistencyError as e:
                        al.error("Reduce by rule %d failed in state %d: %s", index, current_state, e)
                        error = _internal_error("Reduce", current_token, e)
                        state = ParseState.FAILED

                case Accept():
                    self._trace(
                        sink, step, current_state, stack, source, "ACCEPT", "Input accepted"
                    )
                    state = ParseState.ACCEPTED

                case Error():
                    self._trace(
                        sink, step, current_state, stack, source, "ERROR", "Invalid syntax"
                    )
                    syntax_error = ParseSyntaxError(
                        current_token.line, current_token.position, current_token.lexeme
                    )
                    error = ParseError(
                        message=str(syntax_error),
                        line=current_token.line,
                        position=current_token.position,
                        lexeme=current_token.lexeme,
                    )
                    state = ParseState.FAILED

                case _:
                    typing.assert_never(action)

        return ParseOutcome(
            success=state == ParseState.ACCEPTED,
            steps_taken=step,
            error=error,
        )

    def _reduce(self, stack: ParseStack, index: int):
        """Pop the right hand side of rule `index`, then push the goto state
        for its left hand side. Raises InternalConsistencyError if the tables
        and the stack disagree."""
        try:
            production = self.automaton.production(index)
        except IndexError as e:
            raise InternalConsistencyError(str(e)) from e

        # Never pop the sentinel.
        if stack.size() - 1 < len(production.right):
            raise StackUnderflow()
        for _ in range(len(production.right)):
            stack.pop()

        exposed = stack.peek().state
        goto = self.automaton.lookup_goto(exposed, production.left)
        if goto is None:
            raise MissingGoto(exposed, production.left.display)
        stack.push(goto, placeholder(production.left))

    def _trace(
        self,
        sink: TraceSink | None,
        step: int,
        current_state: int,
        stack: ParseStack,
        source: TokenSource,
        operation: str,
        action: Shift | Reduce | Accept | Error | str,
    ):
        if sink is None:
            return

        if isinstance(action, str):
            description = action
        else:
            description = self.automaton.describe(action)

        emit(
            sink,
            TraceStep(
                step=step,
                state=current_state,
                stack=stack.render(),
                lookahead=_preview(source),
                operation=operation,
                action=description,
            ),
        )


def parse(text: str, sink: TraceSink | None = None) -> ParseOutcome:
    """Parse the provided text with a freshly built automaton."""
    return Parser().parse_text(text, sink)
