"""A table-driven shift/reduce parser for arithmetic expressions.

Use `builder.build_automaton` to make the tables (once), then hand the
automaton to a `runtime.Parser` and parse as many token streams with it as
you like:

    parser = Parser()
    outcome = parser.parse_text("1 + 2 * (3 + 4)", ListSink())
"""
from . import automaton
from . import builder
from . import runtime

from .automaton import Accept, Automaton, Error, Reduce, Shift, decode_action, encode_action
from .errors import (
    ConflictError,
    InternalConsistencyError,
    LRExprError,
    MissingGoto,
    ParseSyntaxError,
    SourceUnavailable,
    StackEmpty,
    StackUnderflow,
)
from .grammar import PRODUCTIONS, NonTerminal, Production, Terminal
from .runtime import ParseError, ParseOutcome, Parser, ParseState
from .stack import ParseStack, StackEntry
from .tokens import Scanner, Token, TokenStream
from .trace import ListSink, LoggingSink, NullSink, StreamSink, TeeSink, TraceStep
